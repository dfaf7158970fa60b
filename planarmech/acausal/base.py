"""Core types for planar acausal connector models.

Components are construction-time descriptors: plain Python dataclasses that
own ports, scalar outputs and a list of equations.  Nothing is evaluated
while a model is being built; the equations are collected by
``planarmech.acausal.system.flatten`` and handed to a solver.

Variables
---------
Each ``Frame`` port carries:
- **Potential variables** ``x``, ``y``, ``phi``: equated at a junction.
- **Flow variables** ``fx``, ``fy``, ``j``: summed to zero at a junction.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any, Callable, Optional, Union


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class InvalidConfigurationError(ValueError):
    """A component parameter is outside its set of valid values."""


class JunctionError(ValueError):
    """A connection cannot be formed from the given ports."""


class StructuralError(RuntimeError):
    """A model hierarchy or flattened equation set is malformed."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Domain(Enum):
    """Physical domain of a port.  Only ports of one domain may be joined."""
    PLANAR = "planar"


class VarRole(Enum):
    """How a variable takes part in junction equations."""
    POTENTIAL = "potential"
    FLOW = "flow"
    OUTPUT = "output"


class ResolveInFrame(Enum):
    """Frame in which a sensor's output vector is resolved."""
    WORLD = "world"
    FRAME_A = "frame_a"
    FRAME_RESOLVE = "frame_resolve"

    @classmethod
    def parse(cls, value: Union["ResolveInFrame", str]) -> "ResolveInFrame":
        """Convert a user-facing tag to a member.

        Accepts members, their values, and the symbol spelling with a
        leading colon (``":frame_a"``).

        Raises:
            InvalidConfigurationError: For any other value.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value[1:] if value.startswith(":") else value)
            except ValueError:
                pass
        valid = ", ".join(m.value for m in cls)
        raise InvalidConfigurationError(
            f"resolve_in_frame must be one of {valid}; got {value!r}"
        )


# ---------------------------------------------------------------------------
# Variables / Equations
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class AcausalVar:
    """A scalar unknown.

    Variables are hashed by identity so they can key value mappings; two
    variables are never merged, only related through equations.

    Attributes:
        name: Slot name, unique within ``owner``.
        role: Potential, flow, or scalar output.
        owner: The port or element the variable belongs to.
    """
    name: str
    role: VarRole
    owner: Any = dc_field(default=None, repr=False)

    @property
    def path(self) -> str:
        """Dotted name from the root of the model hierarchy."""
        if self.owner is None:
            return self.name
        return f"{self.owner.path}.{self.name}"


Values = Mapping[AcausalVar, Any]


@dataclass(eq=False)
class AcausalEquation:
    """An algebraic equation ``lhs = rhs_fn(values)``.

    Attributes:
        lhs: Variable on the left-hand side.
        rhs_fn: ``Callable[[Mapping[AcausalVar, scalar]], scalar]``.
        depends_on: Variables read by ``rhs_fn``.
        kind: Short tag for what produced the equation (``"potential"``,
            ``"flow"``, ``"zero_flow"``, ``"measurement"``, ...).
    """
    lhs: AcausalVar
    rhs_fn: Callable[[Values], Any]
    depends_on: tuple[AcausalVar, ...] = ()
    kind: str = "definition"

    def residual(self, vals: Values):
        """``lhs - rhs``; zero when the equation holds."""
        return vals[self.lhs] - self.rhs_fn(vals)

    def __str__(self) -> str:
        deps = ", ".join(v.path for v in self.depends_on)
        return f"{self.lhs.path} = f({deps})  [{self.kind}]"


def equate(lhs: AcausalVar, rhs: AcausalVar, kind: str = "alias") -> AcausalEquation:
    """``lhs = rhs``."""
    return AcausalEquation(
        lhs=lhs,
        rhs_fn=lambda vals, _r=rhs: vals[_r],
        depends_on=(rhs,),
        kind=kind,
    )


def fix(var: AcausalVar, value: float = 0.0, kind: str = "fixed") -> AcausalEquation:
    """``var = value``."""
    return AcausalEquation(
        lhs=var,
        rhs_fn=lambda vals, _v=value: _v,
        kind=kind,
    )


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class AcausalPort:
    """A physical connection point.

    Attributes:
        name: Port identifier, unique within its owner.
        domain: Physical domain; only equal domains may be connected.
        across_vars: Potential variable names, ordered.
        through_vars: Flow variable names, ordered and paired with
            ``across_vars`` by position only for display purposes.
        owner: The element that exposes the port.
    """
    name: str
    domain: Domain
    across_vars: tuple[str, ...]
    through_vars: tuple[str, ...]
    owner: Optional["AcausalElement"] = dc_field(default=None, repr=False)
    vars: dict[str, AcausalVar] = dc_field(default_factory=dict, repr=False)

    def __post_init__(self):
        for slot in self.across_vars:
            self.vars[slot] = AcausalVar(slot, VarRole.POTENTIAL, owner=self)
        for slot in self.through_vars:
            self.vars[slot] = AcausalVar(slot, VarRole.FLOW, owner=self)

    @property
    def path(self) -> str:
        if self.owner is None:
            return self.name
        return f"{self.owner.path}.{self.name}"

    @property
    def potentials(self) -> tuple[AcausalVar, ...]:
        return tuple(self.vars[s] for s in self.across_vars)

    @property
    def flows(self) -> tuple[AcausalVar, ...]:
        return tuple(self.vars[s] for s in self.through_vars)


class Frame(AcausalPort):
    """Planar frame connector.

    Potential: ``x``, ``y`` [m], ``phi`` [rad].
    Flow: ``fx``, ``fy`` [N], ``j`` [N.m].  Flow is positive when entering
    the owning component through the port.
    """

    def __init__(self, name: str = "frame", owner: Optional["AcausalElement"] = None):
        super().__init__(
            name=name,
            domain=Domain.PLANAR,
            across_vars=("x", "y", "phi"),
            through_vars=("fx", "fy", "j"),
            owner=owner,
        )

    @property
    def x(self) -> AcausalVar:
        return self.vars["x"]

    @property
    def y(self) -> AcausalVar:
        return self.vars["y"]

    @property
    def phi(self) -> AcausalVar:
        return self.vars["phi"]

    @property
    def fx(self) -> AcausalVar:
        return self.vars["fx"]

    @property
    def fy(self) -> AcausalVar:
        return self.vars["fy"]

    @property
    def j(self) -> AcausalVar:
        return self.vars["j"]


class FrameResolve(Frame):
    """Frame used only to supply a reference orientation.

    The consuming component must drive all three flow variables to zero.
    """

    def __init__(
        self,
        name: str = "frame_resolve",
        owner: Optional["AcausalElement"] = None,
    ):
        super().__init__(name=name, owner=owner)


# ---------------------------------------------------------------------------
# Element
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class AcausalElement:
    """Base for acausal components (construction-time only).

    Subclasses populate ``ports``, ``outputs``, ``equations`` and ``params``
    in ``__init__`` and expose the ports and outputs as attributes.

    Attributes:
        name: Identifier, unique among the sub-systems of the parent.
        ports: ``port_name -> AcausalPort`` exposed by this element.
        outputs: ``output_name -> AcausalVar`` scalar outputs.
        equations: Equations contributed by this element itself (not its
            sub-systems).
        params: Construction-time parameters.
        systems: Sub-models by name.
        parent: Enclosing element, set by ``add_system``.
    """
    name: str
    ports: dict[str, AcausalPort] = dc_field(default_factory=dict)
    outputs: dict[str, AcausalVar] = dc_field(default_factory=dict)
    equations: list[AcausalEquation] = dc_field(default_factory=list)
    params: dict[str, Any] = dc_field(default_factory=dict)
    systems: dict[str, "AcausalElement"] = dc_field(default_factory=dict)
    parent: Optional["AcausalElement"] = dc_field(default=None, repr=False)

    @property
    def path(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.path}.{self.name}"

    def add_port(self, port: AcausalPort) -> AcausalPort:
        port.owner = self
        self.ports[port.name] = port
        return port

    def add_output(self, name: str) -> AcausalVar:
        var = AcausalVar(name, VarRole.OUTPUT, owner=self)
        self.outputs[name] = var
        return var

    def add_system(self, system: "AcausalElement") -> "AcausalElement":
        if system.name in self.systems:
            raise StructuralError(
                f"'{self.path}' already has a sub-system named '{system.name}'"
            )
        if system.parent is not None:
            raise StructuralError(
                f"'{system.name}' is already part of '{system.parent.path}'"
            )
        system.parent = self
        self.systems[system.name] = system
        return system

    def extend(self, partial: "AcausalElement") -> None:
        """Adopt the ports and equations of a partial scaffold."""
        for port in partial.ports.values():
            self.add_port(port)
        self.equations.extend(partial.equations)
        partial.ports = {}
        partial.equations = []

    def is_ancestor_of(self, other: "AcausalElement") -> bool:
        node = other.parent
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def walk(self):
        """Yield this element and all nested sub-systems, depth first."""
        yield self
        for sub in self.systems.values():
            yield from sub.walk()
