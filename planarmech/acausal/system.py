"""Flattening of component hierarchies and the static solver bridge.

``compose`` wraps sub-models and extra equations into one named model.
``flatten`` walks a model and collects every variable and equation into an
``AcausalSystem``: an equinox ``Module`` whose residual function maps a
flat unknown vector to one residual per equation.  Purely algebraic
models (sensors attached to fixed frames) can be solved directly with an
``optimistix`` root finder.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from equinox import Module, field
import jax.numpy as jnp
from jaxtyping import Array, ArrayLike, Float
import optimistix as optx

from planarmech.acausal.base import (
    AcausalElement,
    AcausalEquation,
    AcausalVar,
    StructuralError,
)
from planarmech.acausal.connect import connection_sets
from planarmech.config import SOLVER


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def compose(
    name: str,
    systems: Iterable[AcausalElement],
    equations: Iterable[AcausalEquation] = (),
) -> AcausalElement:
    """Combine sub-models into one model tagged ``name``.

    Sub-systems are registered before ``equations`` is consumed, so the
    equations may be produced lazily by a generator that calls
    ``connect`` on the sub-systems' ports.
    """
    model = AcausalElement(name=name)
    for system in systems:
        model.add_system(system)
    model.equations.extend(equations)
    return model


# ---------------------------------------------------------------------------
# Flat system
# ---------------------------------------------------------------------------

class AcausalSystem(Module):
    """Flattened model: all unknowns and equations of a hierarchy.

    Attributes:
        name: Name of the root model.
        unknowns: Variables in state-vector order.
        equations: Equations in construction order (parents before their
            sub-systems).
    """
    name: str = field(static=True)
    unknowns: tuple[AcausalVar, ...] = field(static=True)
    equations: tuple[AcausalEquation, ...] = field(static=True)
    _names: tuple[str, ...] = field(static=True)

    def __init__(
        self,
        name: str,
        unknowns: Sequence[AcausalVar],
        equations: Sequence[AcausalEquation],
    ):
        self.name = name
        self.unknowns = tuple(unknowns)
        self.equations = tuple(equations)
        names = tuple(v.path for v in self.unknowns)
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise StructuralError(f"Duplicate variable names: {dupes}")
        self._names = names

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def is_square(self) -> bool:
        return len(self.unknowns) == len(self.equations)

    def index(self, name: str) -> int:
        """Position of the variable ``name`` in the unknown vector."""
        try:
            return self._names.index(name)
        except ValueError:
            raise KeyError(f"'{name}' is not a variable of '{self.name}'") from None

    def values(self, y: ArrayLike) -> dict[AcausalVar, Array]:
        """Map each unknown to its entry of ``y``."""
        return {var: y[i] for i, var in enumerate(self.unknowns)}

    def residuals(self, y: Float[Array, " n"], args=None) -> Float[Array, " m"]:
        """One residual ``lhs - rhs`` per equation."""
        vals = self.values(y)
        return jnp.stack([jnp.asarray(eq.residual(vals), dtype=y.dtype)
                          for eq in self.equations])

    def nodes(self) -> list[list[str]]:
        """Port paths grouped by junction."""
        return connection_sets(self.equations)

    def solve(
        self,
        guess: Optional[ArrayLike] = None,
        *,
        rtol: Optional[float] = None,
        atol: Optional[float] = None,
        max_steps: Optional[int] = None,
    ) -> dict[str, Array]:
        """Solve the algebraic system with Newton's method.

        Args:
            guess: Initial unknown vector; zeros by default.
            rtol, atol, max_steps: Override ``SOLVER`` config values.

        Returns:
            ``{variable_path: value}`` for every unknown.

        Raises:
            StructuralError: The equation count differs from the unknown
                count, e.g. because a port was left unconnected or
                connected twice.
        """
        if not self.is_square:
            raise StructuralError(
                f"'{self.name}' has {len(self.equations)} equations for "
                f"{len(self.unknowns)} unknowns"
            )
        solver = optx.Newton(
            rtol=SOLVER.rtol if rtol is None else rtol,
            atol=SOLVER.atol if atol is None else atol,
        )
        if guess is None:
            y0 = jnp.zeros(len(self.unknowns))
        else:
            y0 = jnp.asarray(guess, dtype=jnp.result_type(float))

        logger.debug("Solving '%s' (%d unknowns)", self.name, len(self.unknowns))
        sol = optx.root_find(
            self.residuals,
            solver,
            y0,
            max_steps=SOLVER.max_steps if max_steps is None else max_steps,
        )
        return dict(zip(self.names, sol.value))

    def describe(self) -> list[str]:
        """Human-readable equation listing."""
        return [str(eq) for eq in self.equations]


def flatten(model: AcausalElement) -> AcausalSystem:
    """Collect all variables and equations below ``model``."""
    unknowns: list[AcausalVar] = []
    equations: list[AcausalEquation] = []
    for element in model.walk():
        for port in element.ports.values():
            unknowns.extend(port.vars.values())
        unknowns.extend(element.outputs.values())
        equations.extend(element.equations)

    system = AcausalSystem(model.name, unknowns, equations)
    logger.info(
        "Flattened '%s': %d unknowns, %d equations",
        model.name, len(unknowns), len(equations),
    )
    return system
