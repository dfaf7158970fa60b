"""Junction equations for connected ports.

``connect`` is the whole wiring protocol between components: it takes the
ports meeting at one node and returns the equations that node must satisfy.

- Potential variables: ``N - 1`` equalities per slot chaining every port
  to the first one.
- Flow variables: one signed sum per slot, equal to zero.

Signs follow the Modelica convention.  A port owned by a sub-system of the
component that emits the connection is an *inside* port (+1).  A port owned
by the emitting component itself is an *outside* port (-1), since its flow
variables point into the composite from its surroundings.  At the top level
of a model every port is inside and the sum is the plain Kirchhoff law.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from planarmech.acausal.base import (
    AcausalEquation,
    AcausalPort,
    JunctionError,
    equate,
)


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Union-Find
# ---------------------------------------------------------------------------

class UnionFind:
    """Disjoint-set (Union-Find) with path compression and union by rank."""

    def __init__(self) -> None:
        self._parent: dict[str, str] = {}
        self._rank: dict[str, int] = {}

    def find(self, x: str) -> str:
        if x not in self._parent:
            self._parent[x] = x
            self._rank[x] = 0
        if self._parent[x] != x:
            self._parent[x] = self.find(self._parent[x])
        return self._parent[x]

    def union(self, x: str, y: str) -> None:
        rx, ry = self.find(x), self.find(y)
        if rx == ry:
            return
        if self._rank[rx] < self._rank[ry]:
            rx, ry = ry, rx
        self._parent[ry] = rx
        if self._rank[rx] == self._rank[ry]:
            self._rank[rx] += 1

    def groups(self) -> dict[str, list[str]]:
        """Return ``{root: [members]}``."""
        g: dict[str, list[str]] = {}
        for x in self._parent:
            root = self.find(x)
            g.setdefault(root, []).append(x)
        return g


# ---------------------------------------------------------------------------
# Junction rule
# ---------------------------------------------------------------------------

def port_signs(ports: Iterable[AcausalPort]) -> tuple[int, ...]:
    """Orientation of each port in a connection: +1 inside, -1 outside.

    A port is outside when its owner encloses the owner of another port in
    the same connection.
    """
    ports = tuple(ports)
    owners = [p.owner for p in ports]
    signs = []
    for i, owner in enumerate(owners):
        outside = owner is not None and any(
            other is not None and owner.is_ancestor_of(other)
            for k, other in enumerate(owners) if k != i
        )
        signs.append(-1 if outside else 1)
    return tuple(signs)


def _validate(ports: tuple[AcausalPort, ...]) -> None:
    if len(ports) < 2:
        raise JunctionError(
            f"A connection needs at least two ports; got {len(ports)}"
        )
    seen: set[int] = set()
    for port in ports:
        if id(port) in seen:
            raise JunctionError(f"Port '{port.path}' appears twice in one connection")
        seen.add(id(port))
    first = ports[0]
    for port in ports[1:]:
        if port.domain is not first.domain:
            raise JunctionError(
                f"Cannot connect '{first.path}' ({first.domain.value}) "
                f"to '{port.path}' ({port.domain.value})"
            )
        if (
            port.across_vars != first.across_vars
            or port.through_vars != first.through_vars
        ):
            raise JunctionError(
                f"Ports '{first.path}' and '{port.path}' carry different variables"
            )


def _flow_sum(ports: tuple[AcausalPort, ...], slot: str) -> AcausalEquation:
    # sum_i s_i f_i = 0, solved for the first flow.  Signs are read when the
    # equation is evaluated, so they reflect the finished hierarchy.
    flows = tuple(port.vars[slot] for port in ports)

    def rhs(vals, _ports=ports, _flows=flows):
        signs = port_signs(_ports)
        rest = zip(_flows[1:], signs[1:])
        return -sum((s * vals[f] for f, s in rest), 0.0) / signs[0]

    return AcausalEquation(
        lhs=flows[0],
        rhs_fn=rhs,
        depends_on=flows[1:],
        kind="flow",
    )


def connect(*ports: AcausalPort) -> list[AcausalEquation]:
    """Junction equations for ports meeting at one node.

    Inside and outside ports are told apart from the model hierarchy at
    evaluation time, so a composite may connect to a sub-system's port
    before registering it with ``AcausalElement.add_system``.

    Returns:
        ``3 * (N - 1)`` potential equalities followed by three flow sums,
        for ``N`` planar frames.

    Raises:
        JunctionError: Fewer than two ports, a repeated port, or ports
            of different domains.
    """
    _validate(ports)
    first = ports[0]

    equations: list[AcausalEquation] = []
    for slot in first.across_vars:
        ref = first.vars[slot]
        for port in ports[1:]:
            equations.append(equate(port.vars[slot], ref, kind="potential"))

    for slot in first.through_vars:
        equations.append(_flow_sum(ports, slot))

    logger.debug(
        "Connected %s (%d equations)",
        ", ".join(p.path for p in ports),
        len(equations),
    )
    return equations


def connection_sets(equations: Iterable[AcausalEquation]) -> list[list[str]]:
    """Group port paths that share a node.

    Nodes are recovered from the potential equalities emitted by
    ``connect``; two connections that share a port describe one node.
    Groups are sorted for stable display.
    """
    uf = UnionFind()
    for eq in equations:
        if eq.kind != "potential":
            continue
        uf.union(eq.lhs.owner.path, eq.depends_on[0].owner.path)
    return sorted(sorted(members) for members in uf.groups().values())
