"""Tests for the junction rule.

Covers equation counts, flow orientation of inside/outside ports,
idempotence on already-consistent values, and construction errors.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

import pytest

from planarmech.acausal import (
    AbsolutePosition,
    AcausalElement,
    AcausalPort,
    Domain,
    Fixed,
    Frame,
    JunctionError,
    compose,
    connect,
    flatten,
)
from planarmech.acausal.connect import UnionFind, port_signs


# =========================================================================
# Fixtures
# =========================================================================

def _make_frames(n: int) -> list[Frame]:
    """``n`` frames owned by sibling elements under one parent."""
    parent = AcausalElement(name="model")
    frames = []
    for i in range(n):
        elem = parent.add_system(AcausalElement(name=f"e{i}"))
        frames.append(elem.add_port(Frame("frame")))
    return frames


def _values(frames, pose=(1.0, 2.0, 0.5), flows=None):
    """Equal potentials on every frame; flows given per frame."""
    vals = {}
    for k, frame in enumerate(frames):
        for var, v in zip(frame.potentials, pose):
            vals[var] = v
        for var, v in zip(frame.flows, flows[k]):
            vals[var] = v
    return vals


# =========================================================================
# Test classes
# =========================================================================

class TestJunctionEquations:
    """Equation structure produced by ``connect``."""

    @pytest.mark.parametrize("n", [2, 3, 5])
    def test_equation_count(self, n):
        """3 (N - 1) potential equalities plus 3 flow sums."""
        eqs = connect(*_make_frames(n))
        assert sum(eq.kind == "potential" for eq in eqs) == 3 * (n - 1)
        assert sum(eq.kind == "flow" for eq in eqs) == 3

    def test_potentials_chain_to_first_port(self):
        """Every equality references the first port's variable."""
        frames = _make_frames(3)
        eqs = connect(*frames)
        for eq in eqs:
            if eq.kind == "potential":
                assert eq.depends_on[0].owner is frames[0]
                assert eq.lhs.owner is not frames[0]

    def test_flow_sum_covers_all_ports(self):
        """Each flow equation involves the same slot on every port."""
        frames = _make_frames(3)
        eqs = [eq for eq in connect(*frames) if eq.kind == "flow"]
        for eq, slot in zip(eqs, ("fx", "fy", "j")):
            involved = (eq.lhs,) + eq.depends_on
            assert {v.owner.owner.name for v in involved} == {"e0", "e1", "e2"}
            assert {v.name for v in involved} == {slot}

    def test_idempotent_on_consistent_values(self):
        """Equal potentials and balanced flows satisfy every equation."""
        frames = _make_frames(3)
        vals = _values(
            frames,
            flows=[(1.0, -2.0, 0.5), (-3.0, 1.0, 0.0), (2.0, 1.0, -0.5)],
        )
        for eq in connect(*frames):
            assert eq.residual(vals) == pytest.approx(0.0)

    def test_unbalanced_flow_violates_sum(self):
        """A non-zero net flow leaves a residual."""
        frames = _make_frames(2)
        vals = _values(frames, flows=[(1.0, 0.0, 0.0), (1.0, 0.0, 0.0)])
        residuals = [eq.residual(vals) for eq in connect(*frames)]
        assert residuals[-3] == pytest.approx(2.0)

    def test_mismatched_potential_violates_equality(self):
        frames = _make_frames(2)
        vals = _values(frames, flows=[(0.0,) * 3, (0.0,) * 3])
        vals[frames[1].x] = 4.0
        eqs = connect(*frames)
        assert eqs[0].residual(vals) == pytest.approx(3.0)


class TestPortOrientation:
    """Inside/outside signs for hierarchical connections."""

    def test_siblings_are_inside(self):
        assert port_signs(_make_frames(3)) == (1, 1, 1)

    def test_composite_port_is_outside(self):
        """A sensor's own frame_a is outside relative to its sub-system."""
        sensor = AbsolutePosition("sensor")
        assert port_signs((sensor.pos.frame_a, sensor.frame_a)) == (1, -1)
        assert port_signs((sensor.frame_a, sensor.pos.frame_a)) == (-1, 1)

    def test_outside_pair_forwards_flow(self):
        """Inside/outside pair reduces to ``outside.f = inside.f``."""
        sensor = AbsolutePosition("sensor")
        eqs = connect(sensor.pos.frame_a, sensor.frame_a)
        vals = {v: 0.0 for p in (sensor.pos.frame_a, sensor.frame_a) for v in p.vars.values()}
        vals[sensor.pos.frame_a.fx] = 2.5
        vals[sensor.frame_a.fx] = 2.5
        flow_fx = [eq for eq in eqs if eq.kind == "flow"][0]
        assert flow_fx.residual(vals) == pytest.approx(0.0)

    def test_connect_before_add_system(self):
        """Orientation follows the hierarchy as it stands when evaluated."""
        outer = AcausalElement(name="outer")
        outer_frame = outer.add_port(Frame("frame"))
        inner = AcausalElement(name="inner")
        inner_frame = inner.add_port(Frame("frame"))
        eqs = connect(outer_frame, inner_frame)
        outer.add_system(inner)

        vals = {v: 0.0 for p in (outer_frame, inner_frame) for v in p.vars.values()}
        vals[outer_frame.fx] = 2.5
        vals[inner_frame.fx] = 2.5
        flow_fx = [eq for eq in eqs if eq.kind == "flow"][0]
        assert flow_fx.residual(vals) == pytest.approx(0.0)


class TestJunctionErrors:
    """Under-specified or inconsistent connections."""

    def test_no_ports(self):
        with pytest.raises(JunctionError):
            connect()

    def test_single_port(self):
        with pytest.raises(JunctionError, match="at least two"):
            connect(Frame("frame"))

    def test_repeated_port(self):
        frame = Frame("frame")
        with pytest.raises(JunctionError, match="twice"):
            connect(frame, frame)

    def test_different_variables(self):
        other = AcausalPort(
            name="p",
            domain=Domain.PLANAR,
            across_vars=("x",),
            through_vars=("fx",),
        )
        with pytest.raises(JunctionError, match="different variables"):
            connect(Frame("frame"), other)


class TestConnectionSets:
    """Node grouping recovered from potential equalities."""

    def test_union_find_groups(self):
        uf = UnionFind()
        uf.union("a", "b")
        uf.union("c", "d")
        uf.union("b", "d")
        uf.find("e")
        groups = sorted(sorted(g) for g in uf.groups().values())
        assert groups == [["a", "b", "c", "d"], ["e"]]

    def test_nodes_span_hierarchy(self):
        """Top-level and forwarded ports end up on one node."""
        fixed = Fixed("fixed", x=1.0)
        sensor = AbsolutePosition("sensor")
        model = compose(
            "model",
            [fixed, sensor],
            connect(fixed.frame, sensor.frame_a),
        )
        nodes = flatten(model).nodes()
        assert [
            "model.fixed.frame",
            "model.sensor.frame_a",
            "model.sensor.pos.frame_a",
        ] in nodes
        assert [
            "model.sensor.pos.frame_resolve",
            "model.sensor.zero_position.frame_resolve",
        ] in nodes
