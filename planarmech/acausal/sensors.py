"""Planar position sensors.

Partial sensors are port scaffolds that concrete sensors adopt through
``AcausalElement.extend``.  Base sensors additionally force every flow
variable of their ports to zero: a sensor reads potentials and exerts no
force or torque.

Elements
--------
- **PartialAbsoluteSensor** -- ``frame_a``.
- **PartialRelativeSensor** -- ``frame_a``, ``frame_b``.
- **PartialAbsoluteBaseSensor** -- ``frame_a``, ``frame_resolve``; zero flows.
- **PartialRelativeBaseSensor** -- ``frame_a``, ``frame_b``,
  ``frame_resolve``; zero flows.
- **BasicAbsolutePosition / AbsolutePosition** -- pose of ``frame_a``.
- **BasicRelativePosition / RelativePosition** -- pose of ``frame_b``
  relative to ``frame_a``.

The ``Basic*`` sensors always expose ``frame_resolve``, which must be
connected.  The composite sensors connect it to an external port when
``resolve_in_frame`` is ``frame_resolve`` and to a ``ZeroPosition``
otherwise.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

import jax.numpy as jnp

from planarmech.acausal.base import (
    AcausalElement,
    AcausalEquation,
    AcausalVar,
    Frame,
    FrameResolve,
    ResolveInFrame,
    equate,
    fix,
)
from planarmech.acausal.connect import connect
from planarmech.acausal.rotation import resolve_pose, rotate_into
from planarmech.acausal.sources import ZeroPosition


logger = logging.getLogger(__name__)


def _zero_flows(*frames: Frame) -> list[AcausalEquation]:
    return [fix(var, 0.0, kind="zero_flow") for frame in frames for var in frame.flows]


def _component_equations(
    outputs: tuple[AcausalVar, ...],
    vector_fn,
    depends_on: tuple[AcausalVar, ...],
) -> list[AcausalEquation]:
    # output[i] = vector_fn(vals)[i]
    return [
        AcausalEquation(
            lhs=out,
            rhs_fn=lambda vals, _i=i: vector_fn(vals)[_i],
            depends_on=depends_on,
            kind="measurement",
        )
        for i, out in enumerate(outputs)
    ]


# ---------------------------------------------------------------------------
# Partial sensors
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class PartialAbsoluteSensor(AcausalElement):
    """Scaffold for sensors attached at a single frame.

    Port:
        frame_a -- 2-dim. coordinate system.
    """

    def __init__(self, name: str = "partial_abs_sensor"):
        super().__init__(name=name)
        self.frame_a = self.add_port(Frame("frame_a"))


@dataclass(eq=False)
class PartialRelativeSensor(AcausalElement):
    """Scaffold for sensors between two frames.

    Ports:
        frame_a, frame_b -- each must be connected exactly once.  This is
        not checked here; a violation surfaces as a structurally singular
        system when the model is solved.
    """

    def __init__(self, name: str = "partial_rel_sensor"):
        super().__init__(name=name)
        self.frame_a = self.add_port(Frame("frame_a"))
        self.frame_b = self.add_port(Frame("frame_b"))


@dataclass(eq=False)
class PartialAbsoluteBaseSensor(AcausalElement):
    """Scaffold for absolute sensors defined by equations.

    Ports:
        frame_a -- coordinate system from which quantities are measured.
        frame_resolve -- coordinate system in which the output is
            optionally resolved.  Must be connected exactly once.

    Equations:
        All six flow variables are zero.
    """

    def __init__(self, name: str = "partial_abs_base_sensor"):
        super().__init__(name=name)
        self.frame_a = self.add_port(Frame("frame_a"))
        self.frame_resolve = self.add_port(FrameResolve("frame_resolve"))
        # TODO: assert frame_resolve has exactly one connection once flatten tracks per-port connection counts
        self.equations.extend(_zero_flows(self.frame_a, self.frame_resolve))


@dataclass(eq=False)
class PartialRelativeBaseSensor(AcausalElement):
    """Scaffold for relative sensors defined by equations.

    Ports:
        frame_a, frame_b -- measured frames.
        frame_resolve -- resolution frame.  Must be connected exactly once.

    Equations:
        All nine flow variables are zero.
    """

    def __init__(self, name: str = "partial_rel_base_sensor"):
        super().__init__(name=name)
        self.frame_a = self.add_port(Frame("frame_a"))
        self.frame_b = self.add_port(Frame("frame_b"))
        self.frame_resolve = self.add_port(FrameResolve("frame_resolve"))
        self.equations.extend(
            _zero_flows(self.frame_a, self.frame_b, self.frame_resolve)
        )


# ---------------------------------------------------------------------------
# Absolute position
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class BasicAbsolutePosition(AcausalElement):
    """Absolute position and orientation of ``frame_a``.

    Same as ``AbsolutePosition`` except that ``frame_resolve`` is always
    present and must be connected.

    Outputs:
        x, y [m]; phi [rad], counterclockwise.

    Ports:
        frame_a -- measured frame.
        frame_resolve -- frame in which the output is optionally resolved.

    Args:
        resolve_in_frame: ``world`` returns the raw pose; ``frame_a`` and
            ``frame_resolve`` rotate it into that frame and subtract the
            frame's angle.
    """

    def __init__(
        self,
        name: str = "pos",
        resolve_in_frame: Union[ResolveInFrame, str] = ResolveInFrame.WORLD,
    ):
        resolve_in_frame = ResolveInFrame.parse(resolve_in_frame)
        super().__init__(name=name)
        self.params["resolve_in_frame"] = resolve_in_frame

        self.extend(PartialAbsoluteBaseSensor())
        frame_a = self.frame_a = self.ports["frame_a"]
        frame_resolve = self.frame_resolve = self.ports["frame_resolve"]

        self.x = self.add_output("x")
        self.y = self.add_output("y")
        self.phi = self.add_output("phi")

        raw = frame_a.potentials
        match resolve_in_frame:
            case ResolveInFrame.WORLD:
                reference = None
            case ResolveInFrame.FRAME_A:
                reference = frame_a.phi
            case ResolveInFrame.FRAME_RESOLVE:
                reference = frame_resolve.phi

        if reference is None:
            for out, var in zip((self.x, self.y, self.phi), raw):
                self.equations.append(equate(out, var, kind="measurement"))
        else:
            def r(vals, _raw=raw, _ref=reference):
                return resolve_pose(jnp.stack([vals[v] for v in _raw]), vals[_ref])

            depends_on = raw if reference in raw else raw + (reference,)
            self.equations.extend(
                _component_equations((self.x, self.y, self.phi), r, depends_on)
            )


@dataclass(eq=False)
class AbsolutePosition(AcausalElement):
    """Absolute position and orientation of the origin of a frame.

    Outputs:
        x, y [m]; phi [rad], counterclockwise.

    Ports:
        frame_a -- measured frame.
        frame_resolve -- only when ``resolve_in_frame`` is
            ``frame_resolve``; must then be connected by the caller.

    Sub-systems:
        pos -- ``BasicAbsolutePosition`` doing the measurement.
        zero_position -- ``ZeroPosition`` grounding ``pos.frame_resolve``
            when no external resolution frame is used.
    """

    def __init__(
        self,
        name: str,
        resolve_in_frame: Union[ResolveInFrame, str] = ResolveInFrame.WORLD,
    ):
        resolve_in_frame = ResolveInFrame.parse(resolve_in_frame)
        super().__init__(name=name)
        self.params["resolve_in_frame"] = resolve_in_frame

        self.pos = self.add_system(
            BasicAbsolutePosition("pos", resolve_in_frame=resolve_in_frame)
        )
        self.extend(PartialAbsoluteSensor())
        self.frame_a = self.ports["frame_a"]

        self.x = self.add_output("x")
        self.y = self.add_output("y")
        self.phi = self.add_output("phi")

        self.equations.extend([
            equate(self.pos.x, self.x),
            equate(self.pos.y, self.y),
            equate(self.pos.phi, self.phi),
        ])
        self.equations.extend(connect(self.pos.frame_a, self.frame_a))
        _ground_resolve_frame(self, self.pos, resolve_in_frame)


# ---------------------------------------------------------------------------
# Relative position
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class BasicRelativePosition(AcausalElement):
    """Position and orientation of ``frame_b`` relative to ``frame_a``.

    ``r = [b.x - a.x, b.y - a.y, b.phi - a.phi]``, rotated into
    ``frame_a`` or ``frame_resolve`` unless resolved in the world frame.

    Outputs:
        rel_x, rel_y [m]; rel_phi [rad].
    """

    def __init__(
        self,
        name: str = "pos",
        resolve_in_frame: Union[ResolveInFrame, str] = ResolveInFrame.FRAME_A,
    ):
        resolve_in_frame = ResolveInFrame.parse(resolve_in_frame)
        super().__init__(name=name)
        self.params["resolve_in_frame"] = resolve_in_frame

        self.extend(PartialRelativeBaseSensor())
        frame_a = self.frame_a = self.ports["frame_a"]
        frame_b = self.frame_b = self.ports["frame_b"]
        self.frame_resolve = self.ports["frame_resolve"]

        self.rel_x = self.add_output("rel_x")
        self.rel_y = self.add_output("rel_y")
        self.rel_phi = self.add_output("rel_phi")

        match resolve_in_frame:
            case ResolveInFrame.WORLD:
                reference = None
            case ResolveInFrame.FRAME_A:
                reference = frame_a.phi
            case ResolveInFrame.FRAME_RESOLVE:
                reference = self.frame_resolve.phi

        pairs = tuple(zip(frame_b.potentials, frame_a.potentials))

        def r(vals, _pairs=pairs, _ref=reference):
            diff = jnp.stack([vals[b] - vals[a] for b, a in _pairs])
            if _ref is None:
                return diff
            return rotate_into(diff, vals[_ref])

        depends_on = frame_b.potentials + frame_a.potentials
        if reference is not None and reference not in depends_on:
            depends_on = depends_on + (reference,)
        self.equations.extend(
            _component_equations((self.rel_x, self.rel_y, self.rel_phi), r, depends_on)
        )


@dataclass(eq=False)
class RelativePosition(AcausalElement):
    """Relative position and orientation between two frames.

    Ports:
        frame_a, frame_b -- measured frames; each must be connected
            exactly once.
        frame_resolve -- only when ``resolve_in_frame`` is
            ``frame_resolve``.

    Outputs:
        rel_x, rel_y [m]; rel_phi [rad].
    """

    def __init__(
        self,
        name: str,
        resolve_in_frame: Union[ResolveInFrame, str] = ResolveInFrame.FRAME_A,
    ):
        resolve_in_frame = ResolveInFrame.parse(resolve_in_frame)
        super().__init__(name=name)
        self.params["resolve_in_frame"] = resolve_in_frame

        self.pos = self.add_system(
            BasicRelativePosition("pos", resolve_in_frame=resolve_in_frame)
        )
        self.extend(PartialRelativeSensor())
        self.frame_a = self.ports["frame_a"]
        self.frame_b = self.ports["frame_b"]

        self.rel_x = self.add_output("rel_x")
        self.rel_y = self.add_output("rel_y")
        self.rel_phi = self.add_output("rel_phi")

        self.equations.extend([
            equate(self.pos.rel_x, self.rel_x),
            equate(self.pos.rel_y, self.rel_y),
            equate(self.pos.rel_phi, self.rel_phi),
        ])
        self.equations.extend(connect(self.pos.frame_a, self.frame_a))
        self.equations.extend(connect(self.pos.frame_b, self.frame_b))
        _ground_resolve_frame(self, self.pos, resolve_in_frame)


def _ground_resolve_frame(
    sensor: AcausalElement,
    inner: AcausalElement,
    resolve_in_frame: ResolveInFrame,
) -> None:
    """Connect ``inner.frame_resolve`` to an external port or a zero source."""
    if resolve_in_frame is ResolveInFrame.FRAME_RESOLVE:
        sensor.frame_resolve = sensor.add_port(FrameResolve("frame_resolve"))
        sensor.equations.extend(connect(inner.frame_resolve, sensor.frame_resolve))
        logger.debug("%s: resolving in external frame_resolve", sensor.path)
    else:
        sensor.zero_position = sensor.add_system(ZeroPosition("zero_position"))
        sensor.equations.extend(
            connect(sensor.zero_position.frame_resolve, inner.frame_resolve)
        )
        logger.debug(
            "%s: grounding frame_resolve at zero (%s)",
            sensor.path, resolve_in_frame.value,
        )
