"""Position sources for planar frames.

- **ZeroPosition** -- reference frame held at the world origin; grounds an
  otherwise unconnected resolution port.
- **Fixed** -- frame held at a constant pose; reacts any force or torque.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

from dataclasses import dataclass

from planarmech.acausal.base import AcausalElement, Frame, FrameResolve, fix


@dataclass(eq=False)
class ZeroPosition(AcausalElement):
    """Zero-position reference.

    Port:
        frame_resolve -- held at ``x = y = phi = 0``.  Its flows are left to
        the connected sensor, which drives them to zero.
    """

    def __init__(self, name: str = "zero_position"):
        super().__init__(name=name)
        self.frame_resolve = self.add_port(FrameResolve("frame_resolve"))
        for var in self.frame_resolve.potentials:
            self.equations.append(fix(var, 0.0))


@dataclass(eq=False)
class Fixed(AcausalElement):
    """Frame fixed at ``(x, y, phi)`` in the world.

    Port:
        frame -- potential variables fixed; flows are reactions.
    """

    def __init__(self, name: str, x: float = 0.0, y: float = 0.0, phi: float = 0.0):
        super().__init__(name=name)
        self.params.update(x=x, y=y, phi=phi)
        self.frame = self.add_port(Frame("frame"))
        for slot in self.frame.across_vars:
            self.equations.append(fix(self.frame.vars[slot], self.params[slot]))
