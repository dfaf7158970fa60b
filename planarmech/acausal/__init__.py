"""Acausal planar connectors and sensors.

Components are equation-based (Modelica-style) descriptors.  Ports are
joined with ``connect``; a finished hierarchy is collected by ``flatten``
into an ``AcausalSystem`` for an external solver.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from planarmech.acausal.base import (
    AcausalElement,
    AcausalEquation,
    AcausalPort,
    AcausalVar,
    Domain,
    Frame,
    FrameResolve,
    InvalidConfigurationError,
    JunctionError,
    ResolveInFrame,
    StructuralError,
    VarRole,
)
from planarmech.acausal.connect import connect, connection_sets
from planarmech.acausal.rotation import resolve_pose, rotation_matrix
from planarmech.acausal.sensors import (
    AbsolutePosition,
    BasicAbsolutePosition,
    BasicRelativePosition,
    PartialAbsoluteBaseSensor,
    PartialAbsoluteSensor,
    PartialRelativeBaseSensor,
    PartialRelativeSensor,
    RelativePosition,
)
from planarmech.acausal.sources import Fixed, ZeroPosition
from planarmech.acausal.system import AcausalSystem, compose, flatten
