"""Planar rotation helpers.

Poses are 3-vectors ``[x, y, phi]``.  The rotation acts on the position
components and leaves the angle component unchanged.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

from __future__ import annotations

import jax.numpy as jnp
from jaxtyping import Array, ArrayLike, Float


def rotation_matrix(phi: ArrayLike) -> Float[Array, "3 3"]:
    """``R(phi)``: counterclockwise rotation by ``phi`` about the z axis."""
    c, s = jnp.cos(phi), jnp.sin(phi)
    return jnp.array([
        [c, -s, 0.0],
        [s, c, 0.0],
        [0.0, 0.0, 1.0],
    ])


def resolve_pose(r: ArrayLike, phi: ArrayLike) -> Float[Array, "3"]:
    """Express the pose ``r`` in a frame rotated by ``phi``.

    Returns ``R(phi)^T r - [0, 0, phi]``: the position is rotated into the
    frame and the frame's own angle is removed from the angle component.
    """
    r = jnp.asarray(r)
    return rotation_matrix(phi).T @ r - jnp.array([0.0, 0.0, 1.0]) * phi


def rotate_into(r: ArrayLike, phi: ArrayLike) -> Float[Array, "3"]:
    """``R(phi)^T r`` without any angle offset (relative vectors)."""
    return rotation_matrix(phi).T @ jnp.asarray(r)
