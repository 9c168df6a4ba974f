"""Vectorised helix sampling and point transforms (JAX).

Device math runs in float32 like the rest of the JAX code. To keep cm-level
coordinates precise, large offsets (helix origin, transform translation and
the centroid of a point cloud) are applied on the host in float64 and only
the small relative displacements go through the jitted kernels.
"""

from __future__ import annotations

from typing import Tuple

import jax
import jax.numpy as jnp
import numpy as np


def helix_params(helix) -> np.ndarray:
    """Pack a Helix into the parameter vector used by the kernels.

    [curvature, cos_dip, sin_dip, phase, cos_phase, sin_phase, h, singular]
    """
    return np.array(
        [
            helix.curvature,
            np.cos(helix.dip_angle),
            np.sin(helix.dip_angle),
            helix.phase,
            np.cos(helix.phase),
            np.sin(helix.phase),
            float(helix.h),
            1.0 if helix.singularity else 0.0,
        ],
        dtype=np.float32,
    )


@jax.jit
def _helix_offsets(params: jnp.ndarray, s: jnp.ndarray) -> jnp.ndarray:
    c, cos_dip, sin_dip, phase, cos_phase, sin_phase, h, singular = params
    straight = singular > 0.5
    safe_c = jnp.where(straight, 1.0, c)
    a = phase + s * h * safe_c * cos_dip
    dx = jnp.where(straight, -s * cos_dip * sin_phase, (jnp.cos(a) - cos_phase) / safe_c)
    dy = jnp.where(straight, s * cos_dip * cos_phase, (jnp.sin(a) - sin_phase) / safe_c)
    dz = s * sin_dip
    return jnp.stack([dx, dy, dz], axis=-1)


@jax.jit
def _helix_directions(params: jnp.ndarray, s: jnp.ndarray) -> jnp.ndarray:
    c, cos_dip, sin_dip, phase, cos_phase, sin_phase, h, singular = params
    straight = singular > 0.5
    a = phase + s * h * c * cos_dip
    cx = jnp.where(straight, -cos_dip * sin_phase, -jnp.sin(a) * h * cos_dip)
    cy = jnp.where(straight, cos_dip * cos_phase, jnp.cos(a) * h * cos_dip)
    cz = jnp.full_like(s, sin_dip)
    return jnp.stack([cx, cy, cz], axis=-1)


def helix_points(helix, s) -> np.ndarray:
    """Positions at each arc length in ``s`` as an (n, 3) float64 array."""
    s_dev = jnp.asarray(np.atleast_1d(np.asarray(s, dtype=np.float64)), dtype=jnp.float32)
    offsets = _helix_offsets(jnp.asarray(helix_params(helix)), s_dev)
    return np.asarray(offsets, dtype=np.float64) + helix.origin.xyz()


def helix_directions(helix, s) -> np.ndarray:
    """Unit tangents at each arc length in ``s`` as an (n, 3) array."""
    s_dev = jnp.asarray(np.atleast_1d(np.asarray(s, dtype=np.float64)), dtype=jnp.float32)
    return np.asarray(_helix_directions(jnp.asarray(helix_params(helix)), s_dev), dtype=np.float64)


@jax.jit
def _rotate(R: jnp.ndarray, pts: jnp.ndarray) -> jnp.ndarray:
    return pts @ R.T


def _split(matrix) -> Tuple[np.ndarray, np.ndarray]:
    m = np.asarray(matrix, dtype=np.float64).reshape(4, 4)
    return m[:3, :3], m[:3, 3]


def transform_points(matrix, points) -> np.ndarray:
    """Apply a 4x4 homogeneous transform to an (n, 3) array of points."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] == 0:
        return np.empty((0, 3), dtype=np.float64)
    R, t = _split(matrix)
    center = pts.mean(axis=0)
    rel = _rotate(jnp.asarray(R, dtype=jnp.float32), jnp.asarray(pts - center, dtype=jnp.float32))
    return np.asarray(rel, dtype=np.float64) + (R @ center + t)


__all__ = ["helix_params", "helix_points", "helix_directions", "transform_points"]
