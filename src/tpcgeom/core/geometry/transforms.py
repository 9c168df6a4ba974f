"""Rigid transforms (NumPy implementation).

A transform maps a point expressed in a "local" frame into its "master"
frame: ``p_master = R @ p_local + t``. Composition follows matrix order, so
``(a @ b).to_master(p) == a.to_master(b.to_master(p))``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


# Pad-readout frame -> super-sector frame: (x, y, z) -> (y, x, -z)
FLIP_ROTATION = np.array(
    [[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, -1.0]], dtype=np.float64
)


def compose(T_a: np.ndarray, T_b: np.ndarray) -> np.ndarray:
    """Compose homogeneous transforms: returns T_a @ T_b."""
    return T_a @ T_b


def invert(T: np.ndarray) -> np.ndarray:
    R = T[:3, :3]
    t = T[:3, 3]
    Ti = np.eye(4, dtype=T.dtype)
    Ri = R.T
    Ti[:3, :3] = Ri
    Ti[:3, 3] = -Ri @ t
    return Ti


def rotx_deg(angle_deg: float) -> np.ndarray:
    a = float(np.deg2rad(angle_deg))
    c, s = np.cos(a), np.sin(a)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]], dtype=np.float64)


def roty_deg(angle_deg: float) -> np.ndarray:
    a = float(np.deg2rad(angle_deg))
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=np.float64)


def rotz_deg(angle_deg: float) -> np.ndarray:
    a = float(np.deg2rad(angle_deg))
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)


def homogeneous(rotation: np.ndarray | None = None, translation: Sequence[float] | None = None) -> np.ndarray:
    T = np.eye(4, dtype=np.float64)
    if rotation is not None:
        T[:3, :3] = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
    if translation is not None:
        T[:3, 3] = np.asarray(translation, dtype=np.float64).reshape(3)
    return T


@dataclass(frozen=True, eq=False)
class RigidTransform:
    """Immutable 4x4 homogeneous transform with a diagnostic name."""

    matrix: np.ndarray
    name: str = ""

    def __post_init__(self):
        m = np.array(self.matrix, dtype=np.float64).reshape(4, 4)
        m.setflags(write=False)
        object.__setattr__(self, "matrix", m)

    @classmethod
    def identity(cls, name: str = "") -> "RigidTransform":
        return cls(np.eye(4, dtype=np.float64), name)

    @classmethod
    def from_rotation(
        cls,
        rotation: np.ndarray,
        translation: Sequence[float] | None = None,
        name: str = "",
    ) -> "RigidTransform":
        return cls(homogeneous(rotation, translation), name)

    @classmethod
    def translation_only(cls, translation: Sequence[float], name: str = "") -> "RigidTransform":
        return cls(homogeneous(None, translation), name)

    @property
    def rotation(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def columns(self):
        R = self.rotation
        return R[:, 0].copy(), R[:, 1].copy(), R[:, 2].copy()

    def renamed(self, name: str) -> "RigidTransform":
        return RigidTransform(self.matrix, name)

    def inverse(self) -> "RigidTransform":
        return RigidTransform(invert(np.array(self.matrix)), f"{self.name}_inv" if self.name else "")

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return RigidTransform(compose(self.matrix, other.matrix))

    def to_master(self, point) -> np.ndarray:
        p = np.asarray(point, dtype=np.float64)
        return self.rotation @ p + self.translation

    def to_local(self, point) -> np.ndarray:
        p = np.asarray(point, dtype=np.float64)
        return self.rotation.T @ (p - self.translation)

    def to_master_vector(self, vector) -> np.ndarray:
        return self.rotation @ np.asarray(vector, dtype=np.float64)

    def to_local_vector(self, vector) -> np.ndarray:
        return self.rotation.T @ np.asarray(vector, dtype=np.float64)

    def allclose(self, other: "RigidTransform", atol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix, other.matrix, atol=atol))

    def __repr__(self) -> str:
        return f"RigidTransform(name={self.name!r}, matrix={self.matrix.tolist()})"


def orthonormalize(T: RigidTransform) -> RigidTransform:
    """Rebuild the rotation of ``T`` as an exact orthonormal frame.

    Columns 0 (drift) and 2 (transverse) are normalised, the transverse column
    is made orthogonal to the drift column, and column 1 is replaced by their
    cross product, oriented like the original column 1.
    The translation and name are kept.
    """
    d, n, t = T.columns()
    d = d / np.linalg.norm(d)
    t = t - np.dot(t, d) * d
    t = t / np.linalg.norm(t)
    c = np.cross(d, t)
    if np.dot(c, n) < 0:
        c = -c
    R = np.column_stack([d, c, t])
    return RigidTransform.from_rotation(R, T.translation, T.name)


__all__ = [
    "FLIP_ROTATION",
    "RigidTransform",
    "compose",
    "invert",
    "homogeneous",
    "orthonormalize",
    "rotx_deg",
    "roty_deg",
    "rotz_deg",
]
