"""Coordinate value types shared by the transform engine and the helix model.

Lengths are in cm throughout. Sector and row indices are 1-based, pads are
1-based and fractional.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class Coords:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_array(cls, a: Sequence[float]) -> "Coords":
        return cls(float(a[0]), float(a[1]), float(a[2]))

    def xyz(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def mag(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def perp(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y)

    def unit(self) -> "Coords":
        m = self.mag()
        return Coords(self.x / m, self.y / m, self.z / m) if m else Coords()

    def cross(self, other: "Coords") -> "Coords":
        return Coords(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def __add__(self, other: "Coords") -> "Coords":
        return Coords(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Coords") -> "Coords":
        return Coords(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> "Coords":
        return Coords(-self.x, -self.y, -self.z)

    def __mul__(self, other):
        # Coords * Coords is the dot product, Coords * scalar scales.
        if isinstance(other, Coords):
            return self.x * other.x + self.y * other.y + self.z * other.z
        return Coords(self.x * other, self.y * other, self.z * other)

    def __rmul__(self, other) -> "Coords":
        return Coords(self.x * other, self.y * other, self.z * other)

    def __truediv__(self, v: float) -> "Coords":
        return Coords(self.x / v, self.y / v, self.z / v)

    def bad(self, world_size: float) -> int:
        """Return 10+i for a non-finite component i, 20+i if it lies outside the world."""
        for i, v in enumerate((self.x, self.y, self.z)):
            if not math.isfinite(v):
                return 10 + i
            if abs(v) > world_size:
                return 20 + i
        return 0


@dataclass(frozen=True)
class PadCoordinate:
    """Raw electronics address of a hit: sector, pad row, pad and drift time bucket."""

    sector: int
    row: int
    pad: float
    time_bucket: float


@dataclass(frozen=True)
class LocalSectorCoordinate:
    """Position in the sector's own frame: x along the pad row, y radial, z drift."""

    position: Coords = field(default_factory=Coords)
    sector: int = 0
    row: int = 0


@dataclass(frozen=True)
class LocalCoordinate:
    """Position in the TPC frame, sector rotation and alignment applied."""

    position: Coords = field(default_factory=Coords)
    sector: int = 0
    row: int = 0


@dataclass(frozen=True)
class GlobalCoordinate:
    position: Coords = field(default_factory=Coords)


__all__ = [
    "Coords",
    "PadCoordinate",
    "LocalSectorCoordinate",
    "LocalCoordinate",
    "GlobalCoordinate",
]
