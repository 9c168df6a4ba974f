"""Calibration record dataclasses and the provider interface.

These types are used across the sector cache, the coordinate transform and
the in-memory calibration. Keep them lightweight (no heavy runtime logic
here). Lengths are cm, times are microseconds unless stated otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

from .transforms import RigidTransform


N_SECTORS = 24


class Category:
    PAD_PLANES = "pad_planes"
    WIRE_PLANES = "wire_planes"
    EFFECTIVE_GEOM = "effective_geom"
    ELECTRONICS = "electronics"
    PADROW_T0 = "padrow_t0"
    SECTOR_T0_OFFSET = "sector_t0_offset"
    DRIFT_VELOCITY = "drift_velocity"
    GLOBAL_POSITION = "global_position"
    # alignment matrices, served by get_matrix()
    SUPER_SECTOR_POSITION = "super_sector_position"
    OUTER_SECTOR_POSITION = "outer_sector_position"


@dataclass(frozen=True)
class PadPlanes:
    pad_rows: int
    inner_pad_rows: int
    inner_sector_pad_pitch: float
    outer_sector_pad_pitch: float
    outer_sector_pad_plane_z: float
    inner_row_radii: Tuple[float, ...]
    outer_row_radii: Tuple[float, ...]
    inner_pads_per_row: Tuple[int, ...]
    outer_pads_per_row: Tuple[int, ...]

    def __post_init__(self):
        n_outer = self.pad_rows - self.inner_pad_rows
        if not 0 < self.inner_pad_rows < self.pad_rows:
            raise ValueError("inner_pad_rows must lie strictly between 0 and pad_rows")
        if len(self.inner_row_radii) != self.inner_pad_rows or len(self.inner_pads_per_row) != self.inner_pad_rows:
            raise ValueError(f"expected {self.inner_pad_rows} inner row radii and pad counts")
        if len(self.outer_row_radii) != n_outer or len(self.outer_pads_per_row) != n_outer:
            raise ValueError(f"expected {n_outer} outer row radii and pad counts")

    def is_inner(self, row: int) -> bool:
        return row <= self.inner_pad_rows

    def radial_distance_at_row(self, row: int) -> float:
        if self.is_inner(row):
            return float(self.inner_row_radii[row - 1])
        return float(self.outer_row_radii[row - 1 - self.inner_pad_rows])

    def number_of_pads(self, row: int) -> int:
        if self.is_inner(row):
            return int(self.inner_pads_per_row[row - 1])
        return int(self.outer_pads_per_row[row - 1 - self.inner_pad_rows])

    def pad_pitch(self, row: int) -> float:
        return self.inner_sector_pad_pitch if self.is_inner(row) else self.outer_sector_pad_pitch

    def to_dict(self) -> dict:
        return {
            "pad_rows": int(self.pad_rows),
            "inner_pad_rows": int(self.inner_pad_rows),
            "inner_sector_pad_pitch": float(self.inner_sector_pad_pitch),
            "outer_sector_pad_pitch": float(self.outer_sector_pad_pitch),
            "outer_sector_pad_plane_z": float(self.outer_sector_pad_plane_z),
            "inner_row_radii": list(self.inner_row_radii),
            "outer_row_radii": list(self.outer_row_radii),
            "inner_pads_per_row": list(self.inner_pads_per_row),
            "outer_pads_per_row": list(self.outer_pads_per_row),
        }


@dataclass(frozen=True)
class WirePlanes:
    outer_sector_gating_grid_pad_sep: float

    def to_dict(self) -> dict:
        return {"outer_sector_gating_grid_pad_sep": float(self.outer_sector_gating_grid_pad_sep)}


@dataclass(frozen=True)
class EffectiveGeom:
    z_inner_offset: float = 0.0
    z_outer_offset: float = 0.0

    def to_dict(self) -> dict:
        return {"z_inner_offset": float(self.z_inner_offset), "z_outer_offset": float(self.z_outer_offset)}


@dataclass(frozen=True)
class Electronics:
    sampling_frequency: float  # Hz
    t_zero: float = 0.0
    trigger_time_offset: float = 0.0

    @property
    def timebin_width(self) -> float:
        """Width of one time bucket in microseconds."""
        return 1e6 / self.sampling_frequency

    def to_dict(self) -> dict:
        return {
            "sampling_frequency": float(self.sampling_frequency),
            "t_zero": float(self.t_zero),
            "trigger_time_offset": float(self.trigger_time_offset),
        }


@dataclass(frozen=True)
class PadrowT0:
    """Per-row T0 of one sector, index row-1."""

    t0: Tuple[float, ...]

    def to_dict(self) -> dict:
        return {"t0": list(self.t0)}


@dataclass(frozen=True)
class SectorT0Offset:
    """Time-bucket offsets; index sector-1 for outer rows, sector+23 for inner rows."""

    t0: Tuple[float, ...] = field(default_factory=lambda: (0.0,) * (2 * N_SECTORS))

    def __post_init__(self):
        if len(self.t0) != 2 * N_SECTORS:
            raise ValueError(f"sector_t0_offset needs {2 * N_SECTORS} entries, got {len(self.t0)}")

    def to_dict(self) -> dict:
        return {"t0": list(self.t0)}


@dataclass(frozen=True)
class DriftVelocity:
    west: float  # cm/us, sectors 1-12
    east: float  # cm/us, sectors 13-24

    def for_sector(self, sector: int) -> float:
        return self.west if sector <= 12 else self.east

    def to_dict(self) -> dict:
        return {"west": float(self.west), "east": float(self.east)}


@dataclass(frozen=True)
class GlobalPosition:
    """TPC placement in the global frame. Angles are in radians."""

    phi_xy: float = 0.0
    phi_xz: float = 0.0
    phi_yz: float = 0.0
    x_shift: float = 0.0
    y_shift: float = 0.0
    z_shift: float = 0.0

    def to_dict(self) -> dict:
        return {
            "phi_xy": float(self.phi_xy),
            "phi_xz": float(self.phi_xz),
            "phi_yz": float(self.phi_yz),
            "x_shift": float(self.x_shift),
            "y_shift": float(self.y_shift),
            "z_shift": float(self.z_shift),
        }


class CalibrationProvider(Protocol):
    """Source of per-sector constants and alignment matrices.

    Contract: get(category) returns one of the records above; sector-indexed
    categories (padrow_t0) take a 1-based sector. get_matrix(category, sector)
    returns the alignment correction for that sector.
    """

    def get(self, category: str, sector: Optional[int] = None):
        """Return the calibration record for ``category``."""

    def get_matrix(self, category: str, sector: int) -> RigidTransform:
        """Return the alignment transform for ``category`` and ``sector``."""


__all__ = [
    "N_SECTORS",
    "Category",
    "PadPlanes",
    "WirePlanes",
    "EffectiveGeom",
    "Electronics",
    "PadrowT0",
    "SectorT0Offset",
    "DriftVelocity",
    "GlobalPosition",
    "CalibrationProvider",
]
