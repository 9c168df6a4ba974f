"""In-memory calibration provider.

Holds one snapshot of every calibration category and serves it through the
``get`` / ``get_matrix`` contract of ``CalibrationProvider``. Build it from
records, from a plain nested dict (e.g. a JSON/YAML config loaded with
``tpcgeom.utils.config.load_config``), or start from ``nominal_calibration``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from ..core.geometry.base import (
    N_SECTORS,
    Category,
    DriftVelocity,
    EffectiveGeom,
    Electronics,
    GlobalPosition,
    PadPlanes,
    PadrowT0,
    SectorT0Offset,
    WirePlanes,
)
from ..core.geometry.transforms import RigidTransform


# 13 inner rows (4.8 cm then 5.2 cm spacing) and 32 outer rows every 2 cm
NOMINAL_INNER_ROW_RADII = (60.0, 64.8, 69.6, 74.4, 79.2, 84.0, 88.8, 93.6, 98.8, 104.0, 109.2, 114.4, 119.6)
NOMINAL_INNER_PADS_PER_ROW = (88, 96, 104, 112, 118, 126, 134, 142, 150, 158, 166, 174, 182)
NOMINAL_OUTER_ROW_RADII = tuple(127.195 + 2.0 * i for i in range(32))
NOMINAL_OUTER_PADS_PER_ROW = (
    98, 100, 102, 104, 106, 106, 108, 110, 112, 112, 114, 116, 118, 120, 122, 122,
    124, 126, 128, 128, 130, 132, 134, 136, 138, 138, 140, 142, 144, 144, 144, 144,
)

_SECTOR_INDEXED = (Category.PADROW_T0,)
_MATRIX_CATEGORIES = (Category.SUPER_SECTOR_POSITION, Category.OUTER_SECTOR_POSITION)


def _check_sector(sector: Optional[int]) -> int:
    if sector is None or not 1 <= int(sector) <= N_SECTORS:
        raise IndexError(f"sector {sector} outside 1..{N_SECTORS}")
    return int(sector)


def parse_matrix(spec: Any, name: str = "") -> RigidTransform:
    """Alignment matrix from None (identity), {rotation, translation} or a 4x4 nested list."""
    if spec is None:
        return RigidTransform.identity(name)
    if isinstance(spec, RigidTransform):
        return spec.renamed(name) if name else spec
    if isinstance(spec, Mapping):
        rot = spec.get("rotation")
        rot = np.eye(3) if rot is None else np.asarray(rot, dtype=np.float64).reshape(3, 3)
        return RigidTransform.from_rotation(rot, spec.get("translation", (0.0, 0.0, 0.0)), name)
    arr = np.asarray(spec, dtype=np.float64)
    if arr.shape != (4, 4):
        raise ValueError(f"alignment matrix '{name}' must be 4x4, got shape {arr.shape}")
    return RigidTransform(arr, name)


def _matrices(specs: Optional[Sequence[Any]], label: str):
    if specs is None:
        specs = [None] * N_SECTORS
    if len(specs) != N_SECTORS:
        raise ValueError(f"{label} needs {N_SECTORS} entries, got {len(specs)}")
    return tuple(parse_matrix(s, f"{label}_{i + 1:02d}") for i, s in enumerate(specs))


class Calibration:
    """Calibration snapshot implementing the ``CalibrationProvider`` contract."""

    def __init__(
        self,
        pad_planes: PadPlanes,
        wire_planes: WirePlanes,
        electronics: Electronics,
        drift_velocity: DriftVelocity,
        *,
        effective_geom: EffectiveGeom | None = None,
        padrow_t0: Sequence[PadrowT0] | None = None,
        sector_t0_offset: SectorT0Offset | None = None,
        global_position: GlobalPosition | None = None,
        super_sector_positions: Sequence[Any] | None = None,
        outer_sector_positions: Sequence[Any] | None = None,
    ):
        if padrow_t0 is None:
            padrow_t0 = [PadrowT0((0.0,) * pad_planes.pad_rows)] * N_SECTORS
        if len(padrow_t0) != N_SECTORS:
            raise ValueError(f"padrow_t0 needs {N_SECTORS} sectors, got {len(padrow_t0)}")
        for rec in padrow_t0:
            if len(rec.t0) != pad_planes.pad_rows:
                raise ValueError(f"padrow_t0 needs {pad_planes.pad_rows} rows per sector")
        self._records: Dict[str, Any] = {
            Category.PAD_PLANES: pad_planes,
            Category.WIRE_PLANES: wire_planes,
            Category.ELECTRONICS: electronics,
            Category.DRIFT_VELOCITY: drift_velocity,
            Category.EFFECTIVE_GEOM: effective_geom or EffectiveGeom(),
            Category.SECTOR_T0_OFFSET: sector_t0_offset or SectorT0Offset(),
            Category.GLOBAL_POSITION: global_position or GlobalPosition(),
        }
        self._padrow_t0 = tuple(padrow_t0)
        self._matrices = {
            Category.SUPER_SECTOR_POSITION: _matrices(super_sector_positions, "SuperSectorPosition"),
            Category.OUTER_SECTOR_POSITION: _matrices(outer_sector_positions, "OuterSectorPosition"),
        }

    def get(self, category: str, sector: Optional[int] = None):
        if category in _SECTOR_INDEXED:
            return self._padrow_t0[_check_sector(sector) - 1]
        try:
            return self._records[category]
        except KeyError:
            raise KeyError(f"Unknown calibration category: {category}") from None

    def get_matrix(self, category: str, sector: int) -> RigidTransform:
        if category not in _MATRIX_CATEGORIES:
            raise KeyError(f"Unknown alignment category: {category}")
        return self._matrices[category][_check_sector(sector) - 1]

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Calibration":
        """Build from a nested dict keyed by category name.

        Record sections take the dataclass field names. ``padrow_t0`` is a
        list of 24 per-row lists, ``sector_t0_offset`` a list of 48 values,
        alignment sections lists of 24 matrix specs (see ``parse_matrix``).
        """
        try:
            pp = dict(d[Category.PAD_PLANES])
            for key in ("inner_row_radii", "outer_row_radii", "inner_pads_per_row", "outer_pads_per_row"):
                pp[key] = tuple(pp[key])
            pad_planes = PadPlanes(**pp)
            wire_planes = WirePlanes(**d[Category.WIRE_PLANES])
            electronics = Electronics(**d[Category.ELECTRONICS])
            drift_velocity = DriftVelocity(**d[Category.DRIFT_VELOCITY])
        except KeyError as exc:
            raise ValueError(f"calibration config is missing section {exc}") from exc
        padrow_t0 = d.get(Category.PADROW_T0)
        sector_t0 = d.get(Category.SECTOR_T0_OFFSET)
        eff = d.get(Category.EFFECTIVE_GEOM)
        glob = d.get(Category.GLOBAL_POSITION)
        cal = cls(
            pad_planes,
            wire_planes,
            electronics,
            drift_velocity,
            effective_geom=EffectiveGeom(**eff) if eff else None,
            padrow_t0=[PadrowT0(tuple(rows)) for rows in padrow_t0] if padrow_t0 is not None else None,
            sector_t0_offset=SectorT0Offset(tuple(sector_t0)) if sector_t0 is not None else None,
            global_position=GlobalPosition(**glob) if glob else None,
            super_sector_positions=d.get(Category.SUPER_SECTOR_POSITION),
            outer_sector_positions=d.get(Category.OUTER_SECTOR_POSITION),
        )
        logging.debug("Calibration loaded: %d pad rows (%d inner)", pad_planes.pad_rows, pad_planes.inner_pad_rows)
        return cal

    def to_dict(self) -> dict:
        d = {k: rec.to_dict() for k, rec in self._records.items()}
        d[Category.SECTOR_T0_OFFSET] = list(self._records[Category.SECTOR_T0_OFFSET].t0)
        d[Category.PADROW_T0] = [list(rec.t0) for rec in self._padrow_t0]
        for k, mats in self._matrices.items():
            d[k] = [m.matrix.tolist() for m in mats]
        return d


def nominal_pad_planes(**overrides) -> PadPlanes:
    kw = dict(
        pad_rows=45,
        inner_pad_rows=13,
        inner_sector_pad_pitch=0.335,
        outer_sector_pad_pitch=0.67,
        outer_sector_pad_plane_z=209.3,
        inner_row_radii=NOMINAL_INNER_ROW_RADII,
        outer_row_radii=NOMINAL_OUTER_ROW_RADII,
        inner_pads_per_row=NOMINAL_INNER_PADS_PER_ROW,
        outer_pads_per_row=NOMINAL_OUTER_PADS_PER_ROW,
    )
    kw.update(overrides)
    return PadPlanes(**kw)


def nominal_calibration(**overrides) -> Calibration:
    """Ideal 24-sector geometry with nominal timing; keyword overrides replace whole sections."""
    kw: Dict[str, Any] = dict(
        pad_planes=nominal_pad_planes(),
        wire_planes=WirePlanes(outer_sector_gating_grid_pad_sep=0.6),
        electronics=Electronics(sampling_frequency=9383160.0, t_zero=0.0, trigger_time_offset=0.0),
        drift_velocity=DriftVelocity(west=5.5, east=5.5),
    )
    kw.update(overrides)
    return Calibration(**kw)


__all__ = [
    "Calibration",
    "nominal_calibration",
    "nominal_pad_planes",
    "parse_matrix",
    "NOMINAL_INNER_ROW_RADII",
    "NOMINAL_OUTER_ROW_RADII",
    "NOMINAL_INNER_PADS_PER_ROW",
    "NOMINAL_OUTER_PADS_PER_ROW",
]
