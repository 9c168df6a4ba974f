from __future__ import annotations

import bisect
import logging
import math
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .batch import transform_points
from .coords import (
    Coords,
    GlobalCoordinate,
    LocalCoordinate,
    LocalSectorCoordinate,
    PadCoordinate,
)
from .geometry.base import N_SECTORS, CalibrationProvider, Category
from .geometry.sector import SectorTransformCache

# Pads are 1-based; anything below half a pad lies outside the pad plane.
MIN_PAD = 0.500001

# Frame conventions:
# - pad frame == local sector frame: x along the row (sector 12 orientation),
#   y radial distance of the row, z drift distance from the pad plane.
# - local (TPC) frame: sector rotation, endcap flip and alignment applied.
# - global frame: TPC placement in the experiment applied on top.


def sector_from_position(position: Coords) -> int:
    """Sector (1..24) whose azimuthal wedge and endcap contain a TPC-frame position."""
    angle = math.atan2(position.y, position.x)
    if angle < 0:
        angle += 2.0 * math.pi
    n = int((angle + math.pi / 12.0) / (math.pi / 6.0))
    if position.z > 0:
        sector = 15 - n
        if sector > 12:
            sector -= 12
    else:
        sector = 9 + n
        if sector <= 12:
            sector += 12
    return sector


class CoordTransform:
    """Converters between pad, local-sector, local (TPC) and global coordinates.

    All conversions are pure functions of the calibration snapshot captured
    at construction. The per-sector transform table and the row-boundary
    table are built eagerly here, so a constructed instance can be shared
    between threads.
    """

    def __init__(self, calibration: CalibrationProvider):
        self.calibration = calibration
        self.cache = SectorTransformCache(calibration)
        electronics = calibration.get(Category.ELECTRONICS)
        geom = calibration.get(Category.EFFECTIVE_GEOM)
        self.timebin_width = electronics.timebin_width  # us
        self.z_inner_offset = float(geom.z_inner_offset)
        self.z_outer_offset = float(geom.z_outer_offset)
        self._boundary_rows = 0
        self._row_boundaries: Tuple[float, ...] = ()
        self.refresh_row_boundaries()

    @property
    def _pad_planes(self):
        return self.calibration.get(Category.PAD_PLANES)

    def _clamp_row(self, row: int) -> int:
        return min(max(int(row), 1), self._pad_planes.pad_rows)

    @staticmethod
    def _clamp_sector(sector: int) -> int:
        return min(max(int(sector), 1), N_SECTORS)

    def _z_offset(self, row: int) -> float:
        return self.z_inner_offset if self._pad_planes.is_inner(row) else self.z_outer_offset

    # ---- pad <-> x ---------------------------------------------------------

    def pad_to_x(self, sector: int, row: int, pad: float) -> float:
        """x coordinate (sector 12 orientation) of a fractional pad."""
        pp = self._pad_planes
        row = self._clamp_row(row)
        npads = pp.number_of_pads(row)
        return -pp.pad_pitch(row) * (pad - (npads + 1.0) / 2.0)

    def x_to_pad(self, sector: int, row: int, x: float) -> float:
        pp = self._pad_planes
        row = self._clamp_row(row)
        npads = pp.number_of_pads(row)
        probable_pad = (npads + 1.0) / 2.0 - x / pp.pad_pitch(row)
        return max(probable_pad, MIN_PAD)

    # ---- time bucket <-> z -------------------------------------------------

    def _t0(self, sector: int, row: int) -> float:
        electronics = self.calibration.get(Category.ELECTRONICS)
        row_t0 = self.calibration.get(Category.PADROW_T0, sector).t0[row - 1]
        return electronics.trigger_time_offset + electronics.t_zero + row_t0

    def _sector_t0_offset(self, sector: int, row: int) -> float:
        l = sector + 24 if self._pad_planes.is_inner(row) else sector
        return self.calibration.get(Category.SECTOR_T0_OFFSET).t0[l - 1]

    def _drift_velocity(self, sector: int) -> float:
        return self.calibration.get(Category.DRIFT_VELOCITY).for_sector(sector)

    def time_to_z(self, time_bucket: float, sector: int, row: int, pad: float = 0.0) -> float:
        """Drift distance (cm) of a time bucket."""
        sector = self._clamp_sector(sector)
        row = self._clamp_row(row)
        tbx = time_bucket + self._sector_t0_offset(sector, row)
        time = self._t0(sector, row) + tbx * self.timebin_width
        return self._drift_velocity(sector) * time

    def z_to_time(self, z: float, sector: int, row: int, pad: float = 0.0) -> float:
        sector = self._clamp_sector(sector)
        row = self._clamp_row(row)
        time = z / self._drift_velocity(sector)
        return (time - self._t0(sector, row)) / self.timebin_width - self._sector_t0_offset(sector, row)

    # ---- y -> row ----------------------------------------------------------

    def refresh_row_boundaries(self) -> Tuple[float, ...]:
        """(Re)build the row boundary table if the configured row count changed.

        Boundaries are midpoints between neighbouring row radii; the outermost
        two are extrapolated by half a row spacing.
        """
        pp = self._pad_planes
        n = pp.pad_rows
        if n == self._boundary_rows:
            return self._row_boundaries
        r = [pp.radial_distance_at_row(i) for i in range(1, n + 1)]
        bounds = [(3.0 * r[0] - r[1]) / 2.0]
        bounds.extend((r[i - 1] + r[i]) / 2.0 for i in range(1, n))
        bounds.append((3.0 * r[n - 1] - r[n - 2]) / 2.0)
        # publish the table before the row count so readers never see a mismatch
        self._row_boundaries = tuple(bounds)
        self._boundary_rows = n
        logging.debug("Row boundary table rebuilt for %d rows", n)
        return self._row_boundaries

    def y_to_row(self, y: float, sector: int = 0) -> int:
        bounds = self.refresh_row_boundaries()
        n = len(bounds) - 1
        i = bisect.bisect_left(bounds, y)
        row = i + 1 if i != len(bounds) and bounds[i] == y else i
        return min(max(row, 1), n)

    # ---- pad <-> local sector ---------------------------------------------

    def _valid_row(self, row: int) -> bool:
        return 1 <= row <= self._pad_planes.pad_rows

    def hardware_to_local_sector(self, a: PadCoordinate) -> LocalSectorCoordinate:
        sector = self._clamp_sector(a.sector)
        x = self.pad_to_x(sector, a.row, a.pad)
        y = self._pad_planes.radial_distance_at_row(self._clamp_row(a.row))
        z = self.time_to_z(a.time_bucket, sector, a.row, a.pad) - self._z_offset(a.row)
        return LocalSectorCoordinate(Coords(x, y, z), sector, a.row)

    def local_sector_to_hardware(self, a: LocalSectorCoordinate) -> PadCoordinate:
        sector = self._clamp_sector(a.sector)
        row = a.row
        if not self._valid_row(row):
            row = self.y_to_row(a.position.y, sector)
        pad = self.x_to_pad(sector, row, a.position.x)
        tb = self.z_to_time(a.position.z + self._z_offset(row), sector, row, pad)
        return PadCoordinate(sector, row, pad, tb)

    def hardware_to_local_sector_many(self, pads: Iterable[PadCoordinate]) -> np.ndarray:
        """Local-sector positions of many pad hits as an (n, 3) array."""
        out: List[Tuple[float, float, float]] = []
        for p in pads:
            pos = self.hardware_to_local_sector(p).position
            out.append((pos.x, pos.y, pos.z))
        return np.asarray(out, dtype=np.float64).reshape(-1, 3)

    # ---- local sector <-> local -------------------------------------------

    def local_sector_to_local(self, a: LocalSectorCoordinate) -> LocalCoordinate:
        sector = self._clamp_sector(a.sector)
        row = a.row
        if not self._valid_row(row):
            row = self.y_to_row(a.position.y, sector)
        pad2tpc = self.cache.pad_to_tpc(sector, row)
        x_gg = pad2tpc.to_master_vector(a.position.xyz())
        return LocalCoordinate(Coords.from_array(x_gg + pad2tpc.translation), sector, row)

    def local_to_local_sector(self, a: LocalCoordinate) -> LocalSectorCoordinate:
        sector = self._clamp_sector(a.sector)
        row = a.row
        if not self._valid_row(row):
            # the super-sector x axis is radial
            xyz_s = self.cache.sup_s_to_tpc(sector).to_local_vector(a.position.xyz())
            row = self.y_to_row(float(xyz_s[0]), sector)
        pad2tpc = self.cache.pad_to_tpc(sector, row)
        x_gg = a.position.xyz() - pad2tpc.translation
        return LocalSectorCoordinate(Coords.from_array(pad2tpc.to_local_vector(x_gg)), sector, row)

    # ---- local <-> global --------------------------------------------------

    def local_to_global(self, a: LocalCoordinate) -> GlobalCoordinate:
        return GlobalCoordinate(Coords.from_array(self.cache.tpc_to_global.to_master(a.position.xyz())))

    def global_to_local(self, a: GlobalCoordinate, sector: int | None = None, row: int = 0) -> LocalCoordinate:
        """Global -> TPC frame; the sector is derived from the position unless given."""
        pos = Coords.from_array(self.cache.tpc_to_global.to_local(a.position.xyz()))
        sector = sector_from_position(pos) if sector is None else self._clamp_sector(sector)
        return LocalCoordinate(pos, sector, row)

    def hardware_to_global(self, a: PadCoordinate) -> GlobalCoordinate:
        return self.local_to_global(self.local_sector_to_local(self.hardware_to_local_sector(a)))

    def global_to_hardware(self, a: GlobalCoordinate, sector: int | None = None) -> PadCoordinate:
        local = self.global_to_local(a, sector)
        return self.local_sector_to_hardware(self.local_to_local_sector(local))

    def hardware_to_global_many(self, pads: Sequence[PadCoordinate]) -> np.ndarray:
        """Global positions of many pad hits as an (n, 3) array.

        Hits are grouped by sector and inner/outer pad plane so each group is
        pushed through one cached pad->global transform.
        """
        pads = list(pads)
        local = self.hardware_to_local_sector_many(pads)
        out = np.empty_like(local)
        groups = {}
        for i, p in enumerate(pads):
            row = self._clamp_row(p.row)
            groups.setdefault((self._clamp_sector(p.sector), self._pad_planes.is_inner(row)), (row, []))[1].append(i)
        for (sector, _), (row, idx) in groups.items():
            T = self.cache.pad_to_global(sector, row)
            out[idx] = np.asarray(transform_points(T.matrix, local[idx]), dtype=np.float64)
        return out


__all__ = ["CoordTransform", "MIN_PAD", "sector_from_position"]
