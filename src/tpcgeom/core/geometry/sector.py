"""Per-sector transform table: pad frame -> sub-sector -> super-sector -> TPC -> global.

Chain for a sector ``s`` (applied right to left to a pad-frame point)::

    global = Tpc2Glob * SupS2Tpc(s) * flip * {I | OuterSectorPosition(s)} * pad

``SupS2Tpc(s)`` already carries the super-sector alignment. Every stored
rotation is re-orthonormalised, and composite stages are built from the
stored (orthonormalised) constituents, never recomputed later.
"""

from __future__ import annotations

import enum
import logging
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

import numpy as np

from ...utils.logging import progress_iter
from .base import N_SECTORS, CalibrationProvider, Category
from .transforms import (
    FLIP_ROTATION,
    RigidTransform,
    orthonormalize,
    rotx_deg,
    roty_deg,
    rotz_deg,
)


class Stage(enum.IntEnum):
    SUPS_TO_TPC = 0
    SUPS_TO_GLOB = 1
    SUBS_INNER_TO_SUPS = 2
    SUBS_OUTER_TO_SUPS = 3
    SUBS_INNER_TO_TPC = 4
    SUBS_OUTER_TO_TPC = 5
    SUBS_INNER_TO_GLOB = 6
    SUBS_OUTER_TO_GLOB = 7
    PAD_INNER_TO_SUPS = 8
    PAD_OUTER_TO_SUPS = 9
    PAD_INNER_TO_TPC = 10
    PAD_OUTER_TO_TPC = 11
    PAD_INNER_TO_GLOB = 12
    PAD_OUTER_TO_GLOB = 13

    def label(self, sector: int) -> str:
        return _STAGE_NAMES[self] % sector


_STAGE_NAMES = {
    Stage.SUPS_TO_TPC: "SupS_%02itoTpc",
    Stage.SUPS_TO_GLOB: "SupS_%02itoGlob",
    Stage.SUBS_INNER_TO_SUPS: "SubS_%02iInner2SupS",
    Stage.SUBS_OUTER_TO_SUPS: "SubS_%02iOuter2SupS",
    Stage.SUBS_INNER_TO_TPC: "SubS_%02iInner2Tpc",
    Stage.SUBS_OUTER_TO_TPC: "SubS_%02iOuter2Tpc",
    Stage.SUBS_INNER_TO_GLOB: "SubS_%02iInner2Glob",
    Stage.SUBS_OUTER_TO_GLOB: "SubS_%02iOuter2Glob",
    Stage.PAD_INNER_TO_SUPS: "PadInner2SupS_%02i",
    Stage.PAD_OUTER_TO_SUPS: "PadOuter2SupS_%02i",
    Stage.PAD_INNER_TO_TPC: "SupS_%02i12Inner2Tpc",
    Stage.PAD_OUTER_TO_TPC: "SupS_%02i12Outer2Tpc",
    Stage.PAD_INNER_TO_GLOB: "SupS_%02i12Inner2Glob",
    Stage.PAD_OUTER_TO_GLOB: "SupS_%02i12Outer2Glob",
}

# sectors 13-24 look at the opposite endcap: (x, y, z) -> (x, -y, -z)
_EAST_FLIP = np.diag([1.0, -1.0, -1.0])


def sector_phi_deg(sector: int) -> int:
    """Azimuthal rotation (degrees) of a sector's super-sector frame about z."""
    if sector > 12:
        return (90 + 30 * (sector - 12)) % 360
    return (360 + 90 - 30 * sector) % 360


def tpc_to_global_transform(calibration: CalibrationProvider) -> RigidTransform:
    g = calibration.get(Category.GLOBAL_POSITION)
    # phi_xy is applied as calibrated; the nominal placement leaves it at 0
    phi = np.rad2deg(g.phi_xy)
    theta = np.rad2deg(g.phi_xz)
    psi = np.rad2deg(g.phi_yz)
    # rotate about x first, then y, then z
    R = rotz_deg(-phi) @ roty_deg(-theta) @ rotx_deg(-psi)
    T = RigidTransform.from_rotation(R, (g.x_shift, g.y_shift, g.z_shift), "Tpc2Glob")
    return orthonormalize(T)


class SectorTransformCache:
    """Eagerly built, read-only table of ``(sector, Stage) -> RigidTransform``.

    Holds the sector-independent ``tpc_to_global`` plus 14 stages for each of
    the 24 sectors. Safe to share between threads once constructed.
    """

    def __init__(self, calibration: CalibrationProvider):
        self._calibration = calibration
        self._tpc_to_global = tpc_to_global_transform(calibration)
        table: Dict[Tuple[int, Stage], RigidTransform] = {}
        for sector in progress_iter(range(1, N_SECTORS + 1), total=N_SECTORS, desc="sector transforms"):
            for stage in Stage:
                T = self._build(sector, stage, table)
                table[(sector, stage)] = orthonormalize(T.renamed(stage.label(sector)))
        self._table: Mapping[Tuple[int, Stage], RigidTransform] = MappingProxyType(table)
        logging.debug("Built %d sector transforms (+ %s)", len(table), self._tpc_to_global.name)

    def _build(self, sector: int, stage: Stage, table) -> RigidTransform:
        cal = self._calibration
        g = self._tpc_to_global

        def T(k: Stage) -> RigidTransform:
            return table[(sector, k)]

        if stage is Stage.SUPS_TO_TPC:
            pad_planes = cal.get(Category.PAD_PLANES)
            wire_planes = cal.get(Category.WIRE_PLANES)
            drift_dist_z = pad_planes.outer_sector_pad_plane_z - wire_planes.outer_sector_gating_grid_pad_sep
            rot = np.eye(3)
            if sector > 12:
                rot = _EAST_FLIP
                drift_dist_z = -drift_dist_z
            rot = rotz_deg(sector_phi_deg(sector)) @ rot
            placed = RigidTransform.from_rotation(rot, (0.0, 0.0, drift_dist_z))
            return placed @ cal.get_matrix(Category.SUPER_SECTOR_POSITION, sector)
        if stage is Stage.SUPS_TO_GLOB:
            return g @ T(Stage.SUPS_TO_TPC)
        if stage is Stage.SUBS_INNER_TO_SUPS:
            return RigidTransform.from_rotation(FLIP_ROTATION, name="flip")
        if stage is Stage.SUBS_OUTER_TO_SUPS:
            flip = RigidTransform.from_rotation(FLIP_ROTATION, name="flip")
            return flip @ cal.get_matrix(Category.OUTER_SECTOR_POSITION, sector)
        if stage is Stage.SUBS_INNER_TO_TPC:
            return T(Stage.SUPS_TO_TPC) @ T(Stage.SUBS_INNER_TO_SUPS)
        if stage is Stage.SUBS_OUTER_TO_TPC:
            return T(Stage.SUPS_TO_TPC) @ T(Stage.SUBS_OUTER_TO_SUPS)
        if stage is Stage.SUBS_INNER_TO_GLOB:
            return g @ T(Stage.SUBS_INNER_TO_TPC)
        if stage is Stage.SUBS_OUTER_TO_GLOB:
            return g @ T(Stage.SUBS_OUTER_TO_TPC)
        # the pad frame coincides with the (ideal) sub-sector frame
        if stage is Stage.PAD_INNER_TO_SUPS:
            return T(Stage.SUBS_INNER_TO_SUPS)
        if stage is Stage.PAD_OUTER_TO_SUPS:
            return T(Stage.SUBS_OUTER_TO_SUPS)
        if stage is Stage.PAD_INNER_TO_TPC:
            return T(Stage.SUPS_TO_TPC) @ T(Stage.PAD_INNER_TO_SUPS)
        if stage is Stage.PAD_OUTER_TO_TPC:
            return T(Stage.SUPS_TO_TPC) @ T(Stage.PAD_OUTER_TO_SUPS)
        if stage is Stage.PAD_INNER_TO_GLOB:
            return g @ T(Stage.PAD_INNER_TO_TPC)
        if stage is Stage.PAD_OUTER_TO_GLOB:
            return g @ T(Stage.PAD_OUTER_TO_TPC)
        raise ValueError(f"Unknown transform stage: {stage!r}")

    @property
    def tpc_to_global(self) -> RigidTransform:
        return self._tpc_to_global

    def get(self, sector: int, stage: Stage) -> RigidTransform:
        if not isinstance(stage, Stage):
            raise ValueError(f"Unknown transform stage: {stage!r}")
        try:
            return self._table[(sector, stage)]
        except KeyError:
            raise IndexError(f"sector {sector} outside 1..{N_SECTORS}") from None

    def sup_s_to_tpc(self, sector: int) -> RigidTransform:
        return self.get(sector, Stage.SUPS_TO_TPC)

    def pad_to_tpc(self, sector: int, row: int) -> RigidTransform:
        inner = self._calibration.get(Category.PAD_PLANES).is_inner(row)
        return self.get(sector, Stage.PAD_INNER_TO_TPC if inner else Stage.PAD_OUTER_TO_TPC)

    def pad_to_global(self, sector: int, row: int) -> RigidTransform:
        inner = self._calibration.get(Category.PAD_PLANES).is_inner(row)
        return self.get(sector, Stage.PAD_INNER_TO_GLOB if inner else Stage.PAD_OUTER_TO_GLOB)

    def items(self) -> Iterator[Tuple[Tuple[int, Stage], RigidTransform]]:
        return iter(self._table.items())

    def __len__(self) -> int:
        return len(self._table)


__all__ = ["Stage", "SectorTransformCache", "sector_phi_deg", "tpc_to_global_transform"]
