from .base import (
    N_SECTORS,
    Category,
    CalibrationProvider,
    DriftVelocity,
    EffectiveGeom,
    Electronics,
    GlobalPosition,
    PadPlanes,
    PadrowT0,
    SectorT0Offset,
    WirePlanes,
)
from .transforms import RigidTransform, orthonormalize
from .sector import SectorTransformCache, Stage

__all__ = [
    "N_SECTORS",
    "Category",
    "CalibrationProvider",
    "DriftVelocity",
    "EffectiveGeom",
    "Electronics",
    "GlobalPosition",
    "PadPlanes",
    "PadrowT0",
    "SectorT0Offset",
    "WirePlanes",
    "RigidTransform",
    "orthonormalize",
    "SectorTransformCache",
    "Stage",
]
