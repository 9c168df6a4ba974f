import numpy as np
import pytest

from tpcgeom.core.geometry import GlobalPosition, RigidTransform, SectorTransformCache, Stage
from tpcgeom.core.geometry.sector import sector_phi_deg, tpc_to_global_transform
from tpcgeom.core.geometry.transforms import rotx_deg, rotz_deg
from tpcgeom.data.calibration import nominal_calibration


def _misaligned_calibration():
    rng = np.random.default_rng(7)
    sup = []
    outer = []
    for _ in range(24):
        a = rng.normal(scale=0.05, size=2)
        sup.append(RigidTransform.from_rotation(rotz_deg(a[0]) @ rotx_deg(a[1]), rng.normal(scale=0.02, size=3)))
        outer.append(RigidTransform.from_rotation(rotz_deg(rng.normal(scale=0.02)), rng.normal(scale=0.01, size=3)))
    glob = GlobalPosition(phi_xy=0.0, phi_xz=-3.0e-4, phi_yz=2.0e-4, x_shift=-0.2, y_shift=-0.1, z_shift=0.3)
    return nominal_calibration(global_position=glob, super_sector_positions=sup, outer_sector_positions=outer)


def test_sector_phi_angles():
    assert sector_phi_deg(3) == 0
    assert sector_phi_deg(12) == 90
    assert sector_phi_deg(1) == 60
    assert sector_phi_deg(13) == 120
    assert sector_phi_deg(21) == 0
    assert sector_phi_deg(24) == 90


def test_table_size_and_names():
    cache = SectorTransformCache(nominal_calibration())
    assert len(cache) == 24 * 14
    assert cache.tpc_to_global.name == "Tpc2Glob"
    assert cache.get(5, Stage.SUPS_TO_TPC).name == "SupS_05toTpc"
    assert cache.get(17, Stage.PAD_OUTER_TO_GLOB).name == "SupS_1712Outer2Glob"


def test_all_rotations_orthonormal():
    cache = SectorTransformCache(_misaligned_calibration())
    for (sector, stage), T in cache.items():
        R = T.rotation
        assert np.allclose(R.T @ R, np.eye(3), atol=1e-12), (sector, stage)
        assert np.isclose(np.linalg.det(R), 1.0, atol=1e-12), (sector, stage)


@pytest.mark.parametrize("sector", [1, 6, 12, 13, 20, 24])
def test_composite_stages_match_products(sector):
    cache = SectorTransformCache(_misaligned_calibration())
    g = cache.tpc_to_global
    sup = cache.get(sector, Stage.SUPS_TO_TPC)
    inner = cache.get(sector, Stage.SUBS_INNER_TO_SUPS)
    outer = cache.get(sector, Stage.SUBS_OUTER_TO_SUPS)
    assert cache.get(sector, Stage.SUBS_INNER_TO_GLOB).allclose(g @ sup @ inner, atol=1e-9)
    assert cache.get(sector, Stage.SUBS_OUTER_TO_GLOB).allclose(g @ sup @ outer, atol=1e-9)
    assert cache.get(sector, Stage.SUPS_TO_GLOB).allclose(g @ sup, atol=1e-9)
    assert cache.get(sector, Stage.PAD_INNER_TO_TPC).allclose(sup @ inner, atol=1e-9)
    assert cache.get(sector, Stage.PAD_OUTER_TO_TPC).allclose(cache.get(sector, Stage.SUBS_OUTER_TO_TPC), atol=1e-12)


def test_west_and_east_sectors_face_opposite_endcaps():
    cache = SectorTransformCache(nominal_calibration())
    drift_z = 209.3 - 0.6
    # pad frame: (along row, radial, drift distance)
    west = cache.get(3, Stage.PAD_INNER_TO_TPC).to_master([0.0, 100.0, 10.0])
    east = cache.get(21, Stage.PAD_INNER_TO_TPC).to_master([0.0, 100.0, 10.0])
    assert np.allclose(west, [100.0, 0.0, drift_z - 10.0], atol=1e-9)
    assert np.allclose(east, [100.0, 0.0, -(drift_z - 10.0)], atol=1e-9)


def test_sector_12_points_along_y():
    cache = SectorTransformCache(nominal_calibration())
    p = cache.get(12, Stage.SUPS_TO_TPC).to_master([50.0, 0.0, 0.0])
    assert np.allclose(p[:2], [0.0, 50.0], atol=1e-9)


def test_tpc_to_global_uses_shifts_and_angles():
    glob = GlobalPosition(phi_xz=0.01, phi_yz=-0.02, x_shift=1.0, y_shift=2.0, z_shift=3.0)
    cache = SectorTransformCache(nominal_calibration(global_position=glob))
    T = cache.tpc_to_global
    assert np.allclose(T.translation, [1.0, 2.0, 3.0])
    assert not np.allclose(T.rotation, np.eye(3))
    assert np.allclose(T.to_master([0.0, 0.0, 0.0]), [1.0, 2.0, 3.0])


def test_pad_stage_follows_row():
    cal = nominal_calibration()
    cache = SectorTransformCache(cal)
    assert cache.pad_to_tpc(4, 13) is cache.get(4, Stage.PAD_INNER_TO_TPC)
    assert cache.pad_to_tpc(4, 14) is cache.get(4, Stage.PAD_OUTER_TO_TPC)
    assert cache.pad_to_global(4, 40) is cache.get(4, Stage.PAD_OUTER_TO_GLOB)


def test_unknown_stage_and_sector():
    cache = SectorTransformCache(nominal_calibration())
    with pytest.raises(ValueError):
        cache.get(1, 99)
    with pytest.raises(IndexError):
        cache.get(25, Stage.SUPS_TO_TPC)


def test_global_rotation_about_z():
    # nominal placement has no rotation about z
    assert tpc_to_global_transform(nominal_calibration()).allclose(RigidTransform.identity())
    T = tpc_to_global_transform(nominal_calibration(global_position=GlobalPosition(phi_xy=1e-3)))
    assert np.allclose(T.rotation, rotz_deg(-np.rad2deg(1e-3)), atol=1e-12)
