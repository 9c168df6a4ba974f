import json

import numpy as np
import pytest

from tpcgeom.core.geometry import Category, PadrowT0, RigidTransform, SectorT0Offset
from tpcgeom.core.transform import CoordTransform
from tpcgeom.data.calibration import Calibration, nominal_calibration, nominal_pad_planes, parse_matrix
from tpcgeom.utils.config import dump_config, load_config, save_config


def test_nominal_records():
    cal = nominal_calibration()
    pp = cal.get(Category.PAD_PLANES)
    assert pp.pad_rows == 45
    assert pp.is_inner(13) and not pp.is_inner(14)
    assert pp.number_of_pads(1) == 88
    assert pp.pad_pitch(20) == pytest.approx(0.67)
    assert cal.get(Category.ELECTRONICS).timebin_width == pytest.approx(1e6 / 9383160.0)
    assert cal.get(Category.DRIFT_VELOCITY).for_sector(13) == pytest.approx(5.5)
    assert cal.get(Category.PADROW_T0, 7).t0 == (0.0,) * 45
    assert cal.get_matrix(Category.SUPER_SECTOR_POSITION, 24).allclose(RigidTransform.identity())


def test_lookup_errors():
    cal = nominal_calibration()
    with pytest.raises(KeyError):
        cal.get("no_such_table")
    with pytest.raises(KeyError):
        cal.get_matrix(Category.PAD_PLANES, 1)
    with pytest.raises(IndexError):
        cal.get(Category.PADROW_T0)
    with pytest.raises(IndexError):
        cal.get_matrix(Category.OUTER_SECTOR_POSITION, 0)


def test_record_validation():
    with pytest.raises(ValueError):
        nominal_pad_planes(inner_pad_rows=12)
    with pytest.raises(ValueError):
        SectorT0Offset((0.0,) * 24)
    with pytest.raises(ValueError):
        nominal_calibration(padrow_t0=[PadrowT0((0.0,) * 45)] * 23)
    with pytest.raises(ValueError):
        nominal_calibration(super_sector_positions=[None] * 12)


def test_parse_matrix_forms():
    assert parse_matrix(None, "a").allclose(RigidTransform.identity())
    T = parse_matrix({"translation": [1.0, 2.0, 3.0]}, "b")
    assert T.name == "b"
    assert np.allclose(T.translation, [1.0, 2.0, 3.0])
    M = np.eye(4)
    M[0, 3] = 5.0
    assert np.allclose(parse_matrix(M.tolist()).translation, [5.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        parse_matrix([[1.0, 0.0], [0.0, 1.0]], "bad")


def test_json_round_trip(tmp_path):
    cal = nominal_calibration(sector_t0_offset=SectorT0Offset(tuple(0.01 * k for k in range(48))))
    path = save_config(cal, tmp_path / "cal.json")
    assert json.loads(path.read_text())[Category.SECTOR_T0_OFFSET][3] == pytest.approx(0.03)
    loaded = Calibration.from_dict(load_config(path))
    assert loaded.get(Category.PAD_PLANES) == cal.get(Category.PAD_PLANES)
    assert loaded.get(Category.SECTOR_T0_OFFSET) == cal.get(Category.SECTOR_T0_OFFSET)
    assert loaded.get(Category.ELECTRONICS) == cal.get(Category.ELECTRONICS)
    a = CoordTransform(cal).time_to_z(50.0, 3, 30)
    b = CoordTransform(loaded).time_to_z(50.0, 3, 30)
    assert a == pytest.approx(b)


def test_yaml_config(tmp_path):
    yaml = pytest.importorskip("yaml")
    d = nominal_calibration().to_dict()
    d[Category.GLOBAL_POSITION] = {"x_shift": -0.2, "z_shift": 0.1}
    d[Category.SUPER_SECTOR_POSITION] = [{"translation": [0.0, 0.0, 0.01 * i]} for i in range(24)]
    path = tmp_path / "cal.yaml"
    path.write_text(yaml.safe_dump(d))
    cal = Calibration.from_dict(load_config(str(path)))
    assert cal.get(Category.GLOBAL_POSITION).x_shift == pytest.approx(-0.2)
    assert np.allclose(cal.get_matrix(Category.SUPER_SECTOR_POSITION, 5).translation, [0.0, 0.0, 0.04])


def test_missing_section():
    d = nominal_calibration().to_dict()
    del d[Category.WIRE_PLANES]
    with pytest.raises(ValueError, match="wire_planes"):
        Calibration.from_dict(d)


def test_dump_config_uses_to_dict():
    rec = nominal_calibration().get(Category.DRIFT_VELOCITY)
    assert dump_config(rec) == {"west": 5.5, "east": 5.5}


def test_dump_config_rejects_unknown_objects():
    with pytest.raises(TypeError):
        dump_config(object())
