import math
import sys

import numpy as np
import pytest

from tpcgeom.core.coords import Coords
from tpcgeom.core.helix import NO_SOLUTION, Helix


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def _straight_along_y(origin=(0.0, 0.0, 0.0)):
    # h=-1 is turned into h=+1 with the phase moved by pi, i.e. phase 0
    return Helix(0.0, 0.0, math.pi, origin)


def test_origin_is_at_zero():
    h = Helix(0.01, 0.3, 0.7, (1.0, -2.0, 5.0), h=1)
    assert h.at(0.0) == Coords(1.0, -2.0, 5.0)
    assert h.cat(12.0).mag() == pytest.approx(1.0)


def test_transverse_circle():
    h = Helix(0.02, 0.4, 1.1, (3.0, 4.0, 0.0))
    for s in (-30.0, 5.0, 80.0):
        p = h.at(s)
        assert math.hypot(p.x - h.xcenter(), p.y - h.ycenter()) == pytest.approx(50.0)
        assert p.z == pytest.approx(s * math.sin(0.4))


def test_straight_line():
    h = _straight_along_y()
    assert h.singularity
    assert h.h == 1
    assert h.phase == pytest.approx(0.0)
    assert h.at(7.0) == Coords(0.0, 7.0, 0.0)
    assert h.period() == math.inf
    assert h.path_length((0.0, 5.0, 3.0)) == pytest.approx(5.0)
    assert h.distance((3.0, 5.0, 0.0)) == pytest.approx(3.0)


def test_straight_track_normalises_h():
    h = Helix(0.0, 0.2, 0.3, (0.0, 0.0, 0.0))
    assert h.h == 1
    assert h.phase == pytest.approx(0.3 - math.pi)
    assert h.bad() == 0
    # h=+1 is kept as given
    assert Helix(0.0, 0.2, 0.3, (0.0, 0.0, 0.0), h=1).phase == pytest.approx(0.3)


@pytest.mark.parametrize("h", [-1, 1])
def test_straight_track_continues_curved_limit(h):
    curved = Helix(1e-9, 0.2, 0.3, (1.0, -2.0, 3.0), h=h)
    straight = Helix(0.0, 0.2, 0.3, (1.0, -2.0, 3.0), h=h)
    for s in (-40.0, 10.0, 250.0):
        assert np.allclose(straight.at(s).xyz(), curved.at(s).xyz(), atol=1e-4)
        assert np.allclose(straight.cat(s).xyz(), curved.cat(s).xyz(), atol=1e-6)


def test_period():
    assert Helix(0.01, 0.0, 0.0, (0.0, 0.0, 0.0)).period() == pytest.approx(2.0 * math.pi / 0.01)
    assert Helix(0.01, 0.5, 0.0, (0.0, 0.0, 0.0)).period() == pytest.approx(2.0 * math.pi / (0.01 * math.cos(0.5)))


def test_path_length_of_point_on_curve():
    h = Helix(0.01, 0.1, 0.0, (0.0, 0.0, 0.0), h=-1)
    assert h.path_length(h.at(50.0)) == pytest.approx(50.0, abs=1e-3)
    assert h.distance(h.at(50.0)) == pytest.approx(0.0, abs=1e-3)


def test_path_length_scans_whole_periods():
    h = Helix(0.05, 1.2, 0.0, (0.0, 0.0, 0.0))
    p = h.at(800.0)
    assert h.path_length(p) == pytest.approx(800.0, abs=1e-3)
    # the transverse solution alone lands two turns early
    assert h.fudge_path_length(p) == pytest.approx(800.0 - 2.0 * h.period(), abs=1e-6)


def test_fudge_path_length_near_circle_centre():
    h = Helix(0.01, 0.0, 0.0, (0.0, 0.0, 0.0))
    assert (h.xcenter(), h.ycenter()) == (pytest.approx(-100.0), pytest.approx(0.0))
    assert h.fudge_path_length((-100.0, 0.0, 0.0)) == 0.0
    # a millimetre off the centre the usual solution applies
    s = h.fudge_path_length((-100.0, 1e-1, 0.0))
    assert h.at(s).xyz() == pytest.approx([-100.0, 100.0, 0.0], abs=1e-6)


def test_path_length_off_curve_point():
    h = Helix(0.01, 0.2, 0.5, (0.0, 0.0, 0.0))
    p = h.at(40.0) + Coords(0.0, 0.0, 0.5)
    s = h.path_length(p)
    assert h.cat(s) * (h.at(s) - p) == pytest.approx(0.0, abs=1e-3)
    assert h.distance(p) < 0.5


def test_bad_codes():
    origin = (0.0, 0.0, 0.0)
    assert Helix(0.01, 0.1, 0.0, origin).bad() == 0
    assert Helix(0.01, float("nan"), 0.0, origin).bad() == 11
    assert Helix(float("inf"), 0.1, 0.0, origin).bad() == 12
    assert Helix(0.01, 0.1, 0.0, (float("nan"), 0.0, 0.0)).bad() == 1003
    assert Helix(0.01, 0.1, 0.0, (0.0, 0.0, 2e5)).bad() == 2203
    assert Helix(0.01, 1.6, 0.0, origin).bad() == 21
    assert Helix(0.01, math.pi / 2, 0.0, origin).bad() == 31
    assert Helix(2e5, 0.1, 0.0, origin).bad() == 22
    assert Helix(-0.01, 0.1, 0.0, origin).bad() == 32
    assert Helix(0.01, 0.1, 0.0, origin, h=2).bad() == 24
    assert not Helix(0.01, 0.1, 0.0, origin, h=0).valid()


def test_phase_is_wrapped():
    h = Helix(0.01, 0.0, 4.0, (0.0, 0.0, 0.0))
    assert h.phase == pytest.approx(4.0 - 2.0 * math.pi)
    assert Helix(0.01, 0.0, -math.pi, (0.0, 0.0, 0.0)).phase == -math.pi


@pytest.mark.parametrize("curvature", [0.0, 0.015])
def test_move_origin_keeps_curve(curvature):
    ref = Helix(curvature, 0.2, 0.3, (1.0, 2.0, 3.0))
    h = Helix(curvature, 0.2, 0.3, (1.0, 2.0, 3.0))
    h.move_origin(40.0)
    assert np.allclose(h.at(0.0).xyz(), ref.at(40.0).xyz(), atol=1e-9)
    for s in (-25.0, 10.0, 60.0):
        assert np.allclose(h.at(s).xyz(), ref.at(40.0 + s).xyz(), atol=1e-9)


def test_path_length_at_radius_curved():
    h = Helix(0.01, 0.0, 0.0, (0.0, 0.0, 0.0))
    s1, s2 = h.path_length_at_radius(50.0)
    assert s1 < s2
    assert h.at(s1).perp() == pytest.approx(50.0, abs=1e-6)
    assert h.at(s2).perp() == pytest.approx(50.0, abs=1e-6)
    # circle of radius 100 centred at (-100, 0) never reaches r = 250
    assert h.path_length_at_radius(250.0) == (NO_SOLUTION, NO_SOLUTION)


def test_path_length_at_radius_about_offset_axis():
    h = Helix(0.01, 0.2, 0.0, (0.0, 0.0, 0.0))
    s1, s2 = h.path_length_at_radius(30.0, 0.0, 20.0)
    for s in (s1, s2):
        p = h.at(s)
        assert math.hypot(p.x, p.y - 20.0) == pytest.approx(30.0, abs=1e-6)


def test_path_length_at_radius_straight():
    h = _straight_along_y((10.0, 0.0, 0.0))
    s1, s2 = h.path_length_at_radius(20.0)
    assert s1 == pytest.approx(-math.sqrt(300.0))
    assert s2 == pytest.approx(math.sqrt(300.0))
    assert h.path_length_at_radius(5.0) == (NO_SOLUTION, NO_SOLUTION)


def test_plane_crossing_straight():
    h = _straight_along_y()
    assert h.path_length_to_plane((0.0, 5.0, 0.0), (0.0, 1.0, 0.0)) == pytest.approx(5.0)
    assert h.path_length_to_plane((3.0, 0.0, 0.0), (1.0, 0.0, 0.0)) == NO_SOLUTION


def test_plane_crossing_curved():
    h = Helix(0.01, 0.3, 0.0, (0.0, 0.0, 0.0))
    s = h.path_length_to_plane((0.0, 0.0, 10.0), (0.0, 0.0, 1.0))
    assert s == pytest.approx(10.0 / math.sin(0.3), abs=1e-4)
    assert h.z(s) == pytest.approx(10.0, abs=1e-6)

    flat = Helix(0.01, 0.0, 0.0, (0.0, 0.0, 0.0))
    s = flat.path_length_to_plane((-50.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    assert s != NO_SOLUTION
    assert flat.x(s) == pytest.approx(-50.0, abs=1e-5)
    # a flat helix never leaves the z=0 plane
    assert flat.path_length_to_plane((0.0, 0.0, 10.0), (0.0, 0.0, 1.0)) == NO_SOLUTION


def test_path_lengths_straight_lines():
    a = _straight_along_y()
    b = Helix(0.0, 0.0, math.pi / 2, (-4.0, 3.0, 1.0))
    s1, s2 = a.path_lengths(b)
    assert s1 == pytest.approx(3.0)
    assert s2 == pytest.approx(4.0)
    assert (a.at(s1) - b.at(s2)).mag() == pytest.approx(1.0)


def test_path_lengths_parallel_lines():
    a = _straight_along_y()
    b = _straight_along_y((2.0, 7.0, 0.0))
    s1, s2 = a.path_lengths(b)
    assert (s1, s2) == (pytest.approx(7.0), 0.0)


def test_path_lengths_mixed_has_no_solution():
    a = _straight_along_y()
    b = Helix(0.01, 0.0, 0.0, (0.0, 0.0, 0.0))
    assert a.path_lengths(b) == (NO_SOLUTION, NO_SOLUTION)


def test_path_lengths_crossing_helices():
    a = Helix(0.01, 0.1, 0.0, (0.0, 0.0, 0.0))
    b = Helix(0.008, -0.05, 1.0, a.at(60.0))
    b.move_origin(-30.0)
    s1, s2 = a.path_lengths(b)
    assert (a.at(s1) - b.at(s2)).mag() < 1e-3
    assert a.at(s1).xyz() == pytest.approx(a.at(60.0).xyz(), abs=1e-2)


def test_equality_and_repr():
    a = Helix(0.01, 0.1, 0.2, (1.0, 2.0, 3.0))
    assert a == Helix(0.01, 0.1, 0.2, (1.0, 2.0, 3.0))
    assert a != Helix(0.01, 0.1, 0.2, (1.0, 2.0, 3.0), h=1)
    assert repr(a).startswith("Helix(curvature=0.01, dip_angle=0.1")
