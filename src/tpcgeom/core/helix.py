"""Helix parametrisation of a charged-particle trajectory.

The curve is parametrised by the signed arc length ``s`` measured from
``origin``. In the transverse plane it is a circle of radius ``1/curvature``
traversed in the sense given by ``h`` (-sign(q*B)); along z it advances
linearly with ``sin(dip_angle)``. Zero curvature is the straight-line case.

Lengths are cm, angles radians. Queries that can fail geometrically return
``NO_SOLUTION`` instead of raising; validity of the parameters themselves is
reported by ``bad()``.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple, Union

import numpy as np

from .batch import helix_directions, helix_points
from .coords import Coords

NO_SOLUTION = 3.0e33

_MAX_PRECISION = 1e-4  # 1 um
_MAX_ITERATIONS = 100
_PLANE_ITERATIONS = 20

PointLike = Union[Coords, Sequence[float], np.ndarray]


def _as_coords(p: PointLike) -> Coords:
    return p if isinstance(p, Coords) else Coords.from_array(p)


def _wrap_angle(a: float) -> float:
    return math.atan2(math.sin(a), math.cos(a))


class Helix:
    def __init__(self, curvature: float, dip_angle: float, phase: float, origin: PointLike, h: int = -1):
        self.set_parameters(curvature, dip_angle, phase, origin, h)

    def set_parameters(self, curvature: float, dip_angle: float, phase: float, origin: PointLike, h: int) -> None:
        self._h = int(h)
        self._origin = _as_coords(origin)
        self._set_dip_angle(float(dip_angle))
        self._set_phase(float(phase))
        self._set_curvature(float(curvature))
        # a straight track has no sense of rotation: keep h=+1 and turn the phase
        if self._singularity and self._h == -1:
            self._h = 1
            self._set_phase(self._phase - math.pi)

    def _set_dip_angle(self, val: float) -> None:
        self._dip_angle = val
        self._cos_dip = math.cos(val)
        self._sin_dip = math.sin(val)

    def _set_phase(self, val: float) -> None:
        if abs(val) > math.pi:
            val = _wrap_angle(val)
        self._phase = val
        self._cos_phase = math.cos(val)
        self._sin_phase = math.sin(val)

    def _set_curvature(self, val: float) -> None:
        self._curvature = val
        self._singularity = val == 0.0

    # ---- parameters --------------------------------------------------------

    @property
    def curvature(self) -> float:
        """1/R in the xy-plane."""
        return self._curvature

    @property
    def dip_angle(self) -> float:
        return self._dip_angle

    @property
    def phase(self) -> float:
        """Azimuth of the origin as seen from the circle centre."""
        return self._phase

    @property
    def origin(self) -> Coords:
        return self._origin

    @property
    def h(self) -> int:
        return self._h

    @property
    def singularity(self) -> bool:
        return self._singularity

    def xcenter(self) -> float:
        if self._singularity:
            return 0.0
        return self._origin.x - self._cos_phase / self._curvature

    def ycenter(self) -> float:
        if self._singularity:
            return 0.0
        return self._origin.y - self._sin_phase / self._curvature

    def _omega(self) -> float:
        """Rate of change of the transverse angle per unit arc length."""
        return self._h * self._curvature * self._cos_dip

    # ---- position and direction -------------------------------------------

    def x(self, s: float) -> float:
        if self._singularity:
            return self._origin.x - s * self._cos_dip * self._sin_phase
        return self._origin.x + (math.cos(self._phase + s * self._omega()) - self._cos_phase) / self._curvature

    def y(self, s: float) -> float:
        if self._singularity:
            return self._origin.y + s * self._cos_dip * self._cos_phase
        return self._origin.y + (math.sin(self._phase + s * self._omega()) - self._sin_phase) / self._curvature

    def z(self, s: float) -> float:
        return self._origin.z + s * self._sin_dip

    def at(self, s: float) -> Coords:
        return Coords(self.x(s), self.y(s), self.z(s))

    def cx(self, s: float) -> float:
        if self._singularity:
            return -self._cos_dip * self._sin_phase
        return -math.sin(self._phase + s * self._omega()) * self._h * self._cos_dip

    def cy(self, s: float) -> float:
        if self._singularity:
            return self._cos_dip * self._cos_phase
        return math.cos(self._phase + s * self._omega()) * self._h * self._cos_dip

    def cz(self, s: float = 0.0) -> float:
        return self._sin_dip

    def cat(self, s: float) -> Coords:
        return Coords(self.cx(s), self.cy(s), self.cz(s))

    def points(self, s) -> np.ndarray:
        """Positions for an array of arc lengths, shape (n, 3)."""
        return helix_points(self, s)

    def directions(self, s) -> np.ndarray:
        return helix_directions(self, s)

    def period(self) -> float:
        """Arc length of one full turn; infinite for a straight track."""
        w = self._curvature * self._cos_dip
        if self._singularity or w == 0.0:
            return math.inf
        return abs(2.0 * math.pi / w)

    # ---- path length solvers -----------------------------------------------

    def path_length_at_radius(self, r: float, x: float = 0.0, y: float = 0.0) -> Tuple[float, float]:
        """Arc lengths where the helix crosses the cylinder of radius ``r`` about the z-parallel axis through (x, y).

        Returns the two solutions in increasing order, or
        ``(NO_SOLUTION, NO_SOLUTION)`` if the cylinder is never reached. For a
        curved track each solution is the alias closest to s=0.
        """
        none = (NO_SOLUTION, NO_SOLUTION)
        ox = self._origin.x - x
        oy = self._origin.y - y
        if self._singularity:
            ux = -self._cos_dip * self._sin_phase
            uy = self._cos_dip * self._cos_phase
            a = ux * ux + uy * uy
            if a == 0.0:
                return none
            b = 2.0 * (ox * ux + oy * uy)
            c = ox * ox + oy * oy - r * r
            disc = b * b - 4.0 * a * c
            if disc < 0.0:
                return none
            root = math.sqrt(disc)
            s1, s2 = (-b - root) / (2.0 * a), (-b + root) / (2.0 * a)
        else:
            w = self._omega()
            if w == 0.0:
                return none
            R = 1.0 / self._curvature
            cx = ox - self._cos_phase * R
            cy = oy - self._sin_phase * R
            d = math.hypot(cx, cy)
            if d == 0.0:
                # circle concentric with the cylinder: everywhere or nowhere
                return none
            cos_delta = (r * r - d * d - R * R) / (2.0 * R * d)
            if abs(cos_delta) > 1.0:
                return none
            alpha = math.atan2(cy, cx)
            delta = math.acos(cos_delta)
            s1 = _wrap_angle(alpha + delta - self._phase) / w
            s2 = _wrap_angle(alpha - delta - self._phase) / w
        return (s1, s2) if s1 <= s2 else (s2, s1)

    def fudge_path_length(self, p: PointLike) -> float:
        """Arc length of closest approach to ``p`` in the xy-plane."""
        p = _as_coords(p)
        dx = p.x - self._origin.x
        dy = p.y - self._origin.y
        along = dy * self._cos_phase - dx * self._sin_phase
        if self._singularity:
            if self._cos_dip == 0.0:
                return 0.0
            return along / self._cos_dip
        w = self._omega()
        if w == 0.0:
            return 0.0
        radial = 1.0 / self._curvature + dx * self._cos_phase + dy * self._sin_phase
        # only the circle centre needs a guard: every s is equally close there,
        # so keep the origin. atan2 handles every other point, on or off the circle.
        if math.hypot(along, radial) < 1e-12 / abs(self._curvature):
            return 0.0
        return math.atan2(along, radial) / w

    def path_length_xy(self, x: float, y: float) -> float:
        return self.fudge_path_length(Coords(x, y, 0.0))

    def _dist_derivative(self, p: Coords, s: float) -> float:
        # d/ds of |at(s) - p|^2 / 2 for a unit tangent
        return (self.at(s) - p) * self.cat(s)

    def _refine(self, p: Coords, s: float) -> float:
        """Local 3D minimum of the distance to ``p`` next to ``s``, by bracketing and bisection."""
        g = self._dist_derivative(p, s)
        if g == 0.0:
            return s
        limit = self.period() / 2.0
        step = max(_MAX_PRECISION, min(1.0, limit / 8.0))
        direction = 1.0 if g < 0.0 else -1.0
        # walk downhill until the derivative changes sign
        near, far = s, s
        moved = 0.0
        while True:
            moved = min(moved + step, limit)
            far = s + direction * moved
            if self._dist_derivative(p, far) * direction >= 0.0:
                break
            if moved >= limit:
                return far
            near = far
            step *= 2.0
        lo, hi = (near, far) if direction > 0 else (far, near)
        for _ in range(2 * _MAX_ITERATIONS):
            if hi - lo < _MAX_PRECISION:
                break
            mid = 0.5 * (lo + hi)
            if self._dist_derivative(p, mid) < 0.0:
                lo = mid
            else:
                hi = mid
        return 0.5 * (lo + hi)

    def path_length(self, p: PointLike, scan_periods: bool = True) -> float:
        """Arc length at the distance of closest approach to the point ``p``."""
        p = _as_coords(p)
        dx = p.x - self._origin.x
        dy = p.y - self._origin.y
        dz = p.z - self._origin.z
        if self._singularity:
            return self._cos_dip * (self._cos_phase * dy - self._sin_phase * dx) + self._sin_dip * dz

        # The transverse dca can be off by whole periods when the point is far
        # away in z, so step period by period while the 3D distance improves.
        s = self.fudge_path_length(p)
        if scan_periods:
            ds = self.period()
            if math.isfinite(ds):
                dmin = (self.at(s) - p).mag()
                jmin = 0
                for sign in (1, -1):
                    for j in range(1, _MAX_ITERATIONS):
                        d = (self.at(s + sign * j * ds) - p).mag()
                        if d >= dmin:
                            break
                        dmin, jmin = d, sign * j
                s += jmin * ds
        return self._refine(p, s)

    def _path_length_near(self, p: Coords, s_near: float) -> float:
        """Closest approach to ``p`` on the turn of the helix nearest ``s_near``."""
        s = self.fudge_path_length(p)
        ds = self.period()
        if math.isfinite(ds):
            s += round((s_near - s) / ds) * ds
        return self._refine(p, s)

    def path_length_to_plane(self, r: PointLike, n: PointLike) -> float:
        """Arc length where the helix crosses the plane through ``r`` with normal ``n``."""
        r = _as_coords(r)
        n = _as_coords(n)
        if self._singularity:
            t = n.z * self._sin_dip + n.y * self._cos_dip * self._cos_phase - n.x * self._cos_dip * self._sin_phase
            if t == 0.0:
                return NO_SOLUTION
            return ((r - self._origin) * n) / t

        c = self._curvature
        w = self._omega()
        if w == 0.0:
            return NO_SOLUTION
        A = c * ((self._origin - r) * n) - n.x * self._cos_phase - n.y * self._sin_phase
        u = n.z * c * self._sin_dip
        # Newton steps are capped so the transverse angle moves by at most ang_max
        ang_max = 0.21
        deltas = abs(ang_max / (c * self._cos_dip))
        s = s_old = 0.0
        for _ in range(_PLANE_ITERATIONS):
            a = w * s + self._phase
            sina, cosa = math.sin(a), math.cos(a)
            f = A + n.x * cosa + n.y * sina + u * s
            if f == 0.0:
                return s
            fp = -n.x * sina * w + n.y * cosa * w + u
            if abs(fp) * deltas <= abs(f):
                sgn = 1.0 if (fp < 0.0) == (f < 0.0) else -1.0
                shift = sgn * deltas
                if shift < 0:
                    shift *= 0.9  # avoid oscillating between +/- deltas
            else:
                shift = f / fp
            s -= shift
            if abs(s_old - s) < _MAX_PRECISION:
                return s
            s_old = s
        return NO_SOLUTION

    def path_lengths(self, other: "Helix", min_step_size: float = 1e-3, min_range: float = 10.0) -> Tuple[float, float]:
        """Arc lengths (s1 on self, s2 on other) at the closest approach of two helices.

        Best effort: seeded from the transverse circle geometry, refined by a
        shrinking scan over s1 and then alternating 1D minimisations. Near
        parallel or equal-curvature pairs may end in a local minimum. A
        straight track paired with a curved one has no solution.
        """
        if self._singularity != other._singularity:
            return NO_SOLUTION, NO_SOLUTION

        if self._singularity:
            dv = other._origin - self._origin
            a = self.cat(0.0)
            b = other.cat(0.0)
            ab = a * b
            g = dv * a
            k = dv * b
            denom = ab * ab - 1.0
            if abs(denom) < 1e-12:
                # parallel lines: anchor on the other origin
                return g, 0.0
            s2 = (k - ab * g) / denom
            return g + s2 * ab, s2

        s = self._seed_path_length(other)
        s1 = self._scan_path_length(other, s, min_step_size, min_range)
        s2 = other.path_length(self.at(s1))
        best = (self.at(s1) - other.at(s2)).mag()
        for _ in range(_MAX_ITERATIONS):
            s1_new = self._path_length_near(other.at(s2), s1)
            s2_new = other._path_length_near(self.at(s1_new), s2)
            d = (self.at(s1_new) - other.at(s2_new)).mag()
            if d > best:
                break
            converged = abs(s1_new - s1) < min_step_size and abs(s2_new - s2) < min_step_size
            s1, s2, best = s1_new, s2_new, d
            if converged:
                break
        return s1, s2

    def _seed_path_length(self, other: "Helix") -> float:
        """Arc length on self nearest the other track's circle in the xy-plane."""
        dx = other.xcenter() - self.xcenter()
        dy = other.ycenter() - self.ycenter()
        dd = math.hypot(dx, dy)
        if dd == 0.0:
            return 0.0
        r1 = 1.0 / self._curvature
        r2 = 1.0 / other._curvature
        cos_alpha = (r1 * r1 + dd * dd - r2 * r2) / (2.0 * r1 * dd)
        xc, yc = self.xcenter(), self.ycenter()
        if abs(cos_alpha) < 1.0:
            # the circles cross twice: keep the crossing where the tracks are closer in 3D
            sin_alpha = math.sin(math.acos(cos_alpha))
            s = self.path_length_xy(
                xc + r1 * (cos_alpha * dx - sin_alpha * dy) / dd,
                yc + r1 * (sin_alpha * dx + cos_alpha * dy) / dd,
            )
            alt = self.path_length_xy(
                xc + r1 * (cos_alpha * dx + sin_alpha * dy) / dd,
                yc + r1 * (cos_alpha * dy - sin_alpha * dx) / dd,
            )
            if other.distance(self.at(alt)) < other.distance(self.at(s)):
                s = alt
            return s
        # -1 when this circle lies completely inside the other one
        rsign = -1.0 if (r2 - r1) > dd else 1.0
        return self.path_length_xy(xc + rsign * r1 * dx / dd, yc + rsign * r1 * dy / dd)

    def _scan_path_length(self, other: "Helix", s: float, min_step_size: float, min_range: float) -> float:
        dmin = other.distance(self.at(s))
        slast = s
        rng = max(2.0 * dmin, min_range)
        ds = rng / 10.0
        s1, s2 = s - rng / 2.0, s + rng / 2.0
        for _ in range(_MAX_ITERATIONS):
            if ds <= min_step_size:
                break
            n = int(round((s2 - s1) / ds))
            kmin = -1
            for k in range(n + 1):
                sk = s1 + k * ds
                d = other.distance(self.at(sk))
                if d < dmin:
                    dmin, slast, kmin = d, sk, k
            # minimum on the border: shift the window and scan again at the same step
            if kmin == 0:
                shift = -(s2 - s1) / 2.0
            elif kmin == n:
                shift = (s2 - s1) / 2.0
            else:
                s1, s2 = slast - ds, slast + ds
                ds /= 10.0
                continue
            s1 += shift
            s2 += shift
        return slast

    def distance(self, p: PointLike, scan_periods: bool = True) -> float:
        """Minimal distance between the point ``p`` and the helix."""
        p = _as_coords(p)
        return (self.at(self.path_length(p, scan_periods)) - p).mag()

    # ---- validity and re-anchoring -----------------------------------------

    def bad(self, world_size: float = 1.0e5) -> int:
        """Return 0 for a usable parametrisation, else a code naming the first violation.

        11/12: non-finite dip angle/curvature; 3 + 100*k: origin code k (see
        Coords.bad); 21: |dip| > 1.58; 31: dip within 1/world_size of pi/2;
        22: curvature above world_size; 32: negative curvature; 24: |h| != 1.
        """
        if not math.isfinite(self._dip_angle):
            return 11
        if not math.isfinite(self._curvature):
            return 12
        ierr = self._origin.bad(world_size)
        if ierr:
            return 3 + ierr * 100
        if abs(self._dip_angle) > 1.58:
            return 21
        if abs(abs(self._dip_angle) - math.pi / 2.0) < 1.0 / world_size:
            return 31
        if abs(self._curvature) > world_size:
            return 22
        if self._curvature < 0:
            return 32
        if abs(self._h) != 1:
            return 24
        return 0

    def valid(self, world_size: float = 1.0e5) -> bool:
        return not self.bad(world_size)

    def move_origin(self, s: float) -> None:
        """Re-anchor the parametrisation so that the current ``at(s)`` becomes s=0."""
        if self._singularity:
            self._origin = self.at(s)
            return
        new_origin = self.at(s)
        new_phase = math.atan2(new_origin.y - self.ycenter(), new_origin.x - self.xcenter())
        self._origin = new_origin
        self._set_phase(new_phase)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Helix):
            return NotImplemented
        return (
            self._origin == other._origin
            and self._dip_angle == other._dip_angle
            and self._curvature == other._curvature
            and self._phase == other._phase
            and self._h == other._h
        )

    def __repr__(self) -> str:
        o = self._origin
        return (
            f"Helix(curvature={self._curvature!r}, dip_angle={self._dip_angle!r}, "
            f"phase={self._phase!r}, origin=({o.x!r}, {o.y!r}, {o.z!r}), h={self._h!r})"
        )


__all__ = ["Helix", "NO_SOLUTION"]
