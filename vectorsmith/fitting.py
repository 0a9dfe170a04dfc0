"""
Vectorsmith Curve Fitting

Splits a contour at its corners and fits each span with the simplest curve
that meets tolerance: line, circular arc, elliptical arc, quadratic Bezier,
then cubic Bezier by Schneider's algorithm (chord-length parameterisation,
least-squares handle lengths, Newton-Raphson reparameterisation). A fit is
always produced; when tolerance cannot be met the best attempt is kept.
"""

import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from .config import FittingConfig
from .curves import CircularArc, CubicBezier, Curve, EllipticalArc, Line, QuadraticBezier
from .geometry import as_points, normalize, remove_duplicates, segment_distances, to_point, turn_angles

logger = logging.getLogger(__name__)

# Ratio below which an ellipse is treated as a circle.
NEAR_CIRCULAR = 0.1
# Radii above this are collinear points in disguise.
MAX_ARC_RADIUS = 1e5


class CurveFitter:
    """Contour to an ordered, contiguous list of curves."""

    def __init__(self, config: Optional[FittingConfig] = None):
        self.config = config or FittingConfig()
        self.corner_threshold = math.radians(self.config.corner_threshold)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fit(self, points, closed: bool = True) -> List[Curve]:
        """
        Fit curves to a contour.

        Args:
            points: (N, 2) contour points. Closed contours must not repeat the
                first point at the end.
            closed: Whether the last point connects back to the first.

        Returns:
            Curves whose starts and ends are contiguous; for closed contours
            the last curve ends where the first starts. Empty only for
            degenerate input (fewer than two distinct points).
        """
        pts = remove_duplicates(points, closed=closed)
        n = len(pts)
        if n < 2:
            return []
        if n == 2:
            if closed:
                return [Line(to_point(pts[0]), to_point(pts[1])), Line(to_point(pts[1]), to_point(pts[0]))]
            return [Line(to_point(pts[0]), to_point(pts[1]))]

        corners = self.detect_corners(pts, closed)
        curves: List[Curve] = []
        for segment in self.split_segments(pts, corners, closed):
            curves.extend(self.fit_segment(segment))
        logger.debug("Fitted %d points with %d corners into %d curves", n, len(corners), len(curves))
        return curves

    def detect_corners(self, points, closed: bool = True) -> List[int]:
        """
        Indices whose turn angle exceeds the corner threshold.

        Corners closer than min_segment_length points are merged, keeping the
        sharper one. Open contours always include both end points.
        """
        pts = as_points(points)
        n = len(pts)
        angles = turn_angles(pts, closed=closed)
        candidates = [i for i in range(n) if angles[i] > self.corner_threshold]
        if not closed:
            candidates = [i for i in candidates if 0 < i < n - 1]

        min_gap = self.config.min_segment_length
        merged: List[int] = []
        for idx in candidates:
            if merged and idx - merged[-1] < min_gap:
                if angles[idx] > angles[merged[-1]]:
                    merged[-1] = idx
                continue
            merged.append(idx)
        if closed and len(merged) > 1 and merged[0] + n - merged[-1] < min_gap:
            if angles[merged[-1]] > angles[merged[0]]:
                merged[0] = merged[-1]
            merged.pop()
            merged.sort()

        if not closed:
            return [0] + merged + [n - 1]
        return merged

    def split_segments(self, points, corners: List[int], closed: bool) -> List[np.ndarray]:
        """Point runs between consecutive corners, sharing their end points."""
        pts = as_points(points)
        n = len(pts)
        if not closed:
            return [pts[a:b + 1] for a, b in zip(corners, corners[1:]) if b > a]

        anchors = list(corners)
        if len(anchors) < 2:
            # Smooth loop: cut it into quarters starting at the corner, if any.
            first = anchors[0] if anchors else 0
            anchors = sorted({(first + k * n // 4) % n for k in range(4)})
        segments = []
        for i, start in enumerate(anchors):
            end = anchors[(i + 1) % len(anchors)]
            if end > start:
                segments.append(pts[start:end + 1])
            else:
                segments.append(np.vstack([pts[start:], pts[:end + 1]]))
        return segments

    def fit_segment(self, points) -> List[Curve]:
        """Try each curve type in order of simplicity; the first within tolerance wins."""
        pts = as_points(points)
        cfg = self.config
        if len(pts) <= 2:
            return [self.fit_line(pts)]

        line = self.fit_line(pts)
        if line.error <= cfg.line_tolerance:
            return [line]

        if cfg.allow_circular_arc:
            arc = self.fit_circular_arc(pts)
            if arc is not None and arc.error <= cfg.arc_tolerance:
                return [arc]

        if cfg.allow_elliptical_arc:
            ellipse = self.fit_elliptical_arc(pts)
            if ellipse is not None and ellipse.error <= cfg.arc_tolerance:
                return [ellipse]

        if cfg.allow_quadratic:
            quad = self.fit_quadratic(pts)
            if quad.error <= cfg.bezier_tolerance:
                return [quad]

        if cfg.allow_cubic:
            return self.fit_cubic(pts)

        if cfg.allow_quadratic:
            return [self.fit_quadratic(pts)]
        return [line]

    # ------------------------------------------------------------------
    # Simple primitives
    # ------------------------------------------------------------------

    def fit_line(self, points) -> Line:
        pts = as_points(points)
        error = float(segment_distances(pts, pts[0], pts[-1]).max()) if len(pts) > 2 else 0.0
        return Line(to_point(pts[0]), to_point(pts[-1]), error)

    def fit_circular_arc(self, points) -> Optional[CircularArc]:
        """Circle through the start, middle and end points."""
        pts = as_points(points)
        p1, p2, p3 = pts[0], pts[len(pts) // 2], pts[-1]
        center = circumcenter(p1, p2, p3)
        if center is None:
            return None
        radius = float(np.hypot(*(p1 - center)))
        if radius < 1e-6 or radius > MAX_ARC_RADIUS:
            return None

        error = float(np.abs(np.linalg.norm(pts - center, axis=1) - radius).max())
        a1 = math.atan2(p1[1] - center[1], p1[0] - center[0])
        a2 = math.atan2(p2[1] - center[1], p2[0] - center[0])
        a3 = math.atan2(p3[1] - center[1], p3[0] - center[0])
        sweep = _signed_sweep(a1, a2, a3)
        return CircularArc(to_point(p1), to_point(p3), to_point(center), radius,
                           a1, a1 + sweep, sweep, error)

    def fit_elliptical_arc(self, points) -> Optional[EllipticalArc]:
        """
        Axis-aligned ellipse from the segment's bounding box.

        The error is the normalised radial deviation scaled by the mean
        semi-axis, so it compares against a pixel tolerance.
        """
        pts = as_points(points)
        lo, hi = pts.min(axis=0), pts.max(axis=0)
        rx, ry = (hi[0] - lo[0]) / 2.0, (hi[1] - lo[1]) / 2.0
        if rx < 1.0 or ry < 1.0:
            return None
        if abs(rx - ry) / max(rx, ry) < NEAR_CIRCULAR:
            return None
        cx, cy = (lo[0] + hi[0]) / 2.0, (lo[1] + hi[1]) / 2.0
        nx = (pts[:, 0] - cx) / rx
        ny = (pts[:, 1] - cy) / ry
        deviation = np.abs(np.hypot(nx, ny) - 1.0)
        error = float(deviation.max() * (rx + ry) / 2.0)

        angles = np.arctan2(ny, nx)
        a1, a2, a3 = float(angles[0]), float(angles[len(angles) // 2]), float(angles[-1])
        sweep = _signed_sweep(a1, a2, a3)
        return EllipticalArc(to_point(pts[0]), to_point(pts[-1]), (float(cx), float(cy)),
                             float(rx), float(ry), 0.0, a1, a1 + sweep, sweep, error)

    def fit_quadratic(self, points) -> QuadraticBezier:
        """Control point chosen so the curve passes through the segment midpoint at t=0.5."""
        pts = as_points(points)
        start, end = pts[0], pts[-1]
        mid = pts[len(pts) // 2]
        control = (mid - 0.25 * start - 0.25 * end) / 0.5
        u = chord_length_parameterize(pts)
        mt = 1.0 - u
        curve_pts = ((mt * mt)[:, None] * start + (2 * mt * u)[:, None] * control
                     + (u * u)[:, None] * end)
        error = float(np.linalg.norm(curve_pts - pts, axis=1).max())
        return QuadraticBezier(to_point(start), to_point(control), to_point(end), error)

    # ------------------------------------------------------------------
    # Schneider cubic fitting
    # ------------------------------------------------------------------

    def fit_cubic(self, points) -> List[CubicBezier]:
        pts = as_points(points)
        n = len(pts)
        tan1 = normalize(pts[min(2, n - 1)] - pts[0])
        tan2 = normalize(pts[max(n - 3, 0)] - pts[-1])
        if not tan1.any():
            tan1 = normalize(pts[-1] - pts[0])
        if not tan2.any():
            tan2 = normalize(pts[0] - pts[-1])
        return self._fit_cubic(pts, tan1, tan2, self.config.max_subdivisions)

    def _fit_cubic(self, pts: np.ndarray, tan1: np.ndarray, tan2: np.ndarray,
                   depth: int) -> List[CubicBezier]:
        max_error = self.config.bezier_tolerance
        n = len(pts)
        if n == 2:
            dist = float(np.hypot(*(pts[1] - pts[0]))) / 3.0
            return [_cubic(pts[0], pts[0] + tan1 * dist, pts[1] + tan2 * dist, pts[1], 0.0)]

        u = chord_length_parameterize(pts)
        bezier = generate_bezier(pts, u, tan1, tan2)
        error, split = max_fit_error(pts, bezier, u)
        best, best_error, best_split = bezier, error, split

        if error > max_error:
            for _ in range(self.config.max_iterations):
                u = reparameterize(bezier, pts, u)
                bezier = generate_bezier(pts, u, tan1, tan2)
                error, split = max_fit_error(pts, bezier, u)
                if error < best_error:
                    best, best_error, best_split = bezier, error, split
                if error <= max_error:
                    break

        if best_error <= max_error or depth <= 0 or n < 4:
            return [_cubic(*best, best_error)]

        split = min(max(best_split, 1), n - 2)
        center = normalize(pts[split - 1] - pts[split + 1])
        if not center.any():
            center = normalize(pts[split - 1] - pts[split])
        left = self._fit_cubic(pts[:split + 1], tan1, center, depth - 1)
        right = self._fit_cubic(pts[split:], -center, tan2, depth - 1)
        return left + right


# ============================================================================
# HELPERS
# ============================================================================

def circumcenter(p1, p2, p3) -> Optional[np.ndarray]:
    ax, ay = p1
    bx, by = p2
    cx, cy = p3
    d = 2.0 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < 1e-9:
        return None
    a2, b2, c2 = ax * ax + ay * ay, bx * bx + by * by, cx * cx + cy * cy
    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d
    return np.array([ux, uy])


def _angle_delta(a: float, b: float) -> float:
    """Signed angle from a to b in (-pi, pi]."""
    d = (b - a) % (2 * math.pi)
    return d - 2 * math.pi if d > math.pi else d


def _signed_sweep(a1: float, a2: float, a3: float) -> float:
    """Signed sweep from a1 to a3 passing through a2."""
    first = _angle_delta(a1, a2)
    second = _angle_delta(a2, a3)
    if first * second < 0:
        # The midpoint went the long way on one half; keep the dominant direction.
        if abs(first) >= abs(second):
            second = second + (2 * math.pi if first > 0 else -2 * math.pi)
        else:
            first = first + (2 * math.pi if second > 0 else -2 * math.pi)
    return first + second


def chord_length_parameterize(points) -> np.ndarray:
    pts = as_points(points)
    d = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(pts, axis=0), axis=1))])
    total = d[-1]
    if total < 1e-12:
        return np.linspace(0.0, 1.0, len(pts))
    return d / total


def _bernstein(u: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    mt = 1.0 - u
    return mt ** 3, 3 * mt * mt * u, 3 * mt * u * u, u ** 3


def bezier_points(ctrl: Tuple[np.ndarray, ...], u: np.ndarray) -> np.ndarray:
    b0, b1, b2, b3 = _bernstein(u)
    p0, p1, p2, p3 = ctrl
    return b0[:, None] * p0 + b1[:, None] * p1 + b2[:, None] * p2 + b3[:, None] * p3


def generate_bezier(points: np.ndarray, u: np.ndarray, tan1: np.ndarray,
                    tan2: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Least-squares handle lengths along fixed end tangents."""
    first, last = points[0], points[-1]
    b0, b1, b2, b3 = _bernstein(u)
    a1 = b1[:, None] * tan1
    a2 = b2[:, None] * tan2

    c00 = float(np.sum(a1 * a1))
    c01 = float(np.sum(a1 * a2))
    c11 = float(np.sum(a2 * a2))
    tmp = points - ((b0 + b1)[:, None] * first + (b2 + b3)[:, None] * last)
    x0 = float(np.sum(a1 * tmp))
    x1 = float(np.sum(a2 * tmp))

    det = c00 * c11 - c01 * c01
    seg_length = float(np.hypot(*(last - first)))
    if abs(det) > 1e-12:
        alpha1 = (x0 * c11 - x1 * c01) / det
        alpha2 = (c00 * x1 - c01 * x0) / det
    else:
        alpha1 = alpha2 = seg_length / 3.0

    eps = 1e-6 * seg_length
    if alpha1 < eps or alpha2 < eps:
        alpha1 = alpha2 = seg_length / 3.0
    return first, first + tan1 * alpha1, last + tan2 * alpha2, last


def reparameterize(ctrl, points: np.ndarray, u: np.ndarray) -> np.ndarray:
    """One Newton-Raphson step on |Q(u) - P|^2 for every point, clamped to [0, 1]."""
    p0, p1, p2, p3 = ctrl
    mt = 1.0 - u
    q = bezier_points(ctrl, u)
    q1 = (3 * mt * mt)[:, None] * (p1 - p0) + (6 * mt * u)[:, None] * (p2 - p1) \
        + (3 * u * u)[:, None] * (p3 - p2)
    q2 = (6 * mt)[:, None] * (p2 - 2 * p1 + p0) + (6 * u)[:, None] * (p3 - 2 * p2 + p1)
    diff = q - points
    numerator = np.sum(diff * q1, axis=1)
    denominator = np.sum(q1 * q1, axis=1) + np.sum(diff * q2, axis=1)
    step = np.divide(numerator, denominator, out=np.zeros_like(numerator),
                     where=np.abs(denominator) > 1e-12)
    return np.clip(u - step, 0.0, 1.0)


def max_fit_error(points: np.ndarray, ctrl, u: np.ndarray) -> Tuple[float, int]:
    """Largest distance between points and the curve, and the interior index where it occurs."""
    d = np.linalg.norm(bezier_points(ctrl, u) - points, axis=1)
    if len(d) <= 2:
        return float(d.max()), len(points) // 2
    interior = d[1:-1]
    idx = int(np.argmax(interior)) + 1
    return float(max(interior[idx - 1], d[0], d[-1])), idx


def _cubic(p0, p1, p2, p3, error: float) -> CubicBezier:
    return CubicBezier(to_point(p0), to_point(p1), to_point(p2), to_point(p3), float(error))
