"""
Vectorsmith Shape Classification

Scores a whole contour against line, circle, ellipse, rectangle and polygon
models. The best candidate is only accepted as a geometric primitive when its
confidence clears the threshold; otherwise callers fit generic curves.
Accepted primitives can be flattened back to lines and cubic Beziers.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

import numpy as np

from .config import ShapeConfig
from .curves import CubicBezier, Curve, Line
from .geometry import (BoundingBox, Point, as_points, cyclic_runs, densify, min_area_rect,
                       rotate, segment_distances, to_point, turn_angles)

logger = logging.getLogger(__name__)

KAPPA = 0.5522847498

Formatter = Callable[[float], str]


# ============================================================================
# PRIMITIVES
# ============================================================================

@dataclass
class Circle:
    cx: float
    cy: float
    r: float

    kind = "circle"

    def bounds(self) -> BoundingBox:
        return BoundingBox(self.cx - self.r, self.cy - self.r, self.cx + self.r, self.cy + self.r)

    def to_curves(self) -> List[Curve]:
        return _ellipse_curves(self.cx, self.cy, self.r, self.r, 0.0)

    def sample(self, n: int = 32) -> np.ndarray:
        a = np.linspace(0, 2 * np.pi, n, endpoint=False)
        return np.stack([self.cx + self.r * np.cos(a), self.cy + self.r * np.sin(a)], axis=1)

    def path_data(self, fmt: Formatter) -> str:
        r = fmt(self.r)
        return (f"M{fmt(self.cx - self.r)} {fmt(self.cy)}"
                f"A{r} {r} 0 1 0 {fmt(self.cx + self.r)} {fmt(self.cy)}"
                f"A{r} {r} 0 1 0 {fmt(self.cx - self.r)} {fmt(self.cy)}Z")


@dataclass
class Ellipse:
    cx: float
    cy: float
    rx: float
    ry: float
    rotation: float = 0.0

    kind = "ellipse"

    def bounds(self) -> BoundingBox:
        return BoundingBox.of(self.sample(64))

    def to_curves(self) -> List[Curve]:
        return _ellipse_curves(self.cx, self.cy, self.rx, self.ry, self.rotation)

    def sample(self, n: int = 32) -> np.ndarray:
        a = np.linspace(0, 2 * np.pi, n, endpoint=False)
        pts = [rotate((self.cx + self.rx * math.cos(t), self.cy + self.ry * math.sin(t)),
                      self.rotation, (self.cx, self.cy)) for t in a]
        return np.asarray(pts)

    def path_data(self, fmt: Formatter) -> str:
        left = rotate((self.cx - self.rx, self.cy), self.rotation, (self.cx, self.cy))
        right = rotate((self.cx + self.rx, self.cy), self.rotation, (self.cx, self.cy))
        radii = f"{fmt(self.rx)} {fmt(self.ry)} {fmt(math.degrees(self.rotation))}"
        return (f"M{fmt(left[0])} {fmt(left[1])}"
                f"A{radii} 1 0 {fmt(right[0])} {fmt(right[1])}"
                f"A{radii} 1 0 {fmt(left[0])} {fmt(left[1])}Z")


@dataclass
class Rect:
    """Rectangle; ``rotation`` (radians) turns it about its center."""
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    kind = "rect"

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def corners(self) -> List[Point]:
        raw = [(self.x, self.y), (self.x + self.width, self.y),
               (self.x + self.width, self.y + self.height), (self.x, self.y + self.height)]
        if not self.rotation:
            return [(float(px), float(py)) for px, py in raw]
        return [rotate(p, self.rotation, self.center) for p in raw]

    def bounds(self) -> BoundingBox:
        return BoundingBox.of(self.corners())

    def to_curves(self) -> List[Curve]:
        c = self.corners()
        return [Line(c[i], c[(i + 1) % 4]) for i in range(4)]

    def sample(self, n: int = 40) -> np.ndarray:
        per_side = max(1, n // 4)
        return np.vstack([line.sample(per_side, include_end=False) for line in self.to_curves()])

    def path_data(self, fmt: Formatter) -> str:
        c = self.corners()
        return "M" + "L".join(f"{fmt(x)} {fmt(y)}" for x, y in c) + "Z"


@dataclass
class Polygon:
    points: List[Point] = field(default_factory=list)

    kind = "polygon"

    def bounds(self) -> BoundingBox:
        return BoundingBox.of(self.points)

    def to_curves(self) -> List[Curve]:
        n = len(self.points)
        return [Line(self.points[i], self.points[(i + 1) % n]) for i in range(n)]

    def sample(self, n: int = 48) -> np.ndarray:
        per_side = max(1, n // max(1, len(self.points)))
        return np.vstack([line.sample(per_side, include_end=False) for line in self.to_curves()])

    def path_data(self, fmt: Formatter) -> str:
        return "M" + "L".join(f"{fmt(x)} {fmt(y)}" for x, y in self.points) + "Z"


@dataclass
class LineShape:
    """A thin region collapsed to its center line, drawn with ``width``."""
    start: Point
    end: Point
    width: float = 1.0

    kind = "line"

    def bounds(self) -> BoundingBox:
        return BoundingBox.of([self.start, self.end])

    def to_curves(self) -> List[Curve]:
        return [Line(self.start, self.end), Line(self.end, self.start)]

    def sample(self, n: int = 16) -> np.ndarray:
        return Line(self.start, self.end).sample(n)

    def path_data(self, fmt: Formatter) -> str:
        return f"M{fmt(self.start[0])} {fmt(self.start[1])}L{fmt(self.end[0])} {fmt(self.end[1])}"


GeometricPrimitive = Union[Circle, Ellipse, Rect, Polygon, LineShape]


def _ellipse_curves(cx: float, cy: float, rx: float, ry: float, rotation: float) -> List[Curve]:
    """Four cubic quadrants starting at the top, clockwise on screen."""
    kx, ky = rx * KAPPA, ry * KAPPA
    top, right, bottom, left = (cx, cy - ry), (cx + rx, cy), (cx, cy + ry), (cx - rx, cy)
    quadrants = [
        (top, (cx + kx, cy - ry), (cx + rx, cy - ky), right),
        (right, (cx + rx, cy + ky), (cx + kx, cy + ry), bottom),
        (bottom, (cx - kx, cy + ry), (cx - rx, cy + ky), left),
        (left, (cx - rx, cy - ky), (cx - kx, cy - ry), top),
    ]
    center = (cx, cy)
    curves = []
    for quad in quadrants:
        p = [rotate(q, rotation, center) if rotation else (float(q[0]), float(q[1])) for q in quad]
        curves.append(CubicBezier(p[0], p[1], p[2], p[3]))
    return curves


def flatten_primitive(primitive: GeometricPrimitive) -> List[Curve]:
    """Uniform curve representation of a primitive."""
    return primitive.to_curves()


# ============================================================================
# CLASSIFIER
# ============================================================================

@dataclass
class Candidate:
    shape_type: str
    confidence: float
    primitive: GeometricPrimitive


@dataclass
class Classification:
    shape_type: str
    confidence: float
    primitive: Optional[GeometricPrimitive] = None
    is_geometric: bool = False
    candidates: List[Candidate] = field(default_factory=list)


NOT_GEOMETRIC = "none"


class ShapeClassifier:
    """Whole-contour geometric primitive detection."""

    def __init__(self, config: Optional[ShapeConfig] = None):
        self.config = config or ShapeConfig()

    def classify(self, points) -> Classification:
        """
        Score every model and pick the most confident.

        Returns:
            Classification; ``is_geometric`` is set only when the best
            confidence reaches the configured threshold.
        """
        pts = as_points(points)
        if len(pts) < 3:
            return Classification(NOT_GEOMETRIC, 0.0)
        # Simplified contours can be a handful of vertices; score on ~1px spacing.
        pts = densify(pts, spacing=1.0, closed=True)
        if len(pts) < self.config.min_points:
            return Classification(NOT_GEOMETRIC, 0.0)

        bounds = BoundingBox.of(pts)
        if bounds.width < 1e-9 and bounds.height < 1e-9:
            return Classification(NOT_GEOMETRIC, 0.0)
        corners = self.detect_corners(pts)

        candidates: List[Candidate] = []
        line = self.try_line(pts)
        if line:
            candidates.append(line)
        circle = self.try_circle(pts, bounds)
        if circle:
            candidates.append(circle)
        if circle is None or circle.confidence < 0.9:
            ellipse = self.try_ellipse(pts, bounds)
            if ellipse:
                candidates.append(ellipse)
        rect = self.try_rect(pts, bounds, corners)
        if rect:
            candidates.append(rect)
        polygon = self.try_polygon(pts, bounds, corners)
        if polygon:
            candidates.append(polygon)

        if not candidates:
            return Classification(NOT_GEOMETRIC, 0.0)
        best = max(candidates, key=lambda c: c.confidence)
        accepted = best.confidence >= self.config.confidence_threshold
        logger.debug("Classified %d points as %s (%.3f, %s)", len(pts), best.shape_type,
                     best.confidence, "accepted" if accepted else "rejected")
        return Classification(best.shape_type, best.confidence,
                              best.primitive if accepted else None, accepted, candidates)

    def detect_corners(self, points) -> List[int]:
        """
        Corner indices of a closed contour.

        Turn angles use neighbours ``window`` points away; each run of
        consecutive points turning more than corner_angle yields one corner at
        its sharpest point.
        """
        pts = as_points(points)
        n = len(pts)
        window = max(3, n // 20)
        if n < 2 * window + 1:
            window = max(1, (n - 1) // 2)
        angles = turn_angles(pts, closed=True, window=window)
        hot = angles > math.radians(self.config.corner_angle)
        corners = []
        for run in cyclic_runs(hot):
            corners.append(int(run[np.argmax(angles[run])]))
        return sorted(corners)

    # ------------------------------------------------------------------
    # Candidate models
    # ------------------------------------------------------------------

    def try_line(self, pts: np.ndarray) -> Optional[Candidate]:
        center = pts.mean(axis=0)
        rel = pts - center
        cov = rel.T @ rel / len(pts)
        eigvals, eigvecs = np.linalg.eigh(cov)
        major = eigvecs[:, 1]
        minor = eigvecs[:, 0]
        along = rel @ major
        across = rel @ minor
        length = float(along.max() - along.min())
        thickness = float(across.max() - across.min())
        if length < 1e-9 or (thickness > 0 and length / thickness <= 10):
            return None
        start = center + major * along.min()
        end = center + major * along.max()
        error = float(np.abs(across).max())
        confidence = 0.95 if error / length < self.config.fit_tolerance else 0.0
        return Candidate("line", confidence,
                         LineShape(to_point(start), to_point(end), max(thickness, 1.0)))

    def try_circle(self, pts: np.ndarray, bounds: BoundingBox) -> Optional[Candidate]:
        """Algebraic least-squares circle; confidence from radial and aspect error."""
        x, y = pts[:, 0], pts[:, 1]
        a = np.stack([x, y, np.ones_like(x)], axis=1)
        b = -(x * x + y * y)
        try:
            (d, e, f), *_ = np.linalg.lstsq(a, b, rcond=None)
        except np.linalg.LinAlgError:
            return None
        cx, cy = -d / 2.0, -e / 2.0
        r_sq = cx * cx + cy * cy - f
        if not np.isfinite(r_sq) or r_sq <= 0:
            return None
        r = math.sqrt(r_sq)
        radial = np.hypot(x - cx, y - cy)
        max_dev = float(np.abs(radial - r).max() / r)
        if bounds.width < 1e-9 or bounds.height < 1e-9:
            return None
        aspect = min(bounds.width, bounds.height) / max(bounds.width, bounds.height)
        confidence = min(1.0 - max_dev, 1.0 - abs(1.0 - aspect))
        return Candidate("circle", max(0.0, confidence), Circle(float(cx), float(cy), float(r)))

    def try_ellipse(self, pts: np.ndarray, bounds: BoundingBox) -> Optional[Candidate]:
        rx, ry = bounds.width / 2.0, bounds.height / 2.0
        if rx < 1.0 or ry < 1.0:
            return None
        cx, cy = bounds.center
        norm = np.hypot((pts[:, 0] - cx) / rx, (pts[:, 1] - cy) / ry)
        max_dev = float(np.abs(norm - 1.0).max())
        limit = self.config.fit_tolerance * 3
        confidence = 1.0 - max_dev / 0.1 if max_dev < limit else 0.0
        return Candidate("ellipse", max(0.0, confidence), Ellipse(cx, cy, rx, ry))

    def try_rect(self, pts: np.ndarray, bounds: BoundingBox, corners: List[int]) -> Optional[Candidate]:
        if not 4 <= len(corners) <= 6:
            return None
        right_angles = 0
        for i, idx in enumerate(corners):
            prev = pts[corners[i - 1]]
            nxt = pts[corners[(i + 1) % len(corners)]]
            angle = _interior_angle(prev, pts[idx], nxt)
            if abs(angle - 90.0) <= 15.0:
                right_angles += 1
        if right_angles < 4:
            return None

        tolerance = max(bounds.width, bounds.height) * self.config.fit_tolerance * 2
        edge_dist = np.minimum.reduce([
            np.abs(pts[:, 0] - bounds.x0), np.abs(pts[:, 0] - bounds.x1),
            np.abs(pts[:, 1] - bounds.y0), np.abs(pts[:, 1] - bounds.y1)])
        ratio = float(np.mean(edge_dist <= tolerance))
        if ratio >= 0.85:
            return Candidate("rect", ratio, Rect(bounds.x0, bounds.y0, bounds.width, bounds.height))
        return self.try_rotated_rect(pts, tolerance)

    def try_rotated_rect(self, pts: np.ndarray, tolerance: float) -> Optional[Candidate]:
        """Minimum-area box over the convex hull, for rectangles not aligned to the axes."""
        box = min_area_rect(pts)
        if box is None or abs(box.angle) <= 0.05:
            return None
        c, s = math.cos(-box.angle), math.sin(-box.angle)
        rel = pts - np.asarray(box.center)
        local_x = rel[:, 0] * c - rel[:, 1] * s
        local_y = rel[:, 0] * s + rel[:, 1] * c
        hw, hh = box.width / 2.0, box.height / 2.0
        edge_dist = np.minimum(np.abs(np.abs(local_x) - hw), np.abs(np.abs(local_y) - hh))
        ratio = float(np.mean(edge_dist <= tolerance))
        if ratio < 0.75:
            return None
        rect = Rect(box.center[0] - hw, box.center[1] - hh, box.width, box.height, box.angle)
        return Candidate("rect", ratio, rect)

    def try_polygon(self, pts: np.ndarray, bounds: BoundingBox, corners: List[int]) -> Optional[Candidate]:
        if not 3 <= len(corners) <= 12:
            return None
        vertices = pts[corners]
        dists = np.full(len(pts), np.inf)
        for i in range(len(vertices)):
            dists = np.minimum(dists, segment_distances(pts, vertices[i], vertices[(i + 1) % len(vertices)]))
        size = max(bounds.width, bounds.height)
        normalized = float(dists.mean()) / size
        limit = self.config.fit_tolerance * 2
        confidence = 1.0 - normalized / 0.1 if normalized < limit else 0.0
        return Candidate("polygon", max(0.0, confidence), Polygon([to_point(v) for v in vertices]))


def _interior_angle(prev, point, nxt) -> float:
    v1 = np.asarray(prev, dtype=float) - point
    v2 = np.asarray(nxt, dtype=float) - point
    n1, n2 = np.hypot(*v1), np.hypot(*v2)
    if n1 < 1e-12 or n2 < 1e-12:
        return 180.0
    cos = float(np.clip(v1 @ v2 / (n1 * n2), -1.0, 1.0))
    return math.degrees(math.acos(cos))
