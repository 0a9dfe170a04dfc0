"""
Vectorsmith Geometry

Point-set helpers shared by the tracers, the classifier and the vector graph:
bounding boxes, segment distances, Douglas-Peucker simplification, Chaikin
corner cutting, turn angles, Graham-scan hulls and minimum-area rectangles.

Point sets are (N, 2) float arrays of (x, y) in image coordinates (y down).
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box with continuous coordinates."""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    @property
    def center(self) -> Point:
        return ((self.x0 + self.x1) / 2.0, (self.y0 + self.y1) / 2.0)

    def contains(self, other: "BoundingBox", eps: float = 1e-9) -> bool:
        return (other.x0 >= self.x0 - eps and other.y0 >= self.y0 - eps
                and other.x1 <= self.x1 + eps and other.y1 <= self.y1 + eps)

    def intersects(self, other: "BoundingBox", margin: float = 0.0) -> bool:
        return not (other.x0 > self.x1 + margin or other.x1 < self.x0 - margin
                    or other.y0 > self.y1 + margin or other.y1 < self.y0 - margin)

    @classmethod
    def of(cls, points) -> "BoundingBox":
        pts = as_points(points)
        if len(pts) == 0:
            return cls(0.0, 0.0, 0.0, 0.0)
        lo = pts.min(axis=0)
        hi = pts.max(axis=0)
        return cls(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))


def as_points(points) -> np.ndarray:
    """Coerce a point sequence to a float (N, 2) array."""
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return np.zeros((0, 2), dtype=float)
    return pts.reshape(-1, 2)


def to_point(p) -> Point:
    return (float(p[0]), float(p[1]))


def distance(a, b) -> float:
    return float(math.hypot(a[0] - b[0], a[1] - b[1]))


def normalize(v) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v)
    if n < 1e-12:
        return np.zeros_like(v)
    return v / n


def rotate(point, angle: float, origin=(0.0, 0.0)) -> Point:
    """Rotate ``point`` by ``angle`` radians about ``origin``."""
    c, s = math.cos(angle), math.sin(angle)
    dx, dy = point[0] - origin[0], point[1] - origin[1]
    return (origin[0] + dx * c - dy * s, origin[1] + dx * s + dy * c)


def wrap_angle(angle):
    """Map angles to [-pi, pi)."""
    return (np.asarray(angle) + np.pi) % (2 * np.pi) - np.pi


def segment_distances(points, a, b) -> np.ndarray:
    """Distance from each point to the segment ab."""
    pts = as_points(points)
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ab = b - a
    denom = float(ab @ ab)
    if denom < 1e-12:
        return np.linalg.norm(pts - a, axis=1)
    t = np.clip(((pts - a) @ ab) / denom, 0.0, 1.0)
    proj = a + t[:, None] * ab
    return np.linalg.norm(pts - proj, axis=1)


def signed_area(points) -> float:
    """Shoelace area; positive for clockwise loops on screen (y down)."""
    pts = as_points(points)
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def polyline_length(points, closed: bool = False) -> float:
    pts = as_points(points)
    if len(pts) < 2:
        return 0.0
    if closed:
        pts = np.vstack([pts, pts[:1]])
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def remove_duplicates(points, closed: bool = False, eps: float = 1e-9) -> np.ndarray:
    """Drop consecutive coincident points."""
    pts = as_points(points)
    if len(pts) < 2:
        return pts.copy()
    keep = np.ones(len(pts), dtype=bool)
    keep[1:] = np.linalg.norm(np.diff(pts, axis=0), axis=1) > eps
    pts = pts[keep]
    if closed and len(pts) > 1 and np.linalg.norm(pts[-1] - pts[0]) <= eps:
        pts = pts[:-1]
    return pts


def remove_collinear(points, closed: bool = True) -> np.ndarray:
    """Drop points lying exactly on the straight run between their neighbours."""
    pts = remove_duplicates(points, closed=closed)
    n = len(pts)
    if n < 3:
        return pts
    prev = np.roll(pts, 1, axis=0)
    nxt = np.roll(pts, -1, axis=0)
    v1 = pts - prev
    v2 = nxt - pts
    cross = v1[:, 0] * v2[:, 1] - v1[:, 1] * v2[:, 0]
    dot = np.sum(v1 * v2, axis=1)
    straight = (np.abs(cross) < 1e-9) & (dot > 0)
    if not closed:
        straight[0] = straight[-1] = False
    if straight.all():
        return pts[:2]
    return pts[~straight]


# ============================================================================
# SIMPLIFICATION AND SMOOTHING
# ============================================================================

def douglas_peucker(points, tolerance: float) -> np.ndarray:
    """
    Douglas-Peucker simplification of an open polyline.

    Points within ``tolerance`` of the chord between retained endpoints are
    dropped. Uses an explicit stack so long contours cannot exhaust the
    recursion limit.
    """
    pts = as_points(points)
    n = len(pts)
    if n < 3 or tolerance <= 0:
        return pts.copy()

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        d = segment_distances(pts[first + 1:last], pts[first], pts[last])
        i = int(np.argmax(d))
        if d[i] > tolerance:
            split = first + 1 + i
            keep[split] = True
            stack.append((first, split))
            stack.append((split, last))
    return pts[keep]


def simplify_closed(points, tolerance: float) -> np.ndarray:
    """Douglas-Peucker for a closed loop, split at the point farthest from the start."""
    pts = as_points(points)
    if len(pts) < 4 or tolerance <= 0:
        return pts.copy()
    far = int(np.argmax(np.linalg.norm(pts - pts[0], axis=1)))
    if far == 0:
        return pts[:1].copy()
    first = douglas_peucker(pts[:far + 1], tolerance)
    second = douglas_peucker(np.vstack([pts[far:], pts[:1]]), tolerance)
    return np.vstack([first, second[1:-1]])


def turn_angles(points, closed: bool = True, window: int = 1) -> np.ndarray:
    """
    Absolute turn angle (radians, 0..pi) at every point.

    The incoming direction comes from the point ``window`` steps back and the
    outgoing direction goes to the point ``window`` steps ahead.
    """
    pts = as_points(points)
    n = len(pts)
    if n < 3:
        return np.zeros(n)
    window = max(1, min(int(window), n - 1))
    idx = np.arange(n)
    if closed:
        prev = pts[(idx - window) % n]
        nxt = pts[(idx + window) % n]
    else:
        prev = pts[np.clip(idx - window, 0, n - 1)]
        nxt = pts[np.clip(idx + window, 0, n - 1)]
    v1 = pts - prev
    v2 = nxt - pts
    a1 = np.arctan2(v1[:, 1], v1[:, 0])
    a2 = np.arctan2(v2[:, 1], v2[:, 0])
    turn = np.abs(wrap_angle(a2 - a1))
    degenerate = (np.hypot(v1[:, 0], v1[:, 1]) < 1e-12) | (np.hypot(v2[:, 0], v2[:, 1]) < 1e-12)
    turn[degenerate] = 0.0
    return turn


def chaikin(points, iterations: int = 1, closed: bool = True,
            corner_angle: Optional[float] = None) -> np.ndarray:
    """
    Chaikin corner cutting.

    Each round replaces every edge (P0, P1) with 0.75*P0 + 0.25*P1 and
    0.25*P0 + 0.75*P1. Open polylines keep their first and last points.
    When ``corner_angle`` (degrees) is given, vertices turning by at least that
    much are kept in place so sharp corners survive smoothing.
    """
    pts = as_points(points)
    for _ in range(int(iterations)):
        n = len(pts)
        if n < 3:
            break
        if closed:
            nxt = np.roll(pts, -1, axis=0)
            starts = pts
        else:
            nxt = pts[1:]
            starts = pts[:-1]
        q = 0.75 * starts + 0.25 * nxt
        r = 0.25 * starts + 0.75 * nxt

        if corner_angle is None:
            pinned = np.zeros(n, dtype=bool)
        else:
            pinned = turn_angles(pts, closed=closed) >= math.radians(corner_angle) - 1e-9

        rows = []
        if not closed:
            rows.append(pts[0])
        for i in range(len(starts)):
            if pinned[i] and (closed or i > 0):
                rows.append(pts[i])
            rows.append(q[i])
            rows.append(r[i])
        if not closed:
            rows.append(pts[-1])
        pts = np.asarray(rows, dtype=float)
    return pts


# ============================================================================
# HULLS AND BOXES
# ============================================================================

def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points) -> np.ndarray:
    """Graham scan. Returns hull vertices in angular order around the pivot."""
    pts = np.unique(as_points(points), axis=0)
    if len(pts) < 3:
        return pts
    pivot_idx = int(np.lexsort((pts[:, 0], pts[:, 1]))[0])
    pivot = pts[pivot_idx]
    rest = np.delete(pts, pivot_idx, axis=0)
    rel = rest - pivot
    angles = np.arctan2(rel[:, 1], rel[:, 0])
    dists = np.hypot(rel[:, 0], rel[:, 1])
    order = np.lexsort((dists, angles))

    hull = [pivot]
    for p in rest[order]:
        while len(hull) >= 2 and _cross(hull[-2], hull[-1], p) <= 0:
            hull.pop()
        hull.append(p)
    return np.asarray(hull, dtype=float)


@dataclass(frozen=True)
class OrientedBox:
    center: Point
    width: float
    height: float
    angle: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def corners(self) -> np.ndarray:
        hw, hh = self.width / 2.0, self.height / 2.0
        local = [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
        return np.asarray([rotate((self.center[0] + x, self.center[1] + y), self.angle, self.center)
                           for x, y in local])


def min_area_rect(points) -> Optional[OrientedBox]:
    """
    Minimum-area bounding rectangle by rotating calipers over the convex hull.

    One side of the optimal rectangle is collinear with a hull edge, so each
    edge direction is tried in turn. The angle is normalised to (-pi/4, pi/4].
    """
    hull = convex_hull(points)
    if len(hull) < 3:
        return None
    best = None
    for i in range(len(hull)):
        edge = hull[(i + 1) % len(hull)] - hull[i]
        length = float(np.hypot(edge[0], edge[1]))
        if length < 1e-12:
            continue
        u = edge / length
        v = np.array([-u[1], u[0]])
        pu = hull @ u
        pv = hull @ v
        area = (pu.max() - pu.min()) * (pv.max() - pv.min())
        if best is None or area < best[0] - 1e-9:
            best = (area, u, v, pu.min(), pu.max(), pv.min(), pv.max())

    _, u, v, umin, umax, vmin, vmax = best
    center = u * (umin + umax) / 2.0 + v * (vmin + vmax) / 2.0
    width, height = umax - umin, vmax - vmin
    angle = math.atan2(u[1], u[0])
    while angle > math.pi / 4:
        angle -= math.pi / 2
        width, height = height, width
    while angle <= -math.pi / 4:
        angle += math.pi / 2
        width, height = height, width
    return OrientedBox((float(center[0]), float(center[1])), float(width), float(height), float(angle))


def cyclic_runs(mask: Sequence[bool]) -> Iterable[np.ndarray]:
    """Yield index arrays of consecutive True runs, joining a run that wraps around."""
    mask = np.asarray(mask, dtype=bool)
    n = len(mask)
    if n == 0 or not mask.any():
        return []
    if mask.all():
        return [np.arange(n)]
    start = int(np.argmin(mask))  # first False; rotate so no run wraps
    order = (np.arange(n) + start) % n
    runs, current = [], []
    for idx in order:
        if mask[idx]:
            current.append(idx)
        elif current:
            runs.append(np.asarray(current))
            current = []
    if current:
        runs.append(np.asarray(current))
    return runs


def densify(points, spacing: float = 1.0, closed: bool = True, max_points: int = 512) -> np.ndarray:
    """
    Insert evenly spaced points along every edge longer than ``spacing``.

    Original vertices are kept. Spacing grows when the result would exceed
    ``max_points``.
    """
    pts = as_points(points)
    if len(pts) < 2:
        return pts.copy()
    ends = np.roll(pts, -1, axis=0) if closed else pts[1:]
    starts = pts if closed else pts[:-1]
    lengths = np.linalg.norm(ends - starts, axis=1)
    total = float(lengths.sum())
    if total <= 0:
        return pts.copy()
    spacing = max(spacing, total / max_points)
    rows = []
    for a, b, length in zip(starts, ends, lengths):
        steps = max(1, int(math.ceil(length / spacing)))
        for k in range(steps):
            rows.append(a + (b - a) * (k / steps))
    if not closed:
        rows.append(pts[-1])
    return np.asarray(rows, dtype=float)
