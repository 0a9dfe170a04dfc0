"""
Vectorsmith Geometry Optimization

Cleans up fitted geometry while keeping the traced intent.

Geometric paths (accepted by the shape classifier) get the full treatment:
corner angles snapped to canonical values, near-straight Beziers turned
into lines and near-axis lines snapped horizontal/vertical. Organic paths
only get straightening and axis snapping at half tolerance. A separate
alignment pass snaps anchors of all paths to shared x/y guides.

Every operation keeps consecutive curves joined.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from .config import OptimizeConfig
from .curves import CubicBezier, Curve, Line, QuadraticBezier
from .geometry import segment_distances

logger = logging.getLogger(__name__)


def _reconnect(curves: List[Curve], index: int, closed: bool) -> None:
    """Move the neighbours of curves[index] so they meet its (possibly new) endpoints."""
    n = len(curves)
    cur = curves[index]
    if index > 0 or closed:
        p = (index - 1) % n
        if p != index:
            curves[p] = curves[p].moved(curves[p].start, cur.start)
    if index < n - 1 or closed:
        q = (index + 1) % n
        if q != index:
            curves[q] = curves[q].moved(cur.end, curves[q].end)


class GeometryOptimizer:
    """Angle snapping, line straightening, axis snapping and cross-path alignment."""

    def __init__(self, config: Optional[OptimizeConfig] = None):
        self.config = config or OptimizeConfig()

    def optimize_path(self, curves: Sequence[Curve], geometric: bool = False,
                      closed: bool = True) -> List[Curve]:
        cfg = self.config
        out = list(curves)
        if not out:
            return out
        if geometric:
            if cfg.snap_corners:
                out = self.snap_corners(out, closed)
            if cfg.straighten_lines:
                out = self.straighten(out, cfg.line_snap_tolerance)
            if cfg.snap_to_hv:
                out = self.snap_hv(out, cfg.hv_snap_tolerance, closed)
        else:
            if cfg.straighten_lines:
                out = self.straighten(out, cfg.line_snap_tolerance * 0.5)
            if cfg.snap_to_hv:
                out = self.snap_hv(out, cfg.hv_snap_tolerance * 0.5, closed)
        return out

    # ------------------------------------------------------------------
    # Per-path passes
    # ------------------------------------------------------------------

    def nearest_snap_angle(self, angle: float) -> Optional[float]:
        """Canonical angle (degrees) within tolerance of ``angle``, if any."""
        best, best_diff = None, None
        for candidate in self.config.snap_angles:
            diff = abs(angle - candidate)
            if diff <= self.config.angle_snap_tolerance and (best_diff is None or diff < best_diff):
                best, best_diff = candidate, diff
        return best

    def snap_corners(self, curves: List[Curve], closed: bool = True) -> List[Curve]:
        """
        Snap the turn between consecutive lines to the nearest canonical angle.

        The outgoing line is rotated about the shared corner and the change
        is carried into the following curve. On closed paths the last curve
        is never rotated, since its end is pinned to the path start.
        """
        out = list(curves)
        n = len(out)
        last = n - 1 if closed else n
        for i in range(n - 1):
            a, b = out[i], out[i + 1]
            if not (isinstance(a, Line) and isinstance(b, Line)) or i + 1 >= last:
                continue
            d1 = np.subtract(a.end, a.start)
            d2 = np.subtract(b.end, b.start)
            l1, l2 = float(np.hypot(*d1)), float(np.hypot(*d2))
            if l1 < 1e-9 or l2 < 1e-9:
                continue
            signed = math.atan2(d1[0] * d2[1] - d1[1] * d2[0], float(d1 @ d2))
            turn = math.degrees(abs(signed))
            target = self.nearest_snap_angle(turn)
            if target is None or abs(target - turn) <= 0.1:
                continue
            heading = math.atan2(d1[1], d1[0]) + math.copysign(math.radians(target), signed)
            end = (b.start[0] + l2 * math.cos(heading), b.start[1] + l2 * math.sin(heading))
            out[i + 1] = b.moved(b.start, end)
            if i + 2 < n:
                out[i + 2] = out[i + 2].moved(end, out[i + 2].end)
        return out

    def straighten(self, curves: List[Curve], tolerance: float) -> List[Curve]:
        """Replace Beziers whose handles hug the chord with lines."""
        out = []
        for curve in curves:
            if isinstance(curve, (QuadraticBezier, CubicBezier)) and self.is_nearly_straight(curve, tolerance):
                out.append(Line(curve.start, curve.end, curve.error))
            else:
                out.append(curve)
        return out

    @staticmethod
    def is_nearly_straight(curve: Curve, tolerance: float) -> bool:
        length = math.hypot(curve.end[0] - curve.start[0], curve.end[1] - curve.start[1])
        if length < 1.0:
            return True
        if isinstance(curve, QuadraticBezier):
            controls = [curve.control]
        else:
            controls = [curve.control1, curve.control2]
        dist = segment_distances(controls, curve.start, curve.end).max()
        return float(dist) / length < tolerance

    def snap_hv(self, curves: List[Curve], tolerance: float, closed: bool = True) -> List[Curve]:
        """
        Level lines within ``tolerance`` degrees of an axis.

        The off-axis coordinate of both endpoints becomes their average and
        the neighbouring curves follow.
        """
        out = list(curves)
        for i, curve in enumerate(out):
            if not isinstance(curve, Line):
                continue
            dx = curve.end[0] - curve.start[0]
            dy = curve.end[1] - curve.start[1]
            if abs(dx) < 1e-12 and abs(dy) < 1e-12:
                continue
            angle = math.degrees(math.atan2(dy, dx))
            if min(abs(angle), abs(angle - 180), abs(angle + 180)) <= tolerance and dy != 0:
                y = (curve.start[1] + curve.end[1]) / 2.0
                out[i] = curve.moved((curve.start[0], y), (curve.end[0], y))
            elif min(abs(angle - 90), abs(angle + 90)) <= tolerance and dx != 0:
                x = (curve.start[0] + curve.end[0]) / 2.0
                out[i] = curve.moved((x, curve.start[1]), (x, curve.end[1]))
            else:
                continue
            _reconnect(out, i, closed)
        return out

    # ------------------------------------------------------------------
    # Cross-path alignment
    # ------------------------------------------------------------------

    def find_guides(self, coords: Sequence[float]) -> List[float]:
        """Means of sorted coordinate clusters with gaps of at most cluster_threshold."""
        cfg = self.config
        values = np.sort(np.asarray(coords, dtype=float))
        if len(values) == 0:
            return []
        guides = []
        breaks = np.nonzero(np.diff(values) > cfg.cluster_threshold)[0] + 1
        for cluster in np.split(values, breaks):
            if len(cluster) >= cfg.min_cluster_size:
                guides.append(float(cluster.mean()))
        return guides

    @staticmethod
    def _snap(value: float, guides: List[float], distance: float) -> float:
        if not guides:
            return value
        diffs = [abs(value - g) for g in guides]
        k = int(np.argmin(diffs))
        return guides[k] if diffs[k] <= distance else value

    def align(self, paths, width: int, height: int):
        """
        Snap path anchors to alignment guides shared across all paths.

        Guides are clusters of anchor x (or y) coordinates plus the image
        center; anchors within align_snap_fraction of the image size move
        onto the nearest guide. Primitive paths contribute guides but do not
        move.
        """
        anchor_sets = [path.anchors() for path in paths]
        xs = [p[0] for anchors in anchor_sets for p in anchors]
        ys = [p[1] for anchors in anchor_sets for p in anchors]
        x_guides = self.find_guides(xs) + [width / 2.0]
        y_guides = self.find_guides(ys) + [height / 2.0]
        distance = max(width, height) * self.config.align_snap_fraction

        moved = 0
        for path, anchors in zip(paths, anchor_sets):
            if path.is_primitive or len(anchors) == 0:
                continue
            snapped = np.array([(self._snap(x, x_guides, distance), self._snap(y, y_guides, distance))
                                for x, y in anchors])
            if not np.array_equal(snapped, anchors):
                moved += 1
                path.set_anchors(snapped)
        logger.debug("Alignment: %d x guides, %d y guides, %d paths moved",
                     len(x_guides), len(y_guides), moved)
        return paths
