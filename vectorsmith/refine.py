"""
Vectorsmith Curve Refinement

Post-fit continuity pass over one path's curve list:

1. G1: near-smooth junctions get collinear handles.
2. Fairing: each Bezier's mid curvature is pulled toward its neighbours'
   end curvatures.
3. G1 again, since fairing moves handles.
4. Corners: junctions sharper than the corner threshold get their handles
   pulled toward the corner point.
5. G2: matching end curvatures by rescaling cubic handle lengths.

Endpoints never move, so contiguity from curve fitting is preserved.
"""

import logging
import math
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import RefineConfig
from .curves import CubicBezier, Curve, QuadraticBezier
from .geometry import normalize

logger = logging.getLogger(__name__)

QUADRATIC_DAMPING = 0.3


def _junctions(n: int, closed: bool) -> List[Tuple[int, int]]:
    pairs = [(i, i + 1) for i in range(n - 1)]
    if closed and n > 1:
        pairs.append((n - 1, 0))
    return pairs


def junction_angle(a: Curve, b: Curve) -> float:
    """Angle (radians) between the end tangent of ``a`` and the start tangent of ``b``."""
    t1 = a.end_tangent()
    t2 = b.start_tangent()
    if not t1.any() or not t2.any():
        return 0.0
    return float(math.acos(float(np.clip(t1 @ t2, -1.0, 1.0))))


def _with_end_handle(curve: Curve, direction: np.ndarray) -> Curve:
    """
    Re-aim the handle arriving at ``curve.end`` along ``direction``.

    The handle keeps its length. A quadratic's single control point also
    shapes the start, so it only moves 30% of the way there.
    """
    end = np.asarray(curve.end, dtype=float)
    if isinstance(curve, CubicBezier):
        length = float(np.linalg.norm(end - curve.control2))
        return replace(curve, control2=tuple(end - direction * length))
    if isinstance(curve, QuadraticBezier):
        control = np.asarray(curve.control, dtype=float)
        target = end - direction * float(np.linalg.norm(control - end))
        return replace(curve, control=tuple(control + (target - control) * QUADRATIC_DAMPING))
    return curve


def _with_start_handle(curve: Curve, direction: np.ndarray) -> Curve:
    start = np.asarray(curve.start, dtype=float)
    if isinstance(curve, CubicBezier):
        length = float(np.linalg.norm(np.asarray(curve.control1) - start))
        return replace(curve, control1=tuple(start + direction * length))
    if isinstance(curve, QuadraticBezier):
        control = np.asarray(curve.control, dtype=float)
        target = start + direction * float(np.linalg.norm(control - start))
        return replace(curve, control=tuple(control + (target - control) * QUADRATIC_DAMPING))
    return curve


def _perpendicular(v) -> np.ndarray:
    return normalize(np.array([-v[1], v[0]], dtype=float))


def _adjustable(curve: Curve) -> bool:
    return isinstance(curve, (CubicBezier, QuadraticBezier))


def _as_floats(curve: Curve) -> Curve:
    """Plain float tuples for every point field."""
    if isinstance(curve, CubicBezier):
        return replace(curve, control1=tuple(map(float, curve.control1)),
                       control2=tuple(map(float, curve.control2)))
    if isinstance(curve, QuadraticBezier):
        return replace(curve, control=tuple(map(float, curve.control)))
    return curve


class CurveRefiner:
    """G1/G2 continuity, fairing and corner sharpening."""

    def __init__(self, config: Optional[RefineConfig] = None):
        self.config = config or RefineConfig()

    def refine(self, curves: Sequence[Curve], closed: bool = True) -> List[Curve]:
        cfg = self.config
        out = list(curves)
        if not out:
            return out
        if cfg.enforce_g1:
            out = self.enforce_g1(out, closed)
        if cfg.fairing and cfg.fairing_iterations > 0:
            out = self.fair(out, closed)
            if cfg.enforce_g1:
                out = self.enforce_g1(out, closed)
        if cfg.optimize_corners:
            out = self.sharpen_corners(out, closed)
        if cfg.enforce_g2:
            out = self.enforce_g2(out, closed)
        return [_as_floats(c) for c in out]

    def enforce_g1(self, curves: List[Curve], closed: bool = True) -> List[Curve]:
        """
        Make near-smooth junctions exactly smooth.

        A junction qualifies when its angle is below three times the tangent
        threshold. Lines and arcs keep their tangent; when both sides are
        Beziers they meet at the averaged direction.
        """
        limit = 3 * self.config.tangent_threshold
        out = list(curves)
        for i, j in _junctions(len(out), closed):
            a, b = out[i], out[j]
            angle = junction_angle(a, b)
            if angle < 1e-9 or angle >= limit:
                continue
            if _adjustable(a) and _adjustable(b):
                direction = normalize(a.end_tangent() + b.start_tangent())
            elif _adjustable(a):
                direction = b.start_tangent()
            elif _adjustable(b):
                direction = a.end_tangent()
            else:
                continue
            if not direction.any():
                continue
            out[i] = _with_end_handle(a, direction)
            out[j] = _with_start_handle(out[j], direction)
        return out

    def fair(self, curves: List[Curve], closed: bool = True) -> List[Curve]:
        """
        Pull each Bezier's mid curvature toward its neighbours' end curvatures.

        The target is the mean of the previous curve's curvature at t=1 and
        the next curve's at t=0 (magnitudes). Cubic handles move
        perpendicular to themselves by (target - current) * weight; a
        quadratic's control moves along the direction from the chord
        midpoint to the control. Sweeps run in place, so later curves see
        already faired neighbours.
        """
        cfg = self.config
        out = list(curves)
        n = len(out)
        for _ in range(cfg.fairing_iterations):
            for idx in range(n):
                curve = out[idx]
                if not _adjustable(curve):
                    continue
                neighbours = []
                if closed or idx > 0:
                    neighbours.append(abs(out[idx - 1].curvature(1.0)))
                if closed or idx < n - 1:
                    neighbours.append(abs(out[(idx + 1) % n].curvature(0.0)))
                if n < 2 or not neighbours:
                    continue
                target = sum(neighbours) / len(neighbours)
                adjustment = (target - abs(curve.curvature(0.5))) * cfg.fairing_weight
                if isinstance(curve, CubicBezier):
                    h1 = _perpendicular(np.subtract(curve.control1, curve.start))
                    h2 = _perpendicular(np.subtract(curve.end, curve.control2))
                    curve = replace(curve, control1=tuple(np.add(curve.control1, h1 * adjustment)),
                                    control2=tuple(np.add(curve.control2, h2 * adjustment)))
                else:
                    mid = (np.asarray(curve.start, dtype=float) + np.asarray(curve.end, dtype=float)) / 2.0
                    away = normalize(np.asarray(curve.control, dtype=float) - mid)
                    curve = replace(curve, control=tuple(np.add(curve.control, away * adjustment)))
                out[idx] = curve
        return out

    def sharpen_corners(self, curves: List[Curve], closed: bool = True) -> List[Curve]:
        """Pull handles toward sharp junctions and make both sides share the corner point."""
        cfg = self.config
        threshold = math.radians(cfg.corner_angle_threshold)
        factor = 1.0 - cfg.corner_sharpness * 0.3
        out = list(curves)
        for i, j in _junctions(len(out), closed):
            a, b = out[i], out[j]
            if junction_angle(a, b) < threshold:
                continue
            corner = np.asarray(a.end, dtype=float)
            if isinstance(a, CubicBezier):
                a = replace(a, control2=tuple(corner + (np.asarray(a.control2) - corner) * factor))
            if isinstance(b, CubicBezier):
                b = replace(b, control1=tuple(corner + (np.asarray(b.control1) - corner) * factor))
            out[i] = a
            out[j] = b.moved(a.end, b.end) if tuple(b.start) != tuple(a.end) else b
        return out

    def enforce_g2(self, curves: List[Curve], closed: bool = True) -> List[Curve]:
        """
        Match curvature across smooth cubic-cubic junctions.

        End curvature scales with the inverse square of the handle length, so
        each handle is scaled by sqrt(current / target), clamped to [0.5, 1.5].
        """
        cfg = self.config
        limit = 3 * cfg.tangent_threshold
        out = list(curves)
        for i, j in _junctions(len(out), closed):
            a, b = out[i], out[j]
            if not (isinstance(a, CubicBezier) and isinstance(b, CubicBezier)):
                continue
            if junction_angle(a, b) >= limit:
                continue
            ka, kb = a.curvature(1.0), b.curvature(0.0)
            if abs(ka) < 0.001 or abs(kb) < 0.001 or ka * kb < 0:
                continue
            if abs(ka - kb) / max(abs(ka), abs(kb)) <= cfg.curvature_threshold:
                continue
            target = (ka + kb) / 2.0
            sa = float(np.clip(math.sqrt(ka / target), 0.5, 1.5))
            sb = float(np.clip(math.sqrt(kb / target), 0.5, 1.5))
            end = np.asarray(a.end, dtype=float)
            start = np.asarray(b.start, dtype=float)
            out[i] = replace(a, control2=tuple(end + (np.asarray(a.control2) - end) * sa))
            out[j] = replace(b, control1=tuple(start + (np.asarray(b.control1) - start) * sb))
        logger.debug("Refined %d curves", len(out))
        return out
