"""
Vectorsmith Curves

The closed set of curve variants produced by curve fitting. Each variant is
a dataclass with its own evaluation (point, first and second derivative);
shared queries such as tangents, curvature and sampling live in _CurveOps.
Points are (x, y) float tuples.
"""

import math
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple, Union

import numpy as np

Point = Tuple[float, float]


def _pt(p) -> Point:
    return (float(p[0]), float(p[1]))


def _add(p, d) -> Point:
    return (float(p[0] + d[0]), float(p[1] + d[1]))


class _CurveOps:
    """Queries shared by all curve variants."""

    def sample(self, n: int = 16, include_end: bool = True) -> np.ndarray:
        ts = np.linspace(0.0, 1.0, n) if include_end else np.arange(n) / float(n)
        return np.array([self.point_at(t) for t in ts], dtype=float).reshape(-1, 2)

    def tangent_at(self, t: float) -> np.ndarray:
        d = np.asarray(self.derivative(t), dtype=float)
        norm = float(np.hypot(d[0], d[1]))
        if norm < 1e-9:
            # Degenerate handle: fall back to a short secant.
            eps = 1e-3
            a = np.asarray(self.point_at(max(0.0, t - eps)))
            b = np.asarray(self.point_at(min(1.0, t + eps)))
            d = b - a
            norm = float(np.hypot(d[0], d[1]))
            if norm < 1e-12:
                d = np.asarray(self.end) - np.asarray(self.start)
                norm = float(np.hypot(d[0], d[1]))
                if norm < 1e-12:
                    return np.zeros(2)
        return d / norm

    def start_tangent(self) -> np.ndarray:
        return self.tangent_at(0.0)

    def end_tangent(self) -> np.ndarray:
        return self.tangent_at(1.0)

    def curvature(self, t: float) -> float:
        """Signed curvature; positive when turning toward (-ty, tx)."""
        d1 = self.derivative(t)
        d2 = self.second_derivative(t)
        speed = math.hypot(d1[0], d1[1])
        if speed < 1e-9:
            return 0.0
        return float((d1[0] * d2[1] - d1[1] * d2[0]) / speed ** 3)

    def length(self, n: int = 32) -> float:
        pts = self.sample(n)
        return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


@dataclass
class Line(_CurveOps):
    start: Point
    end: Point
    error: float = 0.0

    def point_at(self, t: float) -> Point:
        return (self.start[0] + t * (self.end[0] - self.start[0]),
                self.start[1] + t * (self.end[1] - self.start[1]))

    def derivative(self, t: float) -> Point:
        return (self.end[0] - self.start[0], self.end[1] - self.start[1])

    def second_derivative(self, t: float) -> Point:
        return (0.0, 0.0)

    def moved(self, start, end) -> "Line":
        return replace(self, start=_pt(start), end=_pt(end))

    def reversed(self) -> "Line":
        return replace(self, start=self.end, end=self.start)


@dataclass
class QuadraticBezier(_CurveOps):
    start: Point
    control: Point
    end: Point
    error: float = 0.0

    def point_at(self, t: float) -> Point:
        mt = 1.0 - t
        a, b, c = mt * mt, 2 * mt * t, t * t
        return (a * self.start[0] + b * self.control[0] + c * self.end[0],
                a * self.start[1] + b * self.control[1] + c * self.end[1])

    def derivative(self, t: float) -> Point:
        mt = 1.0 - t
        return (2 * mt * (self.control[0] - self.start[0]) + 2 * t * (self.end[0] - self.control[0]),
                2 * mt * (self.control[1] - self.start[1]) + 2 * t * (self.end[1] - self.control[1]))

    def second_derivative(self, t: float) -> Point:
        return (2 * (self.end[0] - 2 * self.control[0] + self.start[0]),
                2 * (self.end[1] - 2 * self.control[1] + self.start[1]))

    def moved(self, start, end) -> "QuadraticBezier":
        ds = np.subtract(start, self.start)
        de = np.subtract(end, self.end)
        return replace(self, start=_pt(start), end=_pt(end),
                       control=_add(self.control, (ds + de) / 2.0))

    def reversed(self) -> "QuadraticBezier":
        return replace(self, start=self.end, end=self.start)


@dataclass
class CubicBezier(_CurveOps):
    start: Point
    control1: Point
    control2: Point
    end: Point
    error: float = 0.0

    def point_at(self, t: float) -> Point:
        mt = 1.0 - t
        a, b, c, d = mt ** 3, 3 * mt * mt * t, 3 * mt * t * t, t ** 3
        return (a * self.start[0] + b * self.control1[0] + c * self.control2[0] + d * self.end[0],
                a * self.start[1] + b * self.control1[1] + c * self.control2[1] + d * self.end[1])

    def derivative(self, t: float) -> Point:
        mt = 1.0 - t
        p0, p1, p2, p3 = self.start, self.control1, self.control2, self.end
        return tuple(3 * mt * mt * (p1[i] - p0[i]) + 6 * mt * t * (p2[i] - p1[i])
                     + 3 * t * t * (p3[i] - p2[i]) for i in range(2))

    def second_derivative(self, t: float) -> Point:
        p0, p1, p2, p3 = self.start, self.control1, self.control2, self.end
        return tuple(6 * (1 - t) * (p2[i] - 2 * p1[i] + p0[i]) + 6 * t * (p3[i] - 2 * p2[i] + p1[i])
                     for i in range(2))

    def moved(self, start, end) -> "CubicBezier":
        ds = np.subtract(start, self.start)
        de = np.subtract(end, self.end)
        return replace(self, start=_pt(start), end=_pt(end),
                       control1=_add(self.control1, ds), control2=_add(self.control2, de))

    def reversed(self) -> "CubicBezier":
        return replace(self, start=self.end, control1=self.control2,
                       control2=self.control1, end=self.start)


@dataclass
class CircularArc(_CurveOps):
    """Arc of a circle; ``sweep`` is the signed angular extent in radians."""
    start: Point
    end: Point
    center: Point
    radius: float
    start_angle: float
    end_angle: float
    sweep: float
    error: float = 0.0

    def point_at(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        return (self.center[0] + self.radius * math.cos(a),
                self.center[1] + self.radius * math.sin(a))

    def derivative(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        k = self.radius * self.sweep
        return (-k * math.sin(a), k * math.cos(a))

    def second_derivative(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        k = self.radius * self.sweep * self.sweep
        return (-k * math.cos(a), -k * math.sin(a))

    @property
    def large_arc(self) -> bool:
        return abs(self.sweep) > math.pi

    def moved(self, start, end) -> "CircularArc":
        return replace(self, start=_pt(start), end=_pt(end))

    def reversed(self) -> "CircularArc":
        return replace(self, start=self.end, end=self.start, start_angle=self.end_angle,
                       end_angle=self.start_angle, sweep=-self.sweep)


@dataclass
class EllipticalArc(_CurveOps):
    """Arc of an ellipse in parametric angle; ``rotation`` in radians."""
    start: Point
    end: Point
    center: Point
    rx: float
    ry: float
    rotation: float
    start_angle: float
    end_angle: float
    sweep: float
    error: float = 0.0

    def _rotate(self, x: float, y: float) -> Point:
        c, s = math.cos(self.rotation), math.sin(self.rotation)
        return (x * c - y * s, x * s + y * c)

    def point_at(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        dx, dy = self._rotate(self.rx * math.cos(a), self.ry * math.sin(a))
        return (self.center[0] + dx, self.center[1] + dy)

    def derivative(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        return self._rotate(-self.rx * math.sin(a) * self.sweep, self.ry * math.cos(a) * self.sweep)

    def second_derivative(self, t: float) -> Point:
        a = self.start_angle + t * self.sweep
        k = self.sweep * self.sweep
        return self._rotate(-self.rx * math.cos(a) * k, -self.ry * math.sin(a) * k)

    @property
    def large_arc(self) -> bool:
        return abs(self.sweep) > math.pi

    def moved(self, start, end) -> "EllipticalArc":
        return replace(self, start=_pt(start), end=_pt(end))

    def reversed(self) -> "EllipticalArc":
        return replace(self, start=self.end, end=self.start, start_angle=self.end_angle,
                       end_angle=self.start_angle, sweep=-self.sweep)


Curve = Union[Line, CircularArc, EllipticalArc, QuadraticBezier, CubicBezier]


def sample_curves(curves: Sequence[Curve], per_curve: int = 16) -> np.ndarray:
    """Points along a curve list without duplicating the shared junctions."""
    if not curves:
        return np.zeros((0, 2))
    parts = [c.sample(per_curve, include_end=False) for c in curves]
    return np.vstack(parts)


def curves_are_contiguous(curves: Sequence[Curve], closed: bool = True, eps: float = 0.0) -> bool:
    for prev, cur in zip(curves, curves[1:]):
        if math.hypot(prev.end[0] - cur.start[0], prev.end[1] - cur.start[1]) > eps:
            return False
    if closed and curves:
        last, first = curves[-1], curves[0]
        if math.hypot(last.end[0] - first.start[0], last.end[1] - first.start[1]) > eps:
            return False
    return True


def curve_kinds(curves: Sequence[Curve]) -> List[str]:
    names = {Line: "line", CircularArc: "arc", EllipticalArc: "elliptical_arc",
             QuadraticBezier: "quadratic", CubicBezier: "cubic"}
    return [names[type(c)] for c in curves]
