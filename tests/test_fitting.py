"""
Tests for curve variants and the segment fitter.
"""

import math

import numpy as np
import pytest

from vectorsmith.config import FittingConfig
from vectorsmith.curves import (CircularArc, CubicBezier, EllipticalArc, Line, QuadraticBezier,
                                curve_kinds, curves_are_contiguous, sample_curves)
from vectorsmith import fitting
from vectorsmith.fitting import CurveFitter, circumcenter


def arc_points(cx, cy, r, a0, a1, n=20):
    a = np.linspace(a0, a1, n)
    return np.stack([cx + r * np.cos(a), cy + r * np.sin(a)], axis=1)


class TestCurves:
    """Evaluation of the curve variants."""

    def test_line(self):
        line = Line((0.0, 0.0), (10.0, 0.0))
        assert line.point_at(0.5) == (5.0, 0.0)
        assert line.length() == pytest.approx(10.0)
        assert line.curvature(0.3) == 0.0
        assert line.reversed().start == (10.0, 0.0)

    def test_cubic_endpoints_and_tangents(self):
        cubic = CubicBezier((0, 0), (0, 10), (10, 10), (10, 0))
        assert cubic.point_at(0.0) == pytest.approx((0, 0))
        assert cubic.point_at(1.0) == pytest.approx((10, 0))
        assert cubic.start_tangent() == pytest.approx([0, 1])
        assert cubic.end_tangent() == pytest.approx([0, -1])

    def test_quadratic_midpoint(self):
        quad = QuadraticBezier((0, 0), (5, 10), (10, 0))
        assert quad.point_at(0.5) == pytest.approx((5, 5))

    def test_circular_arc_curvature(self):
        arc = CircularArc((10, 0), (0, 10), (0, 0), 10.0, 0.0, math.pi / 2, math.pi / 2)
        assert arc.point_at(1.0) == pytest.approx((0, 10), abs=1e-9)
        assert arc.curvature(0.5) == pytest.approx(0.1)
        assert not arc.large_arc
        assert arc.reversed().sweep == pytest.approx(-math.pi / 2)

    def test_elliptical_arc(self):
        arc = EllipticalArc((20, 0), (0, 10), (0, 0), 20.0, 10.0, 0.0, 0.0, math.pi / 2, math.pi / 2)
        assert arc.point_at(1.0) == pytest.approx((0, 10), abs=1e-9)

    def test_moved_keeps_type(self):
        cubic = CubicBezier((0, 0), (1, 1), (2, 1), (3, 0))
        moved = cubic.moved((0, 1), (3, 1))
        assert isinstance(moved, CubicBezier)
        assert moved.start == (0.0, 1.0)
        assert moved.control1 == (1.0, 2.0)
        assert moved.control2 == (2.0, 2.0)

    def test_helpers(self):
        curves = [Line((0, 0), (1, 0)), Line((1, 0), (1, 1)), Line((1, 1), (0, 0))]
        assert curves_are_contiguous(curves, closed=True)
        assert not curves_are_contiguous(curves[:2] + [Line((2, 2), (0, 0))])
        assert curve_kinds(curves) == ["line"] * 3
        assert len(sample_curves(curves, 4)) == 12


class TestCurveFitter:
    """Simplest-curve-first fitting."""

    def test_collinear_points_become_one_line(self):
        pts = np.stack([np.linspace(0, 20, 11), np.zeros(11)], axis=1)
        curves = CurveFitter().fit(pts, closed=False)
        assert len(curves) == 1
        assert isinstance(curves[0], Line)
        assert curves[0].start == (0.0, 0.0) and curves[0].end == (20.0, 0.0)

    def test_circular_arc(self):
        pts = arc_points(0, 0, 30, 0, math.pi / 2)
        curves = CurveFitter().fit(pts, closed=False)
        assert len(curves) == 1
        assert isinstance(curves[0], CircularArc)
        assert curves[0].radius == pytest.approx(30.0, rel=1e-6)
        assert curves[0].center == pytest.approx((0.0, 0.0), abs=1e-6)

    def test_arc_disabled_falls_through_to_bezier(self):
        pts = arc_points(0, 0, 30, 0, math.pi / 2)
        fitter = CurveFitter(FittingConfig(allow_circular_arc=False, allow_elliptical_arc=False))
        curves = fitter.fit(pts, closed=False)
        assert all(isinstance(c, (QuadraticBezier, CubicBezier)) for c in curves)
        assert curves[0].start == pytest.approx(tuple(pts[0]))
        assert curves[-1].end == pytest.approx(tuple(pts[-1]))

    @pytest.mark.parametrize("rounds", [0, 1, 6])
    def test_newton_rounds_are_capped(self, monkeypatch, rounds):
        calls = []
        original = fitting.reparameterize

        def counting(ctrl, points, u):
            calls.append(1)
            return original(ctrl, points, u)

        monkeypatch.setattr(fitting, "reparameterize", counting)
        x = np.linspace(0, 60, 61)
        pts = np.stack([x, 8 * np.sin(x / 6.0)], axis=1)
        fitter = CurveFitter(FittingConfig(bezier_tolerance=0.0, max_iterations=rounds,
                                           max_subdivisions=0))
        curves = fitter.fit_cubic(pts)
        assert len(curves) == 1
        assert len(calls) == rounds

    def test_square_corners_become_lines(self):
        side = np.linspace(0, 20, 11)[:-1]
        pts = np.vstack([
            np.stack([side, np.zeros(10)], axis=1),
            np.stack([np.full(10, 20.0), side], axis=1),
            np.stack([20 - side, np.full(10, 20.0)], axis=1),
            np.stack([np.zeros(10), 20 - side], axis=1),
        ])
        curves = CurveFitter().fit(pts, closed=True)
        assert len(curves) == 4
        assert all(isinstance(c, Line) for c in curves)
        assert curves_are_contiguous(curves, closed=True, eps=1e-9)

    def test_closed_circle_is_contiguous(self, circle_points):
        curves = CurveFitter().fit(circle_points, closed=True)
        assert curves_are_contiguous(curves, closed=True, eps=1e-9)
        samples = sample_curves(curves, 8)
        radii = np.hypot(samples[:, 0] - 50, samples[:, 1] - 40)
        assert np.abs(radii - 20).max() < 1.0

    def test_wavy_open_curve_meets_tolerance(self):
        x = np.linspace(0, 60, 61)
        pts = np.stack([x, 8 * np.sin(x / 6.0)], axis=1)
        curves = CurveFitter().fit(pts, closed=False)
        assert curves_are_contiguous(curves, closed=False, eps=1e-9)
        assert curves[0].start == pytest.approx((0.0, 0.0))
        assert curves[-1].end == pytest.approx(tuple(pts[-1]))

    def test_degenerate_input(self):
        fitter = CurveFitter()
        assert fitter.fit([(1, 1)]) == []
        assert fitter.fit([(1, 1), (1, 1)], closed=False) == []
        two = fitter.fit([(0, 0), (4, 0)], closed=True)
        assert [type(c) for c in two] == [Line, Line]

    def test_open_corner_detection_keeps_ends(self):
        pts = np.array([[0, 0], [5, 0], [10, 0], [10, 5], [10, 10]], dtype=float)
        corners = CurveFitter().detect_corners(pts, closed=False)
        assert corners[0] == 0 and corners[-1] == 4
        assert 2 in corners


class TestCircumcenter:
    """Three-point circle."""

    def test_right_triangle(self):
        assert circumcenter((0, 0), (4, 0), (0, 4)) == pytest.approx([2, 2])

    def test_collinear(self):
        assert circumcenter((0, 0), (1, 1), (2, 2)) is None
