"""
Tests for continuity refinement of fitted curves.
"""

import numpy as np
import pytest

from vectorsmith.config import RefineConfig
from vectorsmith.curves import CircularArc, CubicBezier, Line, QuadraticBezier
from vectorsmith.fitting import CurveFitter
from vectorsmith.geometry import normalize
from vectorsmith.refine import CurveRefiner, junction_angle

KINKED = CubicBezier((10, 0), (13, 0.5), (17, 2), (20, 2))


class TestG1:
    """Near-smooth junctions become smooth."""

    def test_two_cubics_meet_smoothly(self):
        a = CubicBezier((0, 0), (3, 0), (7, 0), (10, 0))
        assert 0 < junction_angle(a, KINKED) < 0.3
        out = CurveRefiner().enforce_g1([a, KINKED], closed=False)
        assert junction_angle(out[0], out[1]) < 1e-6
        assert out[0].end == a.end and out[1].start == KINKED.start

    def test_line_keeps_its_direction(self):
        line = Line((0, 0), (10, 0))
        out = CurveRefiner().enforce_g1([line, KINKED], closed=False)
        assert out[0] == line
        assert out[1].control1[1] == pytest.approx(0.0, abs=1e-9)
        assert out[1].control1[0] > 10

    def test_sharp_junction_left_alone(self):
        a = CubicBezier((0, 0), (3, 0), (7, 0), (10, 0))
        b = CubicBezier((10, 0), (10, 3), (10, 7), (10, 10))
        out = CurveRefiner().enforce_g1([a, b], closed=False)
        assert out == [a, b]

    def test_quadratic_handle_is_damped(self):
        a = QuadraticBezier((0, 0), (5, 2), (10, 0))
        b = QuadraticBezier((10, 0), (14, -1), (20, 0))
        direction = normalize(a.end_tangent() + b.start_tangent())
        control = np.array([5.0, 2.0])
        full = np.array([10.0, 0.0]) - direction * np.linalg.norm(control - (10, 0))
        out = CurveRefiner().enforce_g1([a, b], closed=False)
        assert out[0].control == pytest.approx(tuple(control + (full - control) * 0.3))
        assert out[0].control[0] > 4.9 and out[0].control[1] > 1.8
        assert 0 < junction_angle(out[0], out[1]) < junction_angle(a, b)


class TestCorners:
    """Handles pulled toward sharp corners."""

    def test_handles_shortened(self):
        a = CubicBezier((0, 0), (3, 0), (7, 0), (10, 0))
        b = CubicBezier((10, 0), (10, 3), (10, 7), (10, 10))
        out = CurveRefiner().sharpen_corners([a, b], closed=False)
        factor = 1 - 0.9 * 0.3
        assert out[0].control2 == pytest.approx((10 - 3 * factor, 0))
        assert out[1].control1 == pytest.approx((10, 3 * factor))
        assert out[0].end == out[1].start == (10, 0)


class TestG2:
    """Curvature matching across cubic junctions."""

    def test_curvature_difference_shrinks(self):
        a = CubicBezier((0, 10), (3, 4), (7, 0), (10, 0))
        b = CubicBezier((10, 0), (13, 0), (17, 1), (20, 3))
        before = abs(a.curvature(1.0) - b.curvature(0.0))
        out = CurveRefiner().enforce_g2([a, b], closed=False)
        after = abs(out[0].curvature(1.0) - out[1].curvature(0.0))
        assert after < before * 0.5
        assert junction_angle(out[0], out[1]) < 1e-6
        assert out[0].end == a.end and out[1].start == b.start

    def test_opposite_curvature_skipped(self):
        a = CubicBezier((0, 10), (3, 4), (7, 0), (10, 0))
        b = CubicBezier((10, 0), (13, 0), (17, -1), (20, -3))
        assert CurveRefiner().enforce_g2([a, b], closed=False) == [a, b]


class TestFairing:
    """Mid curvature pulled toward the neighbours' end curvatures."""

    HUMP = CubicBezier((10, 0), (13, 3), (17, 3), (20, 0))

    def test_cubic_between_lines_flattens(self):
        lines = [Line((0, 0), (10, 0)), self.HUMP, Line((20, 0), (30, 0))]
        out = CurveRefiner(RefineConfig(fairing_iterations=1)).fair(lines, closed=False)
        step = abs(self.HUMP.curvature(0.5)) * 0.3 / np.sqrt(2)
        assert out[1].control1 == pytest.approx((13 + step, 3 - step))
        assert out[1].control2 == pytest.approx((17 - step, 3 - step))
        assert out[1].start == self.HUMP.start and out[1].end == self.HUMP.end
        assert abs(out[1].curvature(0.5)) < abs(self.HUMP.curvature(0.5))

    def test_target_comes_from_neighbours(self):
        before = CircularArc((8, 2), (10, 0), (10, 2), 2.0, -np.pi, -np.pi / 2, np.pi / 2)
        after = CircularArc((20, 0), (22, 2), (20, 2), 2.0, -np.pi / 2, 0.0, np.pi / 2)
        out = CurveRefiner(RefineConfig(fairing_iterations=1)).fair(
            [before, self.HUMP, after], closed=False)
        adjustment = (0.5 - abs(self.HUMP.curvature(0.5))) * 0.3
        assert adjustment > 0
        step = adjustment / np.sqrt(2)
        assert out[1].control1 == pytest.approx((13 - step, 3 + step))
        assert out[1].control2 == pytest.approx((17 + step, 3 + step))
        assert out[0] == before and out[2] == after

    def test_quadratic_moves_along_midpoint_direction(self):
        q = QuadraticBezier((10, 0), (15, 5), (20, 0))
        curves = [Line((0, 0), (10, 0)), q, Line((20, 0), (30, 0))]
        out = CurveRefiner(RefineConfig(fairing_iterations=1)).fair(curves, closed=False)
        assert q.curvature(0.5) == pytest.approx(-0.2)
        assert out[1].control == pytest.approx((15, 5 - 0.2 * 0.3))

    def test_lone_curve_unchanged(self):
        out = CurveRefiner().fair([self.HUMP], closed=False)
        assert out == [self.HUMP]


class TestRefinePipeline:
    """The full pass keeps the fitted anchors."""

    def test_endpoints_preserved(self, circle_points):
        curves = CurveFitter().fit(circle_points, closed=True)
        refined = CurveRefiner().refine(curves, closed=True)
        assert len(refined) == len(curves)
        for before, after in zip(curves, refined):
            assert after.start == pytest.approx(before.start)
            assert after.end == pytest.approx(before.end)

    def test_disabled_passes_return_copy(self):
        cfg = RefineConfig(enforce_g1=False, enforce_g2=False, fairing=False, optimize_corners=False)
        a = CubicBezier((0, 0), (3, 0), (7, 0), (10, 0))
        out = CurveRefiner(cfg).refine([a, KINKED], closed=False)
        assert np.allclose(out[1].control1, KINKED.control1)
