"""
Tests for geometric primitive classification and flattening.
"""

import numpy as np
import pytest

from vectorsmith.config import ShapeConfig
from vectorsmith.curves import CubicBezier, Line, sample_curves
from vectorsmith.shapes import (KAPPA, NOT_GEOMETRIC, Circle, Ellipse, LineShape, Polygon, Rect,
                                ShapeClassifier, flatten_primitive)
from vectorsmith.svg import format_number


class TestClassifier:
    """Whole-contour classification."""

    def test_perfect_circle(self, circle_points):
        result = ShapeClassifier().classify(circle_points)
        assert result.is_geometric
        assert result.shape_type == "circle"
        assert result.confidence > 0.98
        circle = result.primitive
        assert circle.cx == pytest.approx(50, rel=0.01)
        assert circle.cy == pytest.approx(40, rel=0.01)
        assert circle.r == pytest.approx(20, rel=0.01)

    def test_ellipse(self):
        pts = Ellipse(60, 40, 30, 18).sample(64)
        result = ShapeClassifier().classify(pts)
        assert result.is_geometric
        assert result.shape_type == "ellipse"
        ellipse = result.primitive
        assert (ellipse.rx, ellipse.ry) == (pytest.approx(30, abs=0.5), pytest.approx(18, abs=0.5))

    def test_axis_aligned_rect_beats_polygon(self):
        pts = Rect(10, 20, 60, 30).sample(40)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type == "rect"
        rect = result.primitive
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((10, 20, 60, 30))
        assert rect.rotation == 0.0
        assert "polygon" in [c.shape_type for c in result.candidates]

    def test_rotated_rect(self):
        pts = Rect(20, 30, 60, 30, rotation=0.5).sample(80)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type in ("rect", "polygon")
        assert result.is_geometric

    def test_triangle_is_polygon(self):
        pts = Polygon([(0, 0), (60, 0), (30, 50)]).sample(48)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type == "polygon"
        vertices = np.asarray(result.primitive.points)
        assert len(vertices) == 3
        for corner in [(0, 0), (60, 0), (30, 50)]:
            assert np.min(np.hypot(*(vertices - corner).T)) < 1.0

    def test_thin_strip_is_line(self):
        pts = Rect(0, 10, 100, 1).sample(40)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type == "line"
        assert result.confidence == pytest.approx(0.95)
        line = result.primitive
        assert line.bounds().width == pytest.approx(100, abs=1.0)

    def test_jagged_star_is_not_geometric(self):
        rng = np.random.default_rng(7)
        a = np.linspace(0, 2 * np.pi, 64, endpoint=False)
        r = np.where(np.arange(64) % 2 == 0, 50.0, 35.0) + rng.uniform(-1, 1, 64)
        pts = np.stack([100 + r * np.cos(a), 100 + r * np.sin(a)], axis=1)
        result = ShapeClassifier().classify(pts)
        assert not result.is_geometric
        assert result.primitive is None

    def test_too_few_points(self):
        classifier = ShapeClassifier()
        assert classifier.classify([(0, 0), (1, 1)]).shape_type == NOT_GEOMETRIC
        assert not classifier.classify([(0, 0), (2, 0), (1, 1)]).is_geometric

    def test_threshold_rejects(self, circle_points):
        strict = ShapeClassifier(ShapeConfig(confidence_threshold=1.0))
        result = strict.classify(circle_points)
        assert result.shape_type == "circle"
        assert not result.is_geometric
        assert result.primitive is None


class TestFlatten:
    """Primitive to curve lists."""

    def test_circle_quadrants(self):
        curves = flatten_primitive(Circle(50, 50, 10))
        assert len(curves) == 4
        assert all(isinstance(c, CubicBezier) for c in curves)
        assert curves[0].start == pytest.approx((50, 40))
        assert curves[0].control1 == pytest.approx((50 + 10 * KAPPA, 40))
        assert curves[-1].end == pytest.approx((50, 40))

    def test_rect_is_four_lines(self):
        curves = flatten_primitive(Rect(0, 0, 10, 5))
        assert [type(c) for c in curves] == [Line] * 4
        assert curves[2].start == (10.0, 5.0)

    def test_line_shape_is_two_lines(self):
        curves = flatten_primitive(LineShape((0, 0), (10, 0), 2.0))
        assert len(curves) == 2
        assert curves[1].end == (0, 0)

    def test_flattened_circle_classifies_back(self):
        pts = sample_curves(Circle(60, 60, 30).to_curves(), 16)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type == "circle"
        assert result.primitive.r == pytest.approx(30, rel=0.01)

    def test_flattened_ellipse_classifies_back(self):
        curves = Ellipse(60, 40, 30, 18).to_curves()
        assert len(curves) == 4
        result = ShapeClassifier().classify(sample_curves(curves, 16))
        assert result.shape_type == "ellipse"
        ellipse = result.primitive
        assert (ellipse.cx, ellipse.cy) == (pytest.approx(60, abs=0.5), pytest.approx(40, abs=0.5))
        assert (ellipse.rx, ellipse.ry) == (pytest.approx(30, abs=0.5), pytest.approx(18, abs=0.5))

    def test_flattened_rect_classifies_back(self):
        pts = sample_curves(Rect(5, 5, 40, 20).to_curves(), 10)
        result = ShapeClassifier().classify(pts)
        assert result.shape_type == "rect"


class TestPathData:
    """Primitive outlines as path data."""

    def test_circle_uses_two_arcs(self):
        d = Circle(10, 10, 5).path_data(format_number)
        assert d == "M5 10A5 5 0 1 0 15 10A5 5 0 1 0 5 10Z"

    def test_polygon(self):
        d = Polygon([(0, 0), (4, 0), (2, 3)]).path_data(format_number)
        assert d == "M0 0L4 0L2 3Z"
