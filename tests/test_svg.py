"""
Tests for SVG serialization.
"""

import math
import xml.etree.ElementTree as ET

import pytest

from vectorsmith.color import Color
from vectorsmith.config import SVGConfig
from vectorsmith.curves import CircularArc, CubicBezier, Line, QuadraticBezier
from vectorsmith.model import FittedRegion, Path
from vectorsmith.shapes import Circle, LineShape, Rect
from vectorsmith.svg import SVGBuilder, format_number


def parse(svg):
    return ET.fromstring(svg.encode("utf-8"))


def tags(root):
    return [el.tag.split("}")[-1] for el in root.iter()]


def rect_region(color, x, y, w, h, **kwargs):
    return FittedRegion(color, [Path(primitive=Rect(x, y, w, h), geometric=True)], **kwargs)


def triangle_path(hole=False):
    curves = [Line((10, 10), (40, 10)), Line((40, 10), (25, 40)), Line((25, 40), (10, 10))]
    return Path(curves=curves, hole=hole)


class TestFormatNumber:
    """Compact decimals."""

    @pytest.mark.parametrize("value,precision,expected", [
        (100.0, 2, "100"),
        (2.50, 2, "2.5"),
        (1.23456, 3, "1.235"),
        (-0.001, 2, "0"),
        (7.0, 0, "7"),
    ])
    def test_values(self, value, precision, expected):
        assert format_number(value, precision) == expected


class TestDocument:
    """Root element and sizing."""

    def test_default_size_and_viewbox(self):
        svg = SVGBuilder().build([rect_region(Color(255, 0, 0), 0, 0, 100, 50)], 100, 50)
        root = parse(svg)
        assert root.tag == "{http://www.w3.org/2000/svg}svg"
        assert root.get("viewBox") == "0 0 100 50"
        assert root.get("width") == "100" and root.get("height") == "50"

    def test_scale_and_unit(self):
        builder = SVGBuilder(SVGConfig(scale=2.0, unit="px"))
        root = parse(builder.build([], 30, 20))
        assert root.get("width") == "60px" and root.get("height") == "40px"
        assert root.get("viewBox") == "0 0 30 20"

    def test_viewbox_is_space_separated(self):
        svg = SVGBuilder(SVGConfig(output_width=14)).build([], 7, 3)
        assert 'viewBox="0 0 7 3"' in svg
        assert "," not in parse(svg).get("viewBox")

    def test_one_dimension_keeps_aspect(self):
        assert SVGBuilder(SVGConfig(output_width=50)).dimensions(100, 40) == ("50", "20", None)
        assert SVGBuilder(SVGConfig(output_height=10)).dimensions(100, 40) == ("25", "10", None)

    @pytest.mark.parametrize("policy,expected", [
        ("stretch", "none"),
        ("preserve_inset", "xMidYMid meet"),
        ("preserve_overflow", "xMidYMid slice"),
    ])
    def test_aspect_policies(self, policy, expected):
        builder = SVGBuilder(SVGConfig(output_width=200, output_height=50, aspect_ratio=policy))
        root = parse(builder.build([], 100, 100))
        assert root.get("preserveAspectRatio") == expected
        assert root.get("width") == "200"


class TestElements:
    """Primitive elements and paths."""

    def test_rect_element(self):
        root = parse(SVGBuilder().build([rect_region(Color(255, 0, 0), 0, 0, 100, 100)], 100, 100))
        rect = next(el for el in root.iter() if el.tag.endswith("rect"))
        assert (rect.get("x"), rect.get("y"), rect.get("width"), rect.get("height")) == ("0", "0", "100", "100")
        assert rect.get("fill") == "#ff0000"

    def test_translucent_fill(self):
        root = parse(SVGBuilder().build([rect_region(Color(0, 0, 255, 128), 0, 0, 10, 10)], 10, 10))
        rect = next(el for el in root.iter() if el.tag.endswith("rect"))
        assert rect.get("fill-opacity") == "0.5"

    def test_circle_element(self):
        region = FittedRegion(Color(0, 255, 0), [Path(primitive=Circle(60, 60, 40), geometric=True)])
        root = parse(SVGBuilder().build([region], 120, 120))
        circle = next(el for el in root.iter() if el.tag.endswith("circle"))
        assert (circle.get("cx"), circle.get("cy"), circle.get("r")) == ("60", "60", "40")

    def test_holes_make_evenodd_path(self):
        region = FittedRegion(Color(0, 0, 0), [
            Path(primitive=Rect(0, 0, 50, 50), geometric=True), triangle_path(hole=True)])
        root = parse(SVGBuilder().build([region], 50, 50))
        paths = [el for el in root.iter() if el.tag.endswith("path")]
        assert len(paths) == 1
        assert paths[0].get("fill-rule") == "evenodd"
        assert paths[0].get("d").count("M") == 2

    def test_curve_path_data(self):
        builder = SVGBuilder()
        curves = [Line((0, 0), (10, 0)),
                  QuadraticBezier((10, 0), (15, 5), (10, 10)),
                  CubicBezier((10, 10), (5, 12), (2, 8), (0, 0))]
        assert builder.path_data(curves) == "M0 0L10 0Q15 5 10 10C5 12 2 8 0 0Z"
        assert builder.path_data(curves[:1], closed=False) == "M0 0L10 0"

    def test_full_circle_arc_is_split(self):
        arc = CircularArc((10, 0), (10, 0), (0, 0), 10.0, 0.0, 2 * math.pi, 2 * math.pi)
        d = SVGBuilder().path_data([arc])
        assert d.count("A") == 2
        assert "A10 10 0 0 1 -10 0" in d

    def test_line_shape_is_stroked(self):
        region = FittedRegion(Color(9, 9, 9), [Path(primitive=LineShape((0, 5), (50, 5), 3.0), geometric=True)])
        root = parse(SVGBuilder().build([region], 50, 10))
        line = next(el for el in root.iter() if el.tag.endswith("line"))
        assert line.get("stroke") == "#090909"
        assert line.get("stroke-width") == "3"

    def test_degenerate_paths_dropped(self):
        tiny = Path(curves=[Line((1, 1), (1.5, 1)), Line((1.5, 1), (1, 1.5)), Line((1, 1.5), (1, 1))])
        root = parse(SVGBuilder().build([FittedRegion(Color(1, 1, 1), [tiny])], 10, 10))
        assert "path" not in tags(root)


class TestStyles:
    """Draw styles, gap fillers and grouping."""

    def test_stroke_shapes_uses_region_color(self):
        builder = SVGBuilder(SVGConfig(draw_style="stroke_shapes"))
        root = parse(builder.build([rect_region(Color(255, 0, 0), 0, 0, 10, 10)], 10, 10))
        rect = next(el for el in root.iter() if el.tag.endswith("rect"))
        assert rect.get("fill") == "none"
        assert rect.get("stroke") == "#ff0000"

    def test_stroke_edges_is_black(self):
        builder = SVGBuilder(SVGConfig(draw_style="stroke_edges"))
        root = parse(builder.build([rect_region(Color(255, 0, 0), 0, 0, 10, 10)], 10, 10))
        rect = next(el for el in root.iter() if el.tag.endswith("rect"))
        assert rect.get("stroke") == "#000000"

    def test_gap_fillers_come_first(self):
        builder = SVGBuilder(SVGConfig(gap_filler=True))
        root = parse(builder.build([rect_region(Color(255, 0, 0), 0, 0, 10, 10)], 10, 10))
        children = [el.tag.split("}")[-1] for el in root]
        assert children.index("path") < children.index("rect")
        filler = next(el for el in root if el.tag.endswith("path"))
        assert filler.get("stroke") == "#ff0000"
        assert filler.get("fill") == "none"

    def test_group_by_color(self):
        regions = [rect_region(Color(255, 0, 0), 0, 0, 10, 10),
                   rect_region(Color(255, 0, 0), 20, 0, 10, 10),
                   rect_region(Color(0, 0, 255), 40, 0, 10, 10)]
        root = parse(SVGBuilder(SVGConfig(group_by="color")).build(regions, 50, 10))
        groups = [el for el in root if el.tag.endswith("g")]
        assert len(groups) == 1
        assert groups[0].get("id") == "color-ff0000"
        assert len(list(groups[0])) == 2

    def test_group_by_layer(self):
        regions = [rect_region(Color(255, 255, 255), 0, 0, 50, 50, layer=0),
                   rect_region(Color(255, 0, 0), 5, 5, 10, 10, parent=0, layer=1),
                   rect_region(Color(0, 0, 255), 25, 5, 10, 10, parent=0, layer=1)]
        root = parse(SVGBuilder(SVGConfig(group_by="layer")).build(regions, 50, 50))
        groups = [el for el in root if el.tag.endswith("g")]
        assert [g.get("id") for g in groups] == ["layer-1"]

    def test_group_by_parent(self):
        regions = [rect_region(Color(255, 255, 255), 0, 0, 50, 50),
                   rect_region(Color(255, 0, 0), 5, 5, 10, 10, parent=0),
                   rect_region(Color(0, 0, 255), 25, 5, 10, 10, parent=0)]
        root = parse(SVGBuilder(SVGConfig(group_by="parent")).build(regions, 50, 50))
        groups = [el for el in root if el.tag.endswith("g")]
        assert [g.get("id") for g in groups] == ["parent-0"]
