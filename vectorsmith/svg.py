"""
Vectorsmith SVG Output

Serializes fitted regions into an SVG 1.1 document with svgwrite.

Draw styles: filled shapes, stroked shapes or stroked edges. Regions with
holes become a single even-odd compound path; everything else keeps its
primitive element (rect, circle, ellipse, polygon, line) or a path. The
viewBox always matches the source raster; width/height follow the sizing
options.
"""

import logging
import math
import re
from io import StringIO
from typing import Dict, List, Optional, Sequence, Tuple

import svgwrite

from .color import Color
from .config import SVGConfig
from .curves import CircularArc, CubicBezier, Curve, EllipticalArc, Line, QuadraticBezier
from .model import FittedRegion, Path
from .shapes import Circle, Ellipse, LineShape, Polygon, Rect

logger = logging.getLogger(__name__)

FULL_TURN = 2 * math.pi - 1e-6


def format_number(value: float, precision: int = 2) -> str:
    """Fixed precision without trailing zeros: 100.0 -> '100', 2.50 -> '2.5'."""
    text = f"{round(float(value), precision):.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def _sanitize_id(text: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "-", str(text))


class SVGBuilder:
    def __init__(self, config: Optional[SVGConfig] = None):
        self.config = config or SVGConfig()

    def fmt(self, value: float) -> str:
        return format_number(value, self.config.precision)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def dimensions(self, width: int, height: int) -> Tuple[str, str, Optional[str]]:
        """
        Display width, height and preserveAspectRatio for the root element.

        Both explicit dimensions: the box is used as given and the aspect
        policy decides how the viewBox fits. One dimension: the other follows
        the raster's aspect ratio. Neither: the raster size times ``scale``.
        """
        cfg = self.config
        preserve = None
        if cfg.output_width is not None and cfg.output_height is not None:
            out_w, out_h = cfg.output_width, cfg.output_height
            preserve = {"stretch": "none",
                        "preserve_inset": "xMidYMid meet",
                        "preserve_overflow": "xMidYMid slice"}[cfg.aspect_ratio]
        elif cfg.output_width is not None:
            out_w = cfg.output_width
            out_h = cfg.output_width * height / width
        elif cfg.output_height is not None:
            out_h = cfg.output_height
            out_w = cfg.output_height * width / height
        else:
            out_w, out_h = width * cfg.scale, height * cfg.scale
        return self.fmt(out_w) + cfg.unit, self.fmt(out_h) + cfg.unit, preserve

    def build(self, regions: Sequence[FittedRegion], width: int, height: int) -> str:
        """Render ``regions`` in order (back to front) and return the XML text."""
        cfg = self.config
        out_w, out_h, preserve = self.dimensions(width, height)
        dwg = svgwrite.Drawing(size=(out_w, out_h), profile="full", debug=False)
        dwg["viewBox"] = f"0 0 {width} {height}"
        if preserve is not None:
            dwg["preserveAspectRatio"] = preserve

        if cfg.shape_stacking == "cutouts" and cfg.draw_style == "fill_shapes":
            logger.debug("Cutout stacking renders as stacked shapes")

        items = []
        if cfg.draw_style == "fill_shapes" and cfg.gap_filler:
            items.extend(self.gap_fillers(dwg, regions))
        for index, region in enumerate(regions):
            for element in self.region_elements(dwg, region):
                items.append((element, region, index))

        for element in self.group(dwg, items):
            dwg.add(element)

        buffer = StringIO()
        dwg.write(buffer)
        logger.debug("SVG: %d elements for %d regions", len(items), len(regions))
        return buffer.getvalue()

    def group(self, dwg, items):
        """Wrap elements into <g> groups per the grouping mode; singletons stay bare."""
        mode = self.config.group_by
        if mode == "none":
            return [element for element, _, _ in items]
        groups: Dict[str, List] = {}
        for element, region, _ in items:
            if mode == "color":
                key = "color-" + region.color.to_hex().lstrip("#")
            elif mode == "parent":
                key = "root" if region.parent is None else f"parent-{region.parent}"
            else:
                key = f"layer-{region.layer}"
            groups.setdefault(key, []).append(element)
        out = []
        for key, elements in groups.items():
            if len(elements) == 1:
                out.append(elements[0])
                continue
            g = dwg.g(id=_sanitize_id(key))
            for element in elements:
                g.add(element)
            out.append(g)
        return out

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _fill(self, color: Color) -> Dict[str, str]:
        attrs = {"fill": color.to_hex()}
        if color.a < 255:
            attrs["fill_opacity"] = self.fmt(color.a / 255.0)
        return attrs

    def _stroke(self, color: str, width: float) -> Dict[str, str]:
        return {
            "fill": "none",
            "stroke": color,
            "stroke_width": self.fmt(width),
            "stroke_linejoin": "round",
            "stroke_linecap": "round",
            "vector_effect": "non-scaling-stroke",
        }

    def region_elements(self, dwg, region: FittedRegion) -> List:
        cfg = self.config
        paths = [p for p in region.paths if not self.is_degenerate(p)]
        if not paths:
            return []
        if cfg.draw_style == "fill_shapes":
            fill = self._fill(region.color)
            if any(p.hole for p in paths):
                d = " ".join(self.shape_path_data(p) for p in paths)
                return [dwg.path(d=d, fill_rule="evenodd", **fill)]
            return [self.primitive_element(dwg, p, fill) if p.is_primitive
                    else dwg.path(d=self.path_data(p.curves, p.closed), **fill)
                    for p in paths]

        if cfg.draw_style == "stroke_shapes":
            color = cfg.stroke_color or region.color.to_hex()
        else:
            color = cfg.stroke_color or "#000000"
        stroke = self._stroke(color, cfg.stroke_width)
        return [self.primitive_element(dwg, p, stroke) if p.is_primitive
                else dwg.path(d=self.path_data(p.curves, p.closed), **stroke)
                for p in paths]

    def primitive_element(self, dwg, path: Path, attrs: Dict[str, str]):
        f = self.fmt
        shape = path.primitive
        if isinstance(shape, Circle):
            return dwg.circle(center=(f(shape.cx), f(shape.cy)), r=f(shape.r), **attrs)
        if isinstance(shape, Ellipse):
            element = dwg.ellipse(center=(f(shape.cx), f(shape.cy)), r=(f(shape.rx), f(shape.ry)), **attrs)
            if shape.rotation:
                element["transform"] = f"rotate({f(math.degrees(shape.rotation))} {f(shape.cx)} {f(shape.cy)})"
            return element
        if isinstance(shape, Rect):
            element = dwg.rect(insert=(f(shape.x), f(shape.y)), size=(f(shape.width), f(shape.height)), **attrs)
            if shape.rotation:
                cx, cy = shape.center
                element["transform"] = f"rotate({f(math.degrees(shape.rotation))} {f(cx)} {f(cy)})"
            return element
        if isinstance(shape, Polygon):
            return dwg.polygon(points=[(f(x), f(y)) for x, y in shape.points], **attrs)
        if isinstance(shape, LineShape):
            line_attrs = dict(attrs)
            if line_attrs.get("fill") != "none":
                line_attrs = {"stroke": attrs["fill"], "stroke_width": f(shape.width),
                              "stroke_linecap": "butt"}
                if "fill_opacity" in attrs:
                    line_attrs["stroke_opacity"] = attrs["fill_opacity"]
            return dwg.line(start=(f(shape.start[0]), f(shape.start[1])),
                            end=(f(shape.end[0]), f(shape.end[1])), **line_attrs)
        return dwg.path(d=self.path_data(path.segments(), path.closed), **attrs)

    def gap_fillers(self, dwg, regions: Sequence[FittedRegion]):
        """Same-color strokes under every outline to hide antialiasing seams between shapes."""
        items = []
        for index, region in enumerate(regions):
            for path in region.paths:
                if path.hole or self.is_degenerate(path):
                    continue
                attrs = self._stroke(region.color.to_hex(), self.config.gap_filler_width)
                attrs.pop("stroke_linecap")
                items.append((dwg.path(d=self.shape_path_data(path), **attrs), region, index))
        return items

    # ------------------------------------------------------------------
    # Path data
    # ------------------------------------------------------------------

    def shape_path_data(self, path: Path) -> str:
        if path.is_primitive and not isinstance(path.primitive, LineShape):
            return path.primitive.path_data(self.fmt)
        return self.path_data(path.segments(), path.closed)

    def path_data(self, curves: Sequence[Curve], closed: bool = True) -> str:
        """SVG path data for a contiguous curve list."""
        f = self.fmt
        parts = []
        current = None
        for curve in curves:
            start = (f(curve.start[0]), f(curve.start[1]))
            if start != current:
                parts.append(f"M{start[0]} {start[1]}")
            end = (f(curve.end[0]), f(curve.end[1]))
            if isinstance(curve, Line):
                parts.append(f"L{end[0]} {end[1]}")
            elif isinstance(curve, CubicBezier):
                parts.append(f"C{f(curve.control1[0])} {f(curve.control1[1])} "
                             f"{f(curve.control2[0])} {f(curve.control2[1])} {end[0]} {end[1]}")
            elif isinstance(curve, QuadraticBezier):
                parts.append(f"Q{f(curve.control[0])} {f(curve.control[1])} {end[0]} {end[1]}")
            elif isinstance(curve, (CircularArc, EllipticalArc)):
                parts.extend(self._arc_commands(curve))
            current = end
        if parts and closed:
            parts.append("Z")
        return "".join(parts)

    def _arc_commands(self, arc) -> List[str]:
        f = self.fmt
        if isinstance(arc, CircularArc):
            radii = f"{f(arc.radius)} {f(arc.radius)} 0"
        else:
            radii = f"{f(arc.rx)} {f(arc.ry)} {f(math.degrees(arc.rotation))}"
        sweep_flag = 1 if arc.sweep > 0 else 0
        if abs(arc.sweep) >= FULL_TURN:
            # A full turn has coincident endpoints, which SVG draws as nothing.
            mid = arc.point_at(0.5)
            return [f"A{radii} 0 {sweep_flag} {f(mid[0])} {f(mid[1])}",
                    f"A{radii} 0 {sweep_flag} {f(arc.end[0])} {f(arc.end[1])}"]
        large = 1 if arc.large_arc else 0
        return [f"A{radii} {large} {sweep_flag} {f(arc.end[0])} {f(arc.end[1])}"]

    @staticmethod
    def is_degenerate(path: Path) -> bool:
        bounds = path.bounds()
        return bounds.width < 1.0 and bounds.height < 1.0
