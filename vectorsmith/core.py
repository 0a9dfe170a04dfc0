"""
Vectorsmith Core Pipeline

Raster in, SVG out:

    pixels -> color regions (or edge chains) -> contours -> curve fitting
           -> shape classification -> refinement -> geometry optimization
           -> vector graph consistency -> palette snapping -> SVG

Usage:
    from vectorsmith import Vectorizer

    result = Vectorizer(quality="high").vectorize(pixels)
    open("out.svg", "w").write(result.svg)

Every call builds its own working state, so one Vectorizer can serve
several threads.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .color import Color
from .config import VectorizeOptions
from .edges import EdgeDetector
from .extraction import ColorExtraction, ColorExtractor
from .fitting import CurveFitter
from .graph import VectorGraph
from .model import FittedRegion, Path, VectorizeResult
from .optimize import GeometryOptimizer
from .palette import PaletteManager, parse_palette
from .raster import RasterImage, as_raster
from .refine import CurveRefiner
from .shapes import ShapeClassifier, flatten_primitive
from .svg import SVGBuilder
from .tracing import BoundaryTracer, Contour, ContourTracer

logger = logging.getLogger(__name__)


class Vectorizer:
    """
    Configured pipeline.

    Args:
        options: Prebuilt VectorizeOptions.
        **overrides: Flat options (snake_case or camelCase), applied on top
            of ``options`` or of the defaults.

    Raises:
        InvalidInputError: for unknown option keys or out-of-domain values.
    """

    def __init__(self, options: Optional[VectorizeOptions] = None, **overrides):
        if options is None:
            options = VectorizeOptions.from_kwargs(**overrides)
        elif overrides:
            options = options.replace(**overrides)
        self.options = options

        self.edge_detector = EdgeDetector(options.edges)
        self.color_extractor = ColorExtractor(options.colors)
        self.contour_tracer = ContourTracer(options.contours)
        self.boundary_tracer = BoundaryTracer(options.boundaries)
        self.fitter = CurveFitter(options.fitting)
        self.classifier = ShapeClassifier(options.shapes)
        self.refiner = CurveRefiner(options.refine)
        self.optimizer = GeometryOptimizer(options.optimize)
        self.palette_manager = PaletteManager(options.palette_config)
        self.svg_builder = SVGBuilder(options.svg)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def vectorize(self, image) -> VectorizeResult:
        """
        Trace ``image`` into an SVG document.

        Args:
            image: RasterImage, (H, W, 3|4) array or PIL image.

        Returns:
            VectorizeResult with the SVG text, the fitted regions in render
            order and the final colors.
        """
        image = as_raster(image)
        opts = self.options
        logger.info("Vectorizing %dx%d image (method=%s)", image.width, image.height, opts.method)

        if opts.method == "edge":
            regions = self._edge_regions(image)
        else:
            regions = self._color_regions(image)

        paths = [p for r in regions for p in r.paths]
        if opts.optimize.align and paths:
            self.optimizer.align(paths, image.width, image.height)

        regions, graph_stats = self._consistency_pass(regions)
        regions = self._apply_palette(regions)

        svg = self.svg_builder.build(regions, image.width, image.height)
        palette = list(dict.fromkeys(r.color for r in regions))
        stats = {
            "regions": len(regions),
            "paths": sum(len(r.paths) for r in regions),
            "primitives": sum(1 for r in regions for p in r.paths if p.is_primitive),
            "colors": len(palette),
        }
        stats.update(graph_stats)
        logger.info("Vectorized into %d regions, %d paths (%d primitives)",
                    stats["regions"], stats["paths"], stats["primitives"])
        return VectorizeResult(svg, image.width, image.height, regions, palette, stats)

    def to_svg(self, image) -> str:
        return self.vectorize(image).svg

    # ------------------------------------------------------------------
    # Tracing front ends
    # ------------------------------------------------------------------

    def _color_regions(self, image: RasterImage) -> List[FittedRegion]:
        extraction = self.color_extractor.extract(image)
        extraction = self._limit_colors(extraction)
        alpha = image.alpha if image.has_transparency else None

        regions = []
        for region in extraction.regions:
            contours = self.contour_tracer.trace_region(region, alpha=alpha)
            paths = [p for p in (self.fit_contour(c) for c in contours) if p is not None]
            if not any(not p.hole for p in paths):
                continue
            paths.sort(key=lambda p: p.hole)
            regions.append(FittedRegion(region.color, paths, source_area=region.pixel_count))
        logger.debug("Color pipeline: %d regions fitted from %d extracted",
                     len(regions), len(extraction.regions))
        return regions

    def _limit_colors(self, extraction: ColorExtraction) -> ColorExtraction:
        max_colors = self.options.max_colors
        if max_colors is None or len(extraction.colors) <= max_colors:
            return extraction
        reduced, mapping = self._reduce(extraction.colors, max_colors)
        return self.color_extractor.remap(extraction, reduced, mapping)

    def _reduce(self, colors: Sequence[Color], count: int) -> Tuple[List[Color], np.ndarray]:
        reduced = self.palette_manager.reduce(colors, count)
        mapping = np.array([self.palette_manager.find_nearest(c, reduced)[0] for c in colors], dtype=int)
        return reduced, mapping

    def _edge_regions(self, image: RasterImage) -> List[FittedRegion]:
        analysis = self.edge_detector.detect(image)
        by_color = self.boundary_tracer.trace(analysis)
        colors = list(analysis.colors)
        mapping = np.arange(len(colors))
        if self.options.max_colors is not None and len(colors) > self.options.max_colors:
            colors, mapping = self._reduce(colors, self.options.max_colors)

        grouped: Dict[int, List[Contour]] = {}
        for index, contours in by_color.items():
            grouped.setdefault(int(mapping[index]), []).extend(contours)

        regions = []
        for index in sorted(grouped):
            paths = [p for p in (self.fit_contour(c) for c in grouped[index]) if p is not None]
            if not paths:
                continue
            area = sum(analysis.counts[i] for i in np.nonzero(mapping == index)[0]
                       if i < len(analysis.counts))
            regions.append(FittedRegion(colors[index], paths, source_area=int(area)))
        logger.debug("Edge pipeline: %d chains -> %d regions", len(analysis.chains), len(regions))
        return regions

    # ------------------------------------------------------------------
    # Per-contour fitting
    # ------------------------------------------------------------------

    def fit_contour(self, contour: Contour) -> Optional[Path]:
        """
        Classify, fit, refine and optimize one contour.

        Returns:
            A Path, or None when the contour is too short to describe a shape.
        """
        points = contour.points
        if len(points) < (3 if contour.closed else 2):
            return None

        classification = None
        if contour.closed:
            classification = self.classifier.classify(points)
            if classification.is_geometric:
                if self.options.shapes.flatten:
                    curves = self.optimizer.optimize_path(
                        flatten_primitive(classification.primitive), True, True)
                    return Path(curves=curves, closed=True, hole=contour.hole,
                                geometric=True, classification=classification)
                return Path(primitive=classification.primitive, closed=True, hole=contour.hole,
                            geometric=True, classification=classification)

        curves = self.fitter.fit(points, closed=contour.closed)
        if not curves:
            return None
        curves = self.refiner.refine(curves, closed=contour.closed)
        curves = self.optimizer.optimize_path(curves, geometric=False, closed=contour.closed)
        return Path(curves=curves, closed=contour.closed, hole=contour.hole,
                    geometric=False, classification=classification)

    # ------------------------------------------------------------------
    # Whole-image passes
    # ------------------------------------------------------------------

    def _consistency_pass(self, regions: List[FittedRegion]):
        """
        Merge shared boundaries, derive containment and reorder regions back to front.

        Returns:
            (regions in render order, graph statistics)
        """
        graph = VectorGraph(self.options.graph.grid_size)
        owners: Dict[int, Tuple[int, Path]] = {}
        for ri, region in enumerate(regions):
            for path in region.paths:
                node_id = graph.add_shape(path.anchors(), color=region.color,
                                          pinned=path.is_primitive, hole=path.hole)
                owners[node_id] = (ri, path)

        shared = graph.build_shared_edges(self.options.graph.shared_edge_tolerance)
        graph.enforce_edge_consistency()
        for node_id, (_, path) in owners.items():
            node = graph.nodes[node_id]
            if not node.pinned:
                path.set_anchors(node.contour)

        contained = graph.build_containment_hierarchy()
        order: List[int] = []
        for node_id in graph.render_order():
            ri = owners[node_id][0]
            region = regions[ri]
            parent = graph.nodes[node_id].parent
            if ri not in order:
                order.append(ri)
                owner = owners[parent][0] if parent is not None else None
                region.parent = owner if owner != ri else None
                region.layer = graph.depth(node_id)
        order.extend(ri for ri in range(len(regions)) if ri not in order)

        index = {ri: pos for pos, ri in enumerate(order)}
        ordered = [regions[ri] for ri in order]
        for region in ordered:
            if region.parent is not None:
                region.parent = index[region.parent]
        return ordered, {"shared_edges": shared, "contained": contained}

    def _apply_palette(self, regions: List[FittedRegion]) -> List[FittedRegion]:
        if self.options.palette is None:
            return regions
        target = parse_palette(self.options.palette)
        snapped = 0
        for region in regions:
            result = self.palette_manager.snap(region.color, target)
            if result.matched:
                region.color = result.color
                snapped += 1
        logger.debug("Palette: %d of %d regions snapped", snapped, len(regions))
        return regions


def vectorize(image, options: Optional[VectorizeOptions] = None, **overrides) -> VectorizeResult:
    """One-shot convenience wrapper around Vectorizer."""
    return Vectorizer(options, **overrides).vectorize(image)
