"""
Vectorsmith Configuration

One frozen dataclass per pipeline stage, plus the aggregate VectorizeOptions
that the Vectorizer consumes. Defaults are the empirically tuned constants of
the tracing pipeline; every value is validated on construction.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import InvalidInputError, require, require_choice, require_non_negative


# ============================================================================
# STAGE CONFIGS
# ============================================================================

@dataclass(frozen=True)
class EdgeConfig:
    """Sensitivity of the gradient-based edge detector."""
    edge_threshold: float = 10.0
    color_group_threshold: float = 15.0
    quantize_step: int = 4
    min_color_count: int = 10
    transparent_alpha: int = 10
    min_chain_length: int = 3

    def __post_init__(self):
        require_non_negative("edge_threshold", self.edge_threshold)
        require_non_negative("color_group_threshold", self.color_group_threshold)
        require(self.quantize_step >= 1, "quantize_step must be >= 1")
        require_non_negative("min_color_count", self.min_color_count)
        require(0 <= self.transparent_alpha <= 255, "transparent_alpha must be in [0, 255]")
        require(self.min_chain_length >= 1, "min_chain_length must be >= 1")


@dataclass(frozen=True)
class ColorConfig:
    """Core-color and region extraction."""
    anti_aliasing_threshold: float = 8.0
    min_core_color_pixels: int = 10
    min_region_area: int = 4
    transparent_alpha: int = 10

    def __post_init__(self):
        require_non_negative("anti_aliasing_threshold", self.anti_aliasing_threshold)
        require_non_negative("min_core_color_pixels", self.min_core_color_pixels)
        require_non_negative("min_region_area", self.min_region_area)
        require(0 <= self.transparent_alpha <= 255, "transparent_alpha must be in [0, 255]")


@dataclass(frozen=True)
class ContourConfig:
    """Marching-squares tracing of region masks."""
    simplify_tolerance: float = 1.0
    chaikin_iterations: int = 2
    chaikin_corner_angle: Optional[float] = 50.0
    alpha_refine: bool = True

    def __post_init__(self):
        require_non_negative("simplify_tolerance", self.simplify_tolerance)
        require_non_negative("chaikin_iterations", self.chaikin_iterations)
        if self.chaikin_corner_angle is not None:
            require(0 < self.chaikin_corner_angle <= 180,
                    "chaikin_corner_angle must be in (0, 180]")


@dataclass(frozen=True)
class BoundaryConfig:
    """Boundary assembly from edge chains."""
    min_contour_length: int = 4
    simplify_tolerance: float = 0.5
    smooth_iterations: int = 1
    sample_offset: float = 1.0

    def __post_init__(self):
        require(self.min_contour_length >= 2, "min_contour_length must be >= 2")
        require_non_negative("simplify_tolerance", self.simplify_tolerance)
        require_non_negative("smooth_iterations", self.smooth_iterations)
        require(self.sample_offset > 0, "sample_offset must be > 0")


@dataclass(frozen=True)
class FittingConfig:
    """Curve fitting tolerances (pixels) and corner threshold (degrees)."""
    line_tolerance: float = 1.0
    arc_tolerance: float = 0.5
    bezier_tolerance: float = 0.5
    corner_threshold: float = 30.0
    max_iterations: int = 4
    min_segment_length: int = 3
    max_subdivisions: int = 8
    allow_quadratic: bool = True
    allow_cubic: bool = True
    allow_circular_arc: bool = True
    allow_elliptical_arc: bool = True

    def __post_init__(self):
        require_non_negative("line_tolerance", self.line_tolerance)
        require_non_negative("arc_tolerance", self.arc_tolerance)
        require_non_negative("bezier_tolerance", self.bezier_tolerance)
        require(0 <= self.corner_threshold <= 180, "corner_threshold must be in [0, 180]")
        require_non_negative("max_iterations", self.max_iterations)
        require(self.min_segment_length >= 1, "min_segment_length must be >= 1")
        require_non_negative("max_subdivisions", self.max_subdivisions)


@dataclass(frozen=True)
class ShapeConfig:
    """Whole-contour primitive classification."""
    confidence_threshold: float = 0.92
    fit_tolerance: float = 0.02
    min_points: int = 8
    corner_angle: float = 25.0
    flatten: bool = False

    def __post_init__(self):
        require(0 <= self.confidence_threshold <= 1, "confidence_threshold must be in [0, 1]")
        require_non_negative("fit_tolerance", self.fit_tolerance)
        require(self.min_points >= 3, "min_points must be >= 3")
        require(0 < self.corner_angle < 180, "corner_angle must be in (0, 180)")


@dataclass(frozen=True)
class RefineConfig:
    """Continuity enforcement and fairing of fitted curves."""
    tangent_threshold: float = 0.1
    curvature_threshold: float = 0.05
    fairing_iterations: int = 3
    fairing_weight: float = 0.3
    corner_angle_threshold: float = 30.0
    corner_sharpness: float = 0.9
    enforce_g1: bool = True
    enforce_g2: bool = True
    fairing: bool = True
    optimize_corners: bool = True

    def __post_init__(self):
        require_non_negative("tangent_threshold", self.tangent_threshold)
        require_non_negative("curvature_threshold", self.curvature_threshold)
        require_non_negative("fairing_iterations", self.fairing_iterations)
        require(0 <= self.fairing_weight <= 1, "fairing_weight must be in [0, 1]")
        require(0 <= self.corner_angle_threshold <= 180,
                "corner_angle_threshold must be in [0, 180]")
        require(0 <= self.corner_sharpness <= 1, "corner_sharpness must be in [0, 1]")


SNAP_ANGLES = (0.0, 30.0, 45.0, 60.0, 90.0, 120.0, 135.0, 150.0, 180.0)


@dataclass(frozen=True)
class OptimizeConfig:
    """Geometry cleanup: angle snapping, straightening and alignment."""
    angle_snap_tolerance: float = 5.0
    line_snap_tolerance: float = 0.05
    hv_snap_tolerance: float = 3.0
    snap_corners: bool = True
    straighten_lines: bool = True
    snap_to_hv: bool = True
    align: bool = True
    cluster_threshold: float = 2.0
    min_cluster_size: int = 2
    align_snap_fraction: float = 0.01
    snap_angles: Tuple[float, ...] = SNAP_ANGLES

    def __post_init__(self):
        require_non_negative("angle_snap_tolerance", self.angle_snap_tolerance)
        require_non_negative("line_snap_tolerance", self.line_snap_tolerance)
        require_non_negative("hv_snap_tolerance", self.hv_snap_tolerance)
        require_non_negative("cluster_threshold", self.cluster_threshold)
        require(self.min_cluster_size >= 1, "min_cluster_size must be >= 1")
        require_non_negative("align_snap_fraction", self.align_snap_fraction)


@dataclass(frozen=True)
class GraphConfig:
    grid_size: float = 10.0
    shared_edge_tolerance: float = 2.0

    def __post_init__(self):
        require(self.grid_size > 0, "grid_size must be > 0")
        require_non_negative("shared_edge_tolerance", self.shared_edge_tolerance)


DISTANCE_METRICS = ("euclidean", "weighted", "ciede2000")


@dataclass(frozen=True)
class PaletteConfig:
    tolerance: float = 30.0
    algorithm: str = "weighted"
    max_iterations: int = 20
    seed: int = 42

    def __post_init__(self):
        require_non_negative("tolerance", self.tolerance)
        require_choice("algorithm", self.algorithm, DISTANCE_METRICS)
        require(self.max_iterations >= 1, "max_iterations must be >= 1")


DRAW_STYLES = ("fill_shapes", "stroke_shapes", "stroke_edges")
STACKING_MODES = ("stacked", "cutouts")
GROUP_MODES = ("none", "color", "parent", "layer")
ASPECT_POLICIES = ("stretch", "preserve_inset", "preserve_overflow")
UNITS = ("", "px", "pt", "pc", "mm", "cm", "in", "em", "ex", "%")


@dataclass(frozen=True)
class SVGConfig:
    """Rendering mode and output sizing of the SVG document."""
    draw_style: str = "fill_shapes"
    shape_stacking: str = "stacked"
    group_by: str = "none"
    gap_filler: bool = False
    gap_filler_width: float = 2.0
    stroke_width: float = 1.0
    stroke_color: Optional[str] = None
    scale: float = 1.0
    output_width: Optional[float] = None
    output_height: Optional[float] = None
    unit: str = ""
    aspect_ratio: str = "preserve_inset"
    precision: int = 2

    def __post_init__(self):
        require_choice("draw_style", self.draw_style, DRAW_STYLES)
        require_choice("shape_stacking", self.shape_stacking, STACKING_MODES)
        require_choice("group_by", self.group_by, GROUP_MODES)
        require_choice("aspect_ratio", self.aspect_ratio, ASPECT_POLICIES)
        require_choice("unit", self.unit, UNITS)
        require_non_negative("gap_filler_width", self.gap_filler_width)
        require_non_negative("stroke_width", self.stroke_width)
        require(self.scale > 0, f"scale must be > 0, got {self.scale!r}")
        for name in ("output_width", "output_height"):
            value = getattr(self, name)
            require(value is None or value > 0, f"{name} must be > 0, got {value!r}")
        require(0 <= self.precision <= 8, "precision must be in [0, 8]")


# ============================================================================
# QUALITY PRESETS
# ============================================================================

QUALITY_PRESETS: Dict[str, Dict[str, Any]] = {
    "draft": {
        "chaikin_iterations": 1,
        "simplify_tolerance": 2.0,
        "fairing_iterations": 1,
    },
    "normal": {
        "chaikin_iterations": 2,
        "simplify_tolerance": 1.0,
        "fairing_iterations": 2,
    },
    "high": {
        "chaikin_iterations": 3,
        "simplify_tolerance": 0.5,
        "fairing_iterations": 3,
        "tangent_threshold": 0.08,
        "curvature_threshold": 0.03,
    },
    "ultra": {
        "chaikin_iterations": 4,
        "simplify_tolerance": 0.3,
        "fairing_iterations": 5,
        "tangent_threshold": 0.05,
        "curvature_threshold": 0.02,
        "corner_sharpness": 0.95,
    },
}

METHODS = ("color", "edge")


# Flat option name -> (section, field). simplify_tolerance and
# chaikin_iterations address the contour tracer, the canonical pipeline.
OPTION_FIELDS: Dict[str, Tuple[str, str]] = {
    "edge_threshold": ("edges", "edge_threshold"),
    "color_group_threshold": ("edges", "color_group_threshold"),
    "anti_aliasing_threshold": ("colors", "anti_aliasing_threshold"),
    "min_core_color_pixels": ("colors", "min_core_color_pixels"),
    "min_region_area": ("colors", "min_region_area"),
    "simplify_tolerance": ("contours", "simplify_tolerance"),
    "chaikin_iterations": ("contours", "chaikin_iterations"),
    "chaikin_corner_angle": ("contours", "chaikin_corner_angle"),
    "alpha_refine": ("contours", "alpha_refine"),
    "min_contour_length": ("boundaries", "min_contour_length"),
    "smooth_iterations": ("boundaries", "smooth_iterations"),
    "line_tolerance": ("fitting", "line_tolerance"),
    "arc_tolerance": ("fitting", "arc_tolerance"),
    "bezier_tolerance": ("fitting", "bezier_tolerance"),
    "corner_threshold": ("fitting", "corner_threshold"),
    "max_iterations": ("fitting", "max_iterations"),
    "allow_quadratic": ("fitting", "allow_quadratic"),
    "allow_cubic": ("fitting", "allow_cubic"),
    "allow_circular_arc": ("fitting", "allow_circular_arc"),
    "allow_elliptical_arc": ("fitting", "allow_elliptical_arc"),
    "shape_confidence_threshold": ("shapes", "confidence_threshold"),
    "flatten_shapes": ("shapes", "flatten"),
    "tangent_threshold": ("refine", "tangent_threshold"),
    "curvature_threshold": ("refine", "curvature_threshold"),
    "fairing_iterations": ("refine", "fairing_iterations"),
    "fairing_weight": ("refine", "fairing_weight"),
    "corner_sharpness": ("refine", "corner_sharpness"),
    "snap_corners": ("optimize", "snap_corners"),
    "straighten_lines": ("optimize", "straighten_lines"),
    "snap_to_hv": ("optimize", "snap_to_hv"),
    "align": ("optimize", "align"),
    "grid_size": ("graph", "grid_size"),
    "shared_edge_tolerance": ("graph", "shared_edge_tolerance"),
    "palette_tolerance": ("palette_config", "tolerance"),
    "color_metric": ("palette_config", "algorithm"),
    "draw_style": ("svg", "draw_style"),
    "shape_stacking": ("svg", "shape_stacking"),
    "group_by": ("svg", "group_by"),
    "gap_filler": ("svg", "gap_filler"),
    "gap_filler_width": ("svg", "gap_filler_width"),
    "stroke_width": ("svg", "stroke_width"),
    "stroke_color": ("svg", "stroke_color"),
    "scale": ("svg", "scale"),
    "output_width": ("svg", "output_width"),
    "output_height": ("svg", "output_height"),
    "unit": ("svg", "unit"),
    "aspect_ratio": ("svg", "aspect_ratio"),
    "precision": ("svg", "precision"),
}

TOP_LEVEL_OPTIONS = ("method", "quality", "max_colors", "palette")


def snake_case(name: str) -> str:
    """Convert ``edgeThreshold`` style keys to ``edge_threshold``."""
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


@dataclass(frozen=True)
class VectorizeOptions:
    """Everything a single vectorization run needs."""
    method: str = "color"
    quality: Optional[str] = None
    max_colors: Optional[int] = None
    palette: Optional[Union[str, Sequence[str]]] = None
    edges: EdgeConfig = field(default_factory=EdgeConfig)
    colors: ColorConfig = field(default_factory=ColorConfig)
    contours: ContourConfig = field(default_factory=ContourConfig)
    boundaries: BoundaryConfig = field(default_factory=BoundaryConfig)
    fitting: FittingConfig = field(default_factory=FittingConfig)
    shapes: ShapeConfig = field(default_factory=ShapeConfig)
    refine: RefineConfig = field(default_factory=RefineConfig)
    optimize: OptimizeConfig = field(default_factory=OptimizeConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    palette_config: PaletteConfig = field(default_factory=PaletteConfig)
    svg: SVGConfig = field(default_factory=SVGConfig)
    preset_applied: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self):
        require_choice("method", self.method, METHODS)
        if self.max_colors is not None:
            require(self.max_colors >= 1, f"max_colors must be >= 1, got {self.max_colors!r}")
        if self.palette is not None:
            from .palette import parse_palette
            parse_palette(self.palette)
        if self.quality is not None:
            require_choice("quality", self.quality, tuple(QUALITY_PRESETS))
            if not self.preset_applied:
                self._fill_preset()

    def _fill_preset(self) -> None:
        """Apply the quality preset to every preset field still at its default."""
        values = dict(QUALITY_PRESETS[self.quality])
        values["smooth_iterations"] = max(1, values["chaikin_iterations"] - 1)
        sections: Dict[str, Dict[str, Any]] = {}
        for key, value in values.items():
            section, name = OPTION_FIELDS[key]
            current = getattr(self, section)
            if getattr(current, name) == getattr(type(current)(), name):
                sections.setdefault(section, {})[name] = value
        for section, changes in sections.items():
            object.__setattr__(self, section, dataclasses.replace(getattr(self, section), **changes))
        object.__setattr__(self, "preset_applied", True)

    @classmethod
    def from_kwargs(cls, **options) -> "VectorizeOptions":
        """
        Build options from the flat option surface.

        Keys may be snake_case or camelCase. A ``quality`` preset is applied
        first; explicit keys override it.

        Raises:
            InvalidInputError: for unknown keys or out-of-domain values.
        """
        return cls().replace(**options)

    def replace(self, **options) -> "VectorizeOptions":
        """
        Return a copy with flat options applied on top of this one.

        Stage values not named in ``options`` are kept. A ``quality`` given
        here sets its preset values, except for keys passed alongside it.
        """
        normalized = {snake_case(key): value for key, value in options.items()}
        unknown = set(normalized) - set(OPTION_FIELDS) - set(TOP_LEVEL_OPTIONS)
        if unknown:
            raise InvalidInputError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        merged: Dict[str, Any] = {}
        quality = normalized.get("quality")
        if quality is not None:
            require_choice("quality", quality, tuple(QUALITY_PRESETS))
            merged.update(QUALITY_PRESETS[quality])
        merged.update(normalized)
        # Preset smoothing also drives the chain-based tracer.
        if "chaikin_iterations" in merged and "smooth_iterations" not in merged:
            merged["smooth_iterations"] = max(1, merged["chaikin_iterations"] - 1)

        sections: Dict[str, Dict[str, Any]] = {}
        for key, value in merged.items():
            if key in OPTION_FIELDS:
                section, name = OPTION_FIELDS[key]
                sections.setdefault(section, {})[name] = value
        built = {section: dataclasses.replace(getattr(self, section), **values)
                 for section, values in sections.items()}

        top = {key: merged[key] for key in TOP_LEVEL_OPTIONS if key in merged}
        return dataclasses.replace(self, **top, **built, preset_applied=True)
