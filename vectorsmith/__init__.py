"""
Vectorsmith - Flat Artwork Vectorization

Vectorsmith traces flat-color raster artwork (logos, icons, illustrations)
into compact SVG: exact color regions, curve fitting with lines, arcs and
Beziers, geometric primitive detection, continuity refinement and shared
boundaries that line up between neighbouring shapes.
"""

from .color import Color
from .config import (
    BoundaryConfig,
    ColorConfig,
    ContourConfig,
    EdgeConfig,
    FittingConfig,
    GraphConfig,
    OptimizeConfig,
    PaletteConfig,
    QUALITY_PRESETS,
    RefineConfig,
    SVGConfig,
    ShapeConfig,
    VectorizeOptions,
)
from .core import Vectorizer, vectorize
from .curves import CircularArc, CubicBezier, EllipticalArc, Line, QuadraticBezier
from .edges import EdgeDetector
from .errors import InvalidInputError, VectorizerError
from .extraction import ColorExtractor
from .fitting import CurveFitter
from .graph import VectorGraph
from .model import FittedRegion, Path, VectorizeResult
from .optimize import GeometryOptimizer
from .palette import PALETTES, PaletteManager
from .raster import RasterImage
from .refine import CurveRefiner
from .shapes import Circle, Ellipse, LineShape, Polygon, Rect, ShapeClassifier
from .svg import SVGBuilder
from .tracing import BoundaryTracer, ContourTracer

__version__ = "0.1.0"

__all__ = [
    # Core
    'Vectorizer',
    'vectorize',
    'VectorizeOptions',
    'VectorizeResult',
    'RasterImage',
    'InvalidInputError',
    'VectorizerError',
    'QUALITY_PRESETS',
    # Stages
    'EdgeDetector',
    'ColorExtractor',
    'ContourTracer',
    'BoundaryTracer',
    'CurveFitter',
    'ShapeClassifier',
    'CurveRefiner',
    'GeometryOptimizer',
    'VectorGraph',
    'PaletteManager',
    'SVGBuilder',
    'PALETTES',
    # Configuration
    'EdgeConfig',
    'ColorConfig',
    'ContourConfig',
    'BoundaryConfig',
    'FittingConfig',
    'ShapeConfig',
    'RefineConfig',
    'OptimizeConfig',
    'GraphConfig',
    'PaletteConfig',
    'SVGConfig',
    # Model
    'Color',
    'Path',
    'FittedRegion',
    'Line',
    'QuadraticBezier',
    'CubicBezier',
    'CircularArc',
    'EllipticalArc',
    'Circle',
    'Ellipse',
    'Rect',
    'Polygon',
    'LineShape',
]
