"""
Vectorsmith Result Model

Path is one closed (or open) boundary: either a list of fitted curves or a
single geometric primitive. FittedRegion groups the paths traced for one
color region. VectorizeResult is what a pipeline run returns.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .color import Color
from .curves import Curve, curve_kinds, sample_curves
from .geometry import BoundingBox, as_points, signed_area
from .shapes import Classification, GeometricPrimitive


@dataclass(eq=False)
class Path:
    curves: List[Curve] = field(default_factory=list)
    primitive: Optional[GeometricPrimitive] = None
    closed: bool = True
    hole: bool = False
    geometric: bool = False
    classification: Optional[Classification] = None

    @property
    def is_primitive(self) -> bool:
        return self.primitive is not None

    def segments(self) -> List[Curve]:
        """Curves describing the path, flattening a primitive on demand."""
        if self.primitive is not None:
            return self.primitive.to_curves()
        return list(self.curves)

    def anchors(self) -> np.ndarray:
        """Junction points: the start of every segment, plus the final end on open paths."""
        segments = self.segments()
        if not segments:
            return np.zeros((0, 2))
        points = [s.start for s in segments]
        if not self.closed:
            points.append(segments[-1].end)
        return as_points(points)

    def set_anchors(self, points) -> None:
        """
        Move the junction points, dragging each curve's handles along.

        Primitives are exact and ignore the update.
        """
        if self.primitive is not None or not self.curves:
            return
        pts = as_points(points)
        n = len(self.curves)
        expected = n if self.closed else n + 1
        if len(pts) != expected:
            raise ValueError(f"expected {expected} anchors, got {len(pts)}")
        updated = []
        for i, curve in enumerate(self.curves):
            end = pts[(i + 1) % n] if self.closed else pts[i + 1]
            updated.append(curve.moved(pts[i], end))
        self.curves = updated

    def sample(self, per_curve: int = 8) -> np.ndarray:
        if self.primitive is not None:
            return self.primitive.sample(max(16, per_curve * 4))
        return sample_curves(self.curves, per_curve)

    def bounds(self) -> BoundingBox:
        if self.primitive is not None:
            return self.primitive.bounds()
        return BoundingBox.of(self.sample())

    def area(self) -> float:
        return abs(signed_area(self.sample()))

    @property
    def kind(self) -> str:
        return self.primitive.kind if self.primitive is not None else "path"

    def describe(self) -> Dict:
        info = {"kind": self.kind, "closed": self.closed, "hole": self.hole,
                "geometric": self.geometric}
        if self.primitive is None:
            info["curves"] = curve_kinds(self.curves)
        if self.classification is not None:
            info["confidence"] = round(self.classification.confidence, 4)
        return info


@dataclass(eq=False)
class FittedRegion:
    color: Color
    paths: List[Path] = field(default_factory=list)
    parent: Optional[int] = None
    source_area: int = 0
    layer: int = 0

    @property
    def outer(self) -> Optional[Path]:
        for path in self.paths:
            if not path.hole:
                return path
        return None

    @property
    def holes(self) -> List[Path]:
        return [p for p in self.paths if p.hole]

    def bounds(self) -> BoundingBox:
        outer = self.outer
        if outer is None:
            return BoundingBox(0.0, 0.0, 0.0, 0.0)
        return outer.bounds()


@dataclass
class VectorizeResult:
    svg: str
    width: int
    height: int
    regions: List[FittedRegion]
    palette: List[Color]
    stats: Dict[str, int] = field(default_factory=dict)

    def shape_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for region in self.regions:
            for path in region.paths:
                counts[path.kind] = counts.get(path.kind, 0) + 1
        return counts

    def save(self, path) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(self.svg)
