"""
Vectorsmith Tracing

Two tracers with one output contract, a list of Contour polylines:

- ContourTracer walks the cracks between set and unset pixels of a region
  mask (marching squares on the pixel-corner lattice), so adjacent regions
  trace bit-identical boundaries before simplification.
- BoundaryTracer assembles polylines from EdgeDetector chains and assigns
  each chain to every color it borders.

Both simplify with Douglas-Peucker and smooth with Chaikin corner cutting.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np

from .color import Color
from .config import BoundaryConfig, ContourConfig
from .edges import EdgeAnalysis, EdgeChain
from .extraction import Region
from .geometry import (as_points, chaikin, douglas_peucker, remove_collinear,
                       remove_duplicates, signed_area, simplify_closed)

logger = logging.getLogger(__name__)

# Walk directions: 0 right, 1 down, 2 left, 3 up (image coordinates, y down).
DX = (1, 0, -1, 0)
DY = (0, 1, 0, -1)


@dataclass(eq=False)
class Contour:
    """Ordered sub-pixel polyline."""
    points: np.ndarray
    closed: bool = True
    hole: bool = False
    color: Optional[Color] = None

    def __len__(self) -> int:
        return len(self.points)


# ============================================================================
# MARCHING SQUARES
# ============================================================================

def _edge_pixels(x: int, y: int, d: int):
    """(right-hand pixel, left-hand pixel) of the crack leaving corner (x, y) in direction d."""
    if d == 0:
        return (x, y), (x, y - 1)
    if d == 1:
        return (x - 1, y), (x, y)
    if d == 2:
        return (x - 1, y - 1), (x - 1, y)
    return (x, y - 1), (x - 1, y - 1)


def trace_mask(mask: np.ndarray, max_steps: Optional[int] = None) -> List[np.ndarray]:
    """
    Trace every boundary loop of a binary mask.

    Loops start at each set pixel whose left neighbour is unset and whose left
    crack has not been walked yet. The walk keeps set pixels on its right and
    prefers turning right, then straight, then left, then reversing. Outer
    boundaries come out clockwise on screen, holes counter-clockwise.

    Returns:
        Loops of integer pixel-corner coordinates with collinear points removed.
    """
    mask = np.asarray(mask, dtype=bool)
    h, w = mask.shape
    padded = np.zeros((h + 2, w + 2), dtype=bool)
    padded[1:-1, 1:-1] = mask
    if max_steps is None:
        max_steps = 4 * w * h

    def is_set(px: int, py: int) -> bool:
        return bool(padded[py + 1, px + 1])

    def is_boundary(x: int, y: int, d: int) -> bool:
        right, left = _edge_pixels(x, y, d)
        return is_set(*right) and not is_set(*left)

    starts = mask.copy()
    starts[:, 1:] &= ~mask[:, :-1]
    visited = np.zeros((h, w), dtype=bool)

    loops = []
    for py, px in zip(*np.nonzero(starts)):
        if visited[py, px]:
            continue
        x, y, d = int(px), int(py) + 1, 3
        start = (x, y, d)
        points = []
        for _ in range(max_steps):
            if d == 3:
                visited[y - 1, x] = True
            points.append((x, y))
            x += DX[d]
            y += DY[d]
            for nd in ((d + 1) % 4, d, (d + 3) % 4, (d + 2) % 4):
                if is_boundary(x, y, nd):
                    d = nd
                    break
            if (x, y, d) == start:
                break
        else:
            logger.debug("Contour walk hit the %d step ceiling at (%d, %d)", max_steps, px, py)
        loops.append(remove_collinear(np.asarray(points, dtype=float), closed=True))
    return loops


def refine_with_alpha(points: np.ndarray, alpha: np.ndarray, origin=(0, 0)) -> np.ndarray:
    """
    Nudge lattice points along the local alpha gradient.

    Each point sits on a pixel corner; the mean alpha of the four surrounding
    pixels says how much of the corner is covered. Points move toward the
    opaque side when coverage is below one half and away when above, at most
    half a pixel. Corners surrounded only by fully opaque or fully transparent
    pixels stay put.
    """
    pts = as_points(points).copy()
    if len(pts) == 0:
        return pts
    h, w = alpha.shape
    a = alpha.astype(float) / 255.0
    padded = np.zeros((h + 2, w + 2))
    padded[1:-1, 1:-1] = a

    cx = pts[:, 0].astype(int) - origin[0]
    cy = pts[:, 1].astype(int) - origin[1]
    cx = np.clip(cx, 0, w)
    cy = np.clip(cy, 0, h)
    nw = padded[cy, cx]
    ne = padded[cy, cx + 1]
    sw = padded[cy + 1, cx]
    se = padded[cy + 1, cx + 1]

    gx = (ne + se - nw - sw) / 2.0
    gy = (sw + se - nw - ne) / 2.0
    norm = np.hypot(gx, gy)
    coverage = (nw + ne + sw + se) / 4.0
    shift = np.clip(0.5 - coverage, -0.5, 0.5)
    corners = np.stack([nw, ne, sw, se])
    partial = ((corners > 0.0) & (corners < 1.0)).any(axis=0)
    moving = (norm > 1e-6) & partial
    pts[moving, 0] += shift[moving] * gx[moving] / norm[moving]
    pts[moving, 1] += shift[moving] * gy[moving] / norm[moving]
    return pts


class ContourTracer:
    """Region mask to simplified, smoothed closed contours."""

    def __init__(self, config: Optional[ContourConfig] = None):
        self.config = config or ContourConfig()

    def trace_region(self, region: Region, alpha: Optional[np.ndarray] = None) -> List[Contour]:
        """
        Trace a region's outer boundary and holes.

        Args:
            region: Region from ColorExtractor.
            alpha: Full-image alpha channel; enables sub-pixel refinement when
                it has translucent pixels.
        """
        local, (ox, oy) = region.mask()
        contours = self.trace(local, alpha=alpha, origin=(ox, oy))
        for contour in contours:
            contour.color = region.color
        return contours

    def trace(self, mask: np.ndarray, alpha: Optional[np.ndarray] = None, origin=(0, 0)) -> List[Contour]:
        cfg = self.config
        use_alpha = cfg.alpha_refine and alpha is not None and bool((alpha < 255).any())
        contours = []
        for loop in trace_mask(mask):
            pts = loop + np.asarray(origin, dtype=float)
            hole = signed_area(pts) < 0
            if use_alpha:
                pts = refine_with_alpha(pts, alpha)
            pts = self.process(pts)
            if len(pts) < 3:
                continue
            contours.append(Contour(pts, closed=True, hole=hole))
        logger.debug("Traced %d contours", len(contours))
        return contours

    def process(self, points) -> np.ndarray:
        """Douglas-Peucker then Chaikin on a closed loop."""
        cfg = self.config
        pts = simplify_closed(points, cfg.simplify_tolerance)
        pts = remove_duplicates(pts, closed=True)
        if len(pts) >= 3 and cfg.chaikin_iterations > 0:
            pts = chaikin(pts, cfg.chaikin_iterations, closed=True,
                          corner_angle=cfg.chaikin_corner_angle)
        return remove_duplicates(pts, closed=True)


# ============================================================================
# BOUNDARY ASSEMBLY FROM EDGE CHAINS
# ============================================================================

class BoundaryTracer:
    """Edge chains to per-color polylines."""

    def __init__(self, config: Optional[BoundaryConfig] = None):
        self.config = config or BoundaryConfig()

    def trace(self, analysis: EdgeAnalysis) -> Dict[int, List[Contour]]:
        """
        Assign every chain to the colors it borders.

        Returns:
            Mapping of color index to contours; a chain bordering two colors
            appears under both.
        """
        by_color: Dict[int, List[Contour]] = {}
        for chain in analysis.chains:
            if len(chain) < self.config.min_contour_length:
                continue
            points = self.process(chain)
            if len(points) < max(2, min(3, self.config.min_contour_length)):
                continue
            for index in sorted(self.find_bordering_colors(chain, analysis.color_map)):
                color = analysis.colors[index] if index < len(analysis.colors) else None
                by_color.setdefault(index, []).append(
                    Contour(points.copy(), closed=chain.closed, color=color))
        logger.debug("Boundary tracing: %d chains -> %d colors",
                     len(analysis.chains), len(by_color))
        return by_color

    def find_bordering_colors(self, chain: EdgeChain, color_map: np.ndarray) -> Set[int]:
        """Sample the color map on both sides of the chain, perpendicular to it."""
        pts = chain.points
        n = len(pts)
        h, w = color_map.shape
        offset = self.config.sample_offset
        step = max(1, n // 20)
        found: Set[int] = set()
        for i in range(0, n, step):
            tangent = pts[min(i + 2, n - 1)] - pts[max(i - 2, 0)]
            length = float(np.hypot(tangent[0], tangent[1]))
            if length < 1e-9:
                px = chain.pixels[i]
                normal = np.array([np.cos(px.direction), np.sin(px.direction)])
            else:
                normal = np.array([-tangent[1], tangent[0]]) / length
            for sign in (-1.0, 1.0):
                sx, sy = pts[i] + sign * offset * normal
                ix, iy = int(np.floor(sx)), int(np.floor(sy))
                if 0 <= ix < w and 0 <= iy < h and color_map[iy, ix] >= 0:
                    found.add(int(color_map[iy, ix]))
        return found

    def process(self, chain: EdgeChain) -> np.ndarray:
        cfg = self.config
        pts = remove_duplicates(chain.points, closed=chain.closed)
        if chain.closed and len(pts) >= 4:
            pts = simplify_closed(pts, cfg.simplify_tolerance)
        else:
            pts = douglas_peucker(pts, cfg.simplify_tolerance)
        if len(pts) >= 3 and cfg.smooth_iterations > 0:
            pts = chaikin(pts, cfg.smooth_iterations, closed=chain.closed)
        return remove_duplicates(pts, closed=chain.closed)
