"""
Vectorsmith Edge Detection

Gradient analysis in LAB space with sub-pixel edge localisation.

For every opaque pixel the gradient compares perceptual distance to the
left/right and top/bottom neighbours; transparent neighbours count as a
maximal edge. Edge pixels are located to sub-pixel precision by sampling the
colors on both sides along the gradient and placing the boundary nearer to the
side the pixel resembles less. Connected edge pixels become ordered chains.
"""

import heapq
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from .color import Color, lab_distance, rgb_to_lab
from .config import EdgeConfig
from .raster import RasterImage, as_raster

logger = logging.getLogger(__name__)

# Distance assigned to a transparent neighbour.
TRANSPARENT_DISTANCE = 255.0

CHUNK_SIZE = 1 << 16

# 4-neighbours first so walks prefer straight steps.
NEIGHBORS_8 = ((1, 0), (0, 1), (-1, 0), (0, -1), (1, 1), (-1, 1), (-1, -1), (1, -1))


@dataclass
class EdgePixel:
    """Integer pixel with its sub-pixel boundary position and gradient."""
    x: int
    y: int
    sub_x: float
    sub_y: float
    magnitude: float
    direction: float


@dataclass
class EdgeChain:
    """Ordered 8-connected run of edge pixels."""
    pixels: List[EdgePixel]
    closed: bool = False

    def __len__(self) -> int:
        return len(self.pixels)

    @property
    def points(self) -> np.ndarray:
        return np.array([(p.sub_x, p.sub_y) for p in self.pixels], dtype=float).reshape(-1, 2)


@dataclass
class EdgeAnalysis:
    """Output of EdgeDetector.detect."""
    colors: List[Color]
    color_map: np.ndarray  # (H, W) index into colors, -1 where transparent/unassigned
    chains: List[EdgeChain]
    magnitude: np.ndarray
    direction: np.ndarray
    edge_mask: np.ndarray
    counts: List[int] = field(default_factory=list)

    @property
    def width(self) -> int:
        return int(self.color_map.shape[1])

    @property
    def height(self) -> int:
        return int(self.color_map.shape[0])


class EdgeDetector:
    """Detects sub-pixel edges, distinct colors and edge chains."""

    def __init__(self, config: Optional[EdgeConfig] = None):
        self.config = config or EdgeConfig()

    def detect(self, image) -> EdgeAnalysis:
        """
        Analyse an image.

        Never fails: an image without edges yields an empty chain list.

        Args:
            image: RasterImage or anything as_raster accepts.

        Returns:
            EdgeAnalysis with colors, per-pixel color map and chains.
        """
        image = as_raster(image)
        lab = rgb_to_lab(image.rgb)
        opaque = image.alpha >= self.config.transparent_alpha

        magnitude, direction = self.compute_gradients(lab, opaque)
        edge_mask = opaque & (magnitude >= self.config.edge_threshold)

        colors, counts = self.extract_colors(image, magnitude, opaque)
        color_map = self.build_color_map(lab, opaque, colors)

        sub_x, sub_y = self.subpixel_positions(lab, opaque, direction, edge_mask)
        chains = self.trace_chains(edge_mask, sub_x, sub_y, magnitude, direction)

        logger.debug("Edge detection: %d edge pixels, %d colors, %d chains",
                     int(edge_mask.sum()), len(colors), len(chains))
        return EdgeAnalysis(colors, color_map, chains, magnitude, direction, edge_mask, counts)

    # ------------------------------------------------------------------
    # Gradients
    # ------------------------------------------------------------------

    def compute_gradients(self, lab: np.ndarray, opaque: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Per-pixel gradient magnitude and direction.

        Magnitude is hypot(max horizontal distance, max vertical distance).
        Direction points from the side the pixel matches toward the side it
        differs from; for symmetric cases it falls back to the unsigned angle.
        """
        h, w = opaque.shape

        def neighbour_distance(dx: int, dy: int) -> np.ndarray:
            dist = np.zeros((h, w), dtype=float)
            ys = slice(max(0, -dy), h - max(0, dy))
            xs = slice(max(0, -dx), w - max(0, dx))
            ny = slice(max(0, dy), h - max(0, -dy))
            nx = slice(max(0, dx), w - max(0, -dx))
            d = lab_distance(lab[ys, xs], lab[ny, nx])
            d = np.where(opaque[ny, nx], d, TRANSPARENT_DISTANCE)
            dist[ys, xs] = d
            return dist

        d_left = neighbour_distance(-1, 0)
        d_right = neighbour_distance(1, 0)
        d_up = neighbour_distance(0, -1)
        d_down = neighbour_distance(0, 1)

        gx = np.maximum(d_left, d_right)
        gy = np.maximum(d_up, d_down)
        magnitude = np.hypot(gx, gy)
        magnitude[~opaque] = 0.0

        sx = d_right - d_left
        sy = d_down - d_up
        symmetric = (np.abs(sx) < 1e-9) & (np.abs(sy) < 1e-9)
        direction = np.where(symmetric, np.arctan2(gy, gx), np.arctan2(sy, sx))
        return magnitude, direction

    def subpixel_positions(self, lab: np.ndarray, opaque: np.ndarray,
                           direction: np.ndarray, edge_mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Sub-pixel boundary coordinates for every edge pixel (NaN elsewhere)."""
        h, w = edge_mask.shape
        sub_x = np.full((h, w), np.nan)
        sub_y = np.full((h, w), np.nan)
        ys, xs = np.nonzero(edge_mask)
        if len(xs) == 0:
            return sub_x, sub_y

        dx = np.cos(direction[ys, xs])
        dy = np.sin(direction[ys, xs])
        bx = np.clip(np.floor(xs - dx + 0.5).astype(int), 0, w - 1)
        by = np.clip(np.floor(ys - dy + 0.5).astype(int), 0, h - 1)
        ax = np.clip(np.floor(xs + dx + 0.5).astype(int), 0, w - 1)
        ay = np.clip(np.floor(ys + dy + 0.5).astype(int), 0, h - 1)

        here = lab[ys, xs]
        d_before = np.where(opaque[by, bx], lab_distance(here, lab[by, bx]), TRANSPARENT_DISTANCE)
        d_after = np.where(opaque[ay, ax], lab_distance(here, lab[ay, ax]), TRANSPARENT_DISTANCE)
        total = d_before + d_after
        ratio = np.divide(d_before, total, out=np.full_like(total, 0.5), where=total > 1e-9)
        offset = 0.5 - ratio

        sub_x[ys, xs] = xs + 0.5 + offset * dx
        sub_y[ys, xs] = ys + 0.5 + offset * dy
        return sub_x, sub_y

    # ------------------------------------------------------------------
    # Colors
    # ------------------------------------------------------------------

    def extract_colors(self, image: RasterImage, magnitude: np.ndarray,
                       opaque: np.ndarray) -> Tuple[List[Color], List[int]]:
        """
        Distinct colors of the non-edge pixels.

        Colors are quantised, rare buckets dropped, and buckets closer than
        color_group_threshold in LAB merged by count-weighted average.
        """
        cfg = self.config
        interior = opaque & (magnitude < cfg.edge_threshold * 0.5)
        rgb = image.rgb[interior].astype(float)
        if len(rgb) == 0:
            return [], []

        step = cfg.quantize_step
        quantized = np.clip(np.round(rgb / step) * step, 0, 255).astype(int)
        uniq, counts = np.unique(quantized, axis=0, return_counts=True)
        keep = counts >= cfg.min_color_count
        uniq, counts = uniq[keep], counts[keep]
        if len(uniq) == 0:
            return [], []

        order = np.argsort(-counts, kind="stable")
        uniq, counts = uniq[order], counts[order]
        labs = rgb_to_lab(uniq)

        groups: List[Dict] = []
        for rgb_value, lab_value, count in zip(uniq, labs, counts):
            for group in groups:
                if lab_distance(group["lab"], lab_value) < cfg.color_group_threshold:
                    total = group["count"] + count
                    group["rgb"] = (group["rgb"] * group["count"] + rgb_value * count) / total
                    group["count"] = total
                    break
            else:
                groups.append({"rgb": rgb_value.astype(float), "lab": lab_value, "count": int(count)})

        groups.sort(key=lambda g: -g["count"])
        colors = [Color.from_sequence(g["rgb"]) for g in groups]
        return colors, [int(g["count"]) for g in groups]

    def build_color_map(self, lab: np.ndarray, opaque: np.ndarray, colors: List[Color]) -> np.ndarray:
        """Assign every opaque pixel to its nearest color in LAB; -1 elsewhere."""
        h, w = opaque.shape
        color_map = np.full((h, w), -1, dtype=int)
        if not colors:
            return color_map
        palette = rgb_to_lab(np.array([c.rgb for c in colors], dtype=float))
        pixels = lab[opaque]
        nearest = np.empty(len(pixels), dtype=int)
        for start in range(0, len(pixels), CHUNK_SIZE):
            block = pixels[start:start + CHUNK_SIZE]
            dists = lab_distance(block[:, None, :], palette[None, :, :])
            nearest[start:start + CHUNK_SIZE] = np.argmin(dists, axis=1)
        color_map[opaque] = nearest
        return color_map

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def trace_chains(self, edge_mask: np.ndarray, sub_x: np.ndarray, sub_y: np.ndarray,
                     magnitude: np.ndarray, direction: np.ndarray) -> List[EdgeChain]:
        """Group edge pixels by 8-connected BFS, then order each group into walks."""
        h, w = edge_mask.shape
        visited = np.zeros((h, w), dtype=bool)
        chains: List[EdgeChain] = []

        for y, x in zip(*np.nonzero(edge_mask)):
            if visited[y, x]:
                continue
            group: Set[Tuple[int, int]] = set()
            queue = deque([(int(x), int(y))])
            visited[y, x] = True
            while queue:
                cx, cy = queue.popleft()
                group.add((cx, cy))
                for dx, dy in NEIGHBORS_8:
                    nx, ny = cx + dx, cy + dy
                    if 0 <= nx < w and 0 <= ny < h and edge_mask[ny, nx] and not visited[ny, nx]:
                        visited[ny, nx] = True
                        queue.append((nx, ny))

            for walk in _order_group(group):
                if len(walk) < self.config.min_chain_length:
                    continue
                pixels = [EdgePixel(px, py, float(sub_x[py, px]), float(sub_y[py, px]),
                                    float(magnitude[py, px]), float(direction[py, px]))
                          for px, py in walk]
                first, last = walk[0], walk[-1]
                closed = (len(walk) >= 4 and abs(first[0] - last[0]) <= 1
                          and abs(first[1] - last[1]) <= 1)
                chains.append(EdgeChain(pixels, closed))

        return chains


def _order_group(group: Set[Tuple[int, int]]) -> List[List[Tuple[int, int]]]:
    """
    Split a connected pixel set into ordered walks.

    Each walk starts at the pixel with the fewest neighbours (a chain end when
    one exists) and greedily steps to unvisited neighbours. Neighbour counts
    are kept up to date as pixels are consumed; the heap holds stale entries
    that are skipped on pop.
    """
    remaining = set(group)
    counts = {p: sum((p[0] + dx, p[1] + dy) in remaining for dx, dy in NEIGHBORS_8)
              for p in remaining}
    heap = [(n, p[1], p[0]) for p, n in counts.items()]
    heapq.heapify(heap)

    def consume(p):
        remaining.discard(p)
        for dx, dy in NEIGHBORS_8:
            q = (p[0] + dx, p[1] + dy)
            if q in remaining:
                counts[q] -= 1
                heapq.heappush(heap, (counts[q], q[1], q[0]))

    walks = []
    while remaining:
        n, y, x = heapq.heappop(heap)
        start = (x, y)
        if start not in remaining or counts[start] != n:
            continue
        walk = [start]
        consume(start)
        current = start
        while True:
            step = None
            for dx, dy in NEIGHBORS_8:
                candidate = (current[0] + dx, current[1] + dy)
                if candidate in remaining:
                    step = candidate
                    break
            if step is None:
                break
            walk.append(step)
            consume(step)
            current = step
        walks.append(walk)
    return walks
