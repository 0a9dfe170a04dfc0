"""
Vectorsmith Color Extraction

Exact-color region extraction for flat artwork.

Unique colors are ranked by pixel count. A color becomes a "core" color when
it is frequent enough and perceptually distinct from every core color already
accepted (first-seen-largest-wins). Anti-aliased in-between colors are folded
into their nearest core color, then each core color is split into 4-connected
regions.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .color import Color, lab_distance, rgb_to_lab
from .config import ColorConfig
from .geometry import BoundingBox
from .raster import as_raster

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Region:
    """A 4-connected set of pixels sharing one core color."""
    color: Color
    color_index: int
    pixels: np.ndarray  # (N, 2) integer (x, y)
    bounds: BoundingBox

    @property
    def pixel_count(self) -> int:
        return int(len(self.pixels))

    def mask(self, pad: int = 0) -> Tuple[np.ndarray, Tuple[int, int]]:
        """
        Local boolean mask covering the region's bounds.

        Returns:
            (mask, (origin_x, origin_y)) where origin is the image coordinate
            of mask[0, 0].
        """
        ox = int(self.bounds.x0) - pad
        oy = int(self.bounds.y0) - pad
        w = int(self.bounds.width) + 2 * pad
        h = int(self.bounds.height) + 2 * pad
        local = np.zeros((h, w), dtype=bool)
        local[self.pixels[:, 1] - oy, self.pixels[:, 0] - ox] = True
        return local, (ox, oy)


@dataclass
class ColorExtraction:
    colors: List[Color]
    counts: List[int]
    index_map: np.ndarray  # (H, W) core color index, -1 for transparent
    regions: List[Region]


class ColorExtractor:
    """Core-color detection and connected region extraction."""

    def __init__(self, config: Optional[ColorConfig] = None):
        self.config = config or ColorConfig()

    def extract(self, image) -> ColorExtraction:
        image = as_raster(image)
        opaque = image.alpha >= self.config.transparent_alpha
        h, w = opaque.shape
        index_map = np.full((h, w), -1, dtype=int)

        rgb = image.rgb[opaque].astype(np.int64)
        if len(rgb) == 0:
            logger.debug("Color extraction: image is fully transparent")
            return ColorExtraction([], [], index_map, [])

        keys = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
        uniq, first, inverse, counts = np.unique(
            keys, return_index=True, return_inverse=True, return_counts=True)
        uniq_rgb = np.stack([(uniq >> 16) & 255, (uniq >> 8) & 255, uniq & 255], axis=1)

        core_idx = self.find_core_colors(uniq_rgb, counts, first)
        core_rgb = uniq_rgb[core_idx]

        mapping = self.nearest_core(uniq_rgb, core_rgb)
        index_map[opaque] = mapping[inverse.ravel()]

        colors = [Color(*map(int, c)) for c in core_rgb]
        remapped_counts = np.bincount(mapping, weights=counts, minlength=len(colors))

        regions: List[Region] = []
        for k, color in enumerate(colors):
            regions.extend(self.extract_regions(index_map == k, color, k))

        logger.debug("Color extraction: %d unique colors, %d core colors, %d regions",
                     len(uniq), len(colors), len(regions))
        return ColorExtraction(colors, [int(c) for c in remapped_counts], index_map, regions)

    def find_core_colors(self, uniq_rgb: np.ndarray, counts: np.ndarray,
                         first_seen: np.ndarray) -> np.ndarray:
        """Indices (into uniq_rgb) of the accepted core colors, most frequent first."""
        cfg = self.config
        order = np.lexsort((first_seen, -counts))
        labs = rgb_to_lab(uniq_rgb.astype(float))

        accepted: List[int] = []
        for idx in order:
            if counts[idx] < cfg.min_core_color_pixels:
                break
            if all(lab_distance(labs[idx], labs[j]) >= cfg.anti_aliasing_threshold for j in accepted):
                accepted.append(int(idx))

        if not accepted:
            # Tiny images: keep the dominant color rather than emitting nothing.
            accepted.append(int(order[0]))
        return np.asarray(accepted, dtype=int)

    @staticmethod
    def nearest_core(uniq_rgb: np.ndarray, core_rgb: np.ndarray) -> np.ndarray:
        labs = rgb_to_lab(uniq_rgb.astype(float))
        core_labs = rgb_to_lab(core_rgb.astype(float))
        nearest = np.empty(len(labs), dtype=int)
        chunk = 1 << 15
        for start in range(0, len(labs), chunk):
            block = labs[start:start + chunk]
            dists = lab_distance(block[:, None, :], core_labs[None, :, :])
            nearest[start:start + chunk] = np.argmin(dists, axis=1)
        return nearest

    def extract_regions(self, mask: np.ndarray, color: Color, color_index: int) -> List[Region]:
        """4-connected components of ``mask`` at least min_region_area pixels large."""
        n_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
            mask.astype(np.uint8), connectivity=4)
        if n_labels <= 1:
            return []

        ys, xs = np.nonzero(labels)
        label_values = labels[ys, xs]
        order = np.argsort(label_values, kind="stable")
        xs, ys, label_values = xs[order], ys[order], label_values[order]
        boundaries = np.searchsorted(label_values, np.arange(1, n_labels + 1))

        regions = []
        for label in range(1, n_labels):
            area = int(stats[label, cv2.CC_STAT_AREA])
            if area < self.config.min_region_area:
                continue
            lo, hi = boundaries[label - 1], boundaries[label]
            pixels = np.stack([xs[lo:hi], ys[lo:hi]], axis=1).astype(int)
            left = int(stats[label, cv2.CC_STAT_LEFT])
            top = int(stats[label, cv2.CC_STAT_TOP])
            bounds = BoundingBox(left, top,
                                 left + int(stats[label, cv2.CC_STAT_WIDTH]),
                                 top + int(stats[label, cv2.CC_STAT_HEIGHT]))
            regions.append(Region(color, color_index, pixels, bounds))

        regions.sort(key=lambda r: -r.pixel_count)
        return regions

    def remap(self, extraction: ColorExtraction, colors: List[Color],
              mapping: np.ndarray) -> ColorExtraction:
        """
        Fold core colors onto a smaller color set and re-split regions.

        Args:
            extraction: Result of extract().
            colors: The new color set.
            mapping: For every old core color, its index into ``colors``.
        """
        mapping = np.asarray(mapping, dtype=int)
        index_map = np.where(extraction.index_map >= 0,
                             mapping[np.maximum(extraction.index_map, 0)], -1)
        counts = np.zeros(len(colors), dtype=int)
        for old, count in enumerate(extraction.counts):
            counts[mapping[old]] += count
        regions: List[Region] = []
        for k, color in enumerate(colors):
            regions.extend(self.extract_regions(index_map == k, color, k))
        logger.debug("Color remap: %d colors -> %d colors, %d regions",
                     len(extraction.colors), len(colors), len(regions))
        return ColorExtraction(list(colors), [int(c) for c in counts], index_map, regions)
