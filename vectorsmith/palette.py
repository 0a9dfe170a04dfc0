"""
Vectorsmith Palette Management

Named palettes, tolerance-based snapping of extracted colors onto a
palette, and k-means reduction of a color set. Distances are on a roughly
0..255 scale for every metric so one tolerance works for all of them.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
from skimage.color import deltaE_ciede2000
from sklearn.cluster import kmeans_plusplus

from .color import Color, rgb_to_lab
from .config import PaletteConfig
from .errors import InvalidInputError

logger = logging.getLogger(__name__)


def _palette(*rgbs) -> List[Color]:
    return [Color(*rgb) for rgb in rgbs]


PALETTES: Dict[str, List[Color]] = {
    "web-safe": _palette(
        (0, 0, 0), (255, 255, 255), (255, 0, 0), (0, 255, 0), (0, 0, 255),
        (255, 255, 0), (255, 0, 255), (0, 255, 255), (128, 128, 128),
        (255, 165, 0), (128, 0, 128), (165, 42, 42)),
    "material": _palette(
        (244, 67, 54), (233, 30, 99), (156, 39, 176), (103, 58, 183), (63, 81, 181),
        (33, 150, 243), (3, 169, 244), (0, 188, 212), (0, 150, 136), (76, 175, 80),
        (139, 195, 74), (205, 220, 57), (255, 235, 59), (255, 193, 7), (255, 152, 0),
        (255, 87, 34), (121, 85, 72), (158, 158, 158), (96, 125, 139), (0, 0, 0),
        (255, 255, 255)),
    "grayscale": [Color(min(255, i * 16), min(255, i * 16), min(255, i * 16)) for i in range(17)],
    "pantone": _palette(
        (0, 82, 147), (155, 35, 53), (221, 65, 36), (136, 176, 75), (91, 94, 166),
        (187, 38, 73), (255, 190, 152)),
}

_RGB_RE = re.compile(
    r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$", re.IGNORECASE)

ColorLike = Union[Color, str, Sequence[float]]


def parse_color(value: ColorLike) -> Color:
    """
    Accept a Color, ``#rgb``/``#rrggbb``/``#rrggbbaa``, ``rgb(...)``/``rgba(...)``
    or an (r, g, b[, a]) sequence.
    """
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("#"):
            return Color.from_hex(text)
        match = _RGB_RE.match(text)
        if match:
            alpha = match.group(4)
            a = int(round(float(alpha) * 255)) if alpha is not None else 255
            return Color(int(match.group(1)), int(match.group(2)), int(match.group(3)), a)
        raise InvalidInputError(f"Cannot parse color {value!r}")
    try:
        return Color.from_sequence(value)
    except TypeError as exc:
        raise InvalidInputError(f"Cannot parse color {value!r}") from exc


def parse_palette(value: Union[str, Iterable[ColorLike]]) -> List[Color]:
    """A palette name, a comma separated color string, or an iterable of colors."""
    if isinstance(value, str):
        if value in PALETTES:
            return list(PALETTES[value])
        if value.strip().startswith("#") or value.strip().lower().startswith("rgb"):
            parts = [p.strip() for p in re.split(r",(?![^(]*\))", value) if p.strip()]
            return [parse_color(p) for p in parts]
        raise InvalidInputError(
            f"Unknown palette {value!r}; choose one of {', '.join(sorted(PALETTES))}")
    colors = [parse_color(c) for c in value]
    if not colors:
        raise InvalidInputError("palette is empty")
    return colors


def _rgb_array(colors: Iterable[ColorLike]) -> np.ndarray:
    return np.array([parse_color(c).rgb for c in colors], dtype=float).reshape(-1, 3)


@dataclass(frozen=True)
class SnapResult:
    color: Color
    distance: float
    matched: bool


class PaletteManager:
    """Palette lookup, snapping and reduction."""

    def __init__(self, config: Optional[PaletteConfig] = None):
        self.config = config or PaletteConfig()

    # ------------------------------------------------------------------
    # Distances
    # ------------------------------------------------------------------

    def pairwise(self, a, b) -> np.ndarray:
        """(N, M) distances between two RGB arrays under the configured metric."""
        a = np.asarray(a, dtype=float).reshape(-1, 3)
        b = np.asarray(b, dtype=float).reshape(-1, 3)
        algorithm = self.config.algorithm
        if algorithm == "euclidean":
            diff = a[:, None, :] - b[None, :, :]
            return np.sqrt(np.sum(diff * diff, axis=-1))
        if algorithm == "ciede2000":
            lab_a, lab_b = np.broadcast_arrays(rgb_to_lab(a)[:, None, :], rgb_to_lab(b)[None, :, :])
            return deltaE_ciede2000(lab_a, lab_b) * 2.55
        # Redmean weighting of the RGB differences.
        rmean = (a[:, None, 0] + b[None, :, 0]) / 2.0
        diff = a[:, None, :] - b[None, :, :]
        wr = 2.0 + rmean / 256.0
        wb = 2.0 + (255.0 - rmean) / 256.0
        return np.sqrt(wr * diff[..., 0] ** 2 + 4.0 * diff[..., 1] ** 2 + wb * diff[..., 2] ** 2)

    def distance(self, c1: ColorLike, c2: ColorLike) -> float:
        return float(self.pairwise(_rgb_array([c1]), _rgb_array([c2]))[0, 0])

    # ------------------------------------------------------------------
    # Snapping
    # ------------------------------------------------------------------

    def find_nearest(self, color: ColorLike, palette: Sequence[ColorLike]):
        """(index, distance) of the closest palette entry."""
        dists = self.pairwise(_rgb_array([color]), _rgb_array(palette))[0]
        idx = int(np.argmin(dists))
        return idx, float(dists[idx])

    def snap(self, color: ColorLike, palette: Sequence[ColorLike]) -> SnapResult:
        """
        Replace ``color`` by its nearest palette color when within tolerance.

        The source alpha is kept. An empty palette leaves the color as is.
        """
        color = parse_color(color)
        if not palette:
            return SnapResult(color, 0.0, False)
        targets = [parse_color(c) for c in palette]
        idx, dist = self.find_nearest(color, targets)
        if dist <= self.config.tolerance:
            t = targets[idx]
            return SnapResult(Color(t.r, t.g, t.b, color.a), dist, True)
        return SnapResult(color, dist, False)

    def snap_all(self, colors: Sequence[ColorLike], palette: Sequence[ColorLike]) -> List[Color]:
        return [self.snap(c, palette).color for c in colors]

    # ------------------------------------------------------------------
    # Reduction
    # ------------------------------------------------------------------

    def reduce(self, colors: Sequence[ColorLike], target_count: int) -> List[Color]:
        """
        K-means reduction to at most ``target_count`` colors.

        Seeds come from k-means++; assignment uses the configured metric and
        iteration stops once no centroid moves by more than 1.
        """
        if target_count < 1:
            raise InvalidInputError(f"target_count must be >= 1, got {target_count!r}")
        parsed = [parse_color(c) for c in colors]
        unique = list(dict.fromkeys(parsed))
        if len(unique) <= target_count:
            return unique

        data = _rgb_array(parsed)
        centroids, _ = kmeans_plusplus(data, n_clusters=target_count,
                                       random_state=self.config.seed)
        centroids = np.round(centroids)
        rounds = 0
        for rounds in range(1, self.config.max_iterations + 1):
            labels = np.argmin(self.pairwise(data, centroids), axis=1)
            updated = centroids.copy()
            for k in range(target_count):
                members = data[labels == k]
                if len(members):
                    updated[k] = np.round(members.mean(axis=0))
            shift = np.diag(self.pairwise(updated, centroids))
            moved = shift > 1.0
            centroids[moved] = updated[moved]
            if not moved.any():
                break
        logger.debug("Palette reduction: %d colors -> %d in %d rounds",
                     len(unique), target_count, rounds)
        reduced = [Color.from_sequence(c) for c in centroids]
        return list(dict.fromkeys(reduced))

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    @staticmethod
    def sort_by_luminance(palette: Sequence[ColorLike]) -> List[Color]:
        return sorted((parse_color(c) for c in palette), key=lambda c: c.luminance)

    @staticmethod
    def sort_by_hue(palette: Sequence[ColorLike]) -> List[Color]:
        return sorted((parse_color(c) for c in palette), key=lambda c: c.hue)
