"""
Vectorsmith Color

RGB(A) color values and perceptual distances. LAB coordinates come from
scikit-image and are derived on demand; they are never stored on a Color.
"""

import colorsys
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from skimage import color as skimage_color

from .errors import InvalidInputError


@dataclass(frozen=True)
class Color:
    """An sRGB color with optional alpha, all channels 0..255."""
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self):
        for name in ("r", "g", "b", "a"):
            value = getattr(self, name)
            if not 0 <= int(value) <= 255:
                raise InvalidInputError(f"color channel {name}={value!r} outside 0..255")
            object.__setattr__(self, name, int(value))

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    @property
    def luminance(self) -> float:
        """Relative luminance on the 0..255 scale (Rec. 601 weights)."""
        return 0.299 * self.r + 0.587 * self.g + 0.114 * self.b

    @property
    def hue(self) -> float:
        """Hue in degrees, 0..360."""
        h, _, _ = colorsys.rgb_to_hsv(self.r / 255.0, self.g / 255.0, self.b / 255.0)
        return h * 360.0

    def lab(self) -> np.ndarray:
        return rgb_to_lab(np.array(self.rgb, dtype=float))[0]

    def to_hex(self) -> str:
        return '#{:02x}{:02x}{:02x}'.format(self.r, self.g, self.b)

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        """Parse ``#rgb``, ``#rrggbb`` or ``#rrggbbaa``."""
        text = value.strip().lstrip('#')
        if len(text) == 3:
            text = ''.join(ch * 2 for ch in text)
        if len(text) not in (6, 8):
            raise InvalidInputError(f"Invalid hex color: {value!r}")
        try:
            channels = [int(text[i:i + 2], 16) for i in range(0, len(text), 2)]
        except ValueError as exc:
            raise InvalidInputError(f"Invalid hex color: {value!r}") from exc
        return cls(*channels)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "Color":
        vals = [int(round(float(v))) for v in values]
        if len(vals) not in (3, 4):
            raise InvalidInputError(f"Color needs 3 or 4 channels, got {len(vals)}")
        return cls(*vals)

    def __str__(self) -> str:
        return self.to_hex()


def rgb_to_lab(rgb) -> np.ndarray:
    """
    Convert RGB values (0..255) of any leading shape to LAB.

    Args:
        rgb: Array whose last axis holds the R, G, B channels.

    Returns:
        Array of the same leading shape with L, a, b in the last axis.
    """
    arr = np.asarray(rgb, dtype=float)
    lead = arr.shape[:-1]
    flat = arr.reshape(-1, 1, 3) / 255.0
    lab = skimage_color.rgb2lab(np.clip(flat, 0.0, 1.0))
    return lab.reshape(lead + (3,)) if lead else lab.reshape(1, 3)


def lab_distance(lab1, lab2) -> np.ndarray:
    """CIE76 distance between broadcastable LAB arrays."""
    diff = np.asarray(lab1, dtype=float) - np.asarray(lab2, dtype=float)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def color_distance_lab(c1: Color, c2: Color) -> float:
    return float(lab_distance(c1.lab(), c2.lab()))
