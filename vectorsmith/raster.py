"""
Vectorsmith Raster

RasterImage is the pipeline's only input: a read-only RGBA pixel buffer.
Decoding image files is left to callers (the CLI uses Pillow).
"""

from typing import Union

import numpy as np
from PIL import Image

from .errors import InvalidInputError


class RasterImage:
    """Immutable width x height RGBA buffer."""

    def __init__(self, pixels: np.ndarray):
        if pixels is None:
            raise InvalidInputError("pixel buffer is None")
        arr = np.asarray(pixels)
        if arr.size == 0:
            raise InvalidInputError("pixel buffer is empty")
        if arr.ndim == 2:
            arr = np.repeat(arr[:, :, None], 3, axis=2)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise InvalidInputError(
                f"expected an (H, W, 3) or (H, W, 4) array, got shape {arr.shape}")
        if arr.shape[0] <= 0 or arr.shape[1] <= 0:
            raise InvalidInputError(f"invalid image size {arr.shape[1]}x{arr.shape[0]}")
        if arr.dtype != np.uint8:
            if np.issubdtype(arr.dtype, np.floating) and arr.max(initial=0) <= 1.0:
                arr = arr * 255.0
            arr = np.clip(np.round(arr), 0, 255).astype(np.uint8)
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        else:
            arr = arr.copy()
        arr.setflags(write=False)
        self._pixels = arr

    @classmethod
    def from_buffer(cls, data: Union[bytes, bytearray, memoryview, np.ndarray],
                    width: int, height: int) -> "RasterImage":
        """
        Wrap a flat RGBA buffer with explicit dimensions.

        Raises:
            InvalidInputError: for non-positive dimensions or a length mismatch.
        """
        if width is None or height is None or width <= 0 or height <= 0:
            raise InvalidInputError(f"invalid image size {width}x{height}")
        if data is None:
            raise InvalidInputError("pixel buffer is None")
        if isinstance(data, np.ndarray):
            flat = data.astype(np.uint8, copy=False).ravel()
        else:
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        expected = int(width) * int(height) * 4
        if flat.size != expected:
            raise InvalidInputError(
                f"buffer holds {flat.size} bytes, expected {expected} for {width}x{height} RGBA")
        return cls(flat.reshape(int(height), int(width), 4))

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        return cls(np.array(image.convert("RGBA")))

    @classmethod
    def open(cls, path) -> "RasterImage":
        with Image.open(path) as img:
            return cls.from_pil(img)

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        return self._pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self._pixels[:, :, 3]

    @property
    def has_transparency(self) -> bool:
        return bool((self.alpha < 255).any())

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height})"


def as_raster(image) -> RasterImage:
    """Accept a RasterImage, numpy array or PIL image."""
    if isinstance(image, RasterImage):
        return image
    if isinstance(image, Image.Image):
        return RasterImage.from_pil(image)
    return RasterImage(image)
