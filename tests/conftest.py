"""
Shared fixtures: small synthetic RGBA images with known geometry.
"""

import numpy as np
import pytest


def solid(width, height, rgb, alpha=255):
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, :3] = rgb
    img[:, :, 3] = alpha
    return img


def disc(size, center, radius, fg, bg):
    """Filled circle; a pixel belongs to the disc when its center is inside."""
    img = solid(size, size, bg)
    yy, xx = np.mgrid[0:size, 0:size]
    inside = (xx + 0.5 - center[0]) ** 2 + (yy + 0.5 - center[1]) ** 2 <= radius ** 2
    img[inside, :3] = fg
    return img


@pytest.fixture
def red_square():
    """100x100 solid red."""
    return solid(100, 100, (255, 0, 0))


@pytest.fixture
def split_image():
    """Left half red, right half blue."""
    img = solid(100, 100, (255, 0, 0))
    img[:, 50:, :3] = (0, 0, 255)
    return img


@pytest.fixture
def disc_image():
    """White disc of radius 40 on black, 120x120."""
    return disc(120, (60, 60), 40, (255, 255, 255), (0, 0, 0))


@pytest.fixture
def nested_image():
    """Blue square on a white background."""
    img = solid(80, 80, (255, 255, 255))
    img[20:60, 20:60, :3] = (0, 0, 255)
    return img


@pytest.fixture
def circle_points():
    """32 points on a circle of radius 20 around (50, 40)."""
    a = np.linspace(0, 2 * np.pi, 32, endpoint=False)
    return np.stack([50 + 20 * np.cos(a), 40 + 20 * np.sin(a)], axis=1)
