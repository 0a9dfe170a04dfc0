"""
Tests for core-color detection and region extraction.
"""

import numpy as np

from vectorsmith.color import Color
from vectorsmith.config import ColorConfig
from vectorsmith.extraction import ColorExtractor

from conftest import solid


class TestColorExtractor:
    """Exact-color regions."""

    def test_solid_image_is_one_region(self, red_square):
        result = ColorExtractor().extract(red_square)
        assert result.colors == [Color(255, 0, 0)]
        assert len(result.regions) == 1
        region = result.regions[0]
        assert region.pixel_count == 100 * 100
        assert (region.bounds.x0, region.bounds.y0, region.bounds.x1, region.bounds.y1) == (0, 0, 100, 100)

    def test_two_colors(self, split_image):
        result = ColorExtractor().extract(split_image)
        assert set(result.colors) == {Color(255, 0, 0), Color(0, 0, 255)}
        assert sorted(result.counts) == [5000, 5000]
        assert len(result.regions) == 2

    def test_antialiased_pixels_fold_into_core(self, split_image):
        img = split_image.copy()
        img[:, 49, :3] = (200, 0, 60)
        result = ColorExtractor(ColorConfig(anti_aliasing_threshold=60.0)).extract(img)
        assert len(result.colors) == 2
        assert (result.index_map >= 0).all()

    def test_same_color_split_into_components(self):
        img = solid(30, 10, (255, 255, 255))
        img[:, 0:10, :3] = (0, 0, 0)
        img[:, 20:30, :3] = (0, 0, 0)
        result = ColorExtractor().extract(img)
        black = [r for r in result.regions if r.color == Color(0, 0, 0)]
        assert len(black) == 2
        assert all(r.pixel_count == 100 for r in black)

    def test_transparent_pixels_are_skipped(self):
        img = solid(10, 10, (0, 255, 0))
        img[:, 5:, 3] = 0
        result = ColorExtractor().extract(img)
        assert (result.index_map[:, 5:] == -1).all()
        assert result.regions[0].pixel_count == 50

    def test_fully_transparent(self):
        result = ColorExtractor().extract(solid(4, 4, (0, 0, 0), alpha=0))
        assert result.colors == []
        assert result.regions == []

    def test_tiny_regions_dropped(self, red_square):
        img = red_square.copy()
        img[10, 10, :3] = (0, 0, 255)
        result = ColorExtractor(ColorConfig(min_core_color_pixels=1)).extract(img)
        assert all(r.pixel_count >= 4 for r in result.regions)

    def test_region_mask(self, nested_image):
        result = ColorExtractor().extract(nested_image)
        blue = next(r for r in result.regions if r.color == Color(0, 0, 255))
        mask, origin = blue.mask()
        assert origin == (20, 20)
        assert mask.shape == (40, 40)
        assert mask.all()

    def test_remap_merges_colors(self, split_image):
        extractor = ColorExtractor()
        result = extractor.extract(split_image)
        merged = extractor.remap(result, [Color(128, 0, 128)], np.zeros(len(result.colors), dtype=int))
        assert merged.counts == [10000]
        assert len(merged.regions) == 1
        assert merged.regions[0].pixel_count == 10000
