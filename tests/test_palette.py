"""
Tests for named palettes, color snapping and k-means reduction.
"""

import pytest

from vectorsmith.color import Color
from vectorsmith.config import PaletteConfig
from vectorsmith.errors import InvalidInputError
from vectorsmith.palette import PALETTES, PaletteManager, parse_color, parse_palette


class TestParsing:
    """Color strings and palette names."""

    def test_parse_color_forms(self):
        assert parse_color("#ff0000") == Color(255, 0, 0)
        assert parse_color("rgb(1, 2, 3)") == Color(1, 2, 3)
        assert parse_color("rgba(1, 2, 3, 0.5)") == Color(1, 2, 3, 128)
        assert parse_color((4, 5, 6)) == Color(4, 5, 6)

    def test_parse_color_rejects_garbage(self):
        with pytest.raises(InvalidInputError):
            parse_color("banana")

    def test_named_palette(self):
        assert parse_palette("material") == PALETTES["material"]
        assert len(PALETTES["web-safe"]) == 12
        assert len(PALETTES["grayscale"]) == 17

    def test_inline_palette(self):
        colors = parse_palette("#000000, #ffffff, rgb(255, 0, 0)")
        assert colors == [Color(0, 0, 0), Color(255, 255, 255), Color(255, 0, 0)]

    def test_unknown_palette(self):
        with pytest.raises(InvalidInputError):
            parse_palette("neon")
        with pytest.raises(InvalidInputError):
            parse_palette([])


class TestDistances:
    """Metric scales."""

    @pytest.mark.parametrize("algorithm", ["euclidean", "weighted", "ciede2000"])
    def test_identity_is_zero(self, algorithm):
        manager = PaletteManager(PaletteConfig(algorithm=algorithm))
        assert manager.distance("#336699", "#336699") == pytest.approx(0.0, abs=1e-6)

    def test_euclidean(self):
        manager = PaletteManager(PaletteConfig(algorithm="euclidean"))
        assert manager.distance((0, 0, 0), (3, 4, 0)) == pytest.approx(5.0)

    def test_weighted_green_counts_more(self):
        manager = PaletteManager()
        assert manager.distance((0, 0, 0), (0, 10, 0)) > manager.distance((0, 0, 0), (0, 0, 10))

    def test_unknown_metric(self):
        with pytest.raises(InvalidInputError):
            PaletteConfig(algorithm="manhattan")


class TestSnapping:
    """Tolerance-limited nearest color."""

    def test_snap_within_tolerance(self):
        result = PaletteManager().snap(Color(250, 5, 3), PALETTES["web-safe"])
        assert result.matched
        assert result.color == Color(255, 0, 0)

    def test_snap_keeps_alpha(self):
        result = PaletteManager().snap(Color(250, 5, 3, 100), ["#ff0000"])
        assert result.color == Color(255, 0, 0, 100)

    def test_far_color_unchanged(self):
        result = PaletteManager(PaletteConfig(tolerance=5)).snap(Color(120, 60, 200), ["#000000"])
        assert not result.matched
        assert result.color == Color(120, 60, 200)

    def test_empty_palette(self):
        assert PaletteManager().snap(Color(1, 1, 1), []).color == Color(1, 1, 1)

    def test_find_nearest(self):
        index, dist = PaletteManager().find_nearest("#fe0000", ["#0000ff", "#ff0000"])
        assert index == 1
        assert dist < 5


class TestReduction:
    """K-means reduction."""

    def test_reduces_to_target(self):
        colors = [Color(250, 0, 0), Color(255, 5, 5), Color(0, 0, 250), Color(5, 5, 255)]
        reduced = PaletteManager().reduce(colors, 2)
        assert len(reduced) == 2
        reds = [c for c in reduced if c.r > 200]
        blues = [c for c in reduced if c.b > 200]
        assert len(reds) == 1 and len(blues) == 1

    def test_small_input_returned_unique(self):
        colors = [Color(1, 2, 3), Color(1, 2, 3), Color(9, 9, 9)]
        assert PaletteManager().reduce(colors, 5) == [Color(1, 2, 3), Color(9, 9, 9)]

    def test_deterministic(self):
        colors = [Color(i * 20, 255 - i * 20, (i * 37) % 256) for i in range(12)]
        manager = PaletteManager()
        assert manager.reduce(colors, 3) == manager.reduce(colors, 3)

    def test_invalid_target(self):
        with pytest.raises(InvalidInputError):
            PaletteManager().reduce([Color(0, 0, 0)], 0)


class TestOrdering:
    """Palette sorting."""

    def test_sort_by_luminance(self):
        ordered = PaletteManager.sort_by_luminance(["#ffffff", "#000000", "#808080"])
        assert [c.to_hex() for c in ordered] == ["#000000", "#808080", "#ffffff"]

    def test_sort_by_hue(self):
        ordered = PaletteManager.sort_by_hue(["#0000ff", "#ff0000", "#00ff00"])
        assert [c.to_hex() for c in ordered] == ["#ff0000", "#00ff00", "#0000ff"]
