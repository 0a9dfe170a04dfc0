"""
Tests for the command line interface.
"""

from pathlib import Path

from PIL import Image
from typer.testing import CliRunner

from conftest import solid
from vectorsmith import __version__
from vectorsmith import cli
from vectorsmith.cli import app, format_size

runner = CliRunner()


def write_png(path, pixels):
    Image.fromarray(pixels, "RGBA").save(path)
    return path


class TestConvert:
    """The convert command."""

    def test_convert_writes_svg(self, tmp_path):
        source = write_png(tmp_path / "logo.png", solid(32, 32, (255, 0, 0)))
        target = tmp_path / "logo.svg"
        result = runner.invoke(app, ["convert", str(source), str(target), "--force", "--quiet"])
        assert result.exit_code == 0, result.output
        assert "<rect" in target.read_text(encoding="utf-8")

    def test_default_output_name(self, tmp_path):
        source = write_png(tmp_path / "icon.png", solid(16, 16, (0, 0, 255)))
        result = runner.invoke(app, ["convert", str(source), "--quiet"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "icon.svg").exists()

    def test_suffix_is_forced_to_svg(self, tmp_path):
        source = write_png(tmp_path / "a.png", solid(16, 16, (0, 0, 0)))
        result = runner.invoke(app, ["convert", str(source), str(tmp_path / "b.out"), "--quiet"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "b.svg").exists()

    def test_options_reach_the_document(self, tmp_path):
        source = write_png(tmp_path / "a.png", solid(20, 10, (0, 255, 0)))
        target = tmp_path / "a.svg"
        result = runner.invoke(app, ["convert", str(source), str(target), "--quiet",
                                     "--width", "40", "--unit", "px", "--draw-style", "stroke_shapes"])
        assert result.exit_code == 0, result.output
        text = target.read_text(encoding="utf-8")
        assert 'width="40px"' in text
        assert 'stroke="#00ff00"' in text

    def test_existing_output_without_force(self, tmp_path):
        source = write_png(tmp_path / "a.png", solid(16, 16, (0, 0, 0)))
        target = tmp_path / "a.svg"
        target.write_text("keep", encoding="utf-8")
        result = runner.invoke(app, ["convert", str(source), str(target), "--quiet"])
        assert result.exit_code == 0
        assert target.read_text(encoding="utf-8") == "keep"

    def test_missing_input(self, tmp_path):
        result = runner.invoke(app, ["convert", str(tmp_path / "nope.png")])
        assert result.exit_code == 1

    def test_unsupported_format(self, tmp_path):
        source = tmp_path / "notes.txt"
        source.write_text("hello", encoding="utf-8")
        result = runner.invoke(app, ["convert", str(source)])
        assert result.exit_code == 1

    def test_unknown_palette_is_invalid_input(self, tmp_path):
        source = write_png(tmp_path / "a.png", solid(16, 16, (0, 0, 0)))
        result = runner.invoke(app, ["convert", str(source), "--force", "--quiet", "--palette", "neon"])
        assert result.exit_code == 2


class TestOtherCommands:
    """Version flag and palette listing."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_palettes(self):
        result = runner.invoke(app, ["palettes"])
        assert result.exit_code == 0
        assert "material" in result.output

    def test_format_size(self):
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(3 * 1024 * 1024) == "3.00 MB"

    def test_console_script_targets_app(self):
        pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
        assert 'vectorsmith = "vectorsmith.cli:app"' in pyproject.read_text(encoding="utf-8")
        assert callable(cli.app)
