"""
Vectorsmith CLI

Convert flat raster artwork (logos, icons, illustrations) to SVG from the
command line.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Annotated

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vectorsmith.errors import InvalidInputError

app = typer.Typer(
    name="vectorsmith",
    help="[bold cyan]Vectorsmith[/] - flat artwork to clean, editable SVG.",
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

console = Console()
error_console = Console(stderr=True, style="bold red")

SUPPORTED_FORMATS = {'.png', '.jpg', '.jpeg', '.bmp', '.gif', '.tiff', '.tif', '.webp'}


class Method(str, Enum):
    """Tracing front end."""
    color = "color"
    edge = "edge"


class Quality(str, Enum):
    """Quality preset."""
    draft = "draft"
    normal = "normal"
    high = "high"
    ultra = "ultra"


class DrawStyle(str, Enum):
    fill_shapes = "fill_shapes"
    stroke_shapes = "stroke_shapes"
    stroke_edges = "stroke_edges"


class Stacking(str, Enum):
    stacked = "stacked"
    cutouts = "cutouts"


class GroupBy(str, Enum):
    none = "none"
    color = "color"
    parent = "parent"
    layer = "layer"


class AspectRatio(str, Enum):
    stretch = "stretch"
    preserve_inset = "preserve_inset"
    preserve_overflow = "preserve_overflow"


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        from vectorsmith import __version__
        console.print(f"[bold cyan]Vectorsmith[/] version [bold green]{__version__}[/]")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False, markup=False)],
        force=True,
    )


def validate_input_file(path: Path) -> Path:
    """Validate that input file exists and is a supported image format."""
    if not path.exists():
        error_console.print(f"Input file not found: [yellow]{path}[/]")
        raise typer.Exit(1)
    if path.suffix.lower() not in SUPPORTED_FORMATS:
        error_console.print(
            f"Unsupported format: [yellow]{path.suffix}[/]\n"
            f"   Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}"
        )
        raise typer.Exit(1)
    return path


def validate_output_file(path: Path) -> Path:
    if path.suffix.lower() != '.svg':
        path = path.with_suffix('.svg')
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def format_ssim(ssim: float) -> Text:
    percentage = ssim * 100
    if percentage >= 99.0:
        color = "bold green"
    elif percentage >= 95.0:
        color = "yellow"
    else:
        color = "red"
    return Text(f"{percentage:.2f}%", style=color)


@app.command("convert", rich_help_panel="Commands")
def convert(
    input_file: Annotated[
        Path,
        typer.Argument(help="Path to input image (PNG, JPG, etc.)", show_default=False),
    ],
    output_file: Annotated[
        Optional[Path],
        typer.Argument(help="Path for output SVG [dim](default: input_name.svg)[/]", show_default=False),
    ] = None,
    method: Annotated[
        Method,
        typer.Option("--method", "-m", help="Tracing front end",
                     rich_help_panel="Vectorization Options"),
    ] = Method.color,
    quality: Annotated[
        Optional[Quality],
        typer.Option("--quality", "-q", help="Quality preset",
                     rich_help_panel="Vectorization Options"),
    ] = None,
    max_colors: Annotated[
        Optional[int],
        typer.Option("--max-colors", "-c", min=1, help="Reduce to at most this many colors",
                     rich_help_panel="Color Options"),
    ] = None,
    palette: Annotated[
        Optional[str],
        typer.Option("--palette", "-p",
                     help="Snap colors to a named palette or a comma separated hex list",
                     rich_help_panel="Color Options"),
    ] = None,
    draw_style: Annotated[
        DrawStyle,
        typer.Option("--draw-style", help="Fill shapes or stroke outlines",
                     rich_help_panel="Output Options"),
    ] = DrawStyle.fill_shapes,
    stacking: Annotated[
        Stacking,
        typer.Option("--stacking", help="Shape stacking mode", rich_help_panel="Output Options"),
    ] = Stacking.stacked,
    group_by: Annotated[
        GroupBy,
        typer.Option("--group-by", help="Group SVG elements", rich_help_panel="Output Options"),
    ] = GroupBy.none,
    gap_filler: Annotated[
        bool,
        typer.Option("--gap-filler/--no-gap-filler", help="Stroke outlines to hide seams",
                     rich_help_panel="Output Options"),
    ] = False,
    scale: Annotated[
        float,
        typer.Option("--scale", min=0.0, help="Scale factor for width/height",
                     rich_help_panel="Output Options"),
    ] = 1.0,
    width: Annotated[
        Optional[float],
        typer.Option("--width", help="Output width", rich_help_panel="Output Options"),
    ] = None,
    height: Annotated[
        Optional[float],
        typer.Option("--height", help="Output height", rich_help_panel="Output Options"),
    ] = None,
    unit: Annotated[
        str,
        typer.Option("--unit", help="Unit suffix for width/height (px, mm, in, ...)",
                     rich_help_panel="Output Options"),
    ] = "",
    aspect_ratio: Annotated[
        AspectRatio,
        typer.Option("--aspect-ratio", help="How width and height fit the drawing",
                     rich_help_panel="Output Options"),
    ] = AspectRatio.preserve_inset,
    precision: Annotated[
        int,
        typer.Option("--precision", min=0, max=8, help="Decimal places in coordinates",
                     rich_help_panel="Output Options"),
    ] = 2,
    metrics: Annotated[
        bool,
        typer.Option("--metrics", help="Render the SVG and report SSIM / delta E (needs cairo)"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed progress information"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", help="Suppress all output except errors"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite output file if it exists"),
    ] = False,
):
    """
    Convert an image to SVG.

    [bold]Examples:[/]

      $ vectorsmith convert logo.png
      $ vectorsmith convert icon.png out.svg -q high --max-colors 4
      $ vectorsmith convert badge.png --palette material --group-by color
    """
    setup_logging(verbose)
    input_path = validate_input_file(input_file)
    if output_file is None:
        output_file = input_path.with_suffix('.svg')
    output_path = validate_output_file(output_file)

    if output_path.exists() and not force:
        if quiet or not typer.confirm(f"Output file {output_path} already exists. Overwrite?",
                                      default=False):
            console.print("[yellow]Operation cancelled.[/]")
            raise typer.Exit(0)

    from vectorsmith.core import Vectorizer
    from vectorsmith.raster import RasterImage

    options = {
        "method": method.value,
        "quality": quality.value if quality is not None else None,
        "max_colors": max_colors,
        "palette": palette,
        "draw_style": draw_style.value,
        "shape_stacking": stacking.value,
        "group_by": group_by.value,
        "gap_filler": gap_filler,
        "scale": scale,
        "output_width": width,
        "output_height": height,
        "unit": unit,
        "aspect_ratio": aspect_ratio.value,
        "precision": precision,
    }

    try:
        image = RasterImage.open(input_path)
        vectorizer = Vectorizer(**options)
        if not quiet:
            with console.status("[cyan]Tracing...[/]"):
                result = vectorizer.vectorize(image)
        else:
            result = vectorizer.vectorize(image)
        result.save(output_path)
    except InvalidInputError as e:
        error_console.print(f"Invalid input: {e}")
        raise typer.Exit(2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user.[/]")
        raise typer.Exit(130)
    except Exception as e:
        error_console.print(f"Conversion failed: {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)

    quality_metrics = None
    if metrics:
        from vectorsmith.quality import compute_quality_metrics
        try:
            quality_metrics = compute_quality_metrics(image, result.svg)
        except (ImportError, OSError) as e:
            error_console.print(f"Metrics unavailable: {e}")

    if not quiet:
        _show_results(output_path, result, quality_metrics)


def _show_results(output_path: Path, result, quality_metrics: Optional[dict]):
    table = Table(box=box.ROUNDED, show_header=False, border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Size", f"{result.width} x {result.height}")
    table.add_row("Regions", str(result.stats.get("regions", 0)))
    table.add_row("Paths", str(result.stats.get("paths", 0)))
    counts = result.shape_counts()
    if counts:
        table.add_row("Shapes", ", ".join(f"{k}: {v}" for k, v in sorted(counts.items())))
    table.add_row("Colors", " ".join(c.to_hex() for c in result.palette) or "-")
    table.add_row("Shared edges", str(result.stats.get("shared_edges", 0)))
    if quality_metrics:
        table.add_row("SSIM", format_ssim(quality_metrics["ssim"]))
        table.add_row("Mean delta E", f"{quality_metrics['delta_e']:.2f}")
    table.add_row("File Size", format_size(output_path.stat().st_size))
    table.add_row("Output", str(output_path))
    console.print()
    console.print(Panel(table, title="Conversion Complete", border_style="green"))


@app.command("palettes", rich_help_panel="Commands")
def palettes():
    """List the named palettes usable with --palette."""
    from vectorsmith.palette import PALETTES

    table = Table(title="Named Palettes", box=box.ROUNDED, border_style="cyan")
    table.add_column("Name", style="bold cyan")
    table.add_column("Colors", justify="right")
    table.add_column("Swatches")
    for name, colors in PALETTES.items():
        swatches = Text()
        for color in colors:
            swatches.append("  ", style=f"on {color.to_hex()}")
        table.add_row(name, str(len(colors)), swatches)
    console.print(table)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", help="Show version and exit.",
                     callback=version_callback, is_eager=True),
    ] = None,
):
    """
    [bold cyan]Vectorsmith[/] - flat artwork to clean, editable SVG.

      $ vectorsmith convert logo.png
      $ vectorsmith palettes
    """


if __name__ == "__main__":
    app()
