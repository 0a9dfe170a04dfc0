"""
Vectorsmith Quality Report

Renders an SVG back to pixels and compares it with the source raster:
structural similarity, mean CIEDE2000 color error and a structure summary
of the SVG itself. Rendering needs cairosvg (and the cairo library).
"""

import logging
import re
from io import BytesIO
from typing import Any, Dict

import numpy as np
from PIL import Image
from skimage.color import deltaE_ciede2000
from skimage.metrics import structural_similarity as ssim

from .color import rgb_to_lab
from .raster import as_raster

try:
    import cairosvg
    CAIROSVG_AVAILABLE = True
except (ImportError, OSError):
    CAIROSVG_AVAILABLE = False

logger = logging.getLogger(__name__)


def analyze_svg_content(svg_content: str) -> Dict[str, Any]:
    """Element and path-command counts of an SVG document."""
    d_attrs = re.findall(r'\sd="([^"]+)"', svg_content)
    counts = {tag: len(re.findall(rf"<{tag}[\s/>]", svg_content))
              for tag in ("path", "rect", "circle", "ellipse", "polygon", "line", "g")}
    segments = sum(len(re.findall(r"[LCQAZ]", d)) for d in d_attrs)
    return {
        "element_counts": counts,
        "shape_count": sum(v for k, v in counts.items() if k != "g"),
        "path_data_length": sum(len(d) for d in d_attrs),
        "segments": segments,
        "bytes": len(svg_content.encode("utf-8")),
    }


def render_svg_to_array(svg_content: str, width: int, height: int) -> np.ndarray:
    """Rasterize an SVG onto white at the given size; returns (H, W, 3) uint8."""
    if not CAIROSVG_AVAILABLE:
        raise ImportError("cairosvg required for rendering")
    png_data = cairosvg.svg2png(bytestring=svg_content.encode("utf-8"),
                                output_width=width, output_height=height)
    with Image.open(BytesIO(png_data)) as img:
        rgba = np.asarray(img.convert("RGBA"), dtype=float)
    return _over_white(rgba)


def _over_white(rgba: np.ndarray) -> np.ndarray:
    alpha = rgba[:, :, 3:4] / 255.0
    rgb = rgba[:, :, :3] * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.round(rgb), 0, 255).astype(np.uint8)


def compute_quality_metrics(image, svg_content: str) -> Dict[str, Any]:
    """
    Compare a source image with its SVG rendering.

    Returns:
        ssim (0..1, higher is better), delta_e (mean CIEDE2000, lower is
        better) and the SVG structure summary.
    """
    raster = as_raster(image)
    source = _over_white(raster.pixels.astype(float))
    rendered = render_svg_to_array(svg_content, raster.width, raster.height)

    score = float(ssim(source, rendered, channel_axis=2, data_range=255))
    delta_e = float(np.mean(deltaE_ciede2000(rgb_to_lab(source), rgb_to_lab(rendered))))
    metrics = {"ssim": score, "delta_e": delta_e}
    metrics.update(analyze_svg_content(svg_content))
    logger.debug("Quality: SSIM %.4f, mean delta E %.3f", score, delta_e)
    return metrics
