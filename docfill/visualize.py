"""Debug overlay for detection results."""

from __future__ import annotations

from PIL import Image, ImageDraw

from .coords import RASTER_SCALE, points_to_raster, to_top_down
from .documents import PdfSource, opened, read_pdf_bytes
from .models import DetectionResult
from .rasterizer import render_page

RECTANGLE_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 160, 0)
FIELD_COLOR = (255, 0, 0)


def render_detection_overlay(
    pdf: PdfSource,
    result: DetectionResult,
    page: int = 1,
    scale: float = RASTER_SCALE,
) -> Image.Image:
    """Draw boxes (blue), OCR words (green) and fields (red) over a rendered page."""

    with opened(read_pdf_bytes(pdf)) as doc:
        raster = render_page(doc, page - 1, scale)
    image = Image.fromarray(raster.pixels[..., :3].copy())
    draw = ImageDraw.Draw(image)

    def box(x: float, y: float, width: float, height: float, color, line: int = 1) -> None:
        x0, y0 = points_to_raster(x, scale), points_to_raster(y, scale)
        x1, y1 = points_to_raster(x + width, scale), points_to_raster(y + height, scale)
        draw.rectangle([x0, y0, x1, y1], outline=color, width=line)

    for rect in result.rectangles:
        if rect.page == page:
            box(rect.x, rect.y, rect.width, rect.height, RECTANGLE_COLOR)
    for text in result.texts:
        if text.page == page:
            box(text.x, text.y, text.width, text.height, TEXT_COLOR)
    page_height = raster.page_size.height
    for detected in result.fields:
        if detected.page != page:
            continue
        top = to_top_down(detected.y, detected.height, page_height)
        box(detected.x, top, detected.width, detected.height, FIELD_COLOR, line=2)
        draw.text(
            (points_to_raster(detected.x, scale), max(0.0, points_to_raster(top, scale) - 12)),
            detected.name,
            fill=FIELD_COLOR,
        )
    return image


def save_detection_overlay(pdf: PdfSource, result: DetectionResult, destination: str, page: int = 1) -> str:
    render_detection_overlay(pdf, result, page).save(destination)
    return destination


__all__ = ["render_detection_overlay", "save_detection_overlay"]
