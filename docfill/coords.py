"""Conversions between raster pixels, top-down points and bottom-up points.

Three spaces are in play:

* raster space: pixels of a page rendered at ``RASTER_SCALE``;
* page space: PDF points with the origin at the top-left (what PyMuPDF uses);
* document space: PDF points with ``y`` measured from the bottom of the page
  (what mappings and coordinate records use).

Every conversion between them lives here.
"""

from __future__ import annotations

from typing import Tuple

from .models import Rectangle, RecognizedText

RASTER_SCALE = 2.0


def raster_to_points(value: float, scale: float = RASTER_SCALE) -> float:
    return value / scale


def points_to_raster(value: float, scale: float = RASTER_SCALE) -> float:
    return value * scale


def rectangle_to_points(rect: Rectangle, scale: float = RASTER_SCALE) -> Rectangle:
    return Rectangle(
        page=rect.page,
        x=raster_to_points(rect.x, scale),
        y=raster_to_points(rect.y, scale),
        width=raster_to_points(rect.width, scale),
        height=raster_to_points(rect.height, scale),
    )


def text_to_points(text: RecognizedText, scale: float = RASTER_SCALE) -> RecognizedText:
    return RecognizedText(
        text=text.text,
        x=raster_to_points(text.x, scale),
        y=raster_to_points(text.y, scale),
        width=raster_to_points(text.width, scale),
        height=raster_to_points(text.height, scale),
        confidence=text.confidence,
        page=text.page,
    )


def to_bottom_up(top: float, height: float, page_height: float) -> float:
    """Return the bottom edge of a top-down box measured from the page bottom."""

    return page_height - (top + height)


def to_top_down(bottom: float, height: float, page_height: float) -> float:
    """Inverse of :func:`to_bottom_up`."""

    return page_height - bottom - height


def baseline_point(x: float, y: float, page_height: float) -> Tuple[float, float]:
    """Map a document-space point to the PyMuPDF insertion point for text."""

    return x, page_height - y


def within_page(x: float, y: float, width: float, height: float) -> bool:
    return 0 <= x <= width and 0 <= y <= height


__all__ = [
    "RASTER_SCALE",
    "baseline_point",
    "points_to_raster",
    "raster_to_points",
    "rectangle_to_points",
    "text_to_points",
    "to_bottom_up",
    "to_top_down",
    "within_page",
]
