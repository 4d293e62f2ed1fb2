"""Render PDF pages into pixel buffers for box detection and OCR."""

from __future__ import annotations

from dataclasses import dataclass

import fitz
import numpy as np

from .coords import RASTER_SCALE
from .documents import MUPDF_LOCK
from .errors import RenderError
from .models import PageSize


@dataclass(frozen=True)
class RasterPage:
    """RGBA pixels of one page plus its native size in points."""

    page: int
    pixels: np.ndarray
    page_size: PageSize
    scale: float = RASTER_SCALE

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


def render_page(doc: fitz.Document, page_index: int, scale: float = RASTER_SCALE) -> RasterPage:
    """Render a zero-based page at ``scale`` times its point size.

    Raises :class:`RenderError` carrying the one-based page number when MuPDF
    cannot decode the page.
    """

    page_number = page_index + 1
    with MUPDF_LOCK:
        try:
            page = doc.load_page(page_index)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            size = PageSize(width=page.rect.width, height=page.rect.height)
        except Exception as exc:
            raise RenderError(page_number, str(exc)) from exc
        rgb = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.width, pix.n)[..., :3]
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    pixels = np.concatenate([rgb, alpha], axis=2)
    return RasterPage(page=page_number, pixels=pixels, page_size=size, scale=scale)


__all__ = ["RasterPage", "render_page"]
