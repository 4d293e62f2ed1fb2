"""Word-level OCR backed by Tesseract."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pytesseract
from PIL import Image

from .boxes import to_grayscale
from .errors import RecognitionError
from .models import RecognizedText
from .rasterizer import RasterPage

logger = logging.getLogger(__name__)

CONTRAST_FACTOR = 1.5


def otsu_threshold(gray: np.ndarray) -> int:
    """Return the Otsu threshold of an 8-bit grayscale image."""

    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    if total == 0:
        return 127
    levels = np.arange(256, dtype=np.float64)
    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(hist * levels)
    mean_bg = np.divide(sum_bg, weight_bg, out=np.zeros(256), where=weight_bg > 0)
    mean_fg = np.divide(sum_bg[-1] - sum_bg, weight_fg, out=np.zeros(256), where=weight_fg > 0)
    between = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
    return int(np.argmax(between))


def preprocess_for_ocr(pixels: np.ndarray, contrast: float = CONTRAST_FACTOR) -> Image.Image:
    """Stretch contrast around mid-gray, then binarize with Otsu's threshold."""

    gray = to_grayscale(pixels)
    stretched = np.clip((gray - 128.0) * contrast + 128.0, 0, 255).astype(np.uint8)
    threshold = otsu_threshold(stretched)
    binary = np.where(stretched > threshold, 255, 0).astype(np.uint8)
    return Image.fromarray(binary)


def _parse_confidence(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return -1.0


class TextRecognizer:
    """Run Tesseract on a rendered page and return words in raster space."""

    def __init__(
        self,
        language: str = "pol",
        timeout: float = 0,
        preprocess: bool = True,
        tesseract_config: str = "",
    ) -> None:
        self.language = language
        self.timeout = timeout
        self.preprocess = preprocess
        self.tesseract_config = tesseract_config

    def recognize(self, raster: RasterPage) -> List[RecognizedText]:
        if self.preprocess:
            image = preprocess_for_ocr(raster.pixels)
        else:
            image = Image.fromarray(np.ascontiguousarray(raster.pixels[..., :3]))
        try:
            data: Dict[str, List[Any]] = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=self.tesseract_config,
                timeout=self.timeout,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError, OSError) as exc:
            raise RecognitionError(raster.page, str(exc)) from exc

        words: List[RecognizedText] = []
        for index, raw_text in enumerate(data.get("text", [])):
            text = (raw_text or "").strip()
            confidence = _parse_confidence(data["conf"][index])
            if not text or confidence < 0:
                continue
            words.append(
                RecognizedText(
                    text=text,
                    x=float(data["left"][index]),
                    y=float(data["top"][index]),
                    width=float(data["width"][index]),
                    height=float(data["height"][index]),
                    confidence=min(confidence / 100.0, 1.0),
                    page=raster.page,
                )
            )
        logger.debug("Page %d: OCR returned %d words", raster.page, len(words))
        return words


def recognize_text(raster: RasterPage, language: str = "pol", timeout: Optional[float] = None) -> List[RecognizedText]:
    return TextRecognizer(language=language, timeout=timeout or 0).recognize(raster)


__all__ = ["TextRecognizer", "otsu_threshold", "preprocess_for_ocr", "recognize_text"]
