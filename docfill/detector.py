"""Schema-free field detection: render, find boxes, read labels, pair them."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests

from .boxes import BoxDetector, BoxDetectorConfig
from .config import EngineSettings
from .coords import RASTER_SCALE, rectangle_to_points, text_to_points
from .documents import PdfSource, opened, read_pdf_bytes
from .errors import DocumentLoadError, RecognitionError, RenderError
from .mapping import generate_mapping
from .matcher import FieldMatcher, MatcherConfig
from .models import DetectedField, DetectionResult, FormMapping, PageSize, Rectangle, RecognizedText
from .ocr import TextRecognizer
from .rasterizer import RasterPage, render_page
from .utils import assign_unique_names

logger = logging.getLogger(__name__)

CANCEL_POLL_INTERVAL = 0.05


@dataclass
class _PageOutcome:
    page: int
    rectangles: List[Rectangle] = field(default_factory=list)
    texts: List[RecognizedText] = field(default_factory=list)
    fields: List[DetectedField] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class FieldDetector:
    """Detect fillable boxes and their labels on every page of a PDF.

    Pages are rendered on the calling thread because MuPDF is not thread-safe;
    box detection, OCR and matching for each page then run on a bounded pool.
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        box_config: Optional[BoxDetectorConfig] = None,
        matcher_config: Optional[MatcherConfig] = None,
        max_workers: Optional[int] = None,
        scale: float = RASTER_SCALE,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        settings = settings or EngineSettings.from_env()
        self.recognizer = recognizer or TextRecognizer(
            language=settings.ocr_language,
            timeout=settings.ocr_timeout,
        )
        self.box_detector = BoxDetector(box_config)
        self.matcher = FieldMatcher(matcher_config)
        self.max_workers = max_workers or settings.max_workers
        self.scale = scale

    def detect_fields(self, pdf: PdfSource, cancel_event: Optional[threading.Event] = None) -> DetectionResult:
        """Run detection on every page and aggregate results in page order.

        Setting ``cancel_event`` stops pending pages and abandons pages still
        being analysed; pages already finished are returned and the result is
        flagged ``cancelled``.
        """

        pdf_bytes = read_pdf_bytes(pdf)
        errors: List[str] = []
        submitted: List[Tuple[int, Future]] = []

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="docfill-detect")
        try:
            with opened(pdf_bytes) as doc:
                page_count = doc.page_count
                first = doc[0].rect
                page_size = PageSize(width=first.width, height=first.height)
                for index in range(page_count):
                    if _is_set(cancel_event):
                        break
                    try:
                        raster = render_page(doc, index, self.scale)
                    except RenderError as exc:
                        logger.warning("%s", exc)
                        errors.append(str(exc))
                        continue
                    submitted.append((raster.page, executor.submit(self._analyze_page, raster, cancel_event)))

            pending = {future for _, future in submitted}
            while pending and not _is_set(cancel_event):
                _, pending = wait(pending, timeout=CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED)
        finally:
            # running pages are abandoned on cancel, their results are discarded
            executor.shutdown(wait=not _is_set(cancel_event), cancel_futures=True)

        cancelled = _is_set(cancel_event)
        outcomes: List[_PageOutcome] = []
        for _, future in submitted:
            if future.cancelled() or not future.done():
                continue
            outcome = future.result()
            if outcome is not None:
                outcomes.append(outcome)

        fields: List[DetectedField] = []
        rectangles: List[Rectangle] = []
        texts: List[RecognizedText] = []
        warnings: List[str] = []
        for outcome in outcomes:
            fields.extend(outcome.fields)
            rectangles.extend(outcome.rectangles)
            texts.extend(outcome.texts)
            warnings.extend(outcome.warnings)

        result = DetectionResult(
            fields=assign_unique_names(fields),
            rectangles=rectangles,
            texts=texts,
            page_count=page_count,
            page_size=page_size,
            warnings=warnings,
            errors=errors,
            cancelled=cancelled,
        )
        logger.info(
            "Detected %d fields (%d boxes, %d words) across %d pages%s",
            len(result.fields),
            len(rectangles),
            len(texts),
            page_count,
            " [cancelled]" if cancelled else "",
        )
        return result

    def detect_fields_from_url(
        self,
        url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DetectionResult:
        http = session or requests
        try:
            response = http.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise DocumentLoadError(f"Could not download PDF from {url}: {exc}") from exc
        logger.debug("Downloaded %d bytes from %s", len(response.content), url)
        return self.detect_fields(response.content, cancel_event=cancel_event)

    def generate_mapping(self, result: DetectionResult, version: str = "1.0") -> FormMapping:
        return generate_mapping(result, version)

    def _analyze_page(self, raster: RasterPage, cancel_event: Optional[threading.Event]) -> Optional[_PageOutcome]:
        if _is_set(cancel_event):
            return None
        outcome = _PageOutcome(page=raster.page)
        raw_boxes = self.box_detector.detect(raster.pixels, raster.page)
        outcome.rectangles = [rectangle_to_points(rect, raster.scale) for rect in raw_boxes]
        try:
            words = self.recognizer.recognize(raster)
        except RecognitionError as exc:
            logger.warning("%s; continuing without labels", exc)
            outcome.warnings.append(str(exc))
            words = []
        if _is_set(cancel_event):
            return None
        outcome.texts = [text_to_points(word, raster.scale) for word in words]
        outcome.fields = self.matcher.match(
            outcome.rectangles,
            outcome.texts,
            raster.page,
            raster.page_size.height,
        )
        return outcome


def _is_set(event: Optional[threading.Event]) -> bool:
    return event is not None and event.is_set()


def detect_fields(pdf: PdfSource, **kwargs) -> DetectionResult:
    return FieldDetector(**kwargs).detect_fields(pdf)


__all__ = ["FieldDetector", "detect_fields"]
