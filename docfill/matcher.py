"""Pair detected boxes with nearby OCR words and classify the result."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from .coords import to_bottom_up
from .models import DetectedField, FieldType, MatchStrategy, Rectangle, RecognizedText
from .utils import slugify

logger = logging.getLogger(__name__)

SIGNATURE_KEYWORDS = ("podpis", "signature")


@dataclass(frozen=True)
class MatcherConfig:
    """Distances are page points."""

    min_text_confidence: float = 0.5
    max_distance: float = 100.0
    max_above_gap: float = 100.0
    max_left_drift: float = 30.0
    unlabeled_confidence: float = 0.5
    checkbox_max_side: float = 30.0
    checkbox_max_skew: float = 10.0
    signature_min_area: float = 5000.0


def classify_field_type(width: float, height: float, label: str, config: Optional[MatcherConfig] = None) -> FieldType:
    cfg = config or MatcherConfig()
    if width < cfg.checkbox_max_side and height < cfg.checkbox_max_side and abs(width - height) < cfg.checkbox_max_skew:
        return FieldType.CHECKBOX
    lowered = label.casefold()
    if any(keyword in lowered for keyword in SIGNATURE_KEYWORDS) and width * height > cfg.signature_min_area:
        return FieldType.SIGNATURE
    return FieldType.TEXT


def field_name_for(label: str, page: int, x: float, y: float) -> str:
    slug = slugify(label) if label else ""
    return slug or f"field_{page}_{round(x)}_{round(y)}"


class FieldMatcher:
    """Label each rectangle with at most one word; a word labels at most one rectangle."""

    def __init__(self, config: Optional[MatcherConfig] = None) -> None:
        self.config = config or MatcherConfig()

    def _relation(self, rect: Rectangle, text: RecognizedText) -> Optional[Tuple[float, MatchStrategy]]:
        cfg = self.config
        if text.y < rect.y and rect.y - text.y <= cfg.max_above_gap:
            strategy = MatchStrategy.ABOVE
        elif text.x < rect.x and abs(text.y - rect.y) <= cfg.max_left_drift:
            strategy = MatchStrategy.LEFT
        else:
            return None
        distance = math.hypot(rect.x - text.x, rect.y - text.y)
        if distance > cfg.max_distance:
            return None
        return distance, strategy

    def match(
        self,
        rectangles: Sequence[Rectangle],
        texts: Sequence[RecognizedText],
        page: int,
        page_height: float,
    ) -> List[DetectedField]:
        """Return one field per rectangle, in rectangle order.

        Inputs must already be in page points with a top-left origin.
        """

        cfg = self.config
        candidates = [text for text in texts if text.confidence > cfg.min_text_confidence]
        claimed: Set[int] = set()
        fields: List[DetectedField] = []

        for rect in rectangles:
            best_index: Optional[int] = None
            best_distance = math.inf
            best_strategy = MatchStrategy.NONE
            for index, text in enumerate(candidates):
                if index in claimed:
                    continue
                relation = self._relation(rect, text)
                if relation is None:
                    continue
                distance, strategy = relation
                if distance < best_distance:
                    best_index, best_distance, best_strategy = index, distance, strategy

            if best_index is not None:
                claimed.add(best_index)
                label = candidates[best_index].text
                confidence = candidates[best_index].confidence
            else:
                label = ""
                confidence = cfg.unlabeled_confidence

            y = to_bottom_up(rect.y, rect.height, page_height)
            fields.append(
                DetectedField(
                    name=field_name_for(label, page, rect.x, y),
                    label=label,
                    x=rect.x,
                    y=y,
                    width=rect.width,
                    height=rect.height,
                    page=page,
                    confidence=confidence,
                    field_type=classify_field_type(rect.width, rect.height, label, cfg),
                    match_strategy=best_strategy,
                )
            )
        logger.debug(
            "Page %d: matched %d of %d boxes to labels",
            page,
            sum(1 for item in fields if item.label),
            len(fields),
        )
        return fields


def match_fields(
    rectangles: Sequence[Rectangle],
    texts: Sequence[RecognizedText],
    page: int,
    page_height: float,
    config: Optional[MatcherConfig] = None,
) -> List[DetectedField]:
    return FieldMatcher(config).match(rectangles, texts, page, page_height)


__all__ = [
    "FieldMatcher",
    "MatcherConfig",
    "SIGNATURE_KEYWORDS",
    "classify_field_type",
    "field_name_for",
    "match_fields",
]
