"""High level helpers tying detection, mappings and filling together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .detector import FieldDetector
from .documents import PdfSource, read_pdf_bytes
from .filler import UniversalFormFiller
from .mapping import generate_mapping
from .models import DetectionResult, FillMethod, FilledDocument, FillingOptions, FormMapping


@dataclass
class DetectedForm:
    pdf_bytes: bytes
    detection: DetectionResult
    mapping: FormMapping


def detect_form(pdf: PdfSource, version: str = "1.0", detector: Optional[FieldDetector] = None) -> DetectedForm:
    pdf_bytes = read_pdf_bytes(pdf)
    detection = (detector or FieldDetector()).detect_fields(pdf_bytes)
    return DetectedForm(pdf_bytes=pdf_bytes, detection=detection, mapping=generate_mapping(detection, version))


def placements_from_mapping(mapping: FormMapping, record: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Coordinate records for every mapped field that has both a value and a position."""

    placements: Dict[str, Dict[str, Any]] = {}
    for name, entry in mapping.fields.items():
        value = record.get(name)
        if value is None or not entry.has_position:
            continue
        placements[name] = {"x": entry.x, "y": entry.y, "page": entry.page, "value": value}
    return placements


def fill_with_mapping(
    pdf: PdfSource,
    mapping: FormMapping,
    record: Mapping[str, Any],
    options: Optional[FillingOptions] = None,
    filler: Optional[UniversalFormFiller] = None,
) -> FilledDocument:
    """Draw ``record`` at the positions ``mapping`` gives, ignoring any form layer."""

    return (filler or UniversalFormFiller()).fill_form(
        pdf,
        placements_from_mapping(mapping, record),
        options,
        method=FillMethod.COORDINATE,
    )


def fill_detected_form(
    detected: DetectedForm,
    record: Mapping[str, Any],
    options: Optional[FillingOptions] = None,
) -> FilledDocument:
    return fill_with_mapping(detected.pdf_bytes, detected.mapping, record, options)


__all__ = ["DetectedForm", "detect_form", "fill_detected_form", "fill_with_mapping", "placements_from_mapping"]
