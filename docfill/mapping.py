"""Build, merge, compare, validate and persist field mappings."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Union

from .documents import PdfSource, opened, page_sizes, read_pdf_bytes
from .errors import MappingFormatError
from .models import DetectionResult, FieldMapping, FormMapping, MappingDiff, ValidationReport

logger = logging.getLogger(__name__)

GENERATOR_NAME = "FieldDetector"


def _fmt(value: float) -> str:
    return f"{value:g}"


def generate_mapping(result: DetectionResult, version: str = "1.0") -> FormMapping:
    """Turn a detection result into a mapping keyed by field name."""

    fields: Dict[str, FieldMapping] = {}
    for detected in result.fields:
        fields[detected.name] = FieldMapping(
            pdf_field=detected.name,
            page=detected.page,
            x=detected.x,
            y=detected.y,
            label=detected.label,
            field_type=detected.field_type,
            confidence=round(detected.confidence, 4),
        )

    metadata = {
        "generatedBy": GENERATOR_NAME,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "pageCount": result.page_count,
        "pageSize": result.page_size.to_dict() if result.page_size else None,
        "detectionStats": {
            "totalRectangles": len(result.rectangles),
            "totalTexts": len(result.texts),
            "matchedFields": sum(1 for item in result.fields if item.label),
            "avgConfidence": round(result.average_confidence, 4),
        },
    }
    return FormMapping(version=version, fields=fields, calculations={}, metadata=metadata)


def merge_with_existing_mapping(
    detected: Union[DetectionResult, FormMapping],
    existing: FormMapping,
    overwrite_existing: bool = False,
    only_add_new: bool = True,
    min_confidence: float = 0.5,
) -> FormMapping:
    """Fold detected fields into an existing mapping without mutating either.

    ``detected`` is a detection result or a mapping generated from one.
    Fields below ``min_confidence`` are ignored. Unknown names are added;
    known names only get new coordinates when ``overwrite_existing`` is set and
    ``only_add_new`` is cleared.
    """

    if isinstance(detected, DetectionResult):
        detected = generate_mapping(detected, version=existing.version)
    merged: Dict[str, FieldMapping] = dict(existing.fields)
    added = updated = 0
    for name, candidate in detected.fields.items():
        confidence = 1.0 if candidate.confidence is None else candidate.confidence
        if confidence < min_confidence:
            logger.debug("Skipping %s: confidence %.2f below %.2f", name, confidence, min_confidence)
            continue
        current = merged.get(name)
        if current is None:
            merged[name] = candidate
            added += 1
        elif overwrite_existing and not only_add_new:
            merged[name] = replace(current, page=candidate.page, x=candidate.x, y=candidate.y)
            updated += 1
    logger.info("Merged mapping: %d added, %d updated, %d total", added, updated, len(merged))
    return FormMapping(
        version=existing.version,
        fields=merged,
        calculations=dict(existing.calculations),
        metadata=dict(existing.metadata),
    )


def compare_mappings(before: FormMapping, after: FormMapping) -> MappingDiff:
    added = [name for name in after.fields if name not in before.fields]
    removed = [name for name in before.fields if name not in after.fields]
    modified: Dict[str, List[str]] = {}
    for name, old in before.fields.items():
        new = after.fields.get(name)
        if new is None:
            continue
        changes = [
            f"{attr}: {getattr(old, attr)} -> {getattr(new, attr)}"
            for attr in ("x", "y", "page")
            if getattr(old, attr) != getattr(new, attr)
        ]
        if changes:
            modified[name] = changes
    return MappingDiff(added=added, removed=removed, modified=modified)


def validate_mapping(pdf: PdfSource, mapping: FormMapping) -> ValidationReport:
    """Check every placement against the page count and page sizes of ``pdf``."""

    with opened(read_pdf_bytes(pdf)) as doc:
        sizes = page_sizes(doc)
    page_count = len(sizes)
    errors: List[str] = []
    for name, entry in mapping.fields.items():
        if not 1 <= entry.page <= page_count:
            errors.append(f'Field "{name}" references invalid page {entry.page} (total pages: {page_count})')
            continue
        size = sizes[entry.page - 1]
        if entry.x is not None and not 0 <= entry.x <= size.width:
            errors.append(
                f'Field "{name}" has X coordinate ({_fmt(entry.x)}) outside page bounds (0-{_fmt(size.width)})'
            )
        if entry.y is not None and not 0 <= entry.y <= size.height:
            errors.append(
                f'Field "{name}" has Y coordinate ({_fmt(entry.y)}) outside page bounds (0-{_fmt(size.height)})'
            )
    return ValidationReport(errors=errors)


def load_mapping_file(path: Union[str, Path]) -> FormMapping:
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise MappingFormatError(f"{path} is not valid JSON: {exc}") from exc
    return FormMapping.from_dict(payload)


def save_mapping_file(mapping: FormMapping, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(mapping.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


__all__ = [
    "compare_mappings",
    "generate_mapping",
    "load_mapping_file",
    "merge_with_existing_mapping",
    "save_mapping_file",
    "validate_mapping",
]
