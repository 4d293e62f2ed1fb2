"""Detect fields on official forms and manage the resulting mappings."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, BinaryIO, Iterable, List, Mapping, Optional, Tuple, Union

from docfill.detector import FieldDetector
from docfill.documents import PdfSource
from docfill.errors import DocfillError, MappingFormatError
from docfill.mapping import (
    compare_mappings,
    generate_mapping,
    merge_with_existing_mapping,
    save_mapping_file,
    validate_mapping,
)
from docfill.models import DetectionResult, FormMapping, MappingDiff, ValidationReport
from docfill.utils import slugify
from models.form_jobs import DetectionJob, DetectionOutcome, FormFieldMetadata

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "2023"

# First matching fragment wins, so more specific phrases come first.
FIELD_NAME_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("nazwisko", "lastName"),
    ("imię", "firstName"),
    ("imie", "firstName"),
    ("pesel", "pesel"),
    ("nip", "nip"),
    ("regon", "regon"),
    ("adres", "address"),
    ("ulica", "street"),
    ("miasto", "city"),
    ("kod pocztowy", "postalCode"),
    ("telefon", "phone"),
    ("email", "email"),
    ("data", "date"),
    ("podpis", "signature"),
    ("mocodawca", "principal"),
    ("pełnomocnik", "attorney"),
    ("pelnomocnik", "attorney"),
    ("zakres", "scope"),
    ("urząd", "office"),
    ("urzad", "office"),
)


def suggest_field_name(label: str) -> str:
    """Map a Polish form label onto a conventional record key."""

    lowered = label.lower()
    for fragment, name in FIELD_NAME_PATTERNS:
        if fragment in lowered:
            return name
    return slugify(label)


def mapping_filename(form_type: str, version: str = DEFAULT_VERSION) -> str:
    return f"{form_type}_{version}_mapping.json"


class FormFieldService:
    """Detection front-end that produces mappings plus summary metadata."""

    def __init__(self, detector: Optional[FieldDetector] = None) -> None:
        self.detector = detector or FieldDetector()

    @staticmethod
    def _metadata(form_type: str, version: str, detection: DetectionResult) -> FormFieldMetadata:
        return FormFieldMetadata(
            form_type=form_type,
            version=version,
            field_count=len(detection.fields),
            confidence=detection.average_confidence,
        )

    def detect_and_generate_mapping(
        self,
        pdf: PdfSource,
        form_type: str,
        version: str = DEFAULT_VERSION,
    ) -> Tuple[FormMapping, FormFieldMetadata]:
        detection = self.detector.detect_fields(pdf)
        mapping = generate_mapping(detection, version)
        metadata = self._metadata(form_type, version, detection)
        logger.info(
            "%s %s: %d fields detected (avg confidence %.2f)",
            form_type,
            version,
            metadata.field_count,
            metadata.confidence,
        )
        return mapping, metadata

    def detect_from_url(
        self,
        url: str,
        form_type: str,
        version: str = DEFAULT_VERSION,
        timeout: float = 30.0,
    ) -> Tuple[FormMapping, FormFieldMetadata]:
        detection = self.detector.detect_fields_from_url(url, timeout=timeout)
        return generate_mapping(detection, version), self._metadata(form_type, version, detection)

    def batch_detect_fields(self, jobs: Iterable[DetectionJob]) -> List[DetectionOutcome]:
        """Detect every job in turn; a failing PDF yields an outcome with ``error`` set."""

        outcomes: List[DetectionOutcome] = []
        for job in jobs:
            try:
                detection = self.detector.detect_fields(job.pdf_bytes)
            except DocfillError as exc:
                logger.warning("Detection failed for %s %s: %s", job.form_type, job.version, exc)
                outcomes.append(
                    DetectionOutcome(
                        job=job,
                        metadata=FormFieldMetadata(job.form_type, job.version, field_count=0, confidence=0.0),
                        error=str(exc),
                    )
                )
                continue
            outcomes.append(
                DetectionOutcome(
                    job=job,
                    mapping=generate_mapping(detection, job.version),
                    metadata=self._metadata(job.form_type, job.version, detection),
                    detection=detection,
                )
            )
        return outcomes

    def validate_mapping(self, pdf: PdfSource, mapping: FormMapping) -> ValidationReport:
        return validate_mapping(pdf, mapping)

    def merge_with_existing_mapping(
        self, detected: Union[DetectionResult, FormMapping], existing: FormMapping, **options: Any
    ) -> FormMapping:
        return merge_with_existing_mapping(detected, existing, **options)

    def compare_mappings(self, before: FormMapping, after: FormMapping) -> MappingDiff:
        return compare_mappings(before, after)

    def export_mapping_to_file(
        self,
        mapping: FormMapping,
        form_type: str,
        version: str = DEFAULT_VERSION,
        directory: Union[str, Path] = ".",
    ) -> Path:
        return save_mapping_file(mapping, Path(directory) / mapping_filename(form_type, version))

    @staticmethod
    def import_mapping(source: Union[str, Path, bytes, BinaryIO]) -> FormMapping:
        """Read a mapping from a path, raw JSON bytes or an open file."""

        if isinstance(source, (str, Path)):
            raw: Any = Path(source).read_bytes()
        elif isinstance(source, (bytes, bytearray)):
            raw = bytes(source)
        else:
            raw = source.read()
        try:
            payload: Mapping[str, Any] = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MappingFormatError(f"Invalid mapping file format: {exc}") from exc
        return FormMapping.from_dict(payload)


__all__ = ["FIELD_NAME_PATTERNS", "FormFieldService", "mapping_filename", "suggest_field_name"]
