"""Job and result records used by the service layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from docfill.models import DetectionResult, FormMapping


@dataclass(frozen=True)
class FormJob:
    """One template fill request."""

    form_type: str
    version: str
    data: Dict[str, Any] = field(default_factory=dict)
    keep_fields_editable: bool = False
    job_id: Optional[str] = None


@dataclass(frozen=True)
class FormJobResult:
    job: FormJob
    pdf_bytes: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.pdf_bytes is not None


@dataclass(frozen=True)
class FormFieldMetadata:
    """Summary stored next to a detected mapping."""

    form_type: str
    version: str
    field_count: int
    confidence: float
    last_detected: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formType": self.form_type,
            "version": self.version,
            "lastDetected": self.last_detected.isoformat(),
            "fieldCount": self.field_count,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class DetectionJob:
    """A PDF to analyse as part of a batch."""

    form_type: str
    version: str
    pdf_bytes: bytes


@dataclass(frozen=True)
class DetectionOutcome:
    job: DetectionJob
    mapping: Optional[FormMapping] = None
    metadata: Optional[FormFieldMetadata] = None
    detection: Optional[DetectionResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.mapping is not None
