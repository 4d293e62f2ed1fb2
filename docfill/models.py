"""Data models for docfill."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import MappingFormatError


class FieldType(str, Enum):
    """Kinds of fields the detector can infer from a box."""

    TEXT = "text"
    CHECKBOX = "checkbox"
    SIGNATURE = "signature"


class NativeFieldType(str, Enum):
    """Enumeration of interactive form field types found in a PDF."""

    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DROPDOWN = "dropdown"
    LISTBOX = "listbox"
    BUTTON = "button"
    SIGNATURE = "signature"
    UNKNOWN = "unknown"


class FillMethod(str, Enum):
    NATIVE_FIELDS = "native-fields"
    COORDINATE = "coordinate"


class MatchStrategy(str, Enum):
    """How a label was paired with its box."""

    ABOVE = "above"
    LEFT = "left"
    NONE = "none"


RGB = Tuple[float, float, float]


@dataclass(frozen=True)
class PageSize:
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box with a top-left origin."""

    page: int
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Rectangle must have a positive size, got {self.width}x{self.height}")

    @property
    def area(self) -> float:
        return self.width * self.height

    def intersects(self, other: "Rectangle") -> bool:
        return (
            self.x < other.x + other.width
            and other.x < self.x + self.width
            and self.y < other.y + other.height
            and other.y < self.y + self.height
        )


@dataclass(frozen=True)
class RecognizedText:
    """A word recognized by OCR, top-left origin."""

    text: str
    x: float
    y: float
    width: float
    height: float
    confidence: float
    page: int = 1


@dataclass(frozen=True)
class DetectedField:
    """A fillable region located on a page.

    ``x``/``y`` are document points with ``y`` measured from the bottom of the
    page, which is the space the coordinate filler draws in.
    """

    name: str
    label: str
    x: float
    y: float
    width: float
    height: float
    page: int
    confidence: float
    field_type: FieldType = FieldType.TEXT
    match_strategy: MatchStrategy = MatchStrategy.NONE


def _optional_float(value: Any, context: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MappingFormatError(f"{context} must be a number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class FieldMapping:
    """Where a named value goes in a template."""

    pdf_field: str
    page: int = 1
    x: Optional[float] = None
    y: Optional[float] = None
    label: Optional[str] = None
    field_type: Optional[FieldType] = None
    confidence: Optional[float] = None

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"pdfField": self.pdf_field, "page": self.page}
        if self.x is not None:
            payload["x"] = self.x
        if self.y is not None:
            payload["y"] = self.y
        if self.label is not None:
            payload["label"] = self.label
        if self.field_type is not None:
            payload["type"] = self.field_type.value
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        return payload

    @classmethod
    def from_dict(cls, name: str, payload: Mapping[str, Any]) -> "FieldMapping":
        if not isinstance(payload, Mapping):
            raise MappingFormatError(f"Field {name!r} must be an object, got {type(payload).__name__}")
        page = payload.get("page", 1)
        if isinstance(page, bool) or not isinstance(page, int):
            raise MappingFormatError(f"Field {name!r} has a non-integer page {page!r}")
        raw_type = payload.get("type")
        field_type: Optional[FieldType] = None
        if raw_type is not None:
            try:
                field_type = FieldType(str(raw_type).lower())
            except ValueError as exc:
                raise MappingFormatError(f"Field {name!r} has unknown type {raw_type!r}") from exc
        label = payload.get("label")
        return cls(
            pdf_field=str(payload.get("pdfField") or name),
            page=page,
            x=_optional_float(payload.get("x"), f"Field {name!r} x"),
            y=_optional_float(payload.get("y"), f"Field {name!r} y"),
            label=None if label is None else str(label),
            field_type=field_type,
            confidence=_optional_float(payload.get("confidence"), f"Field {name!r} confidence"),
        )


@dataclass(frozen=True)
class FormMapping:
    """Versioned set of field placements for one template."""

    version: str
    fields: Dict[str, FieldMapping] = field(default_factory=dict)
    calculations: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "version": self.version,
            "fields": {name: entry.to_dict() for name, entry in self.fields.items()},
            "calculations": dict(self.calculations),
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FormMapping":
        if not isinstance(payload, Mapping):
            raise MappingFormatError("Mapping document must be a JSON object")
        raw_fields = payload.get("fields")
        if not isinstance(raw_fields, Mapping):
            raise MappingFormatError("Mapping document needs a 'fields' object")
        calculations = payload.get("calculations") or {}
        if not isinstance(calculations, Mapping):
            raise MappingFormatError("'calculations' must be an object")
        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise MappingFormatError("'metadata' must be an object")
        return cls(
            version=str(payload.get("version", "")),
            fields={str(name): FieldMapping.from_dict(str(name), entry) for name, entry in raw_fields.items()},
            calculations={str(key): str(value) for key, value in calculations.items()},
            metadata=dict(metadata),
        )


@dataclass(frozen=True)
class FillingOptions:
    sanitize_diacritics: bool = True
    font_size: float = 10.0
    font_color: RGB = (0.0, 0.0, 0.0)
    smart_positioning: bool = True
    fuzzy_matching: bool = True
    validate_fields: bool = True
    keep_fields_editable: bool = False
    # rapidfuzz score (0-100) for a last-resort similarity match; None disables it.
    similarity_threshold: Optional[float] = None


@dataclass(frozen=True)
class FillingResult:
    """Summary of one fill operation."""

    method: FillMethod
    fields_detected: int = 0
    fields_filled: int = 0
    fields_skipped: int = 0
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class FilledDocument:
    pdf_bytes: bytes
    result: FillingResult


@dataclass(frozen=True)
class DetectionResult:
    """Everything a detection run produced, in page order."""

    fields: List[DetectedField] = field(default_factory=list)
    rectangles: List[Rectangle] = field(default_factory=list)
    texts: List[RecognizedText] = field(default_factory=list)
    page_count: int = 0
    page_size: Optional[PageSize] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def average_confidence(self) -> float:
        if not self.fields:
            return 0.0
        return sum(item.confidence for item in self.fields) / len(self.fields)


@dataclass(frozen=True)
class NativeField:
    name: str
    field_type: NativeFieldType
    page: int


@dataclass(frozen=True)
class PdfAnalysis:
    page_count: int
    page_size: PageSize
    has_native_form: bool
    field_count: int
    fields: List[NativeField] = field(default_factory=list)


@dataclass(frozen=True)
class MappingDiff:
    """Field-level differences between two mappings."""

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


@dataclass(frozen=True)
class ValidationReport:
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


__all__ = [
    "DetectedField",
    "DetectionResult",
    "FieldMapping",
    "FieldType",
    "FillMethod",
    "FilledDocument",
    "FillingOptions",
    "FillingResult",
    "FormMapping",
    "MappingDiff",
    "MatchStrategy",
    "NativeField",
    "NativeFieldType",
    "PageSize",
    "PdfAnalysis",
    "RGB",
    "Rectangle",
    "RecognizedText",
    "ValidationReport",
]
