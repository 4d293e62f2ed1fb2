"""docfill package: field detection and universal PDF form filling."""

from .config import EngineSettings, configure_logging
from .detector import FieldDetector, detect_fields
from .errors import (
	DocfillError,
	DocumentLoadError,
	FieldWriteError,
	MappingFormatError,
	MappingNotFoundError,
	RecognitionError,
	RenderError,
	TemplateNotFoundError,
)
from .filler import UniversalFormFiller, fill_form
from .mapping import (
	compare_mappings,
	generate_mapping,
	load_mapping_file,
	merge_with_existing_mapping,
	save_mapping_file,
	validate_mapping,
)
from .models import (
	DetectedField,
	DetectionResult,
	FieldMapping,
	FieldType,
	FillMethod,
	FilledDocument,
	FillingOptions,
	FillingResult,
	FormMapping,
	PdfAnalysis,
)
from .pipeline import DetectedForm, detect_form, fill_detected_form, fill_with_mapping

configure_logging()

__all__ = [
	"DetectedField",
	"DetectedForm",
	"DetectionResult",
	"DocfillError",
	"DocumentLoadError",
	"EngineSettings",
	"FieldDetector",
	"FieldMapping",
	"FieldType",
	"FieldWriteError",
	"FillMethod",
	"FilledDocument",
	"FillingOptions",
	"FillingResult",
	"FormMapping",
	"MappingFormatError",
	"MappingNotFoundError",
	"PdfAnalysis",
	"RecognitionError",
	"RenderError",
	"TemplateNotFoundError",
	"UniversalFormFiller",
	"compare_mappings",
	"configure_logging",
	"detect_fields",
	"detect_form",
	"fill_detected_form",
	"fill_form",
	"fill_with_mapping",
	"generate_mapping",
	"load_mapping_file",
	"merge_with_existing_mapping",
	"save_mapping_file",
	"validate_mapping",
]
