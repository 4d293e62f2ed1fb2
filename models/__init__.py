"""Service-level records for docfill."""

from .form_jobs import DetectionJob, DetectionOutcome, FormFieldMetadata, FormJob, FormJobResult

__all__ = ["DetectionJob", "DetectionOutcome", "FormFieldMetadata", "FormJob", "FormJobResult"]
