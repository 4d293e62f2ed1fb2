"""Service-layer utilities for docfill."""

from docfill.config import configure_logging

from .calculations import calculate
from .form_field_service import FormFieldService, suggest_field_name
from .template_service import MappingCache, TemplateFormService

configure_logging("services")

__all__ = [
	"FormFieldService",
	"MappingCache",
	"TemplateFormService",
	"calculate",
	"suggest_field_name",
]
