"""Exception hierarchy for docfill."""

from __future__ import annotations

from typing import Sequence


class DocfillError(Exception):
    """Base class for every error raised by docfill."""


class DocumentLoadError(DocfillError):
    """Raised when a PDF cannot be opened or parsed."""


class RenderError(DocfillError):
    """Raised when a single page cannot be rasterized."""

    def __init__(self, page: int, reason: str) -> None:
        super().__init__(f"Could not render page {page}: {reason}")
        self.page = page
        self.reason = reason


class RecognitionError(DocfillError):
    """Raised when OCR fails on a page."""

    def __init__(self, page: int, reason: str) -> None:
        super().__init__(f"Text recognition failed on page {page}: {reason}")
        self.page = page
        self.reason = reason


class FieldWriteError(DocfillError):
    """Raised when a value cannot be written into a field."""


class MappingFormatError(DocfillError):
    """Raised when a mapping document is malformed."""


class _LookupFailure(DocfillError):
    kind = "file"

    def __init__(self, form_type: str, version: str, attempted_paths: Sequence[str]) -> None:
        self.form_type = form_type
        self.version = version
        self.attempted_paths = list(attempted_paths)
        super().__init__(self._message())

    def _message(self) -> str:
        tried = ", ".join(self.attempted_paths) or "<none>"
        return f"No {self.kind} found for {self.form_type} {self.version} (tried: {tried})"


class TemplateNotFoundError(_LookupFailure):
    kind = "template"

    def _message(self) -> str:
        base = super()._message()
        if not self.attempted_paths:
            return base
        return f"{base}. Install the official {self.form_type} form at {self.attempted_paths[0]}"


class MappingNotFoundError(_LookupFailure):
    kind = "field mapping"


__all__ = [
    "DocfillError",
    "DocumentLoadError",
    "FieldWriteError",
    "MappingFormatError",
    "MappingNotFoundError",
    "RecognitionError",
    "RenderError",
    "TemplateNotFoundError",
]
