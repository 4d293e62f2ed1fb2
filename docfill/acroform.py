"""Read and write a PDF's interactive form fields.

Field order comes from pypdf, which walks ``/AcroForm /Fields`` in declaration
order. Values are written through PyMuPDF widgets so appearances are
regenerated and can later be flattened.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, cast

import fitz
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .documents import MUPDF_LOCK
from .errors import FieldWriteError
from .models import NativeField, NativeFieldType

logger = logging.getLogger(__name__)

_WIDGET_TYPE_MAP: Dict[int, NativeFieldType] = {}
_WIDGET_INT_PAIRS = {
    "PDF_WIDGET_TYPE_TEXT": NativeFieldType.TEXT,
    "PDF_WIDGET_TYPE_CHECKBOX": NativeFieldType.CHECKBOX,
    "PDF_WIDGET_TYPE_RADIOBUTTON": NativeFieldType.RADIO,
    "PDF_WIDGET_TYPE_BUTTON": NativeFieldType.BUTTON,
    "PDF_WIDGET_TYPE_COMBOBOX": NativeFieldType.DROPDOWN,
    "PDF_WIDGET_TYPE_LISTBOX": NativeFieldType.LISTBOX,
    "PDF_WIDGET_TYPE_SIGNATURE": NativeFieldType.SIGNATURE,
}
for attr_name, field_type in _WIDGET_INT_PAIRS.items():
    value = getattr(fitz, attr_name, None)
    if isinstance(value, int):
        _WIDGET_TYPE_MAP[value] = field_type


def _normalize_field_name(name: Optional[str]) -> Optional[str]:
    if isinstance(name, str):
        cleaned = name.strip()
        return cleaned or None
    return None


def widget_name(widget: fitz.Widget) -> Optional[str]:
    return _normalize_field_name(getattr(widget, "field_name", None)) or _normalize_field_name(
        getattr(widget, "field_label", None)
    )


def native_type(widget: fitz.Widget) -> NativeFieldType:
    widget_type = getattr(widget, "field_type", None)
    if isinstance(widget_type, int):
        return _WIDGET_TYPE_MAP.get(widget_type, NativeFieldType.UNKNOWN)
    return NativeFieldType.UNKNOWN


def declared_field_order(pdf_bytes: bytes) -> List[str]:
    """Fully-qualified field names in AcroForm declaration order."""

    try:
        reader = PdfReader(BytesIO(pdf_bytes))
        fields = reader.get_fields() or {}
    except (PdfReadError, KeyError, ValueError, TypeError) as exc:
        logger.debug("pypdf could not read the field tree: %s", exc)
        return []
    return list(fields.keys())


def _iter_widgets(doc: fitz.Document) -> Iterator[Tuple[int, fitz.Widget]]:
    for page in doc:
        # Materialise per page so no widget outlives the page it belongs to.
        for widget in list(page.widgets() or []):
            yield page.number + 1, widget


def list_native_fields(doc: fitz.Document, pdf_bytes: bytes) -> List[NativeField]:
    """One entry per named field, ordered as the document declares them.

    Widgets pypdf did not report are appended in page order.
    """

    found: Dict[str, NativeField] = {}
    with MUPDF_LOCK:
        for page_number, widget in _iter_widgets(doc):
            name = widget_name(widget)
            if name and name not in found:
                found[name] = NativeField(name=name, field_type=native_type(widget), page=page_number)
    declared = [name for name in declared_field_order(pdf_bytes) if name in found]
    seen = set(declared)
    ordered = declared + [name for name in found if name not in seen]
    return [found[name] for name in ordered]


def has_native_fields(doc: fitz.Document) -> bool:
    with MUPDF_LOCK:
        for page in doc:
            if page.first_widget is not None:
                return True
    return False


def _named_widgets(doc: fitz.Document, name: str) -> Iterator[fitz.Widget]:
    for _, widget in _iter_widgets(doc):
        if widget_name(widget) == name:
            yield widget


def write_text(doc: fitz.Document, name: str, text: str) -> None:
    with MUPDF_LOCK:
        for widget in _named_widgets(doc, name):
            cast(Any, widget).field_value = text
            widget.update()


def write_checkbox(doc: fitz.Document, name: str, checked: bool) -> None:
    with MUPDF_LOCK:
        for widget in _named_widgets(doc, name):
            on_state = widget.on_state() or "Yes"
            logger.debug("Checkbox '%s' on_state='%s', checked=%s", name, on_state, checked)
            cast(Any, widget).field_value = on_state if checked else "Off"
            widget.update()


def _same_option(option: Any, wanted: str) -> bool:
    return isinstance(option, str) and option.strip().casefold() == wanted.strip().casefold()


def write_radio(doc: fitz.Document, name: str, value: str) -> str:
    """Select the radio button whose export value equals ``value``."""

    with MUPDF_LOCK:
        options: List[str] = []
        for widget in _named_widgets(doc, name):
            on_state = widget.on_state()
            if isinstance(on_state, str):
                options.append(on_state)
            if _same_option(on_state, value):
                cast(Any, widget).field_value = on_state
                widget.update()
                return on_state
    raise FieldWriteError(f"Option '{value}' not available for radio group '{name}' (options: {', '.join(options)})")


def _choice_entries(choices: Optional[Sequence[Any]]) -> List[Tuple[str, str]]:
    entries: List[Tuple[str, str]] = []
    for choice in choices or []:
        if isinstance(choice, (list, tuple)) and len(choice) >= 2:
            entries.append((str(choice[0]), str(choice[1])))
        else:
            entries.append((str(choice), str(choice)))
    return entries


def write_choice(doc: fitz.Document, name: str, value: str) -> str:
    """Select a dropdown or list entry by export or display value."""

    with MUPDF_LOCK:
        for widget in _named_widgets(doc, name):
            entries = _choice_entries(getattr(widget, "choice_values", None))
            for export, display in entries:
                if _same_option(export, value) or _same_option(display, value):
                    cast(Any, widget).field_value = export
                    widget.update()
                    return export
            available = ", ".join(display for _, display in entries)
            raise FieldWriteError(f"Option '{value}' not available for field '{name}' (options: {available})")
    raise FieldWriteError(f"Field '{name}' has no widget to write to")


__all__ = [
    "declared_field_order",
    "has_native_fields",
    "list_native_fields",
    "native_type",
    "widget_name",
    "write_checkbox",
    "write_choice",
    "write_radio",
    "write_text",
]
