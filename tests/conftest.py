"""Shared fixtures: PDFs are generated with PyMuPDF so the suite needs no binary assets."""

from typing import Dict, List, Optional, Sequence

import fitz
import pytest

from docfill.config import EngineSettings
from docfill.models import RecognizedText
from docfill.errors import RecognitionError

A4 = (595, 842)


def build_flat_pdf(pages: int = 1, text: Optional[str] = "Formularz") -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        page = doc.new_page(width=A4[0], height=A4[1])
        if text:
            page.insert_text((50, 50), text, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def build_native_pdf(
    text_fields: Sequence[str] = ("firstName", "lastName"),
    checkboxes: Sequence[str] = (),
    dropdowns: Optional[Dict[str, List[str]]] = None,
) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=A4[0], height=A4[1])
    top = 100
    for name in text_fields:
        widget = fitz.Widget()
        widget.field_name = name
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.rect = fitz.Rect(100, top, 300, top + 20)
        page.add_widget(widget)
        top += 40
    for name in checkboxes:
        widget = fitz.Widget()
        widget.field_name = name
        widget.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
        widget.rect = fitz.Rect(100, top, 115, top + 15)
        widget.field_value = False
        page.add_widget(widget)
        top += 40
    for name, choices in (dropdowns or {}).items():
        widget = fitz.Widget()
        widget.field_name = name
        widget.field_type = fitz.PDF_WIDGET_TYPE_COMBOBOX
        widget.rect = fitz.Rect(100, top, 300, top + 20)
        widget.choice_values = list(choices)
        widget.field_value = choices[0]
        page.add_widget(widget)
        top += 40
    data = doc.tobytes()
    doc.close()
    return data


def build_boxed_pdf(boxes: Sequence[fitz.Rect]) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=A4[0], height=A4[1])
    for rect in boxes:
        page.draw_rect(rect, color=(0, 0, 0), width=1)
    data = doc.tobytes()
    doc.close()
    return data


def widget_values(pdf_bytes: bytes) -> Dict[str, object]:
    values: Dict[str, object] = {}
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        for page in doc:
            for widget in page.widgets():
                values[widget.field_name] = widget.field_value
    return values


def page_text(pdf_bytes: bytes, page: int = 1) -> str:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc[page - 1].get_text()


def page_words(pdf_bytes: bytes, page: int = 1):
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc[page - 1].get_text("words")


class StubRecognizer:
    """Returns canned words (raster coordinates) instead of running Tesseract."""

    def __init__(self, words: Optional[Sequence[RecognizedText]] = None, fail: bool = False) -> None:
        self.words = list(words or [])
        self.fail = fail
        self.calls = 0

    def recognize(self, raster):
        self.calls += 1
        if self.fail:
            raise RecognitionError(raster.page, "tesseract is not installed")
        return [word for word in self.words if word.page == raster.page]


@pytest.fixture
def settings(tmp_path):
    return EngineSettings(templates_dir=tmp_path, ocr_language="pol", ocr_timeout=0, max_workers=2)


@pytest.fixture(scope="session")
def flat_pdf() -> bytes:
    return build_flat_pdf()


@pytest.fixture(scope="session")
def native_pdf() -> bytes:
    return build_native_pdf()


@pytest.fixture(scope="session")
def rich_native_pdf() -> bytes:
    return build_native_pdf(
        text_fields=("firstName", "lastName", "city"),
        checkboxes=("agree",),
        dropdowns={"country": ["Polska", "Niemcy", "Czechy"]},
    )
