"""Opening, measuring and saving PDFs with PyMuPDF."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, List, Union

import fitz

from .errors import DocumentLoadError
from .models import PageSize

logger = logging.getLogger(__name__)

PdfSource = Union[str, Path, bytes, bytearray, BinaryIO]

# MuPDF contexts are not thread-safe; every fitz call in docfill runs under this lock.
MUPDF_LOCK = threading.RLock()


def read_pdf_bytes(source: PdfSource) -> bytes:
    """Return the raw bytes of a PDF given as a path, bytes or a binary stream."""

    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise DocumentLoadError(f"Could not read PDF {path}: {exc}") from exc
    if isinstance(source, BytesIO):
        return source.getvalue()
    data = source.read()
    if not isinstance(data, (bytes, bytearray)):
        raise DocumentLoadError("PDF stream must be opened in binary mode")
    return bytes(data)


def open_document(pdf_bytes: bytes) -> fitz.Document:
    if not pdf_bytes:
        raise DocumentLoadError("PDF is empty")
    with MUPDF_LOCK:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise DocumentLoadError(f"Could not open PDF: {exc}") from exc
        if doc.page_count == 0:
            doc.close()
            raise DocumentLoadError("PDF has no pages")
    return doc


@contextmanager
def opened(pdf_bytes: bytes) -> Iterator[fitz.Document]:
    """Open a document and hold the MuPDF lock for the duration of the block."""

    with MUPDF_LOCK:
        doc = open_document(pdf_bytes)
        try:
            yield doc
        finally:
            doc.close()


def page_sizes(doc: fitz.Document) -> List[PageSize]:
    with MUPDF_LOCK:
        return [PageSize(width=page.rect.width, height=page.rect.height) for page in doc]


def save_document(doc: fitz.Document, flatten: bool = True) -> bytes:
    """Serialize the document; identical edits on identical input give identical bytes."""

    with MUPDF_LOCK:
        if flatten:
            doc.bake(annots=False, widgets=True)
            logger.debug("Flattened form widgets into page content")
        return doc.tobytes(garbage=3, deflate=True, no_new_id=True)


__all__ = [
    "MUPDF_LOCK",
    "PdfSource",
    "open_document",
    "opened",
    "page_sizes",
    "read_pdf_bytes",
    "save_document",
]
