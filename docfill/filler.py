"""Fill any PDF from a flat record.

Documents with interactive form fields are filled through those fields.
Everything else gets the values drawn as text, either at explicit
coordinates or in an automatic layout on the first page.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

import fitz
from rapidfuzz import fuzz

from . import acroform
from .coords import baseline_point, within_page
from .documents import MUPDF_LOCK, PdfSource, opened, page_sizes, read_pdf_bytes, save_document
from .models import (
    FillMethod,
    FilledDocument,
    FillingOptions,
    FillingResult,
    NativeField,
    NativeFieldType,
    PageSize,
    PdfAnalysis,
)
from .utils import normalize_key, sanitize_text

logger = logging.getLogger(__name__)

FONT_NAME = "helv"
LEFT_COLUMN_X = 150.0
RIGHT_COLUMN_X = 350.0
TOP_OFFSET = 150.0
LINE_HEIGHT = 25.0
BOTTOM_MARGIN = 40.0

_FALSY = {"false", "0", "no", "off", "unchecked", "n", "", "nie"}
_UNSUPPORTED_NATIVE = {NativeFieldType.BUTTON, NativeFieldType.SIGNATURE, NativeFieldType.UNKNOWN}


@dataclass
class _Tally:
    """Mutable counters collected while filling, frozen into a FillingResult."""

    method: FillMethod
    detected: int = 0
    filled: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def skip(self, warning: Optional[str] = None, error: Optional[str] = None) -> None:
        self.skipped += 1
        if warning:
            self.warnings.append(warning)
        if error:
            self.errors.append(error)

    def freeze(self) -> FillingResult:
        return FillingResult(
            method=self.method,
            fields_detected=self.detected,
            fields_filled=self.filled,
            fields_skipped=self.skipped,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )


def is_truthy(value: Any) -> bool:
    """Checkbox semantics: common "no" strings are false, other values by truthiness."""

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _FALSY:
            return False
        return True
    return bool(value)


def is_coordinate_value(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    x, y = value.get("x"), value.get("y")
    return all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in (x, y))


class ValueResolver:
    """Find the record value for a field name.

    Lookup order: exact key, then (with fuzzy matching) normalized equality,
    then normalized substring in either direction, then an optional rapidfuzz
    similarity score.
    """

    def __init__(self, data: Mapping[str, Any], fuzzy: bool = True, similarity_threshold: Optional[float] = None) -> None:
        self.data = data
        self.fuzzy = fuzzy
        self.similarity_threshold = similarity_threshold
        self._normalized: List[Tuple[str, str]] = [(key, normalize_key(str(key))) for key in data]

    def resolve(self, name: str) -> Tuple[Optional[str], Any]:
        if name in self.data and self.data[name] is not None:
            return name, self.data[name]
        if not self.fuzzy:
            return None, None
        target = normalize_key(name)
        if not target:
            return None, None
        for key, normalized in self._normalized:
            if normalized == target and self.data[key] is not None:
                return key, self.data[key]
        for key, normalized in self._normalized:
            if normalized and (normalized in target or target in normalized) and self.data[key] is not None:
                return key, self.data[key]
        if self.similarity_threshold is not None:
            best_key, best_score = None, 0.0
            for key, normalized in self._normalized:
                if self.data[key] is None:
                    continue
                score = fuzz.token_set_ratio(target, normalized)
                if score > best_score:
                    best_key, best_score = key, score
            if best_key is not None and best_score >= self.similarity_threshold:
                logger.debug("Similarity match '%s' -> '%s' (score %.1f)", name, best_key, best_score)
                return best_key, self.data[best_key]
        return None, None


class UniversalFormFiller:
    """Dual-mode PDF filler."""

    def __init__(self, options: Optional[FillingOptions] = None) -> None:
        self.options = options or FillingOptions()

    def fill_form(
        self,
        pdf: PdfSource,
        data: Mapping[str, Any],
        options: Optional[FillingOptions] = None,
        method: Optional[FillMethod] = None,
    ) -> FilledDocument:
        """Fill ``pdf`` with ``data`` and return the new bytes plus a summary.

        The mode is chosen from the document unless ``method`` forces one. Only
        an unreadable document raises; per-field problems are reported in the
        result.
        """

        opts = options or self.options
        pdf_bytes = read_pdf_bytes(pdf)
        with opened(pdf_bytes) as doc:
            if method is None:
                method = FillMethod.NATIVE_FIELDS if acroform.has_native_fields(doc) else FillMethod.COORDINATE
            tally = _Tally(method=method)
            if method == FillMethod.NATIVE_FIELDS:
                self._fill_native(doc, pdf_bytes, data, opts, tally)
            else:
                self._fill_coordinates(doc, data, opts, tally)
            output = save_document(doc, flatten=not opts.keep_fields_editable)

        result = tally.freeze()
        logger.info(
            "Filled %d/%d fields via %s (%d skipped, %d errors)",
            result.fields_filled,
            result.fields_detected,
            result.method.value,
            result.fields_skipped,
            len(result.errors),
        )
        return FilledDocument(pdf_bytes=output, result=result)

    def fill_form_as_stream(
        self,
        pdf: PdfSource,
        data: Mapping[str, Any],
        options: Optional[FillingOptions] = None,
    ) -> BytesIO:
        filled = self.fill_form(pdf, data, options)
        return BytesIO(filled.pdf_bytes)

    def fill_form_to_file(
        self,
        pdf: PdfSource,
        data: Mapping[str, Any],
        destination: Union[str, Path],
        options: Optional[FillingOptions] = None,
    ) -> FillingResult:
        filled = self.fill_form(pdf, data, options)
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(filled.pdf_bytes)
        logger.info("Saved filled PDF to %s", destination)
        return filled.result

    def analyze_pdf(self, pdf: PdfSource) -> PdfAnalysis:
        pdf_bytes = read_pdf_bytes(pdf)
        with opened(pdf_bytes) as doc:
            sizes = page_sizes(doc)
            fields = acroform.list_native_fields(doc, pdf_bytes)
        return PdfAnalysis(
            page_count=len(sizes),
            page_size=sizes[0],
            has_native_form=bool(fields),
            field_count=len(fields),
            fields=fields,
        )

    def _prepare_text(self, value: Any, opts: FillingOptions) -> str:
        text = str(value)
        return sanitize_text(text) if opts.sanitize_diacritics else text

    def _fill_native(
        self,
        doc: fitz.Document,
        pdf_bytes: bytes,
        data: Mapping[str, Any],
        opts: FillingOptions,
        tally: _Tally,
    ) -> None:
        fields = acroform.list_native_fields(doc, pdf_bytes)
        tally.detected = len(fields)
        resolver = ValueResolver(data, fuzzy=opts.fuzzy_matching, similarity_threshold=opts.similarity_threshold)
        for native in fields:
            key, value = resolver.resolve(native.name)
            if key is None:
                tally.skip(warning=f"No data provided for field: {native.name}")
                continue
            if native.field_type in _UNSUPPORTED_NATIVE:
                tally.skip(warning=f"Unsupported field type {native.field_type.value} for field: {native.name}")
                continue
            try:
                self._write_native(doc, native, value, opts)
            except Exception as exc:
                logger.debug("Writing '%s' failed: %s", native.name, exc)
                tally.skip(error=f"Error filling field {native.name}: {exc}")
                continue
            logger.debug("Filled native field '%s' from key '%s'", native.name, key)
            tally.filled += 1

    def _write_native(self, doc: fitz.Document, native: NativeField, value: Any, opts: FillingOptions) -> None:
        kind = native.field_type
        if kind == NativeFieldType.TEXT:
            acroform.write_text(doc, native.name, self._prepare_text(value, opts))
        elif kind == NativeFieldType.CHECKBOX:
            acroform.write_checkbox(doc, native.name, is_truthy(value))
        elif kind == NativeFieldType.RADIO:
            acroform.write_radio(doc, native.name, str(value))
        elif kind in (NativeFieldType.DROPDOWN, NativeFieldType.LISTBOX):
            acroform.write_choice(doc, native.name, str(value))

    def _fill_coordinates(
        self,
        doc: fitz.Document,
        data: Mapping[str, Any],
        opts: FillingOptions,
        tally: _Tally,
    ) -> None:
        tally.detected = len(data)
        if any(is_coordinate_value(value) for value in data.values()):
            self._draw_explicit(doc, data, opts, tally)
        else:
            self._draw_auto_layout(doc, data, opts, tally)

    def _draw_explicit(self, doc: fitz.Document, data: Mapping[str, Any], opts: FillingOptions, tally: _Tally) -> None:
        sizes = page_sizes(doc)
        for key, placement in data.items():
            if not is_coordinate_value(placement):
                tally.skip(warning=f"No coordinates for field: {key}")
                continue
            page_number = placement.get("page", 1)
            if isinstance(page_number, bool) or not isinstance(page_number, int) or not 1 <= page_number <= len(sizes):
                tally.skip(warning=f"Invalid page {page_number} for field: {key}")
                continue
            value = placement.get("value")
            if value is None:
                value = placement.get("text")
            if value is None:
                tally.skip(warning=f"No data provided for field: {key}")
                continue
            self._draw(doc, key, page_number, float(placement["x"]), float(placement["y"]), value, sizes[page_number - 1], opts, tally)

    def _draw_auto_layout(self, doc: fitz.Document, data: Mapping[str, Any], opts: FillingOptions, tally: _Tally) -> None:
        size = page_sizes(doc)[0]
        positions = layout_positions(size.height, len(data), smart=opts.smart_positioning)
        for index, (key, value) in enumerate(data.items()):
            if value is None:
                tally.skip(warning=f"No data provided for field: {key}")
                continue
            position = positions[index] if index < len(positions) else None
            if position is None:
                tally.skip(warning=f"No position available for field: {key}")
                continue
            self._draw(doc, key, 1, position[0], position[1], value, size, opts, tally)

    def _draw(
        self,
        doc: fitz.Document,
        key: str,
        page_number: int,
        x: float,
        y: float,
        value: Any,
        size: PageSize,
        opts: FillingOptions,
        tally: _Tally,
    ) -> None:
        if opts.validate_fields and not within_page(x, y, size.width, size.height):
            tally.skip(
                error=f"Error filling field {key}: position ({x:g}, {y:g}) outside page bounds "
                f"({size.width:g}x{size.height:g})"
            )
            return
        text = self._prepare_text(value, opts)
        try:
            with MUPDF_LOCK:
                page = doc[page_number - 1]
                page.insert_text(
                    baseline_point(x, y, size.height),
                    text,
                    fontsize=opts.font_size,
                    fontname=FONT_NAME,
                    color=opts.font_color,
                )
        except Exception as exc:
            tally.skip(error=f"Error drawing text for {key}: {exc}")
            return
        logger.debug("Drew '%s' on page %d at (%.1f, %.1f)", key, page_number, x, y)
        tally.filled += 1


def layout_positions(page_height: float, count: int, smart: bool = True) -> List[Optional[Tuple[float, float]]]:
    """Automatic positions (document space) for ``count`` values.

    Smart layout uses two columns of ``ceil(count / 2)`` rows; basic layout a
    single column. Rows that would fall below the bottom margin get ``None``.
    """

    top = page_height - TOP_OFFSET
    rows = math.ceil(count / 2) if smart else count
    positions: List[Optional[Tuple[float, float]]] = []
    for index in range(count):
        column, row = divmod(index, rows) if rows else (0, index)
        x = RIGHT_COLUMN_X if column else LEFT_COLUMN_X
        y = top - row * LINE_HEIGHT
        positions.append((x, y) if y >= BOTTOM_MARGIN else None)
    return positions


def fill_form(pdf: PdfSource, data: Mapping[str, Any], options: Optional[FillingOptions] = None) -> FilledDocument:
    return UniversalFormFiller(options).fill_form(pdf, data)


__all__ = [
    "UniversalFormFiller",
    "ValueResolver",
    "fill_form",
    "is_coordinate_value",
    "is_truthy",
    "layout_positions",
]
