"""Streamlit workbench for docfill: analyze, detect, fill and tax-form filling."""

from __future__ import annotations

import io
import json
from typing import Any, Dict, Optional

import streamlit as st
from dotenv import load_dotenv

from docfill import (
    DocfillError,
    EngineSettings,
    FieldDetector,
    FillingOptions,
    UniversalFormFiller,
    generate_mapping,
)
from docfill.visualize import render_detection_overlay
from services import FormFieldService, TemplateFormService

load_dotenv()

SETTINGS = EngineSettings.from_env()
FILLER = UniversalFormFiller()


@st.cache_resource
def _template_service() -> TemplateFormService:
    return TemplateFormService(settings=SETTINGS)


def _parse_record(raw: str) -> Optional[Dict[str, Any]]:
    """Parse the JSON record typed by the user; show an error and return None if invalid."""

    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        st.error(f"Record is not valid JSON: {e}")
        return None
    if not isinstance(parsed, dict):
        st.error("Record must be a JSON object of field name to value.")
        return None
    return parsed


def _render_result_summary(result) -> None:
    col1, col2, col3 = st.columns(3)
    col1.metric("Method", result.method.value)
    col2.metric("Filled", f"{result.fields_filled}/{result.fields_detected}")
    col3.metric("Skipped", result.fields_skipped)
    for message in result.errors:
        st.error(message)
    if result.warnings:
        with st.expander(f"Warnings ({len(result.warnings)})"):
            for message in result.warnings:
                st.text(message)


def _render_analysis(pdf_bytes: bytes) -> None:
    analysis = FILLER.analyze_pdf(pdf_bytes)
    st.write(
        f"{analysis.page_count} page(s), first page {analysis.page_size.width:.0f}×"
        f"{analysis.page_size.height:.0f} pt"
    )
    if analysis.has_native_form:
        st.success(f"Interactive form with {analysis.field_count} fields")
        st.table([{"name": item.name, "type": item.field_type.value, "page": item.page} for item in analysis.fields])
    else:
        st.info("No interactive form fields. Values will be drawn as text.")


def _render_detection_tab(pdf_bytes: bytes, file_name: str) -> None:
    version = st.text_input("Mapping version", value="2023")
    page = st.number_input("Overlay page", min_value=1, value=1, step=1)
    if st.button("Detect fields"):
        with st.spinner("Rendering pages and running OCR..."):
            try:
                result = FieldDetector(settings=SETTINGS).detect_fields(pdf_bytes)
            except DocfillError as e:
                st.error(str(e))
                return
        st.session_state.detection = result
    result = st.session_state.get("detection")
    if result is None:
        return
    st.write(f"{len(result.fields)} fields, {len(result.rectangles)} boxes, {len(result.texts)} words")
    for message in result.errors + result.warnings:
        st.warning(message)
    if int(page) <= result.page_count:
        st.image(render_detection_overlay(pdf_bytes, result, int(page)), caption="Boxes blue, words green, fields red")
    mapping = generate_mapping(result, version)
    payload = json.dumps(mapping.to_dict(), indent=2, ensure_ascii=False)
    st.download_button(
        label="Download mapping JSON",
        data=payload,
        file_name=f"{file_name.rsplit('.', 1)[0]}_{version}_mapping.json",
        mime="application/json",
    )


def _render_fill_tab(pdf_bytes: bytes, file_name: str) -> None:
    raw = st.text_area("Record (JSON)", value='{\n  "firstName": "Jan",\n  "lastName": "Kowalski"\n}', height=180)
    col1, col2 = st.columns(2)
    sanitize = col1.checkbox("Replace Polish characters", value=True)
    smart = col1.checkbox("Two-column layout", value=True)
    fuzzy = col2.checkbox("Fuzzy field matching", value=True)
    editable = col2.checkbox("Keep fields editable", value=False)
    font_size = st.slider("Font size", min_value=6, max_value=16, value=10)
    if not st.button("Fill PDF"):
        return
    record = _parse_record(raw)
    if record is None:
        return
    options = FillingOptions(
        sanitize_diacritics=sanitize,
        font_size=float(font_size),
        smart_positioning=smart,
        fuzzy_matching=fuzzy,
        keep_fields_editable=editable,
    )
    try:
        filled = FILLER.fill_form(pdf_bytes, record, options)
    except DocfillError as e:
        st.error(str(e))
        return
    _render_result_summary(filled.result)
    st.download_button(
        label="Download Filled PDF",
        data=filled.pdf_bytes,
        file_name=f"filled_{file_name}",
        mime="application/pdf",
    )


def _render_tax_form_tab() -> None:
    service = _template_service()
    st.caption(f"Templates directory: {service.templates_dir}")
    form_type = st.selectbox("Form type", ["PIT-37", "PIT-R", "UPL-1"])
    version = st.text_input("Form version", value="2023", key="tax_version")
    raw = st.text_area("Form data (JSON)", value="{}", height=180, key="tax_record")
    editable = st.checkbox("Keep fields editable", value=False, key="tax_editable")
    record = _parse_record(raw)
    if record is None:
        return
    try:
        calculated = service.calculate(form_type, record)
    except ValueError as e:
        st.error(f"Numeric fields must hold numbers: {e}")
        return
    if calculated:
        st.json({key: round(value, 2) for key, value in calculated.items()})
    if not st.button("Fill tax form"):
        return
    try:
        pdf_bytes = service.fill_form(form_type, version, record, keep_fields_editable=editable)
    except DocfillError as e:
        st.error(str(e))
        return
    st.success("Form filled.")
    st.download_button(
        label="Download Filled PDF",
        data=io.BytesIO(pdf_bytes),
        file_name=f"{form_type}_{version}_filled.pdf",
        mime="application/pdf",
    )


def _render_mapping_import() -> None:
    uploaded = st.file_uploader("Mapping JSON", type=["json"], key="mapping_upload")
    if not uploaded:
        return
    try:
        mapping = FormFieldService.import_mapping(uploaded.getvalue())
    except DocfillError as e:
        st.error(str(e))
        return
    st.write(f"Version {mapping.version or '?'}, {len(mapping.fields)} fields")
    st.json(mapping.to_dict())


def main() -> None:
    st.set_page_config(page_title="docfill", page_icon="📝", layout="wide")
    st.title("docfill workbench")

    with st.sidebar:
        st.header("Mappings")
        st.markdown("Inspect a mapping file exported from detection.")
        _render_mapping_import()

    detect_tab, fill_tab, tax_tab = st.tabs(["Detect fields", "Fill any PDF", "Tax forms"])
    with tax_tab:
        _render_tax_form_tab()

    uploaded_pdf = st.file_uploader("Upload PDF", type=["pdf"], accept_multiple_files=False)
    if not uploaded_pdf:
        with detect_tab:
            st.info("Upload a PDF to begin.")
        with fill_tab:
            st.info("Upload a PDF to begin.")
        return

    if st.session_state.get("uploaded_filename") != uploaded_pdf.name:
        st.session_state.uploaded_filename = uploaded_pdf.name
        st.session_state.detection = None
    pdf_bytes = uploaded_pdf.getvalue()

    try:
        with fill_tab:
            _render_analysis(pdf_bytes)
            _render_fill_tab(pdf_bytes, uploaded_pdf.name)
        with detect_tab:
            _render_detection_tab(pdf_bytes, uploaded_pdf.name)
    except DocfillError as e:
        st.error(f"Could not process {uploaded_pdf.name}: {e}")


if __name__ == "__main__":
    main()
