"""Mapping serialization and value-type invariants."""

import pytest

from docfill.errors import MappingFormatError, MappingNotFoundError, TemplateNotFoundError
from docfill.models import (
    DetectedField,
    DetectionResult,
    FieldMapping,
    FieldType,
    FillMethod,
    FillingResult,
    FormMapping,
    Rectangle,
)


class TestRectangle:
    def test_rejects_empty_size(self):
        with pytest.raises(ValueError):
            Rectangle(page=1, x=0, y=0, width=0, height=10)

    def test_touching_rectangles_do_not_intersect(self):
        left = Rectangle(page=1, x=0, y=0, width=10, height=10)
        right = Rectangle(page=1, x=10, y=0, width=10, height=10)
        assert not left.intersects(right)
        assert left.intersects(Rectangle(page=1, x=5, y=5, width=10, height=10))


class TestFieldMapping:
    def test_from_dict_defaults(self):
        entry = FieldMapping.from_dict("firstName", {"x": 100, "y": 700})
        assert entry.pdf_field == "firstName"
        assert entry.page == 1
        assert entry.has_position

    def test_to_dict_uses_camel_case_and_skips_missing(self):
        entry = FieldMapping(pdf_field="pesel", page=2, x=10.5, y=20.0, field_type=FieldType.TEXT)
        assert entry.to_dict() == {"pdfField": "pesel", "page": 2, "x": 10.5, "y": 20.0, "type": "text"}

    def test_position_is_optional(self):
        assert not FieldMapping.from_dict("name", {"pdfField": "topmostSubform[0].Name"}).has_position

    @pytest.mark.parametrize(
        "payload",
        [{"page": "2"}, {"page": True}, {"x": "10"}, {"type": "barcode"}, ["not", "an", "object"]],
    )
    def test_malformed_entries(self, payload):
        with pytest.raises(MappingFormatError):
            FieldMapping.from_dict("broken", payload)


class TestFormMapping:
    def test_round_trip(self):
        payload = {
            "version": "2023",
            "fields": {"totalIncome": {"pdfField": "totalIncome", "page": 1, "x": 380, "y": 370}},
            "calculations": {"totalIncome": "employmentIncome + civilContractIncome"},
        }
        mapping = FormMapping.from_dict(payload)
        assert mapping.fields["totalIncome"].x == 380.0
        assert FormMapping.from_dict(mapping.to_dict()) == mapping

    def test_requires_fields_object(self):
        with pytest.raises(MappingFormatError):
            FormMapping.from_dict({"version": "1.0"})

    def test_rejects_non_object_document(self):
        with pytest.raises(MappingFormatError):
            FormMapping.from_dict([1, 2, 3])


class TestResults:
    def test_filling_result_success_depends_on_errors(self):
        assert FillingResult(method=FillMethod.COORDINATE, warnings=("skipped",)).success
        assert not FillingResult(method=FillMethod.COORDINATE, errors=("boom",)).success

    def test_average_confidence(self):
        fields = [
            DetectedField("a", "A", 0, 0, 10, 10, 1, 0.9),
            DetectedField("b", "", 0, 0, 10, 10, 1, 0.5),
        ]
        assert DetectionResult(fields=fields).average_confidence == pytest.approx(0.7)
        assert DetectionResult().average_confidence == 0.0


class TestLookupErrors:
    def test_template_error_lists_paths_and_install_hint(self):
        error = TemplateNotFoundError("PIT-37", "2023", ["templates/PIT-37/2023/PIT-37_2023.pdf"])
        message = str(error)
        assert "templates/PIT-37/2023/PIT-37_2023.pdf" in message
        assert "Install the official PIT-37 form" in message
        assert error.attempted_paths == ["templates/PIT-37/2023/PIT-37_2023.pdf"]

    def test_mapping_error_message(self):
        error = MappingNotFoundError("PIT-R", "2024", ["a/mapping.json", "b/mapping.json"])
        assert str(error) == "No field mapping found for PIT-R 2024 (tried: a/mapping.json, b/mapping.json)"
