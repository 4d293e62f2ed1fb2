"""Text helpers and coordinate conversions."""

import pytest

from docfill.coords import (
    baseline_point,
    rectangle_to_points,
    text_to_points,
    to_bottom_up,
    to_top_down,
    within_page,
)
from docfill.models import DetectedField, Rectangle, RecognizedText
from docfill.utils import (
    assign_unique_names,
    format_value,
    normalize_key,
    sanitize_text,
    slugify,
    strip_diacritics,
)


def detected(name):
    return DetectedField(name=name, label="", x=0, y=0, width=10, height=10, page=1, confidence=1.0)


class TestTextHelpers:
    def test_strip_diacritics_covers_polish_alphabet(self):
        assert strip_diacritics("ąćęłńóśźż ĄĆĘŁŃÓŚŹŻ") == "acelnoszz ACELNOSZZ"

    def test_sanitize_removes_control_characters(self):
        assert sanitize_text("Zażółć\x07 gęślą\x9f jaźń") == "Zazolc gesla jazn"

    def test_sanitize_keeps_plain_ascii(self):
        assert sanitize_text("Jan Kowalski 12/3") == "Jan Kowalski 12/3"

    @pytest.mark.parametrize(
        "key, expected",
        [("First_Name", "firstname"), ("first-name", "firstname"), ("Ulica i numer", "ulicainumer"), ("Miejscowość", "miejscowosc")],
    )
    def test_normalize_key(self, key, expected):
        assert normalize_key(key) == expected

    def test_slugify(self):
        assert slugify("  Imię i nazwisko: ") == "imie_i_nazwisko"
        assert slugify("Kod-pocztowy (XX-XXX)") == "kod_pocztowy_xx_xxx"
        assert slugify("***") == ""


class TestFormatValue:
    def test_booleans_become_marks(self):
        assert format_value(True) == "X"
        assert format_value(False) == ""

    def test_numbers_get_two_decimals(self):
        assert format_value(75000) == "75000.00"
        assert format_value(12.5) == "12.50"

    def test_strings_pass_through(self):
        assert format_value("Kraków") == "Kraków"


class TestAssignUniqueNames:
    def test_duplicates_are_suffixed_in_order(self):
        names = [item.name for item in assign_unique_names([detected("kwota"), detected("kwota"), detected("kwota")])]
        assert names == ["kwota", "kwota_2", "kwota_3"]

    def test_suffix_skips_names_already_taken(self):
        fields = [detected("data"), detected("data_2"), detected("data")]
        assert [item.name for item in assign_unique_names(fields)] == ["data", "data_2", "data_3"]

    def test_unique_names_are_untouched(self):
        fields = [detected("a"), detected("b")]
        assert assign_unique_names(fields) == fields


class TestCoordinates:
    def test_rectangle_scaled_down(self):
        converted = rectangle_to_points(Rectangle(page=2, x=200, y=100, width=400, height=40))
        assert (converted.page, converted.x, converted.y, converted.width, converted.height) == (2, 100, 50, 200, 20)

    def test_text_scaled_down(self):
        converted = text_to_points(RecognizedText("Nazwa", 20, 40, 60, 10, 0.8, page=3))
        assert (converted.x, converted.y, converted.width, converted.height) == (10, 20, 30, 5)
        assert converted.confidence == 0.8
        assert converted.page == 3

    def test_bottom_up_round_trip(self):
        bottom = to_bottom_up(100, 20, 842)
        assert bottom == 722
        assert to_top_down(bottom, 20, 842) == 100

    def test_baseline_point_flips_y(self):
        assert baseline_point(150, 692, 842) == (150, 150)

    def test_within_page_is_inclusive(self):
        assert within_page(0, 0, 595, 842)
        assert within_page(595, 842, 595, 842)
        assert not within_page(700, 100, 595, 842)
        assert not within_page(10, -1, 595, 842)
