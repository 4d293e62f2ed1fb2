"""Tax-form calculation rules."""

import pytest

from services.calculations import TAX_RATE, calculate, pit37, pitr


class TestPit37:
    def test_full_record(self):
        result = pit37(
            {
                "employmentIncome": 60000,
                "civilContractIncome": 15000,
                "childDeduction": 1112.04,
                "numberOfChildren": 2,
                "taxPaid": 8500,
            }
        )
        assert result["totalIncome"] == 75000
        assert result["totalTaxDeduction"] == pytest.approx(2224.08)
        assert result["taxBase"] == pytest.approx(72775.92)
        assert result["taxDue"] == pytest.approx(12371.91, abs=0.01)
        assert TAX_RATE == 0.17
        assert result["taxToPay"] == pytest.approx(72775.92 * TAX_RATE - 8500)

    def test_income_only(self):
        result = pit37({"employmentIncome": 60000, "civilContractIncome": 15000, "taxPaid": 8500})
        assert result == {"totalIncome": 75000}

    def test_missing_inputs_give_nothing(self):
        assert pit37({"employmentIncome": 60000}) == {}

    def test_numeric_strings_are_accepted(self):
        assert pit37({"employmentIncome": "1000", "civilContractIncome": "250.5"})["totalIncome"] == 1250.5

    def test_empty_string_counts_as_missing(self):
        assert pit37({"employmentIncome": "", "civilContractIncome": 10}) == {}

    def test_non_numeric_input_is_left_out(self):
        assert pit37({"employmentIncome": "dużo", "civilContractIncome": 1}) == {}
        assert pit37({"employmentIncome": [60000], "civilContractIncome": 1}) == {}

    def test_polish_number_format(self):
        result = pit37({"employmentIncome": "60 000,00", "civilContractIncome": "1\xa0500,50"})
        assert result["totalIncome"] == pytest.approx(61500.5)


class TestPitR:
    def test_business_record(self):
        result = pitr({"businessIncome": 100000, "businessCosts": 40000, "taxPaid": 10000})
        assert result["taxBase"] == 60000
        assert result["taxDue"] == pytest.approx(10200)
        assert result["taxToPay"] == pytest.approx(200)

    def test_without_tax_paid(self):
        assert "taxToPay" not in pitr({"businessIncome": 10, "businessCosts": 5})


class TestCalculate:
    def test_dispatch_is_case_insensitive(self):
        assert calculate("pit-r", {"businessIncome": 10, "businessCosts": 4})["taxBase"] == 6

    def test_unknown_form_has_no_rules(self):
        assert calculate("UPL-1", {"employmentIncome": 1, "civilContractIncome": 2}) == {}
