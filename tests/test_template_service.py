"""Template lookup, mapping cache and tax-form filling."""

import json
import shutil
import threading
import time
from pathlib import Path

import pytest

from docfill.errors import MappingNotFoundError, TemplateNotFoundError
from docfill.models import FieldMapping, FormMapping
from models.form_jobs import FormJob
from services.template_service import CALCULATED_KEY, MappingCache, TemplateFormService

from .conftest import build_flat_pdf, build_native_pdf, page_text, widget_values

SHIPPED_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"

PIT37_RECORD = {
    "taxpayerName": "Jan Kowalski",
    "employmentIncome": 60000,
    "civilContractIncome": 15000,
    "childDeduction": 1112.04,
    "numberOfChildren": 2,
    "taxPaid": 8500,
}


@pytest.fixture
def templates(tmp_path):
    root = tmp_path / "templates"
    (root / "PIT-37" / "2023").mkdir(parents=True)
    (root / "PIT-37" / "2023" / "PIT-37_2023.pdf").write_bytes(build_flat_pdf(pages=2))
    shutil.copy(SHIPPED_TEMPLATES / "PIT-37" / "mapping.json", root / "PIT-37" / "mapping.json")
    return root


@pytest.fixture
def service(templates, settings):
    return TemplateFormService(templates, settings=settings)


class TestTemplateLookup:
    def test_versioned_template(self, service, templates):
        assert service.load_template("PIT-37", "2023")[:5] == b"%PDF-"
        assert service.template_candidates("PIT-37", "2023")[0] == templates / "PIT-37" / "2023" / "PIT-37_2023.pdf"

    def test_falls_back_to_2023(self, service):
        assert service.load_template("PIT-37", "2024")[:5] == b"%PDF-"

    def test_legacy_location(self, service, templates):
        (templates / "upl-1_06-08-2.pdf").write_bytes(build_flat_pdf())
        assert service.template_candidates("UPL-1", "2023")[-1] == templates / "upl-1_06-08-2.pdf"
        assert service.load_template("UPL-1", "2023")[:5] == b"%PDF-"

    def test_missing_template_names_the_path(self, settings, tmp_path):
        service = TemplateFormService(tmp_path / "empty", settings=settings)
        with pytest.raises(TemplateNotFoundError) as excinfo:
            service.fill_form("PIT-37", "2023", PIT37_RECORD)
        expected = str(tmp_path / "empty" / "PIT-37" / "2023" / "PIT-37_2023.pdf")
        assert expected in str(excinfo.value)
        assert excinfo.value.attempted_paths[0] == expected

    def test_missing_mapping(self, service, templates):
        (templates / "PIT-R" / "2023").mkdir(parents=True)
        (templates / "PIT-R" / "2023" / "PIT-R_2023.pdf").write_bytes(build_flat_pdf())
        with pytest.raises(MappingNotFoundError) as excinfo:
            service.fill_form("PIT-R", "2023", {})
        assert len(excinfo.value.attempted_paths) == 2

    def test_versioned_mapping_wins(self, service, templates):
        versioned = {"version": "2024", "fields": {"pesel": {"x": 1, "y": 2}}}
        (templates / "PIT-37" / "2024").mkdir()
        (templates / "PIT-37" / "2024" / "mapping.json").write_text(json.dumps(versioned), encoding="utf-8")
        assert service.load_mappings("PIT-37", "2024").version == "2024"
        assert service.load_mappings("PIT-37", "2023").version == "2023"

    @pytest.mark.parametrize("form_type", ["PIT-37", "PIT-R", "UPL-1"])
    def test_shipped_mappings_parse(self, form_type, settings):
        mapping = TemplateFormService(SHIPPED_TEMPLATES, settings=settings).load_mappings(form_type, "2023")
        assert mapping.fields
        assert all(entry.has_position for entry in mapping.fields.values())


class TestMappingCache:
    def test_loads_each_key_once_under_concurrency(self):
        calls = []

        def slow_loader(form_type, version):
            calls.append((form_type, version))
            time.sleep(0.05)
            return FormMapping(version=version)

        cache = MappingCache(slow_loader)
        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.get("PIT-37", "2023"))) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert calls == [("PIT-37", "2023")]
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert ("PIT-37", "2023") in cache
        assert len(cache) == 1

    def test_failures_are_not_cached(self):
        attempts = []

        def flaky_loader(form_type, version):
            attempts.append(version)
            if len(attempts) == 1:
                raise MappingNotFoundError(form_type, version, [])
            return FormMapping(version=version)

        cache = MappingCache(flaky_loader)
        with pytest.raises(MappingNotFoundError):
            cache.get("PIT-R", "2023")
        assert cache.get("PIT-R", "2023").version == "2023"
        assert len(attempts) == 2

    def test_injected_loader(self, templates, settings):
        mapping = FormMapping(version="test", fields={"pesel": FieldMapping("pesel", x=100, y=700)})
        service = TemplateFormService(templates, mapping_loader=lambda form_type, version: mapping, settings=settings)
        filled = service.fill_form("PIT-37", "2023", {"pesel": "90010112345"})
        assert "90010112345" in page_text(filled)


class TestProcessing:
    def test_process_form_data_adds_calculations(self, service):
        processed = service.process_form_data("PIT-37", PIT37_RECORD)
        assert processed["employmentIncome"] == 60000
        assert processed[CALCULATED_KEY]["totalIncome"] == 75000
        assert processed[CALCULATED_KEY]["taxDue"] == pytest.approx(12371.91, abs=0.01)
        assert CALCULATED_KEY not in PIT37_RECORD

    def test_forms_without_rules(self, service):
        assert service.process_form_data("UPL-1", {"a": 1})[CALCULATED_KEY] == {}

    def test_merged_values_prefer_calculations(self):
        merged = TemplateFormService.merged_values({"taxDue": 1, CALCULATED_KEY: {"taxDue": 2.5}})
        assert merged == {"taxDue": 2.5}


class TestFillForm:
    def test_values_and_calculations_are_drawn(self, service):
        filled = service.fill_form_with_result("PIT-37", "2023", PIT37_RECORD)
        first, second = page_text(filled.pdf_bytes, 1), page_text(filled.pdf_bytes, 2)
        assert "Jan Kowalski" in first
        assert "75000.00" in first
        assert "60000.00" in first
        assert "12371.91" in second
        assert "2224.08" in second
        assert filled.result.success

    def test_stream_output(self, service):
        assert service.fill_form_as_stream("PIT-37", "2023", PIT37_RECORD).read(5) == b"%PDF-"

    def test_booleans_become_marks(self, service):
        pdf = service.fill_form("PIT-37", "2023", {"jointFiling": True, "pesel": "90010112345"})
        assert "X" in page_text(pdf).split()

    def test_editable_native_template(self, tmp_path, settings):
        root = tmp_path / "templates"
        (root / "ZAP-3" / "2023").mkdir(parents=True)
        (root / "ZAP-3" / "2023" / "ZAP-3_2023.pdf").write_bytes(build_native_pdf(text_fields=("Nazwisko[0]", "Kwota[0]")))
        mapping = {
            "version": "2023",
            "fields": {"lastName": {"pdfField": "Nazwisko[0]"}, "amount": {"pdfField": "Kwota[0]"}},
        }
        (root / "ZAP-3" / "mapping.json").write_text(json.dumps(mapping), encoding="utf-8")
        service = TemplateFormService(root, settings=settings)
        pdf = service.fill_form("ZAP-3", "2023", {"lastName": "Kowalski", "amount": 1250}, keep_fields_editable=True)
        assert widget_values(pdf) == {"Nazwisko[0]": "Kowalski", "Kwota[0]": "1250.00"}


class TestBatchFill:
    def test_results_keep_input_order(self, service):
        jobs = [
            FormJob("PIT-37", "2023", dict(PIT37_RECORD), job_id="first"),
            FormJob("XYZ-1", "2023", {}, job_id="missing"),
            FormJob("PIT-37", "2023", {"pesel": "90010112345"}, job_id="third"),
        ]
        results = service.batch_fill(jobs, max_workers=3)
        assert [result.job.job_id for result in results] == ["first", "missing", "third"]
        assert results[0].ok and results[2].ok
        assert not results[1].ok
        assert "XYZ-1" in results[1].error

    def test_empty_batch(self, service):
        assert service.batch_fill([]) == []

    def test_unreadable_numbers_still_fill(self, service):
        jobs = [
            FormJob("PIT-37", "2023", {"employmentIncome": "abc", "civilContractIncome": 1}),
            FormJob("PIT-37", "2023", {"employmentIncome": [60000], "civilContractIncome": 1}),
            FormJob("PIT-37", "2023", {}),
        ]
        results = service.batch_fill(jobs)
        assert all(result.ok for result in results)
        assert "abc" in page_text(results[0].pdf_bytes, 1)

    def test_polish_formatted_income(self, service):
        pdf = service.fill_form("PIT-37", "2023", {"employmentIncome": "60 000,00", "civilContractIncome": "15 000,00"})
        assert "75000.00" in page_text(pdf, 1)

    def test_unexpected_failure_stays_in_its_job(self, service, monkeypatch):
        real_process = service.process_form_data

        def process(form_type, data):
            if data.get("explode"):
                raise RuntimeError("calculation crashed")
            return real_process(form_type, data)

        monkeypatch.setattr(service, "process_form_data", process)
        jobs = [FormJob("PIT-37", "2023", {"explode": True}, job_id="bad"), FormJob("PIT-37", "2023", {}, job_id="good")]
        results = service.batch_fill(jobs, max_workers=2)
        assert [result.job.job_id for result in results] == ["bad", "good"]
        assert not results[0].ok
        assert results[0].error == "RuntimeError: calculation crashed"
        assert results[1].ok
