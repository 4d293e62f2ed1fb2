"""Fill official tax-form templates from a versioned field mapping."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from docfill.config import EngineSettings
from docfill.errors import DocfillError, MappingNotFoundError, TemplateNotFoundError
from docfill.filler import UniversalFormFiller
from docfill.mapping import load_mapping_file
from docfill.models import FillMethod, FilledDocument, FillingOptions, FormMapping
from docfill.pipeline import fill_with_mapping
from docfill.utils import format_value
from models.form_jobs import FormJob, FormJobResult

from .calculations import calculate

logger = logging.getLogger(__name__)

LEGACY_TEMPLATES: Dict[str, str] = {"UPL-1": "upl-1_06-08-2.pdf"}
FALLBACK_VERSIONS: Tuple[str, ...] = ("2023",)
CALCULATED_KEY = "calculatedFields"

MappingLoader = Callable[[str, str], FormMapping]
CacheKey = Tuple[str, str]


class MappingCache:
    """Memoize one mapping per (form type, version).

    Each key is loaded at most once even under concurrent access; failed
    loads are not cached. Entries are never invalidated.
    """

    def __init__(self, loader: MappingLoader) -> None:
        self._loader = loader
        self._entries: Dict[CacheKey, FormMapping] = {}
        self._locks: Dict[CacheKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, form_type: str, version: str) -> FormMapping:
        key = (form_type, version)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        with self._guard:
            key_lock = self._locks.setdefault(key, threading.Lock())
        with key_lock:
            cached = self._entries.get(key)
            if cached is None:
                cached = self._loader(form_type, version)
                self._entries[key] = cached
                logger.debug("Cached mapping for %s %s", form_type, version)
            return cached

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TemplateFormService:
    """Template lookup, mapping cache, derived values and coordinate filling."""

    def __init__(
        self,
        templates_dir: Optional[Union[str, Path]] = None,
        mapping_loader: Optional[MappingLoader] = None,
        filler: Optional[UniversalFormFiller] = None,
        legacy_templates: Optional[Mapping[str, str]] = None,
        fallback_versions: Sequence[str] = FALLBACK_VERSIONS,
        max_workers: Optional[int] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        settings = settings or EngineSettings.from_env()
        self.templates_dir = Path(templates_dir) if templates_dir is not None else settings.templates_dir
        self.filler = filler or UniversalFormFiller()
        self.legacy_templates = dict(LEGACY_TEMPLATES if legacy_templates is None else legacy_templates)
        self.fallback_versions = tuple(fallback_versions)
        self.max_workers = max_workers or settings.max_workers
        self.mappings = MappingCache(mapping_loader or self._load_mapping_from_disk)

    def template_candidates(self, form_type: str, version: str) -> List[Path]:
        """Paths tried for a template, in lookup order."""

        candidates = [self.templates_dir / form_type / version / f"{form_type}_{version}.pdf"]
        for fallback in self.fallback_versions:
            if fallback != version:
                candidates.append(self.templates_dir / form_type / fallback / f"{form_type}_{fallback}.pdf")
        legacy = self.legacy_templates.get(form_type)
        if legacy:
            candidates.append(self.templates_dir / legacy)
        return candidates

    def load_template(self, form_type: str, version: str) -> bytes:
        candidates = self.template_candidates(form_type, version)
        for path in candidates:
            if path.is_file():
                if path != candidates[0]:
                    logger.warning("Using %s as template for %s %s", path, form_type, version)
                return path.read_bytes()
        raise TemplateNotFoundError(form_type, version, [str(path) for path in candidates])

    def mapping_candidates(self, form_type: str, version: str) -> List[Path]:
        return [
            self.templates_dir / form_type / version / "mapping.json",
            self.templates_dir / form_type / "mapping.json",
        ]

    def _load_mapping_from_disk(self, form_type: str, version: str) -> FormMapping:
        candidates = self.mapping_candidates(form_type, version)
        for path in candidates:
            if path.is_file():
                logger.debug("Loading mapping %s", path)
                return load_mapping_file(path)
        raise MappingNotFoundError(form_type, version, [str(path) for path in candidates])

    def load_mappings(self, form_type: str, version: str) -> FormMapping:
        return self.mappings.get(form_type, version)

    def calculate(self, form_type: str, data: Mapping[str, Any]) -> Dict[str, float]:
        return calculate(form_type, data)

    def process_form_data(self, form_type: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with this form's derived values under ``calculatedFields``."""

        processed = dict(data)
        processed[CALCULATED_KEY] = self.calculate(form_type, data)
        return processed

    @staticmethod
    def merged_values(processed: Mapping[str, Any]) -> Dict[str, Any]:
        values = {key: value for key, value in processed.items() if key != CALCULATED_KEY}
        values.update(processed.get(CALCULATED_KEY) or {})
        return values

    def fill_form_with_result(
        self,
        form_type: str,
        version: str,
        data: Mapping[str, Any],
        keep_fields_editable: bool = False,
    ) -> FilledDocument:
        template = self.load_template(form_type, version)
        mapping = self.load_mappings(form_type, version)
        values = self.merged_values(self.process_form_data(form_type, data))

        if keep_fields_editable and self.filler.analyze_pdf(template).has_native_form:
            record: Dict[str, Any] = {}
            for name, entry in mapping.fields.items():
                value = values.get(name)
                if value is not None:
                    record[entry.pdf_field] = value if isinstance(value, bool) else format_value(value)
            filled = self.filler.fill_form(
                template,
                record,
                FillingOptions(keep_fields_editable=True),
                method=FillMethod.NATIVE_FIELDS,
            )
        else:
            formatted = {name: format_value(value) for name, value in values.items() if value is not None}
            formatted = {name: text for name, text in formatted.items() if text}
            filled = fill_with_mapping(
                template,
                mapping,
                formatted,
                FillingOptions(keep_fields_editable=keep_fields_editable),
                self.filler,
            )

        result = filled.result
        logger.info(
            "Filled %s %s: %d fields written, %d skipped",
            form_type,
            version,
            result.fields_filled,
            result.fields_skipped,
        )
        for message in result.errors:
            logger.warning("%s %s: %s", form_type, version, message)
        return filled

    def fill_form(
        self,
        form_type: str,
        version: str,
        data: Mapping[str, Any],
        keep_fields_editable: bool = False,
    ) -> bytes:
        """Fill the official template for ``form_type``/``version`` and return PDF bytes.

        Raises :class:`TemplateNotFoundError` or :class:`MappingNotFoundError`
        when the template or its mapping is not installed.
        """

        return self.fill_form_with_result(form_type, version, data, keep_fields_editable).pdf_bytes

    def fill_form_as_stream(
        self,
        form_type: str,
        version: str,
        data: Mapping[str, Any],
        keep_fields_editable: bool = False,
    ) -> BytesIO:
        return BytesIO(self.fill_form(form_type, version, data, keep_fields_editable))

    def _run_job(self, job: FormJob) -> FormJobResult:
        try:
            pdf_bytes = self.fill_form(job.form_type, job.version, job.data, job.keep_fields_editable)
        except DocfillError as exc:
            logger.warning("Job %s failed: %s", job.job_id or job.form_type, exc)
            return FormJobResult(job=job, error=str(exc))
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job.job_id or job.form_type)
            return FormJobResult(job=job, error=f"{type(exc).__name__}: {exc}")
        return FormJobResult(job=job, pdf_bytes=pdf_bytes)

    def batch_fill(self, jobs: Iterable[FormJob], max_workers: Optional[int] = None) -> List[FormJobResult]:
        """Fill many forms on a bounded pool; results come back in input order."""

        job_list = list(jobs)
        if not job_list:
            return []
        with ThreadPoolExecutor(max_workers=max_workers or self.max_workers, thread_name_prefix="docfill-fill") as executor:
            return list(executor.map(self._run_job, job_list))


__all__ = ["CALCULATED_KEY", "LEGACY_TEMPLATES", "MappingCache", "TemplateFormService"]
