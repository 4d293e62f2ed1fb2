"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LOG_ENV_VAR = "DOCFILL_LOG"
_LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(name: str = "docfill") -> logging.Logger:
    """Attach the package stream handler once and apply the level from ``DOCFILL_LOG``."""

    logger = logging.getLogger(name)
    level_name = os.getenv(LOG_ENV_VAR, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def default_max_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


@dataclass(frozen=True)
class EngineSettings:
    templates_dir: Path = Path("templates")
    ocr_language: str = "pol"
    ocr_timeout: float = 0.0
    max_workers: int = 1

    @classmethod
    def from_env(cls, templates_dir: Optional[str] = None) -> "EngineSettings":
        return cls(
            templates_dir=Path(templates_dir or os.getenv("DOCFILL_TEMPLATES_DIR", "templates")),
            ocr_language=os.getenv("DOCFILL_OCR_LANG", "pol").strip() or "pol",
            ocr_timeout=max(0.0, _float_env("DOCFILL_OCR_TIMEOUT", 0.0)),
            max_workers=max(1, _int_env("DOCFILL_MAX_WORKERS", default_max_workers())),
        )


__all__ = ["EngineSettings", "configure_logging", "default_max_workers", "LOG_ENV_VAR"]
