"""Text helpers shared by detection and filling."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import replace
from typing import Any, Iterable, List

from .models import DetectedField

_DIACRITICS = str.maketrans(
    {
        "ą": "a", "ć": "c", "ę": "e", "ł": "l", "ń": "n", "ó": "o", "ś": "s", "ź": "z", "ż": "z",
        "Ą": "A", "Ć": "C", "Ę": "E", "Ł": "L", "Ń": "N", "Ó": "O", "Ś": "S", "Ź": "Z", "Ż": "Z",
    }
)
_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F]")
_KEY_SEPARATORS = re.compile(r"[_\-\s]")
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def strip_diacritics(text: str) -> str:
    return text.translate(_DIACRITICS)


def sanitize_text(text: str) -> str:
    """Replace accented letters with their base form and drop control characters.

    The standard Helvetica font used for drawn text cannot encode characters
    such as ``ł``; this keeps output readable instead of showing placeholders.
    """

    return _CONTROL_CHARS.sub("", strip_diacritics(text))


def normalize_key(key: str) -> str:
    return strip_diacritics(_KEY_SEPARATORS.sub("", key.lower()))


def slugify(label: str) -> str:
    return _SLUG_INVALID.sub("_", strip_diacritics(label.casefold())).strip("_")


def format_value(value: Any) -> str:
    """Render a record value the way it is printed on a form."""

    if isinstance(value, bool):
        return "X" if value else ""
    if isinstance(value, (int, float)):
        return f"{value:.2f}"
    return str(value)


def assign_unique_names(fields: Iterable[DetectedField]) -> List[DetectedField]:
    """Suffix repeated field names with ``_2``, ``_3``… in document order."""

    fields_list = list(fields)
    taken = Counter(field.name for field in fields_list)
    running: Counter = Counter()
    unique_fields: List[DetectedField] = []

    for field in fields_list:
        running[field.name] += 1
        if taken[field.name] > 1 and running[field.name] > 1:
            candidate = f"{field.name}_{running[field.name]}"
            while candidate in taken:
                running[field.name] += 1
                candidate = f"{field.name}_{running[field.name]}"
            taken[candidate] += 1
            unique_fields.append(replace(field, name=candidate))
        else:
            unique_fields.append(field)
    return unique_fields


__all__ = [
    "assign_unique_names",
    "format_value",
    "normalize_key",
    "sanitize_text",
    "slugify",
    "strip_diacritics",
]
