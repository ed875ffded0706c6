"""Date strings as they appear on Korean certificates and supplier documents."""

from __future__ import annotations

import re

_NON_DATE_CHARS = re.compile(r"[^\d-]")
_COMPACT = re.compile(r"^\d{8}$")
_DASHED = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def normalize_date(value: str | None) -> str:
    """Normalize ``2020-09-04``, ``2020년 09월 04일`` or ``20200904`` to ``20200904``.

    Unrecognised input is returned with everything but digits and dashes removed.
    """
    if not value:
        return ""

    cleaned = _NON_DATE_CHARS.sub("", value.strip())
    if _COMPACT.match(cleaned):
        return cleaned

    match = _DASHED.match(cleaned)
    if match:
        return "".join(match.groups())

    return cleaned.replace("-", "")


def compare_dates(date1: str | None, date2: str | None) -> bool:
    return normalize_date(date1) == normalize_date(date2)


def format_date_for_display(value: str | None) -> str:
    normalized = normalize_date(value)
    if len(normalized) != 8:
        return value or ""
    return f"{normalized[:4]}-{normalized[4:6]}-{normalized[6:8]}"
