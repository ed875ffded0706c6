"""Helpers for comparing clinic and company names typed by people."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_BRACKETS = re.compile(r"[()\[\]（）]")


def normalize_clinic_name(name: str | None) -> str:
    if not name:
        return ""
    collapsed = _WHITESPACE.sub(" ", name.strip())
    return _BRACKETS.sub("", collapsed).lower()


def fuzzy_match_clinic_name(name1: str | None, name2: str | None, threshold: float = 0.8) -> bool:
    """True when the names are equal, one contains the other, or enough words overlap."""
    norm1 = normalize_clinic_name(name1)
    norm2 = normalize_clinic_name(name2)

    if norm1 == norm2:
        return True
    if not norm1 or not norm2:
        return False
    if norm1 in norm2 or norm2 in norm1:
        return True

    words1 = norm1.split(" ")
    words2 = norm2.split(" ")
    common = [w for w in words1 if len(w) > 1 and w in words2]
    similarity = len(common) / max(len(words1), len(words2))
    return similarity >= threshold


def normalize_clinic_type(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub("", value.strip()).lower()


def compare_clinic_types(type1: str | None, type2: str | None) -> bool:
    return normalize_clinic_type(type1) == normalize_clinic_type(type2)


def normalize_business_number(value: str | None) -> str:
    """Strip separators from a business registration number (123-45-67890)."""
    if not value:
        return ""
    return re.sub(r"\D", "", value)
