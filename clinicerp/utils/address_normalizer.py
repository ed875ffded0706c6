"""Normalization and fuzzy comparison of Korean street addresses."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_EMDONG_IN_PARENS = re.compile(r"\(([가-힣]+동)\)")

_CITY_ALIASES = (
    ("서울시", "서울특별시"),
    ("부산시", "부산광역시"),
    ("대구시", "대구광역시"),
    ("인천시", "인천광역시"),
    ("광주시", "광주광역시"),
    ("대전시", "대전광역시"),
    ("울산시", "울산광역시"),
)

# Administrative region (시도) codes; long forms first so they win on lookup
SIDO_CODES = {
    "서울특별시": "11",
    "서울시": "11",
    "부산광역시": "26",
    "부산시": "26",
    "대구광역시": "27",
    "대구시": "27",
    "인천광역시": "28",
    "인천시": "28",
    "광주광역시": "29",
    "광주시": "29",
    "대전광역시": "30",
    "대전시": "30",
    "울산광역시": "31",
    "울산시": "31",
    "세종특별자치시": "36",
    "세종시": "36",
    "경기도": "41",
    "강원도": "42",
    "충청북도": "43",
    "충청남도": "44",
    "전라북도": "45",
    "전라남도": "46",
    "경상북도": "47",
    "경상남도": "48",
    "제주특별자치도": "50",
    "제주도": "50",
}


def normalize_address(address: str | None) -> str:
    if not address:
        return ""
    normalized = _WHITESPACE.sub(" ", address.strip())
    for short, full in _CITY_ALIASES:
        normalized = normalized.replace(short, full)
    return normalized.lower()


def extract_sido_code(address: str | None) -> str | None:
    if not address:
        return None
    lowered = address.lower()
    for sido, code in SIDO_CODES.items():
        if sido in lowered:
            return code
    return None


def extract_sggu_code(address: str | None) -> str | None:
    # 시군구 codes need a full district table which is not bundled
    return None


def extract_emdong_name(address: str | None) -> str | None:
    """Return the 읍면동 name, e.g. ``(반포동)`` at the end of a road address."""
    if not address:
        return None

    match = _EMDONG_IN_PARENS.search(address)
    if match:
        return match.group(1)

    for word in reversed(address.split()):
        cleaned = word.rstrip(".,)")
        if cleaned.endswith("동") and len(word) <= 5:
            return cleaned
    return None


def compare_addresses(address1: str | None, address2: str | None, threshold: float = 0.7) -> bool:
    norm1 = normalize_address(address1)
    norm2 = normalize_address(address2)

    if norm1 == norm2:
        return True
    if not norm1 or not norm2:
        return False
    if norm1 in norm2 or norm2 in norm1:
        return True

    words1 = norm1.split(" ")
    words2 = norm2.split(" ")
    common = [w for w in words1 if w in words2]
    similarity = len(common) / max(len(words1), len(words2))
    return similarity >= threshold
