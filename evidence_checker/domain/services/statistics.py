"""Quantitative assertion extraction and numeric matching."""

import re
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from ..models.claim import Statistic

SCALE = {
    "thousand": 1e3,
    "k": 1e3,
    "million": 1e6,
    "mn": 1e6,
    "m": 1e6,
    "billion": 1e9,
    "bn": 1e9,
    "b": 1e9,
    "trillion": 1e12,
    "t": 1e12,
}

_NUM = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"

# Order matters: a span claimed by an earlier family is not matched again.
PATTERN_FAMILIES: List[Tuple[str, re.Pattern]] = [
    ("currency", re.compile(
        rf"[$€£¥]\s?(?P<num>{_NUM})(?:\s?(?P<scale>thousand|million|billion|trillion|bn|mn|[kmbt])\b)?",
        re.IGNORECASE,
    )),
    ("percentage", re.compile(
        rf"(?<![\d.])(?P<num>{_NUM})\s?(?:%|percent\b|per cent\b)",
        re.IGNORECASE,
    )),
    ("scaled", re.compile(
        rf"(?<![\d.])(?P<num>{_NUM})\s(?P<scale>thousand|million|billion|trillion)\b",
        re.IGNORECASE,
    )),
    ("shorthand", re.compile(
        r"(?<![\d.])(?P<num>\d+(?:\.\d+)?)(?P<scale>bn|mn|k|m|b)\b",
        re.IGNORECASE,
    )),
    ("integer", re.compile(
        r"(?<![\d.,])(?P<num>\d{1,3}(?:,\d{3})+|\d{5,})(?![\d]|\.\d)",
    )),
]

BARE_NUMBER = re.compile(r"(?<![\d.])(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)(?!\d)")


class NumberMatch(str, Enum):
    """How closely a claimed number was found in evidence."""

    EXACT = "exact"
    NEAR = "near"


def _to_value(number: str, scale: Optional[str]) -> float:
    value = float(number.replace(",", ""))
    if scale:
        value *= SCALE[scale.lower()]
    return value


def extract_statistics(text: str) -> List[Statistic]:
    """Pull percentages, currency amounts, scaled and large numbers out of text."""
    taken: List[Tuple[int, int]] = []
    found: List[Tuple[int, Statistic]] = []

    for kind, pattern in PATTERN_FAMILIES:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and end > t_start for t_start, t_end in taken):
                continue
            scale = match.groupdict().get("scale")
            taken.append((start, end))
            found.append((start, Statistic(
                kind=kind,
                raw=match.group(0).strip(),
                value=_to_value(match.group("num"), scale),
            )))

    found.sort(key=lambda item: item[0])
    return [stat for _, stat in found]


def candidate_values(text: str) -> List[float]:
    """Every number in text, both as written and scaled where a scale is attached."""
    values = [stat.value for stat in extract_statistics(text)]
    values.extend(float(m.group(1).replace(",", "")) for m in BARE_NUMBER.finditer(text))
    return values


def match_number(target: float, candidates: Iterable[float], tolerance: float) -> Optional[NumberMatch]:
    """Compare a claimed value against evidence values.

    Exact beats near; near means the relative difference is within tolerance.
    """
    candidates = list(candidates)
    for value in candidates:
        if abs(value - target) <= 1e-9 * max(1.0, abs(target)):
            return NumberMatch.EXACT
    if target == 0:
        return None
    for value in candidates:
        if abs(value / target - 1.0) <= tolerance + 1e-12:
            return NumberMatch.NEAR
    return None


def find_number(text: str, target: float, tolerance: float = 0.01) -> Optional[NumberMatch]:
    """Search evidence text for a claimed value."""
    return match_number(target, candidate_values(text), tolerance)
