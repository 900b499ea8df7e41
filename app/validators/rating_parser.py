"""
app/validators/rating_parser.py

Coercion of survey rating cells into numeric values.

Rating cells arrive as numbers, numeric strings ("4", "4/5", "9 - likely"),
or scale words in English or French ("Excellent", "Très satisfait").
Values that cannot be read are reported as ``UNPARSEABLE`` so callers can
leave them out of averages instead of counting them as zero.
"""

from __future__ import annotations

import math
import re
from typing import Any, Final, Union

_NON_NUMERIC_CHARS = re.compile(r"[^0-9.]")
_LEADING_FLOAT = re.compile(r"^(\d+\.?\d*|\.\d+)")

# Checked top to bottom; the first rung with a matching keyword wins.
RATING_KEYWORD_LADDER: Final[tuple[tuple[tuple[str, ...], int], ...]] = (
    (("excellent", "très satisfait"), 5),
    (("good", "bien", "satisfait"), 4),
    (("average", "moyen", "neutre"), 3),
    (("poor", "mauvais", "insatisfait"), 2),
    (("terrible", "très insatisfait"), 1),
)


class _Unparseable:
    """
    Sentinel type for rating cells that carry no usable value.
    """

    _instance: "_Unparseable | None" = None

    def __new__(cls) -> "_Unparseable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNPARSEABLE"

    def __reduce__(self) -> str:
        return "UNPARSEABLE"


UNPARSEABLE: Final = _Unparseable()

Rating = Union[int, float]
RatingResult = Union[int, float, _Unparseable]


def parse_rating(value: Any) -> RatingResult:
    """
    Convert one cell value into a rating, or ``UNPARSEABLE``.

    Numbers are returned unchanged; no range checks are applied here.
    Never raises.
    """

    if isinstance(value, bool):
        return UNPARSEABLE
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return UNPARSEABLE
        return value
    if not isinstance(value, str):
        return UNPARSEABLE

    numeric = _parse_leading_float(_NON_NUMERIC_CHARS.sub("", value))
    if numeric is not None:
        return numeric

    lowered = value.lower().strip()
    for keywords, score in RATING_KEYWORD_LADDER:
        if any(keyword in lowered for keyword in keywords):
            return score
    return UNPARSEABLE


def is_rating(value: Any) -> bool:
    """
    Return True when *value* is a parsed rating rather than the sentinel.
    """

    return value is not UNPARSEABLE and isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_leading_float(text: str) -> float | None:
    # Mirrors parseFloat: "4.5.1" reads as 4.5, a lone "." is not a number.
    match = _LEADING_FLOAT.match(text)
    if match is None:
        return None
    return float(match.group(1))
