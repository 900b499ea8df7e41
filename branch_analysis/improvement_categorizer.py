"""
branch_analysis/improvement_categorizer.py

Keyword classifier for free-text "what needs to be improved" answers.
"""

from __future__ import annotations

import re
from typing import Any, Final

WAITING_TIME: Final[str] = "Waiting Time"
STAFF_ATTITUDE: Final[str] = "Staff Attitude"
SERVICE_SPEED: Final[str] = "Service Speed"
ATM_SERVICES: Final[str] = "ATM Services"
DIGITAL_BANKING: Final[str] = "Digital Banking"
BRANCH_ENVIRONMENT: Final[str] = "Branch Environment"
FEES_AND_CHARGES: Final[str] = "Fees and Charges"
COMMUNICATION: Final[str] = "Communication"
PROCESS_EFFICIENCY: Final[str] = "Process Efficiency"

IMPROVEMENT_CATEGORIES: Final[tuple[str, ...]] = (
    WAITING_TIME,
    STAFF_ATTITUDE,
    SERVICE_SPEED,
    ATM_SERVICES,
    DIGITAL_BANKING,
    BRANCH_ENVIRONMENT,
    FEES_AND_CHARGES,
    COMMUNICATION,
    PROCESS_EFFICIENCY,
)

# Scanned in order; the first keyword found in the text decides the category.
IMPROVEMENT_KEYWORDS: Final[tuple[tuple[str, str], ...]] = (
    ("wait time", WAITING_TIME),
    ("waiting time", WAITING_TIME),
    ("queue", WAITING_TIME),
    ("long wait", WAITING_TIME),
    ("waiting", WAITING_TIME),
    ("staff", STAFF_ATTITUDE),
    ("attitude", STAFF_ATTITUDE),
    ("customer service", STAFF_ATTITUDE),
    ("service", STAFF_ATTITUDE),
    ("friendly", STAFF_ATTITUDE),
    ("speed", SERVICE_SPEED),
    ("slow", SERVICE_SPEED),
    ("fast", SERVICE_SPEED),
    ("quick", SERVICE_SPEED),
    ("atm", ATM_SERVICES),
    ("machine", ATM_SERVICES),
    ("cash machine", ATM_SERVICES),
    ("online", DIGITAL_BANKING),
    ("app", DIGITAL_BANKING),
    ("mobile", DIGITAL_BANKING),
    ("internet", DIGITAL_BANKING),
    ("website", DIGITAL_BANKING),
    ("branch", BRANCH_ENVIRONMENT),
    ("environment", BRANCH_ENVIRONMENT),
    ("clean", BRANCH_ENVIRONMENT),
    ("comfort", BRANCH_ENVIRONMENT),
    ("seating", BRANCH_ENVIRONMENT),
    ("fee", FEES_AND_CHARGES),
    ("charge", FEES_AND_CHARGES),
    ("cost", FEES_AND_CHARGES),
    ("expensive", FEES_AND_CHARGES),
    ("information", COMMUNICATION),
    ("communication", COMMUNICATION),
    ("explain", COMMUNICATION),
    ("clarity", COMMUNICATION),
    ("process", PROCESS_EFFICIENCY),
    ("procedure", PROCESS_EFFICIENCY),
    ("paperwork", PROCESS_EFFICIENCY),
    ("documentation", PROCESS_EFFICIENCY),
    ("bureaucracy", PROCESS_EFFICIENCY),
)

IMPROVEMENT_HINT_WORDS: Final[tuple[str, ...]] = (
    "improve",
    "better",
    "should",
    "could",
    "need",
    "wait",
    "slow",
    "long",
)

LIST_SEPARATORS: Final[str] = ",;"
MATRIX_SEPARATORS: Final[str] = ",;."


def categorize_improvement(text: Any) -> str:
    """
    Map an improvement phrase onto a fixed category.

    Unmatched text comes back with its first character upper-cased; it is
    never discarded or marked unclassified here.
    """

    raw = text if isinstance(text, str) else ("" if text is None else str(text))
    lowered = raw.lower()
    for keyword, category in IMPROVEMENT_KEYWORDS:
        if keyword in lowered:
            return category
    return raw[:1].upper() + raw[1:]


def split_improvements(text: Any, separators: str = LIST_SEPARATORS) -> list[str]:
    """
    Split a multi-valued improvement answer into trimmed, non-empty fragments.
    """

    if not isinstance(text, str) or not text:
        return []
    pattern = "[" + re.escape(separators) + "]"
    return [fragment.strip() for fragment in re.split(pattern, text) if fragment.strip()]


def mentions_improvement(reason: Any) -> bool:
    """
    Return True when a free-text reason reads like an improvement request.
    """

    if not isinstance(reason, str) or not reason:
        return False
    lowered = reason.lower()
    return any(word in lowered for word in IMPROVEMENT_HINT_WORDS)
