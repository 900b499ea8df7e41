from __future__ import annotations

import pytest

from branch_analysis.improvement_categorizer import (
    IMPROVEMENT_CATEGORIES,
    MATRIX_SEPARATORS,
    categorize_improvement,
    mentions_improvement,
    split_improvements,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Long wait at the ATM", "Waiting Time"),
        ("The QUEUE was endless", "Waiting Time"),
        ("Staff were rude", "Staff Attitude"),
        ("customer service", "Staff Attitude"),
        ("Too slow", "Service Speed"),
        ("ATM out of cash", "ATM Services"),
        ("Mobile app crashes", "Digital Banking"),
        ("Cleaner branch", "Branch Environment"),
        ("Fees are too high", "Fees and Charges"),
        ("Better information on loans", "Communication"),
        ("Too much paperwork", "Process Efficiency"),
    ],
)
def test_keyword_categories(text: str, expected: str) -> None:
    assert categorize_improvement(text) == expected


def test_first_keyword_in_table_order_wins() -> None:
    # "service" is scanned before "slow".
    assert categorize_improvement("slow service") == "Staff Attitude"


def test_unmatched_text_is_capitalized_not_discarded() -> None:
    assert categorize_improvement("parking lot") == "Parking lot"
    assert categorize_improvement("") == ""


def test_non_string_input_is_stringified() -> None:
    assert categorize_improvement(42) == "42"
    assert categorize_improvement(None) == ""


def test_every_result_is_a_category_or_the_input() -> None:
    for text in ("queue", "nothing to add", "ÉTAT des lieux"):
        result = categorize_improvement(text)
        assert result in IMPROVEMENT_CATEGORIES or result.lower() == text.lower()


def test_split_improvements() -> None:
    assert split_improvements("Queue; staff , ,fees") == ["Queue", "staff", "fees"]
    assert split_improvements("Queue. Staff", MATRIX_SEPARATORS) == ["Queue", "Staff"]
    assert split_improvements(None) == []
    assert split_improvements(3) == []


def test_mentions_improvement() -> None:
    assert mentions_improvement("You should open more counters")
    assert mentions_improvement("Waiting was LONG")
    assert not mentions_improvement("Great visit")
    assert not mentions_improvement(None)
