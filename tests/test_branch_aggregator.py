"""
tests/test_branch_aggregator.py

Pure unit tests for branch rankings, improvement histograms, reasons and
per-branch improvements. Rows use canonical column names, as produced by the
column normalizer.
"""

from __future__ import annotations

import pytest

from branch_analysis.aggregator import (
    ADVOCATE_SCORE,
    BRANCH,
    DATE,
    IMPROVEMENT,
    NEED_CALLBACK,
    NO_IMPROVEMENTS_LABEL,
    REASON,
    SATISFACTION,
    calculate_branch_improvements,
    calculate_branch_rankings,
    categorize_improvements,
    extract_reasons_data,
    format_survey_date,
    group_by_branch,
    satisfaction_rating,
    truncate_comment,
)
from app.validators.rating_parser import UNPARSEABLE


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


def test_ranking_averages_satisfaction_per_branch() -> None:
    rows = [{BRANCH: "A", SATISFACTION: 5}, {BRANCH: "A", SATISFACTION: 3}]

    rankings = calculate_branch_rankings(rows)

    assert len(rankings) == 1
    assert rankings[0].branch == "A"
    assert rankings[0].satisfaction == 4
    assert rankings[0].response_count == 2
    assert rankings[0].valid_satisfaction_count == 2


def test_branch_without_valid_ratings_reports_zero_with_zero_valid_count() -> None:
    rows = [{BRANCH: "B", SATISFACTION: "n/a"}, {BRANCH: "B"}]

    ranking = calculate_branch_rankings(rows)[0]

    assert ranking.satisfaction == 0
    assert ranking.valid_satisfaction_count == 0
    assert ranking.response_count == 2


def test_all_zero_ratings_are_distinguishable_from_no_data() -> None:
    rows = [{BRANCH: "Z", SATISFACTION: 0}]

    ranking = calculate_branch_rankings(rows)[0]

    assert ranking.satisfaction == 0
    assert ranking.valid_satisfaction_count == 1


def test_unparseable_ratings_are_excluded_not_counted_as_zero() -> None:
    rows = [
        {BRANCH: "A", SATISFACTION: 4},
        {BRANCH: "A", SATISFACTION: "no idea"},
    ]

    ranking = calculate_branch_rankings(rows)[0]

    assert ranking.satisfaction == 4
    assert ranking.response_count == 2
    assert ranking.valid_satisfaction_count == 1


def test_rankings_are_sorted_descending_and_stable() -> None:
    rows = [
        {BRANCH: "Low", SATISFACTION: 2},
        {BRANCH: "TieFirst", SATISFACTION: 4},
        {BRANCH: "High", SATISFACTION: 5},
        {BRANCH: "TieSecond", SATISFACTION: 4},
    ]

    order = [ranking.branch for ranking in calculate_branch_rankings(rows)]

    assert order == ["High", "TieFirst", "TieSecond", "Low"]


def test_advocate_score_is_averaged_and_used_as_satisfaction_fallback() -> None:
    rows = [
        {BRANCH: "A", ADVOCATE_SCORE: 4},
        {BRANCH: "A", ADVOCATE_SCORE: 9},
    ]

    ranking = calculate_branch_rankings(rows)[0]

    # Only the 0-5 advocate score stands in for satisfaction.
    assert ranking.satisfaction == 4
    assert ranking.valid_satisfaction_count == 1
    assert ranking.advocate_score == 6.5
    assert ranking.valid_advocate_count == 2


def test_rows_without_branch_are_excluded() -> None:
    rows = [{BRANCH: "", SATISFACTION: 5}, {SATISFACTION: 1}, {BRANCH: "A", SATISFACTION: 3}]

    rankings = calculate_branch_rankings(rows)

    assert [ranking.branch for ranking in rankings] == ["A"]


def test_numeric_branch_codes_are_rendered_as_text() -> None:
    groups = group_by_branch([{BRANCH: 101.0}, {BRANCH: 101}])
    assert list(groups) == ["101"]
    assert len(groups["101"]) == 2


def test_comment_comes_from_highest_scoring_response() -> None:
    rows = [
        {BRANCH: "A", SATISFACTION: 2, REASON: "Too slow"},
        {BRANCH: "A", SATISFACTION: 5, REASON: "Loved it"},
        {BRANCH: "A", SATISFACTION: 5, REASON: "Also great"},
    ]

    assert calculate_branch_rankings(rows)[0].comment == "Loved it"


def test_comment_is_truncated() -> None:
    long_reason = "x" * 150
    rows = [{BRANCH: "A", SATISFACTION: 5, REASON: long_reason}]

    comment = calculate_branch_rankings(rows)[0].comment

    assert len(comment) == 100
    assert comment.endswith("...")
    assert truncate_comment("y" * 100) == "y" * 100


def test_satisfaction_rating_prefers_satisfaction_column() -> None:
    assert satisfaction_rating({SATISFACTION: "Good", ADVOCATE_SCORE: 1}) == 4
    assert satisfaction_rating({SATISFACTION: "?", ADVOCATE_SCORE: 3}) == 3
    assert satisfaction_rating({ADVOCATE_SCORE: 8}) is UNPARSEABLE


# ---------------------------------------------------------------------------
# Improvement histogram
# ---------------------------------------------------------------------------


def test_improvement_histogram_counts_and_percentages() -> None:
    rows = [
        {BRANCH: "A", IMPROVEMENT: "Queue; staff"},
        {BRANCH: "B", IMPROVEMENT: "long queue, Parking"},
    ]

    histogram = categorize_improvements(rows, include_reasons=False)

    assert histogram[0].category == "Waiting Time"
    assert histogram[0].count == 2
    assert histogram[0].percentage == pytest.approx(50.0)
    assert {entry.category for entry in histogram} == {"Waiting Time", "Staff Attitude", "Parking"}
    assert sum(entry.percentage for entry in histogram) == pytest.approx(100.0)


def test_improvement_histogram_includes_improvement_like_reasons() -> None:
    rows = [{BRANCH: "A", REASON: "You should be faster"}]

    with_reasons = categorize_improvements(rows)
    without_reasons = categorize_improvements(rows, include_reasons=False)

    assert [entry.category for entry in with_reasons] == ["Service Speed"]
    assert without_reasons == []


# ---------------------------------------------------------------------------
# Reasons
# ---------------------------------------------------------------------------


def test_reasons_data_scales_advocate_score_and_formats_fields() -> None:
    rows = [
        {
            BRANCH: "A",
            REASON: "Fast service",
            ADVOCATE_SCORE: 8,
            DATE: "2024-03-05T10:15:00",
            NEED_CALLBACK: "Oui",
        },
        {BRANCH: "A", REASON: "Okay", SATISFACTION: 3, NEED_CALLBACK: "no"},
        {BRANCH: "A", SATISFACTION: 5},
    ]

    reasons = extract_reasons_data(rows)

    assert len(reasons) == 2
    assert reasons[0].score == 4.0
    assert reasons[0].date == "2024-03-05"
    assert reasons[0].need_callback == "Yes"
    assert reasons[1].score == 3.0
    assert reasons[1].date == ""
    assert reasons[1].need_callback == "No"


def test_format_survey_date_keeps_unparseable_text() -> None:
    assert format_survey_date("not a date") == "not a date"
    assert format_survey_date(None) == ""


# ---------------------------------------------------------------------------
# Per-branch improvements
# ---------------------------------------------------------------------------


def test_branch_improvements_top_three_and_placeholder() -> None:
    rows = [
        {BRANCH: "A", SATISFACTION: 2, IMPROVEMENT: "queue, queue, staff, fees, app"},
        {BRANCH: "B", SATISFACTION: 5, IMPROVEMENT: ""},
        {BRANCH: "C", IMPROVEMENT: "Parking"},
    ]

    result = calculate_branch_improvements(rows)

    assert [entry.branch for entry in result] == ["B", "C", "A"]
    by_branch = {entry.branch: entry for entry in result}
    assert by_branch["B"].top_improvements[0].category == NO_IMPROVEMENTS_LABEL
    assert by_branch["B"].top_improvements[0].count == 1
    assert by_branch["C"].satisfaction == 3.0
    assert len(by_branch["A"].top_improvements) == 3
    assert by_branch["A"].top_improvements[0].category == "Waiting Time"
    assert by_branch["A"].top_improvements[0].count == 2


def test_empty_input_returns_empty_lists() -> None:
    assert calculate_branch_rankings([]) == []
    assert categorize_improvements([]) == []
    assert extract_reasons_data([]) == []
    assert calculate_branch_improvements([]) == []
