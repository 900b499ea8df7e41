"""
branch_analysis/aggregator.py

Branch-level aggregates over normalized survey rows.

Every function here is a pure function of its input rows: nothing is cached,
nothing raises for bad cells, and results are rebuilt on every call. A cell
that cannot be read as a rating simply drops out of the average it would
have contributed to.
"""

from __future__ import annotations

import warnings
from collections import Counter
from typing import Any, Final, Iterable, Sequence

import pandas as pd

from app.domain.survey import (
    BranchImprovement,
    BranchRanking,
    CanonicalField,
    CategoryCount,
    ImprovementCount,
    ReasonData,
    SurveyRow,
)
from app.validators.rating_parser import UNPARSEABLE, Rating, RatingResult, is_rating, parse_rating
from branch_analysis.improvement_categorizer import (
    categorize_improvement,
    mentions_improvement,
    split_improvements,
)

BRANCH: Final[str] = CanonicalField.BRANCH.value
SATISFACTION: Final[str] = CanonicalField.SATISFACTION_RATING.value
ADVOCATE_SCORE: Final[str] = CanonicalField.ADVOCATE_SCORE.value
REASON: Final[str] = CanonicalField.REASON_FOR_SCORE.value
IMPROVEMENT: Final[str] = CanonicalField.IMPROVEMENT_AREA.value
DATE: Final[str] = CanonicalField.DATE.value
NEED_CALLBACK: Final[str] = CanonicalField.NEED_CALLBACK.value

COMMENT_MAX_LENGTH: Final[int] = 100
TOP_IMPROVEMENTS: Final[int] = 3
NEUTRAL_SATISFACTION: Final[float] = 3.0
NO_IMPROVEMENTS_LABEL: Final[str] = "No specific improvements"
_CALLBACK_YES: Final[frozenset[str]] = frozenset({"yes", "true", "1", "oui"})


# ---------------------------------------------------------------------------
# Row accessors
# ---------------------------------------------------------------------------


def branch_name(row: SurveyRow) -> str | None:
    """
    Return the row's branch as text, or None when blank or missing.
    """

    value = row.get(BRANCH)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def satisfaction_rating(row: SurveyRow) -> RatingResult:
    """
    Satisfaction for one row, falling back to an advocate score on a 0-5 scale.
    """

    rating = parse_rating(row[SATISFACTION]) if row.get(SATISFACTION) is not None else UNPARSEABLE
    if is_rating(rating):
        return rating

    if row.get(ADVOCATE_SCORE) is not None:
        advocate = parse_rating(row[ADVOCATE_SCORE])
        if is_rating(advocate) and 0 <= advocate <= 5:
            return advocate
    return UNPARSEABLE


def advocate_rating(row: SurveyRow) -> RatingResult:
    if row.get(ADVOCATE_SCORE) is None:
        return UNPARSEABLE
    return parse_rating(row[ADVOCATE_SCORE])


def group_by_branch(
    rows: Iterable[SurveyRow],
    *,
    unknown_label: str | None = None,
) -> dict[str, list[SurveyRow]]:
    """
    Partition rows by branch, keeping first-seen branch order.

    Rows without a branch are dropped unless ``unknown_label`` names a bucket
    for them.
    """

    groups: dict[str, list[SurveyRow]] = {}
    for row in rows:
        branch = branch_name(row) or unknown_label
        if branch is None:
            continue
        groups.setdefault(branch, []).append(row)
    return groups


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


def calculate_branch_rankings(rows: Sequence[SurveyRow]) -> list[BranchRanking]:
    """
    Rank branches by average satisfaction, best first.

    Averages only count rows whose rating could be parsed; a branch with no
    valid rating reports 0 with ``valid_satisfaction_count == 0``.
    """

    rankings: list[BranchRanking] = []
    for branch, items in group_by_branch(rows).items():
        satisfaction_values = [value for value in map(satisfaction_rating, items) if is_rating(value)]
        advocate_values = [value for value in map(advocate_rating, items) if is_rating(value)]

        rankings.append(
            BranchRanking(
                branch=branch,
                satisfaction=_mean(satisfaction_values),
                response_count=len(items),
                advocate_score=_mean(advocate_values),
                comment=_representative_comment(items),
                valid_satisfaction_count=len(satisfaction_values),
                valid_advocate_count=len(advocate_values),
            )
        )

    return sorted(rankings, key=lambda ranking: -ranking.satisfaction)


def _representative_comment(items: Sequence[SurveyRow]) -> str:
    best_reason = ""
    best_score: float | None = None
    for item in items:
        reason = item.get(REASON)
        if not isinstance(reason, str) or not reason:
            continue
        score = _comment_score(item)
        if best_score is None or score > best_score:
            best_reason = reason
            best_score = score
    return truncate_comment(best_reason)


def _comment_score(item: SurveyRow) -> float:
    # A zero satisfaction defers to the advocate score.
    satisfaction = parse_rating(item.get(SATISFACTION))
    if is_rating(satisfaction) and satisfaction:
        return float(satisfaction)
    advocate = parse_rating(item.get(ADVOCATE_SCORE))
    if is_rating(advocate) and advocate:
        return float(advocate)
    return 0.0


def truncate_comment(comment: str, max_length: int = COMMENT_MAX_LENGTH) -> str:
    if len(comment) <= max_length:
        return comment
    return comment[: max_length - 3] + "..."


# ---------------------------------------------------------------------------
# Improvement histograms
# ---------------------------------------------------------------------------


def collect_improvement_mentions(
    rows: Iterable[SurveyRow],
    *,
    include_reasons: bool = True,
) -> list[str]:
    """
    Gather improvement fragments, plus reasons that read like improvement asks.
    """

    mentions: list[str] = []
    for row in rows:
        mentions.extend(split_improvements(row.get(IMPROVEMENT)))
        if include_reasons:
            reason = row.get(REASON)
            if mentions_improvement(reason):
                mentions.append(str(reason))
    return mentions


def count_categories(mentions: Iterable[str]) -> list[CategoryCount]:
    """
    Categorize each mention and count per category, most frequent first.
    """

    counts = Counter(categorize_improvement(mention) for mention in mentions if mention)
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [CategoryCount(category=category, count=count) for category, count in ordered]


def categorize_improvements(
    rows: Sequence[SurveyRow],
    *,
    include_reasons: bool = True,
) -> list[ImprovementCount]:
    """
    Histogram of improvement categories across all rows with percentage shares.
    """

    category_counts = count_categories(
        collect_improvement_mentions(rows, include_reasons=include_reasons)
    )
    total = sum(entry.count for entry in category_counts)
    return [
        ImprovementCount(
            category=entry.category,
            count=entry.count,
            percentage=(entry.count / total) * 100 if total > 0 else 0.0,
        )
        for entry in category_counts
    ]


def calculate_branch_improvements(
    rows: Sequence[SurveyRow],
    *,
    top_n: int = TOP_IMPROVEMENTS,
) -> list[BranchImprovement]:
    """
    Top improvement categories per branch, ordered by branch satisfaction.

    Branches with no recorded improvement get a single placeholder entry so
    every branch shows up in the matrix; branches without ratings are placed
    at the neutral satisfaction of 3.0.
    """

    results: list[BranchImprovement] = []
    for branch, items in group_by_branch(rows).items():
        top = count_categories(collect_improvement_mentions(items))[:top_n]
        if not top:
            top = [CategoryCount(category=NO_IMPROVEMENTS_LABEL, count=1)]

        ratings = [value for value in map(satisfaction_rating, items) if is_rating(value)]
        satisfaction = _mean(ratings) if ratings else NEUTRAL_SATISFACTION
        results.append(
            BranchImprovement(branch=branch, top_improvements=top, satisfaction=satisfaction)
        )

    return sorted(results, key=lambda entry: -entry.satisfaction)


# ---------------------------------------------------------------------------
# Reasons
# ---------------------------------------------------------------------------


def extract_reasons_data(rows: Sequence[SurveyRow]) -> list[ReasonData]:
    """
    One entry per row that states a reason for its score.

    The score is the satisfaction rating; rows that only carry an advocate
    score have it scaled onto 0-5 when it exceeds 5.
    """

    reasons: list[ReasonData] = []
    for row in rows:
        reason = row.get(REASON)
        if not reason:
            continue

        reasons.append(
            ReasonData(
                branch=branch_name(row) or "",
                reason=str(reason),
                score=_reason_score(row),
                date=format_survey_date(row.get(DATE)),
                need_callback=_callback_flag(row.get(NEED_CALLBACK)),
            )
        )
    return reasons


def _reason_score(row: SurveyRow) -> float:
    if row.get(SATISFACTION) is not None:
        parsed = parse_rating(row[SATISFACTION])
        return float(parsed) if is_rating(parsed) else 0.0
    if row.get(ADVOCATE_SCORE) is not None:
        parsed = parse_rating(row[ADVOCATE_SCORE])
        if is_rating(parsed):
            return parsed / 2 if parsed > 5 else float(parsed)
    return 0.0


def format_survey_date(value: Any) -> str:
    """
    Render a date cell as YYYY-MM-DD when it parses, else as given.
    """

    if value is None or value == "":
        return ""
    text = str(value)
    if not isinstance(value, str):
        return text
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return text
    if parsed is None or pd.isna(parsed):
        return text
    return parsed.strftime("%Y-%m-%d")


def _callback_flag(value: Any) -> str:
    if not value:
        return "No"
    if isinstance(value, bool):
        return "Yes"
    if isinstance(value, (int, float)):
        return "Yes" if value == 1 else "No"
    return "Yes" if str(value).strip().lower() in _CALLBACK_YES else "No"


def _mean(values: Sequence[Rating]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
