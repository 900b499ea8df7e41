"""
branch_analysis/recommendation_matrix.py

Branch x category matrix of improvement mentions against a caller-supplied
category list.

Each improvement fragment is matched against the categories in three
passes, first hit wins:

    exact       - fragment equals a category (case-insensitive)
    normalized  - the keyword classifier maps the fragment onto a category
    partial     - any word longer than three letters of a category appears
                  in the fragment

Fragments matching nothing are counted under "Unclassified".
"""

from __future__ import annotations

import logging
from typing import Final, Sequence

from app.domain.survey import RecommendationMatrix, SurveyRow
from app.logging_utils import log_event
from branch_analysis.aggregator import IMPROVEMENT, group_by_branch
from branch_analysis.improvement_categorizer import (
    MATRIX_SEPARATORS,
    categorize_improvement,
    split_improvements,
)

logger = logging.getLogger(__name__)

UNCLASSIFIED: Final[str] = "Unclassified"
UNKNOWN_BRANCH: Final[str] = "Unknown"
BRANCH_KEY: Final[str] = "branch"

DEFAULT_RECOMMENDATION_CATEGORIES: Final[tuple[str, ...]] = (
    "Quality service and friendliness displayed by Ecobank staff",
    "Knowledge of the Bank's products and services displayed by Ecobank staff",
    "Any enquiries complaints or issues were resolved quickly and effectively",
    "The ambience of the branch",
    "Any enquiries",
    "None of the above",
    UNCLASSIFIED,
)


def match_category(value: str, categories: Sequence[str]) -> str:
    """
    Return the category a fragment belongs to, or "Unclassified".
    """

    normalized_value = value.lower().strip()
    candidates = [category for category in categories if category != UNCLASSIFIED]

    for category in candidates:
        if normalized_value == category.lower().strip():
            return category

    classified = categorize_improvement(normalized_value).lower()
    for category in candidates:
        if classified == category.lower().strip():
            return category

    for category in candidates:
        words = [word for word in category.lower().strip().split(" ") if len(word) > 3]
        if any(word in normalized_value for word in words):
            return category

    logger.debug("Unmapped improvement %r (classified as %r)", value, classified)
    return UNCLASSIFIED


def build_recommendation_matrix(
    rows: Sequence[SurveyRow],
    categories: Sequence[str] = DEFAULT_RECOMMENDATION_CATEGORIES,
) -> RecommendationMatrix:
    """
    Count improvement fragments per branch and category.

    Rows without a branch are counted under "Unknown". When rows exist but no
    fragment could be counted anywhere, the returned matrix carries zeroed
    placeholder rows and ``is_synthetic=True``.
    """

    column_order = _with_unclassified(categories)
    groups = group_by_branch(rows, unknown_label=UNKNOWN_BRANCH)

    matrix_rows: list[dict[str, str | int]] = []
    total_mentions = 0
    for branch, items in groups.items():
        counts: dict[str, int] = {category: 0 for category in column_order}
        for item in items:
            for fragment in split_improvements(item.get(IMPROVEMENT), MATRIX_SEPARATORS):
                counts[match_category(fragment, column_order)] += 1
                total_mentions += 1
        matrix_rows.append({BRANCH_KEY: branch, **counts})

    if rows and total_mentions == 0:
        log_event(
            logger,
            logging.WARNING,
            "recommendation_matrix_synthetic",
            branches=len(groups),
            rows=len(rows),
            reason="no improvement mentions found",
        )
        return RecommendationMatrix(
            rows=[{BRANCH_KEY: branch, **{category: 0 for category in column_order}} for branch in groups],
            categories=column_order,
            is_synthetic=True,
        )

    return RecommendationMatrix(rows=matrix_rows, categories=column_order, is_synthetic=False)


def _with_unclassified(categories: Sequence[str]) -> list[str]:
    ordered: list[str] = []
    for category in categories:
        if category == BRANCH_KEY:
            logger.warning("Ignoring matrix category %r; it collides with the branch column", category)
            continue
        if category and category not in ordered:
            ordered.append(category)
    if UNCLASSIFIED not in ordered:
        ordered.append(UNCLASSIFIED)
    return ordered
