"""
branch_analysis/orchestrator.py

Runs the branch analysis pipeline over raw parsed survey rows:
column normalization, branch filtering, then every branch aggregate.
Contains no aggregation math of its own.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from app.domain.survey import BranchSurveyResult, SurveyRow
from app.logging_utils import log_event
from app.mappers.column_normalizer import ensure_branch_column, has_rating_field, normalize_rows
from branch_analysis.aggregator import (
    branch_name,
    calculate_branch_improvements,
    calculate_branch_rankings,
    categorize_improvements,
    extract_reasons_data,
)
from branch_analysis.nps import calculate_nps
from branch_analysis.recommendation_matrix import (
    DEFAULT_RECOMMENDATION_CATEGORIES,
    build_recommendation_matrix,
)

logger = logging.getLogger(__name__)


class BranchAnalysisOrchestrator:
    """Coordinates normalization and aggregation for one uploaded survey.

    Stateless: one instance can serve any number of uploads, concurrently.
    """

    def __init__(self, categories: Sequence[str] | None = None) -> None:
        """
        Args:
            categories: Category list for the recommendation matrix. Defaults
                to DEFAULT_RECOMMENDATION_CATEGORIES.
        """
        self._categories = tuple(categories or DEFAULT_RECOMMENDATION_CATEGORIES)

    def run(
        self,
        raw_rows: Sequence[Mapping[str, object]],
        *,
        categories: Sequence[str] | None = None,
    ) -> BranchSurveyResult:
        """Normalize raw rows and compute every branch aggregate.

        Rows without a branch are kept out of every aggregate and reported
        through ``rows_without_branch``.

        Args:
            raw_rows: Rows as returned by the survey table parser.
            categories: Optional per-call override of the matrix categories.

        Returns:
            A BranchSurveyResult holding rankings, improvement histogram,
            reasons, per-branch improvements, recommendation matrix and NPS.
        """
        warnings: list[str] = []
        normalized = normalize_rows(raw_rows)

        fallback_column = ensure_branch_column(raw_rows, normalized)
        if fallback_column is not None:
            warnings.append(f"Branch column inferred from {fallback_column!r}.")

        branch_rows: list[SurveyRow] = [row for row in normalized if branch_name(row) is not None]
        rows_without_branch = len(normalized) - len(branch_rows)
        if rows_without_branch:
            warnings.append(f"{rows_without_branch} row(s) without a branch were skipped.")

        unrated = sum(1 for row in branch_rows if not has_rating_field(row))
        if unrated:
            logger.info("Rows with a branch but no rating column count=%d", unrated)

        matrix = build_recommendation_matrix(branch_rows, categories or self._categories)
        if matrix.is_synthetic:
            warnings.append("Recommendation matrix has no improvement data; placeholder rows returned.")

        result = BranchSurveyResult(
            branch_data=branch_rows,
            branch_rankings=calculate_branch_rankings(branch_rows),
            improvement_categories=categorize_improvements(branch_rows),
            reasons_data=extract_reasons_data(branch_rows),
            branch_improvements=calculate_branch_improvements(branch_rows),
            recommendation_matrix=matrix,
            nps=calculate_nps(branch_rows),
            rows_received=len(raw_rows),
            rows_without_branch=rows_without_branch,
            warnings=warnings,
        )

        log_event(
            logger,
            logging.INFO,
            "branch_analysis_completed",
            rows_received=result.rows_received,
            rows_analyzed=len(branch_rows),
            branches=len(result.branch_rankings),
            synthetic_matrix=matrix.is_synthetic,
        )
        return result
