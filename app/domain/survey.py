"""
app/domain/survey.py

Domain models shared by survey ingestion and branch analytics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

CellValue = Union[str, int, float, bool, None]
SurveyRow = dict[str, CellValue]
"""One respondent; keys are column names, no key is guaranteed present."""


class CanonicalField(str, Enum):
    """
    Canonical survey columns. Values are the header names used downstream.
    """

    CASE_ID = "Case #"
    COUNTRY = "Country"
    BRANCH = "Branch"
    DATE = "Date"
    NAME = "Name"
    SURNAME = "Surname"
    EMAIL = "Email"
    PHONE = "Phone"
    IP_ADDRESS = "IP"
    REASON_FOR_SCORE = "Reasons Of Score"
    NEED_CALLBACK = "Need Callback"
    ADVOCATE_SCORE = "AS"
    ACCOUNT_TYPE = "What is the primary account that you have with Ecobank"
    IMPROVEMENT_AREA = "What needs to be improved based on your experience"
    SERVED_BY_STAFF = "Which staff served you"
    SATISFACTION_RATING = "How would you rate your overall satisfaction with your branch visit"


@dataclass(frozen=True)
class BranchRanking:
    """
    Per-branch satisfaction and advocacy averages.
    """

    branch: str
    satisfaction: float
    response_count: int
    advocate_score: float
    comment: str = ""
    valid_satisfaction_count: int = 0
    valid_advocate_count: int = 0


@dataclass(frozen=True)
class ImprovementCount:
    """
    One bar of the improvement-category histogram.
    """

    category: str
    count: int
    percentage: float


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int


@dataclass(frozen=True)
class ReasonData:
    """
    One respondent's stated reason for their score.
    """

    branch: str
    reason: str
    score: float
    date: str
    need_callback: str


@dataclass(frozen=True)
class BranchImprovement:
    """
    Top improvement categories for one branch.
    """

    branch: str
    top_improvements: list[CategoryCount]
    satisfaction: float


@dataclass(frozen=True)
class RecommendationMatrix:
    """
    Branch x category mention counts.

    ``is_synthetic`` marks placeholder rows produced when no real counts
    could be built; such rows must not be read as survey results.
    """

    rows: list[dict[str, str | int]]
    categories: list[str]
    is_synthetic: bool = False


@dataclass(frozen=True)
class NPSResult:
    """
    Net Promoter Score breakdown; shares are percentages in [0, 100].
    """

    score: float
    promoters: float
    passives: float
    detractors: float
    respondent_count: int


@dataclass(frozen=True)
class BranchSurveyResult:
    """
    Full output of the branch analysis pipeline for one upload.
    """

    branch_data: list[SurveyRow]
    branch_rankings: list[BranchRanking]
    improvement_categories: list[ImprovementCount]
    reasons_data: list[ReasonData]
    branch_improvements: list[BranchImprovement]
    recommendation_matrix: RecommendationMatrix
    nps: NPSResult | None
    rows_received: int
    rows_without_branch: int
    warnings: list[str] = field(default_factory=list)
