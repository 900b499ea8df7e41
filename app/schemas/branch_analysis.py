"""
app/schemas/branch_analysis.py

Response schemas for branch survey analysis endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class BranchRankingResponse(BaseModel):
    """
    One branch's averaged ratings and representative comment.
    """

    branch: str
    satisfaction: float
    response_count: int = Field(..., ge=0)
    advocate_score: float
    comment: str = ""
    valid_satisfaction_count: int = Field(0, ge=0)
    valid_advocate_count: int = Field(0, ge=0)


class ImprovementCountResponse(BaseModel):
    category: str
    count: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0.0, le=100.0)


class CategoryCountResponse(BaseModel):
    category: str
    count: int = Field(..., ge=0)


class ReasonDataResponse(BaseModel):
    branch: str
    reason: str
    score: float
    date: str
    need_callback: str


class BranchImprovementResponse(BaseModel):
    branch: str
    top_improvements: list[CategoryCountResponse] = Field(default_factory=list)
    satisfaction: float


class RecommendationMatrixResponse(BaseModel):
    """
    Branch x category mention counts; ``is_synthetic`` marks placeholder rows.
    """

    rows: list[dict[str, Any]] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    is_synthetic: bool = False


class NPSResponse(BaseModel):
    score: float = Field(..., ge=-100.0, le=100.0)
    promoters: float = Field(..., ge=0.0, le=100.0)
    passives: float = Field(..., ge=0.0, le=100.0)
    detractors: float = Field(..., ge=0.0, le=100.0)
    respondent_count: int = Field(..., ge=0)


class BranchAnalysisResponse(BaseModel):
    """
    API response model for one analysed survey upload.
    """

    rows_received: int = Field(..., ge=0)
    rows_without_branch: int = Field(..., ge=0)
    branch_data: list[dict[str, Any]] = Field(default_factory=list)
    branch_rankings: list[BranchRankingResponse] = Field(default_factory=list)
    improvement_categories: list[ImprovementCountResponse] = Field(default_factory=list)
    reasons_data: list[ReasonDataResponse] = Field(default_factory=list)
    branch_improvements: list[BranchImprovementResponse] = Field(default_factory=list)
    recommendation_matrix: RecommendationMatrixResponse
    nps: NPSResponse | None = None
    warnings: list[str] = Field(default_factory=list)
