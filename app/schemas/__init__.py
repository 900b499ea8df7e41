"""
app/schemas package marker.
"""

from app.schemas.branch_analysis import BranchAnalysisResponse
from app.schemas.survey_analysis import (
    KpiDetectionRequest,
    KpiDetectionResponse,
    LocalAIStatusResponse,
    SentimentRequest,
    SentimentResponse,
    SurveyAnalysisRequest,
    SurveyAnalysisResponse,
    ThemeAnalysisRequest,
    ThemeAnalysisResponse,
)

__all__ = [
    "BranchAnalysisResponse",
    "KpiDetectionRequest",
    "KpiDetectionResponse",
    "LocalAIStatusResponse",
    "SentimentRequest",
    "SentimentResponse",
    "SurveyAnalysisRequest",
    "SurveyAnalysisResponse",
    "ThemeAnalysisRequest",
    "ThemeAnalysisResponse",
]
