"""
app/api/routers/survey_analysis.py

Model-backed survey analysis and local model status endpoints.

Model failures never surface as errors; responses are flagged
``is_fallback`` instead.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends

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
from app.services.survey_analysis_service import (
    SurveyAnalysisResult,
    SurveyAnalysisService,
    get_survey_analysis_service,
)

router = APIRouter(tags=["survey-analysis"])


def _result_fields(result: SurveyAnalysisResult[Any]) -> dict[str, Any]:
    return {
        "analysis": result.analysis,
        "is_fallback": result.is_fallback,
        "adapter": result.adapter,
        "model": result.model,
        "fallback_reason": result.fallback_reason,
        "fallback_source": result.fallback_source,
    }


@router.post("/survey-analysis", response_model=SurveyAnalysisResponse)
def analyze_survey(
    payload: SurveyAnalysisRequest,
    analysis_service: SurveyAnalysisService = Depends(get_survey_analysis_service),
) -> SurveyAnalysisResponse:
    """
    Run comprehensive KPI, theme and sentiment analysis.
    """

    result = analysis_service.analyze(
        survey_data=payload.survey_data,
        verbatim_responses=payload.verbatim_responses,
        language=payload.language,
    )
    return SurveyAnalysisResponse(**_result_fields(result))


@router.post("/survey-analysis/kpis", response_model=KpiDetectionResponse)
def detect_kpis(
    payload: KpiDetectionRequest,
    analysis_service: SurveyAnalysisService = Depends(get_survey_analysis_service),
) -> KpiDetectionResponse:
    """
    Identify the survey columns acting as key performance indicators.
    """

    result = analysis_service.detect_kpis(survey_data=payload.survey_data, language=payload.language)
    return KpiDetectionResponse(**_result_fields(result))


@router.post("/survey-analysis/sentiment", response_model=SentimentResponse)
def analyze_sentiment(
    payload: SentimentRequest,
    analysis_service: SurveyAnalysisService = Depends(get_survey_analysis_service),
) -> SentimentResponse:
    result = analysis_service.analyze_sentiment(
        response=payload.response,
        language=payload.language,
        context=payload.context,
    )
    return SentimentResponse(**_result_fields(result))


@router.post("/survey-analysis/themes", response_model=ThemeAnalysisResponse)
def analyze_themes(
    payload: ThemeAnalysisRequest,
    analysis_service: SurveyAnalysisService = Depends(get_survey_analysis_service),
) -> ThemeAnalysisResponse:
    """
    Group verbatim responses into themes.
    """

    result = analysis_service.analyze_themes(
        verbatim_responses=payload.verbatim_responses,
        language=payload.language,
    )
    return ThemeAnalysisResponse(**_result_fields(result))


@router.get("/local-ai/status", response_model=LocalAIStatusResponse)
def local_ai_status(
    analysis_service: SurveyAnalysisService = Depends(get_survey_analysis_service),
) -> LocalAIStatusResponse:
    """
    Report whether the local Ollama server is reachable and its models.
    """

    return LocalAIStatusResponse(**asdict(analysis_service.local_ai_status()))
