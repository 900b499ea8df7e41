"""
app/schemas/survey_analysis.py

Request and response schemas for model-backed survey analysis.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from llm_synthesis.schema import (
    KpiDetectionOutput,
    SentimentOutput,
    SurveyAnalysisOutput,
    ThemeAnalysisOutput,
)


class SurveyAnalysisRequest(BaseModel):
    """
    Parsed survey rows plus optional comments to analyse.
    """

    survey_data: list[dict[str, Any]] = Field(default_factory=list)
    verbatim_responses: list[str] = Field(default_factory=list)
    language: str = Field("en", min_length=2, max_length=16)


class KpiDetectionRequest(BaseModel):
    survey_data: list[dict[str, Any]] = Field(min_length=1)
    language: str = Field("en", min_length=2, max_length=16)


class SentimentRequest(BaseModel):
    """
    One survey response, plain text or a JSON object serialized as text.
    """

    response: str = Field(min_length=1)
    language: str = Field("en", min_length=2, max_length=16)
    context: str | None = None


class ThemeAnalysisRequest(BaseModel):
    verbatim_responses: list[str] = Field(min_length=1)
    language: str = Field("en", min_length=2, max_length=16)


class ModelResultResponse(BaseModel):
    """
    Fields shared by every model-backed analysis response.
    """

    is_fallback: bool
    adapter: str
    model: str
    fallback_reason: str | None = None
    fallback_source: str | None = None


class SurveyAnalysisResponse(ModelResultResponse):
    """
    API response model for comprehensive survey analysis.
    """

    analysis: SurveyAnalysisOutput


class KpiDetectionResponse(ModelResultResponse):
    analysis: KpiDetectionOutput


class SentimentResponse(ModelResultResponse):
    analysis: SentimentOutput


class ThemeAnalysisResponse(ModelResultResponse):
    analysis: ThemeAnalysisOutput


class LocalAIStatusResponse(BaseModel):
    online: bool
    models: list[str] = Field(default_factory=list)
    available_recommended: list[str] = Field(default_factory=list)
    missing_recommended: list[str] = Field(default_factory=list)
    default_model: str | None = None
    install_command: str | None = None
    error: str | None = None
