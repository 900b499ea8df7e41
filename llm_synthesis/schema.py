"""Structured output schema for model-backed survey analysis."""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_MODEL_CONFIG = ConfigDict(
    extra="ignore",
    frozen=True,
    populate_by_name=True,
    str_strip_whitespace=True,
)


class KPI(BaseModel):
    """One survey metric the model considers performance-relevant."""

    model_config = _MODEL_CONFIG

    name: str = Field(min_length=1)
    importance: float = Field(ge=0.0, le=1.0)
    correlation: float = Field(ge=-1.0, le=1.0)


class Theme(BaseModel):
    model_config = _MODEL_CONFIG

    theme: str = Field(min_length=1)
    responses: List[str] = Field(default_factory=list)
    sentiment: float = Field(ge=-1.0, le=1.0)


class SentimentDistribution(BaseModel):
    """Percentage shares, each in [0, 100]."""

    model_config = _MODEL_CONFIG

    positive: float = Field(ge=0.0, le=100.0)
    neutral: float = Field(ge=0.0, le=100.0)
    negative: float = Field(ge=0.0, le=100.0)


class CategorizedComments(BaseModel):
    model_config = _MODEL_CONFIG

    positive: List[str] = Field(default_factory=list)
    neutral: List[str] = Field(default_factory=list)
    negative: List[str] = Field(default_factory=list)


class OverallSentiment(BaseModel):
    model_config = _MODEL_CONFIG

    score: float = Field(ge=-1.0, le=1.0)
    distribution: SentimentDistribution
    comment_count: int = Field(default=0, ge=0, alias="commentCount")
    categorized_comments: CategorizedComments = Field(
        default_factory=CategorizedComments,
        alias="categorizedComments",
    )


class NPSBreakdown(BaseModel):
    model_config = _MODEL_CONFIG

    score: float = Field(ge=-100.0, le=100.0)
    promoters: float = Field(ge=0.0, le=100.0)
    passives: float = Field(ge=0.0, le=100.0)
    detractors: float = Field(ge=0.0, le=100.0)


class SurveyAnalysisOutput(BaseModel):
    """Output contract for comprehensive survey analysis.

    Accepts the camelCase keys models are prompted with as well as the
    snake_case field names.
    """

    model_config = _MODEL_CONFIG

    kpis: List[KPI] = Field(default_factory=list)
    themes: List[Theme] = Field(default_factory=list)
    overall_sentiment: OverallSentiment = Field(alias="overallSentiment")
    nps: Optional[NPSBreakdown] = None


class KpiDetectionOutput(BaseModel):
    """Output contract for KPI detection: column names plus the reasoning."""

    model_config = _MODEL_CONFIG

    kpis: List[str]
    explanation: str = ""


SentimentLabel = Literal["Positive", "Negative", "Neutral"]


class SentimentOutput(BaseModel):
    """Output contract for single-response sentiment analysis."""

    model_config = _MODEL_CONFIG

    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0, alias="sentimentScore")
    sentiment_label: SentimentLabel = Field(default="Neutral", alias="sentimentLabel")
    reason: str = ""

    @field_validator("sentiment_label", mode="before")
    @classmethod
    def _capitalize_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().capitalize()
        return value

    @model_validator(mode="before")
    @classmethod
    def _require_score_or_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not any(
            key in data for key in ("sentimentScore", "sentiment_score", "sentimentLabel", "sentiment_label")
        ):
            raise ValueError("response has neither a sentiment score nor a label")
        return data


class ThemeGroup(BaseModel):
    """One theme with the responses grouped under it."""

    model_config = _MODEL_CONFIG

    theme: str = Field(min_length=1)
    responses: List[str] = Field(default_factory=list)

    @field_validator("responses", mode="before")
    @classmethod
    def _wrap_single_response(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class ThemeAnalysisOutput(BaseModel):
    """Output contract for thematic analysis."""

    model_config = _MODEL_CONFIG

    themes: List[ThemeGroup]
