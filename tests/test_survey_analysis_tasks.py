"""
tests/test_survey_analysis_tasks.py

KPI detection, single-response sentiment and thematic grouping through the
analysis service and its routes. Model calls go through scripted adapters.
"""

from __future__ import annotations

import json
from typing import Iterable

import pytest
from pydantic import ValidationError

from app.api.routers.survey_analysis import analyze_sentiment, analyze_themes, detect_kpis
from app.config import AnalysisModelSettings
from app.schemas.survey_analysis import KpiDetectionRequest, SentimentRequest, ThemeAnalysisRequest
from app.services.survey_analysis_service import (
    FALLBACK_FROM_REPLY,
    FALLBACK_WITHOUT_REPLY,
    SurveyAnalysisService,
)
from llm_synthesis.adapter import BaseLLMAdapter, LLMAdapterError
from llm_synthesis.fallback import FALLBACK_THEME

_ROWS = [
    {"Case #": 1, "Branch": "Accra", "Age": 30, "Visits": 3, "AS": 9},
    {"Case #": 2, "Branch": "Lome", "Age": 41, "Visits": "", "AS": "7"},
]
_COMMENTS = ["Queue was long", "Waited an hour", "Teller was kind"]


class ScriptedAdapter(BaseLLMAdapter):
    def __init__(self, responses: Iterable[str]) -> None:
        self._responses = list(responses)
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._responses.pop(0)


class FailingAdapter(BaseLLMAdapter):
    def generate(self, prompt: str) -> str:
        raise LLMAdapterError("connection refused")


def _service(adapter: BaseLLMAdapter | None = None) -> SurveyAnalysisService:
    settings = AnalysisModelSettings(adapter="mock", model="test-model", max_retries=1)
    if adapter is None:
        return SurveyAnalysisService(settings=settings)
    return SurveyAnalysisService(settings=settings, adapter_factory=lambda _: adapter)


# ---------------------------------------------------------------------------
# KPI detection
# ---------------------------------------------------------------------------


def test_kpis_from_model_reply() -> None:
    adapter = ScriptedAdapter(['{"kpis": ["AS", "Visits"], "explanation": "Ratings drive loyalty."}'])

    result = _service(adapter).detect_kpis(survey_data=_ROWS, language="fr")

    assert result.is_fallback is False
    assert result.analysis.kpis == ["AS", "Visits"]
    assert "Numerical columns: Case #, Age, Visits, AS" in adapter.prompts[0]
    assert "Column names and values may be in fr" in adapter.prompts[0]


def test_kpis_mined_from_unusable_reply() -> None:
    reply = "KPIs:\n- Waiting Time\n- Staff Rating\n\nExplanation: these drive satisfaction."
    adapter = ScriptedAdapter([reply, reply])

    result = _service(adapter).detect_kpis(survey_data=_ROWS)

    assert result.is_fallback is True
    assert result.fallback_source == FALLBACK_FROM_REPLY
    assert result.analysis.kpis == ["Waiting Time", "Staff Rating"]
    assert result.analysis.explanation == "these drive satisfaction."


def test_kpis_fall_back_to_numeric_columns_when_reply_names_none() -> None:
    adapter = ScriptedAdapter(["I am not sure.", "Still not sure."])

    result = _service(adapter).detect_kpis(survey_data=_ROWS)

    assert result.fallback_source == FALLBACK_FROM_REPLY
    assert result.analysis.kpis == ["AS", "Visits"]


def test_kpis_without_model() -> None:
    result = _service(FailingAdapter()).detect_kpis(survey_data=_ROWS)

    assert result.is_fallback is True
    assert result.fallback_source == FALLBACK_WITHOUT_REPLY
    assert result.analysis.kpis == ["AS", "Visits"]
    assert "connection refused" in (result.fallback_reason or "")


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------


def test_sentiment_with_mock_adapter() -> None:
    result = _service().analyze_sentiment(response="Great staff")

    assert result.is_fallback is False
    assert result.analysis.sentiment_label == "Positive"


def test_sentiment_mined_from_unusable_reply() -> None:
    reply = "The sentiment is positive.\nSentiment score: 0.8\nReasoning: praises the staff"
    adapter = ScriptedAdapter([reply, reply])

    result = _service(adapter).analyze_sentiment(response="Great staff", context="Branch visit")

    assert result.fallback_source == FALLBACK_FROM_REPLY
    assert result.analysis.sentiment_score == 0.8
    assert result.analysis.sentiment_label == "Positive"
    assert result.analysis.reason == "praises the staff"
    assert "Additional context: Branch visit" in adapter.prompts[0]


def test_sentiment_without_model_uses_keywords() -> None:
    response = json.dumps({"comment": "Great staff but bad queue", "rating": 4})

    result = _service(FailingAdapter()).analyze_sentiment(response=response)

    assert result.fallback_source == FALLBACK_WITHOUT_REPLY
    assert result.analysis.sentiment_score == 0
    assert result.analysis.sentiment_label == "Neutral"
    assert "1 positive and 1 negative" in result.analysis.reason


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------


def test_themes_from_model_reply() -> None:
    reply = json.dumps(
        {
            "themes": [
                {"theme": "Waiting Time", "responses": ["Queue was long", "Waited an hour"]},
                {"theme": "Staff", "responses": "Teller was kind"},
            ]
        }
    )
    adapter = ScriptedAdapter([reply])

    result = _service(adapter).analyze_themes(verbatim_responses=_COMMENTS)

    assert result.is_fallback is False
    assert [group.theme for group in result.analysis.themes] == ["Waiting Time", "Staff"]
    assert result.analysis.themes[1].responses == ["Teller was kind"]
    assert "Response 3: Teller was kind" in adapter.prompts[0]


def test_theme_names_mined_from_unusable_reply_share_the_responses() -> None:
    reply = "Themes:\n1. Waiting Time\n2. Staff Attitude\n"
    adapter = ScriptedAdapter([reply, reply])

    result = _service(adapter).analyze_themes(verbatim_responses=_COMMENTS)

    assert result.fallback_source == FALLBACK_FROM_REPLY
    assert [(group.theme, group.responses) for group in result.analysis.themes] == [
        ("Waiting Time", ["Queue was long", "Waited an hour"]),
        ("Staff Attitude", ["Teller was kind"]),
    ]


def test_themes_without_model() -> None:
    result = _service(FailingAdapter()).analyze_themes(verbatim_responses=_COMMENTS)

    assert result.fallback_source == FALLBACK_WITHOUT_REPLY
    assert len(result.analysis.themes) == 1
    assert result.analysis.themes[0].theme == FALLBACK_THEME
    assert result.analysis.themes[0].responses == _COMMENTS


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def test_sentiment_route_serializes_camel_case() -> None:
    response = analyze_sentiment(SentimentRequest(response="Great staff"), _service())

    body = response.model_dump(by_alias=True)
    assert body["is_fallback"] is False
    assert body["analysis"]["sentimentLabel"] == "Positive"
    assert body["fallback_source"] is None


def test_kpi_route_reports_fallback_source() -> None:
    response = detect_kpis(KpiDetectionRequest(survey_data=_ROWS), _service(FailingAdapter()))

    assert response.is_fallback is True
    assert response.fallback_source == FALLBACK_WITHOUT_REPLY
    assert response.analysis.kpis == ["AS", "Visits"]


def test_theme_route_with_mock_adapter() -> None:
    response = analyze_themes(ThemeAnalysisRequest(verbatim_responses=_COMMENTS), _service())

    assert response.is_fallback is False
    assert response.analysis.themes[0].theme == "Waiting Time"


@pytest.mark.parametrize(
    ("model", "payload"),
    [
        (SentimentRequest, {"response": ""}),
        (ThemeAnalysisRequest, {"verbatim_responses": []}),
        (KpiDetectionRequest, {"survey_data": []}),
    ],
)
def test_requests_reject_empty_input(model: type, payload: dict) -> None:
    with pytest.raises(ValidationError):
        model(**payload)
