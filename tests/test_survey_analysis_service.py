"""
tests/test_survey_analysis_service.py

Unit tests for the retry loop, keyword fallback and analysis service.
No network: every model call goes through scripted adapters.
"""

from __future__ import annotations

import json
from typing import Iterable

import pytest

from app.config import AnalysisModelSettings
from app.services.survey_analysis_service import (
    FALLBACK_WITHOUT_REPLY,
    SurveyAnalysisService,
    build_adapter,
    extract_verbatims,
)
from llm_synthesis.adapter import (
    BaseLLMAdapter,
    LLMAdapterError,
    MockLLMAdapter,
    OllamaLLMAdapter,
)
from llm_synthesis.fallback import (
    FALLBACK_THEME,
    build_fallback_analysis,
    classify_comment,
    fallback_kpis,
    fallback_themes,
    keyword_sentiment,
)
from llm_synthesis.prompt_builder import SurveyAnalysisPromptBuilder, language_instruction, numeric_columns
from llm_synthesis.retry import (
    MAX_ERRORS_IN_NOTE,
    LLMRetryExhaustedError,
    ModelAttempt,
    correction_note,
    generate_with_retry,
    request_structured_output,
)
from llm_synthesis.schema import SentimentOutput


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


_VALID_RESPONSE = json.dumps(
    {
        "kpis": [{"name": "AS", "importance": 0.8, "correlation": 0.5}],
        "themes": [{"theme": "Staff", "responses": ["Friendly"], "sentiment": 0.7}],
        "overallSentiment": {
            "score": 0.5,
            "distribution": {"positive": 70, "neutral": 20, "negative": 10},
            "commentCount": 2,
        },
    }
)


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


def _settings(**overrides: object) -> AnalysisModelSettings:
    values = {"adapter": "mock", "model": "test-model", "max_retries": 1}
    values.update(overrides)
    return AnalysisModelSettings(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


def test_retry_recovers_after_malformed_response() -> None:
    adapter = ScriptedAdapter(["not json at all", _VALID_RESPONSE])

    result = generate_with_retry(adapter, "prompt", max_retries=1)

    assert result.themes[0].theme == "Staff"
    assert len(adapter.prompts) == 2


def test_retry_exhaustion_keeps_every_attempt() -> None:
    adapter = ScriptedAdapter(["nope", "still nope", "never"])

    with pytest.raises(LLMRetryExhaustedError) as excinfo:
        generate_with_retry(adapter, "prompt", max_retries=1)

    attempts = excinfo.value.attempts
    assert [attempt.number for attempt in attempts] == [1, 2]
    assert attempts[0].failure_stage == "json_parse"
    assert attempts[0].extracted_by is None
    assert excinfo.value.last_raw_response == "still nope"
    assert len(adapter.prompts) == 2
    assert "previous reply contained no JSON" in adapter.prompts[1]
    assert adapter.prompts[1].startswith("prompt\n\n")


def test_schema_failure_records_extractor_stage_and_errors() -> None:
    broken = json.loads(_VALID_RESPONSE)
    broken["overallSentiment"]["score"] = 4
    adapter = ScriptedAdapter(["```json\n" + json.dumps(broken) + "\n```", _VALID_RESPONSE])

    with pytest.raises(LLMRetryExhaustedError) as excinfo:
        generate_with_retry(adapter, "prompt", max_retries=0)

    attempt = excinfo.value.attempts[0]
    assert attempt.failure_stage == "schema"
    assert attempt.extracted_by == "fenced_block"
    assert any("score" in error for error in attempt.errors)
    assert "stage 'schema'" in str(excinfo.value)


def test_correction_note_lists_schema_errors() -> None:
    adapter = ScriptedAdapter(['{"themes": []}', _VALID_RESPONSE])

    result = generate_with_retry(adapter, "prompt", max_retries=1)

    assert result.kpis[0].name == "AS"
    assert "did not match the required format" in adapter.prompts[1]
    assert "- overallSentiment: Field required" in adapter.prompts[1]


def test_correction_note_caps_listed_errors() -> None:
    attempt = ModelAttempt(
        number=1,
        failure_stage="schema",
        errors=[f"field{index}: bad" for index in range(MAX_ERRORS_IN_NOTE + 3)],
        extracted_by="direct",
        raw_response="{}",
    )
    note = correction_note(attempt)
    assert note.count("\n- ") == MAX_ERRORS_IN_NOTE


def test_structured_output_for_other_models() -> None:
    adapter = ScriptedAdapter(['Sure. {"sentimentScore": -0.4, "sentimentLabel": "negative"}'])

    output = request_structured_output(adapter, "prompt", SentimentOutput)

    assert output.sentiment_label == "Negative"
    assert output.sentiment_score == -0.4


def test_adapter_errors_are_not_retried() -> None:
    with pytest.raises(LLMAdapterError):
        generate_with_retry(FailingAdapter(), "prompt", max_retries=3)


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------


def test_classify_comment_uses_keyword_counts() -> None:
    assert classify_comment("Great staff, I love it") == "positive"
    assert classify_comment("Terrible and awful queue") == "negative"
    assert classify_comment("Opened an account") == "neutral"
    # "dislike" also contains "like".
    assert classify_comment("I dislike it") == "neutral"


def test_fallback_distribution_and_theme() -> None:
    comments = ["Great service", "Bad queue", "Poor staff", "Opened an account"]

    output = build_fallback_analysis(comments)

    sentiment = output.overall_sentiment
    assert sentiment.distribution.positive == 25
    assert sentiment.distribution.negative == 50
    assert sentiment.distribution.neutral == 25
    assert sentiment.score == -0.25
    assert sentiment.comment_count == 4
    assert sentiment.categorized_comments.negative == ["Bad queue", "Poor staff"]
    assert output.kpis == []
    assert [theme.theme for theme in output.themes] == [FALLBACK_THEME]
    assert output.themes[0].sentiment == 0
    assert output.nps is None


def test_fallback_theme_samples_first_ten_comments() -> None:
    comments = [f"comment {index}" for index in range(25)]
    output = build_fallback_analysis(comments)
    assert output.themes[0].responses == comments[:10]
    assert output.overall_sentiment.comment_count == 25


def test_fallback_without_comments() -> None:
    output = build_fallback_analysis([])
    distribution = output.overall_sentiment.distribution
    assert (distribution.positive, distribution.neutral, distribution.negative) == (0, 100, 0)


def test_fallback_computes_nps_from_rows() -> None:
    rows = [{"AS": 10}, {"AS": 9}, {"AS": 2}, {"AS": 7}]
    output = build_fallback_analysis(["ok"], rows)
    assert output.nps is not None
    assert output.nps.score == 25.0


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


def test_prompt_samples_rows_and_states_totals() -> None:
    builder = SurveyAnalysisPromptBuilder(max_rows=2, max_verbatims=1)
    rows = [{"Branch": f"B{index}"} for index in range(5)]

    prompt = builder.build_prompt(rows, ["first comment", "second comment"], "fr")

    assert "5 total rows, showing first 2" in prompt
    assert "B1" in prompt and "B2" not in prompt
    assert "- first comment" in prompt and "second comment" not in prompt
    assert '"commentCount": 2' in prompt
    assert "fr language" in prompt


def test_english_prompt_has_no_language_note() -> None:
    prompt = SurveyAnalysisPromptBuilder().build_prompt([], [], "en")
    assert "language patterns" not in prompt
    assert "(no comments provided)" in prompt


def test_kpi_prompt_lists_columns_and_samples_five_rows() -> None:
    rows = [{"Branch": f"B{index}", "AS": index, "Comment": "ok"} for index in range(8)]

    prompt = SurveyAnalysisPromptBuilder().build_kpi_prompt(rows, "en")

    assert "Survey columns: Branch, AS, Comment" in prompt
    assert "Numerical columns: AS" in prompt
    assert "8 total rows" in prompt
    assert '"B4"' in prompt and '"B5"' not in prompt
    assert "language-specific nuances" not in prompt


def test_sentiment_prompt_flattens_json_response() -> None:
    response = json.dumps({"comment": "Slow queue", "rating": 2})

    prompt = SurveyAnalysisPromptBuilder().build_sentiment_prompt(response, "fr")

    assert "comment: Slow queue\nrating: 2" in prompt
    assert "Additional context" not in prompt
    assert "fr language patterns and expressions" in prompt


def test_theme_prompt_numbers_responses() -> None:
    responses = ["Long queue", json.dumps({"what": "Staff", "why": "rude"})]

    prompt = SurveyAnalysisPromptBuilder().build_theme_prompt(responses, "en")

    assert "Response 1: Long queue" in prompt
    assert "Response 2:\n  what: Staff\n  why: rude" in prompt
    assert "2 total responses" in prompt


def test_theme_prompt_without_responses() -> None:
    prompt = SurveyAnalysisPromptBuilder().build_theme_prompt([], "sw")
    assert "(no responses provided)" in prompt
    assert "sw language patterns and cultural context" in prompt


def test_language_instruction_per_task() -> None:
    assert language_instruction("en", "kpi") == ""
    assert language_instruction(" EN ", "theme") == ""
    assert "identifying KPIs" in language_instruction("fr", "kpi")
    assert language_instruction("fr", "unknown") == language_instruction("fr", "theme")


def test_numeric_columns_skip_booleans_and_blank_text() -> None:
    rows = [
        {"Flag": True, "Blank": "", "Text": "4 stars", "Score": " 4.5 "},
        {"Flag": False, "Blank": "  ", "Text": "n/a", "Score": None},
    ]
    assert numeric_columns(rows) == ["Score"]


# ---------------------------------------------------------------------------
# Deterministic task fallbacks
# ---------------------------------------------------------------------------


def test_fallback_kpis_put_ratings_first_and_cap_the_list() -> None:
    row = {
        "Phone": 233200000,
        "Date": 45000,
        "Visits": 2,
        "Deposits": 1,
        "Loans": 0,
        "Cards": 1,
        "Transfers": 3,
        "Overall satisfaction": 4,
    }

    output = fallback_kpis([row])

    assert output.kpis == ["Overall satisfaction", "Visits", "Deposits", "Loans", "Cards"]
    assert "rating columns first" in output.explanation


def test_fallback_kpis_without_numeric_columns() -> None:
    output = fallback_kpis([{"Branch": "Accra"}])
    assert output.kpis == []
    assert output.explanation == "The survey data has no numeric columns."


@pytest.mark.parametrize(
    ("text", "score", "label"),
    [
        ("Great and excellent service", 1.0, "Positive"),
        ("Awful, the worst, but good coffee", -1 / 3, "Negative"),
        ("Opened an account", 0.0, "Neutral"),
    ],
)
def test_keyword_sentiment(text: str, score: float, label: str) -> None:
    output = keyword_sentiment(text)
    assert output.sentiment_score == pytest.approx(score)
    assert output.sentiment_label == label


def test_fallback_themes_keep_every_response() -> None:
    responses = [f"comment {index}" for index in range(15)]
    output = fallback_themes(responses)
    assert output.themes[0].theme == FALLBACK_THEME
    assert output.themes[0].responses == responses


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def test_service_returns_model_analysis() -> None:
    adapter = ScriptedAdapter([_VALID_RESPONSE])
    service = SurveyAnalysisService(settings=_settings(), adapter_factory=lambda _: adapter)

    result = service.analyze(survey_data=[{"Branch": "A"}], verbatim_responses=["Friendly", "Nice"])

    assert result.is_fallback is False
    assert result.analysis.kpis[0].name == "AS"
    assert result.model == "test-model"


def test_service_falls_back_when_output_never_validates() -> None:
    adapter = ScriptedAdapter(["garbage", "more garbage"])
    service = SurveyAnalysisService(settings=_settings(), adapter_factory=lambda _: adapter)

    result = service.analyze(survey_data=[], verbatim_responses=["Great", "Bad"])

    assert result.is_fallback is True
    assert result.analysis.themes[0].theme == FALLBACK_THEME
    assert result.analysis.overall_sentiment.comment_count == 2
    assert result.fallback_reason
    assert result.fallback_source == FALLBACK_WITHOUT_REPLY


def test_service_falls_back_on_adapter_error() -> None:
    service = SurveyAnalysisService(settings=_settings(), adapter_factory=lambda _: FailingAdapter())

    result = service.analyze(survey_data=[], verbatim_responses=["fine"])

    assert result.is_fallback is True
    assert "connection refused" in (result.fallback_reason or "")
    assert result.fallback_source == FALLBACK_WITHOUT_REPLY


def test_service_with_mock_adapter() -> None:
    service = SurveyAnalysisService(settings=_settings())
    result = service.analyze(survey_data=[], verbatim_responses=["x"])
    assert result.is_fallback is False


def test_verbatims_are_taken_from_rows_when_not_supplied() -> None:
    rows = [
        {"Agence": "Accra", "Raisons du score": "Long queue", "Improvements": "Staff"},
        {"Agence": "Lome", "Raisons du score": "  "},
    ]
    assert extract_verbatims(rows) == ["Long queue", "Staff"]

    adapter = ScriptedAdapter([_VALID_RESPONSE])
    service = SurveyAnalysisService(settings=_settings(), adapter_factory=lambda _: adapter)
    service.analyze(survey_data=rows)
    assert "- Long queue" in adapter.prompts[0]


def test_build_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert isinstance(build_adapter(_settings(adapter="mock")), MockLLMAdapter)
    assert isinstance(build_adapter(_settings(adapter="ollama")), OllamaLLMAdapter)
    with pytest.raises(LLMAdapterError):
        build_adapter(_settings(adapter="openai", api_key=None))
