"""
app/services/survey_analysis_service.py

Model-backed survey analysis: the comprehensive KPI/theme/sentiment pass,
plus separate KPI detection, single-response sentiment and thematic
grouping. Every task degrades to a deterministic result when the model
cannot produce a usable answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

from pydantic import BaseModel

from app.config import AnalysisModelSettings, get_analysis_model_settings
from app.domain.survey import CanonicalField
from app.logging_utils import log_event, timed_event
from app.mappers.column_normalizer import normalize_rows
from llm_synthesis.adapter import (
    BaseLLMAdapter,
    LLMAdapterError,
    MockLLMAdapter,
    OllamaLLMAdapter,
    OpenAILLMAdapter,
)
from llm_synthesis.fallback import (
    build_fallback_analysis,
    fallback_kpis,
    fallback_themes,
    keyword_sentiment,
)
from llm_synthesis.prompt_builder import SurveyAnalysisPromptBuilder, flatten_response, prompt_metadata
from llm_synthesis.retry import LLMRetryExhaustedError, request_structured_output
from llm_synthesis.schema import (
    KpiDetectionOutput,
    SentimentOutput,
    SurveyAnalysisOutput,
    ThemeAnalysisOutput,
)
from llm_synthesis.text_mining import mine_kpis, mine_sentiment, mine_themes

logger = logging.getLogger(__name__)

RECOMMENDED_LOCAL_MODELS: tuple[str, ...] = ("gemma3", "qwen2.5-coder", "deepseek-r1:14b", "mistral")

# How a fallback result was produced.
FALLBACK_FROM_REPLY = "reply_text"
FALLBACK_WITHOUT_REPLY = "deterministic"

_VERBATIM_FIELDS = (CanonicalField.REASON_FOR_SCORE.value, CanonicalField.IMPROVEMENT_AREA.value)

OutputT = TypeVar("OutputT", bound=BaseModel)


@dataclass(frozen=True)
class SurveyAnalysisResult(Generic[OutputT]):
    """
    Model (or fallback) analysis plus how it was produced.
    """

    analysis: OutputT
    is_fallback: bool
    adapter: str
    model: str
    fallback_reason: str | None = None
    fallback_source: str | None = None


@dataclass(frozen=True)
class LocalAIStatus:
    """
    Reachability of the local Ollama server and the models it offers.
    """

    online: bool
    models: list[str] = field(default_factory=list)
    available_recommended: list[str] = field(default_factory=list)
    missing_recommended: list[str] = field(default_factory=list)
    default_model: str | None = None
    install_command: str | None = None
    error: str | None = None


def build_adapter(settings: AnalysisModelSettings) -> BaseLLMAdapter:
    """
    Construct the adapter named by ``settings.adapter``.

    Raises:
        LLMAdapterError: The adapter cannot be configured (e.g. missing API key).
    """

    if settings.adapter == "mock":
        return MockLLMAdapter()
    if settings.adapter == "ollama":
        return _build_ollama_adapter(settings)
    return OpenAILLMAdapter(
        model=settings.model,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


def _build_ollama_adapter(settings: AnalysisModelSettings) -> OllamaLLMAdapter:
    return OllamaLLMAdapter(
        model=settings.model,
        base_url=settings.ollama_base_url,
        timeout_seconds=settings.ollama_timeout_seconds,
        check_timeout_seconds=settings.ollama_check_timeout_seconds,
    )


def extract_verbatims(survey_data: Sequence[Mapping[str, Any]]) -> list[str]:
    """
    Collect free-text reasons and improvement comments from survey rows.
    """

    verbatims: list[str] = []
    for row in normalize_rows(survey_data):
        for key in _VERBATIM_FIELDS:
            value = row.get(key)
            if isinstance(value, str) and value.strip():
                verbatims.append(value.strip())
    return verbatims


class SurveyAnalysisService:
    """
    Runs the prompt -> model -> validation pipeline for each analysis task.

    A transport failure, or replies that stay unusable after the retries,
    never raise: the result is flagged ``is_fallback``. When the model did
    reply, KPI, sentiment and theme fields are first mined from the last
    reply text; otherwise a keyword/column heuristic fills them in.
    """

    def __init__(
        self,
        *,
        settings: AnalysisModelSettings,
        adapter_factory: Callable[[AnalysisModelSettings], BaseLLMAdapter] = build_adapter,
        prompt_builder: SurveyAnalysisPromptBuilder | None = None,
    ) -> None:
        self._settings = settings
        self._adapter_factory = adapter_factory
        self._prompt_builder = prompt_builder or SurveyAnalysisPromptBuilder(
            max_rows=settings.max_prompt_rows,
            max_verbatims=settings.max_prompt_verbatims,
        )

    def analyze(
        self,
        *,
        survey_data: Sequence[Mapping[str, Any]],
        verbatim_responses: Sequence[str] | None = None,
        language: str = "en",
    ) -> SurveyAnalysisResult[SurveyAnalysisOutput]:
        """
        Comprehensive KPI, theme and sentiment analysis.

        When no comments are supplied they are taken from the rows' reason and
        improvement columns.
        """

        verbatims = [str(item) for item in verbatim_responses] if verbatim_responses else extract_verbatims(survey_data)
        return self._run(
            task="comprehensive",
            prompt=self._prompt_builder.build_prompt(survey_data, verbatims, language),
            output_model=SurveyAnalysisOutput,
            from_reply=None,
            without_reply=lambda: build_fallback_analysis(verbatims, survey_data),
            rows=len(survey_data),
            comments=len(verbatims),
            language=language,
        )

    def detect_kpis(
        self,
        *,
        survey_data: Sequence[Mapping[str, Any]],
        language: str = "en",
    ) -> SurveyAnalysisResult[KpiDetectionOutput]:
        """
        Name the survey columns that act as KPIs.
        """

        def from_reply(reply: str) -> KpiDetectionOutput:
            mined = mine_kpis(reply)
            return mined if mined.kpis else fallback_kpis(survey_data)

        return self._run(
            task="kpi_detection",
            prompt=self._prompt_builder.build_kpi_prompt(survey_data, language),
            output_model=KpiDetectionOutput,
            from_reply=from_reply,
            without_reply=lambda: fallback_kpis(survey_data),
            rows=len(survey_data),
            language=language,
        )

    def analyze_sentiment(
        self,
        *,
        response: str,
        language: str = "en",
        context: str | None = None,
    ) -> SurveyAnalysisResult[SentimentOutput]:
        """
        Score the sentiment of one survey response.
        """

        return self._run(
            task="sentiment",
            prompt=self._prompt_builder.build_sentiment_prompt(response, language, context),
            output_model=SentimentOutput,
            from_reply=mine_sentiment,
            without_reply=lambda: keyword_sentiment(flatten_response(response)),
            response_chars=len(response),
            language=language,
        )

    def analyze_themes(
        self,
        *,
        verbatim_responses: Sequence[str],
        language: str = "en",
    ) -> SurveyAnalysisResult[ThemeAnalysisOutput]:
        """
        Group verbatim responses into themes.
        """

        responses = [str(item) for item in verbatim_responses]
        return self._run(
            task="themes",
            prompt=self._prompt_builder.build_theme_prompt(responses, language),
            output_model=ThemeAnalysisOutput,
            from_reply=lambda reply: mine_themes(reply, responses),
            without_reply=lambda: fallback_themes(responses),
            comments=len(responses),
            language=language,
        )

    def _run(
        self,
        *,
        task: str,
        prompt: str,
        output_model: type[OutputT],
        from_reply: Callable[[str], OutputT] | None,
        without_reply: Callable[[], OutputT],
        **event_fields: Any,
    ) -> SurveyAnalysisResult[OutputT]:
        log_event(
            logger,
            logging.INFO,
            "survey_analysis_started",
            task=task,
            adapter=self._settings.adapter,
            model=self._settings.model,
            **event_fields,
            **prompt_metadata(prompt),
        )

        with timed_event(
            logger,
            "survey_model_call",
            task=task,
            adapter=self._settings.adapter,
            model=self._settings.model,
        ) as call:
            try:
                adapter = self._adapter_factory(self._settings)
                analysis = request_structured_output(
                    adapter,
                    prompt,
                    output_model,
                    max_retries=self._settings.max_retries,
                )
            except LLMRetryExhaustedError as exc:
                call["outcome"] = "unusable_reply"
                call["attempts"] = len(exc.attempts)
                if from_reply is not None:
                    return self._fallback(task, exc, from_reply(exc.last_raw_response), FALLBACK_FROM_REPLY)
                return self._fallback(task, exc, without_reply(), FALLBACK_WITHOUT_REPLY)
            except LLMAdapterError as exc:
                call["outcome"] = "adapter_error"
                return self._fallback(task, exc, without_reply(), FALLBACK_WITHOUT_REPLY)
            call["outcome"] = "ok"

        return SurveyAnalysisResult(
            analysis=analysis,
            is_fallback=False,
            adapter=self._settings.adapter,
            model=self._settings.model,
        )

    def _fallback(
        self,
        task: str,
        exc: Exception,
        analysis: OutputT,
        source: str,
    ) -> SurveyAnalysisResult[OutputT]:
        log_event(
            logger,
            logging.WARNING,
            "survey_analysis_fallback",
            task=task,
            adapter=self._settings.adapter,
            model=self._settings.model,
            source=source,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return SurveyAnalysisResult(
            analysis=analysis,
            is_fallback=True,
            adapter=self._settings.adapter,
            model=self._settings.model,
            fallback_reason=str(exc),
            fallback_source=source,
        )

    def local_ai_status(self) -> LocalAIStatus:
        """
        Check whether the local Ollama server answers and list its models.
        """

        adapter = _build_ollama_adapter(self._settings)
        try:
            models = adapter.list_models()
        except LLMAdapterError as exc:
            logger.warning("Local AI status check failed: %s", exc)
            return LocalAIStatus(online=False, error=str(exc))

        available = [name for name in RECOMMENDED_LOCAL_MODELS if name in models]
        missing = [name for name in RECOMMENDED_LOCAL_MODELS if name not in models]
        return LocalAIStatus(
            online=True,
            models=models,
            available_recommended=available,
            missing_recommended=missing,
            default_model=available[0] if available else None,
            install_command=f"ollama pull {missing[0]}" if missing else None,
        )


@lru_cache(maxsize=1)
def get_survey_analysis_service() -> SurveyAnalysisService:
    """
    Build and cache the analysis service with env-driven settings.
    """
    return SurveyAnalysisService(settings=get_analysis_model_settings())
