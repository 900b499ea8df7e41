"""LLM adapters for survey analysis.

Provides a base interface and concrete adapters for OpenAI-compatible
cloud APIs, a local Ollama server, and a deterministic mock for testing.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)


class LLMAdapterError(RuntimeError):
    """Raised when the model endpoint cannot be reached or answers with an error."""


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string response from the model (expected, not guaranteed,
            to contain JSON).

        Raises:
            LLMAdapterError: On transport or endpoint errors.
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Configured for deterministic, non-streaming output with
    low temperature suitable for structured JSON generation.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: API key. Falls back to OPENAI_API_KEY env var.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            timeout_seconds: Request timeout.
        """
        try:
            from openai import OpenAI  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "openai package is required for OpenAILLMAdapter. "
                "Install it with: pip install openai"
            ) from exc

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not resolved_key:
            raise LLMAdapterError("No API key configured for the cloud model.")
        client_kwargs: dict = {"api_key": resolved_key, "timeout": timeout_seconds}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens

    def generate(self, prompt: str) -> str:
        """Call the chat completion API.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string content from the model response.
        """
        from openai import OpenAIError  # type: ignore[import-untyped]

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
                top_p=1,
                max_tokens=self._max_tokens,
                stream=False,
                seed=42,
            )
        except OpenAIError as exc:
            raise LLMAdapterError(f"Cloud model request failed: {exc}") from exc
        return response.choices[0].message.content or ""


class OllamaLLMAdapter(BaseLLMAdapter):
    """Adapter for a local Ollama server (``/api/generate``)."""

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 300.0,
        check_timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._check_timeout = check_timeout_seconds
        self._session = session or requests.Session()

    def list_models(self) -> List[str]:
        """Return model names the local server reports.

        Raises:
            LLMAdapterError: If the server is not reachable or its reply is
                not a JSON object.
        """
        try:
            response = self._session.get(
                f"{self._base_url}/api/tags",
                timeout=self._check_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise LLMAdapterError(f"Ollama is not running or not accessible: {exc}") from exc

        models = _json_object(response, "/api/tags").get("models") or []
        if not isinstance(models, list):
            raise LLMAdapterError("Ollama /api/tags returned an unexpected 'models' value")
        return [str(item.get("name")) for item in models if isinstance(item, dict) and item.get("name")]

    def generate(self, prompt: str) -> str:
        """Run one non-streaming generation on the local model.

        A model missing from ``/api/tags`` is only logged; it may still be
        pulling.
        """
        available = self.list_models()
        if self._model not in available:
            logger.warning(
                "Model %s not listed by Ollama (available: %s); trying anyway",
                self._model,
                ", ".join(available) or "none",
            )

        try:
            response = self._session.post(
                f"{self._base_url}/api/generate",
                json={"model": self._model, "prompt": prompt, "stream": False},
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            raise LLMAdapterError(
                f"Local model {self._model} timed out after {self._timeout:.0f}s"
            ) from exc
        except requests.RequestException as exc:
            raise LLMAdapterError(f"Local model request failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _json_or_empty(response).get("error") or response.text
            raise LLMAdapterError(f"Ollama returned HTTP {response.status_code}: {detail}")
        return str(_json_object(response, "/api/generate").get("response") or "")


def _json_object(response: requests.Response, endpoint: str) -> dict:
    try:
        payload = response.json()
    except ValueError as exc:
        raise LLMAdapterError(f"Ollama {endpoint} response was not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise LLMAdapterError(f"Ollama {endpoint} response was not a JSON object.")
    return payload


def _json_or_empty(response: requests.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


# ---------------------------------------------------------------------------
# Fixed mock response used for local testing. Wrapped in a markdown fence
# the way chat models often answer.
# ---------------------------------------------------------------------------
_MOCK_RESPONSE = {
    "kpis": [
        {"name": "overall_satisfaction", "importance": 0.9, "correlation": 0.8},
        {"name": "advocate_score", "importance": 0.7, "correlation": 0.6},
    ],
    "themes": [
        {
            "theme": "Waiting Time",
            "responses": ["Mock response about queues."],
            "sentiment": -0.4,
        }
    ],
    "overallSentiment": {
        "score": 0.1,
        "distribution": {"positive": 40, "neutral": 30, "negative": 30},
        "commentCount": 1,
        "categorizedComments": {
            "positive": [],
            "neutral": [],
            "negative": ["Mock response about queues."],
        },
    },
    "nps": {"score": 10, "promoters": 40, "passives": 30, "detractors": 30},
}

_MOCK_RESPONSE_TEXT = "Here is the analysis:\n```json\n" + json.dumps(_MOCK_RESPONSE, indent=2) + "\n```"

# Task-specific replies, picked by a phrase only that task's prompt carries.
_MOCK_TASK_RESPONSES = (
    (
        "sentimentLabel",
        {"sentimentScore": 0.6, "sentimentLabel": "Positive", "reason": "Mock praise for the staff."},
    ),
    (
        "Numerical columns:",
        {"kpis": ["overall_satisfaction", "advocate_score"], "explanation": "Mock rating columns."},
    ),
    (
        "identify common themes",
        {"themes": [{"theme": "Waiting Time", "responses": ["Mock response about queues."]}]},
    ),
)


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter that returns a fixed fenced JSON response.

    Used for local testing and CI pipelines where no LLM API
    is available.
    """

    def generate(self, prompt: str) -> str:
        """Return a fixed response for the task the prompt asks for.

        Args:
            prompt: Only inspected to tell the analysis tasks apart.

        Returns:
            A markdown-fenced JSON string that validates against the task's
            output model; the comprehensive analysis when no task matches.
        """
        for marker, response in _MOCK_TASK_RESPONSES:
            if marker in prompt:
                return "```json\n" + json.dumps(response) + "\n```"
        return _MOCK_RESPONSE_TEXT
