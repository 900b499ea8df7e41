"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_ALLOWED_ADAPTERS = {"openai", "ollama", "mock"}


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_adapter_env(name: str, default: str) -> str:
    """
    Read the model adapter name; unknown values fall back to the default.
    """

    value = _get_str_env(name, default).lower()
    return value if value in _ALLOWED_ADAPTERS else default


@dataclass(frozen=True)
class SurveyUploadSettings:
    """
    Limits applied to uploaded survey files.
    """

    max_bytes: int = 10 * 1024 * 1024
    max_rows: int = 50_000


@dataclass(frozen=True)
class AnalysisModelSettings:
    """
    Model backend settings shared by every survey analysis task.
    """

    adapter: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    ollama_base_url: str = "http://localhost:11434"
    ollama_timeout_seconds: float = 300.0
    ollama_check_timeout_seconds: float = 5.0
    max_retries: int = 1
    max_prompt_rows: int = 20
    max_prompt_verbatims: int = 100


@lru_cache(maxsize=1)
def get_survey_upload_settings() -> SurveyUploadSettings:
    """
    Return cached upload settings from environment variables.
    """

    return SurveyUploadSettings(
        max_bytes=max(1024, _get_int_env("SURVEY_UPLOAD_MAX_BYTES", 10 * 1024 * 1024)),
        max_rows=max(1, _get_int_env("SURVEY_UPLOAD_MAX_ROWS", 50_000)),
    )


@lru_cache(maxsize=1)
def get_analysis_model_settings() -> AnalysisModelSettings:
    """
    Return cached model backend settings from environment variables.

    LLM_API_KEY wins over OPENAI_API_KEY when both are set.
    """

    adapter = _get_adapter_env("LLM_ADAPTER", "openai")
    default_model = "gemma3" if adapter == "ollama" else "gpt-4o-mini"
    return AnalysisModelSettings(
        adapter=adapter,
        model=_get_str_env("LLM_MODEL", default_model),
        api_key=_get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("LLM_BASE_URL"),
        ollama_base_url=_get_str_env("OLLAMA_BASE_URL", "http://localhost:11434"),
        ollama_timeout_seconds=max(1.0, _get_float_env("OLLAMA_TIMEOUT_SECONDS", 300.0)),
        ollama_check_timeout_seconds=max(0.5, _get_float_env("OLLAMA_CHECK_TIMEOUT_SECONDS", 5.0)),
        max_retries=max(0, _get_int_env("LLM_MAX_RETRIES", 1)),
        max_prompt_rows=max(1, _get_int_env("LLM_MAX_PROMPT_ROWS", 20)),
        max_prompt_verbatims=max(1, _get_int_env("LLM_MAX_PROMPT_VERBATIMS", 100)),
    )
