from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from app.config import get_analysis_model_settings, load_env_files

_ALLOWED_ADAPTERS = {"openai", "ollama", "mock"}
_INT_ENV_VARS = (
    "SURVEY_UPLOAD_MAX_BYTES",
    "SURVEY_UPLOAD_MAX_ROWS",
    "LLM_MAX_RETRIES",
    "LLM_MAX_PROMPT_ROWS",
    "LLM_MAX_PROMPT_VERBATIMS",
)


def _validate_env() -> None:
    """
    Validate environment variables at startup.

    Raises RuntimeError listing every invalid variable so the operator can
    fix all problems in one restart cycle. A missing cloud API key is only
    logged: analysis requests then return the keyword fallback.
    """

    load_env_files()

    errors: list[str] = []

    adapter = os.getenv("LLM_ADAPTER", "openai").strip().lower()
    if adapter not in _ALLOWED_ADAPTERS:
        errors.append(
            f"LLM_ADAPTER='{adapter}' is not valid. Allowed values: {sorted(_ALLOWED_ADAPTERS)}."
        )

    for name in _INT_ENV_VARS:
        raw = os.getenv(name, "").strip()
        if raw and not raw.lstrip("-").isdigit():
            errors.append(f"{name}='{raw}' is not an integer.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    if adapter == "openai":
        llm_api_key = os.getenv("LLM_API_KEY", "").strip()
        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not llm_api_key and not openai_api_key:
            logging.getLogger(__name__).warning(
                "LLM API key is not set (LLM_API_KEY / OPENAI_API_KEY); "
                "survey analysis will use the keyword fallback."
            )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _configure_logging()
    _validate_env()

    application = FastAPI(
        title="Branch Survey Insights API",
        version="1.0.0",
    )

    from app.api.routers import branch_analysis_router, survey_analysis_router

    application.include_router(branch_analysis_router)
    application.include_router(survey_analysis_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        settings = get_analysis_model_settings()
        return {
            "status": "ok",
            "adapter": settings.adapter,
            "model": settings.model,
        }

    return application


app = create_app()
