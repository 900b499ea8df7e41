"""
app/logging_utils.py

Structured logging helpers for the survey pipelines.

Events are one-line JSON objects. String fields are capped at
``MAX_FIELD_CHARS`` so raw model replies and error messages that embed them
do not flood the log.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

MAX_FIELD_CHARS = 500


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **{key: _clip(value) for key, value in fields.items()}}
    logger.log(level, json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True))


@contextmanager
def timed_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **fields: Any,
) -> Iterator[dict[str, Any]]:
    """
    Log ``event`` with ``duration_ms`` once the block exits.

    The yielded dict can be filled with outcome fields inside the block. An
    exception escaping the block is recorded as ``error_type`` and re-raised.
    """

    extra: dict[str, Any] = {}
    started = time.monotonic()
    try:
        yield extra
    except Exception as exc:
        extra.setdefault("outcome", "error")
        extra["error_type"] = type(exc).__name__
        raise
    finally:
        duration_ms = round((time.monotonic() - started) * 1000, 1)
        log_event(logger, level, event, **{**fields, **extra, "duration_ms": duration_ms})


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
        return f"{value[:MAX_FIELD_CHARS]}... (+{len(value) - MAX_FIELD_CHARS} chars)"
    return value
