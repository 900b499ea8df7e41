"""Recovery of JSON payloads from free-form LLM responses.

Models asked for "JSON only" still wrap answers in markdown fences, prepend
chatter, use single quotes or leave keys bare. ``safe_json_parse`` runs an
ordered list of independent stages and returns the first value one of them
manages to parse:

    1. direct parse of the text with control characters removed
    2. the first fenced code block holding an object
    3. the first balanced top-level ``{...}`` span
    4. the candidates above after bare-key / single-quote repairs
    5. loose ``key: value`` / ``key = value`` pairs assembled into a dict

``None`` means every stage failed; callers must supply their own fallback.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_FENCED_OBJECT = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_LAZY_OBJECT = re.compile(r"(\{[\s\S]*?\})")
_BARE_KEY = re.compile(r"([{,])\s*([a-zA-Z0-9_]+)\s*:")
_SINGLE_QUOTED_VALUE = re.compile(r":\s*'([^']*)'")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_KEY_VALUE_PAIR = re.compile(r"[\"']?([\w\s]+)[\"']?\s*[:=]\s*[\"']?([\w\s.\-]+)[\"']?")
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def strip_control_characters(text: str) -> str:
    """Remove C0/C1 control characters that break ``json.loads``."""
    return _CONTROL_CHARS.sub("", text)


def _loads(candidate: str) -> Optional[Any]:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Candidate extraction
# ---------------------------------------------------------------------------


def extract_fenced_object(text: str) -> Optional[str]:
    """Return the object inside the first ```json / ``` fence, if any."""
    match = _FENCED_OBJECT.search(text)
    if match:
        return match.group(1).strip()
    return None


def extract_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced top-level ``{...}`` span.

    Braces inside double-quoted strings are ignored, so nested objects and
    values such as ``"a {b}"`` do not cut the span short.
    """
    return _balanced_span(text, "{", "}")


def extract_balanced_array(text: str, start: int = 0) -> Optional[str]:
    """Return the first balanced ``[...]`` span at or after ``start``."""
    return _balanced_span(text, "[", "]", start)


def _balanced_span(text: str, opener: str, closer: str, offset: int = 0) -> Optional[str]:
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for index in range(offset, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and depth > 0:
            in_string = True
        elif char == opener:
            if depth == 0:
                start = index
            depth += 1
        elif char == closer and depth > 0:
            depth -= 1
            if depth == 0 and start != -1:
                return text[start : index + 1].strip()
    return None


def _object_candidates(text: str) -> Iterator[str]:
    seen: List[str] = []
    for candidate in (
        extract_fenced_object(text),
        extract_balanced_object(text),
        _first_lazy_object(text),
    ):
        if candidate and candidate not in seen:
            seen.append(candidate)
            yield candidate


def _first_lazy_object(text: str) -> Optional[str]:
    match = _LAZY_OBJECT.search(text)
    return match.group(1).strip() if match else None


def repair_json_text(candidate: str) -> str:
    """Quote bare keys, turn single-quoted values into double-quoted ones
    and drop trailing commas."""
    repaired = _BARE_KEY.sub(r'\1"\2":', candidate)
    repaired = _SINGLE_QUOTED_VALUE.sub(r':"\1"', repaired)
    return _TRAILING_COMMA.sub(r"\1", repaired)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def parse_direct(text: str) -> Optional[Any]:
    return _loads(strip_control_characters(text))


def parse_fenced_block(text: str) -> Optional[Any]:
    candidate = extract_fenced_object(strip_control_characters(text))
    return _loads(candidate) if candidate else None


def parse_balanced_object(text: str) -> Optional[Any]:
    candidate = extract_balanced_object(strip_control_characters(text))
    return _loads(candidate) if candidate else None


def parse_repaired_object(text: str) -> Optional[Any]:
    for candidate in _object_candidates(strip_control_characters(text)):
        parsed = _loads(repair_json_text(candidate))
        if parsed is not None:
            return parsed
    return None


def parse_key_value_pairs(text: str) -> Optional[dict]:
    """Assemble a flat dict from ``key: value`` / ``key = value`` pairs.

    Lines are scanned separately so one pair cannot swallow the next line's
    key. Returns None when no pair is found.
    """
    result: dict = {}
    for line in _CONTROL_CHARS.split(text):
        for match in _KEY_VALUE_PAIR.finditer(line):
            key = match.group(1).strip()
            value = match.group(2).strip()
            if key and value:
                result[key] = _coerce_scalar(value)
    return result or None


def _coerce_scalar(value: str) -> Any:
    if _NUMBER.match(value):
        number = float(value)
        return int(number) if number.is_integer() and "." not in value and "e" not in value.lower() else number
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return value


_STAGES: Tuple[Tuple[str, Callable[[str], Optional[Any]]], ...] = (
    ("direct", parse_direct),
    ("fenced_block", parse_fenced_block),
    ("balanced_object", parse_balanced_object),
    ("repaired_object", parse_repaired_object),
    ("key_value_pairs", parse_key_value_pairs),
)


STAGE_NAMES: Tuple[str, ...] = tuple(name for name, _ in _STAGES)


@dataclass(frozen=True)
class JsonExtraction:
    """Outcome of ``extract_json``.

    Attributes:
        value: The recovered value, or None when every stage failed.
        stage: Name of the stage that recovered ``value``; None on failure.
    """

    value: Optional[Any]
    stage: Optional[str]

    @property
    def recovered(self) -> bool:
        return self.stage is not None


def extract_json(text: Any) -> JsonExtraction:
    """Run the stages in order and report which one recovered a value.

    Args:
        text: Raw response text.

    Returns:
        A JsonExtraction. ``stage`` is None when the text is empty, not a
        string, or no stage recovers anything.
    """
    if not text or not isinstance(text, str):
        return JsonExtraction(value=None, stage=None)

    for stage, parser in _STAGES:
        parsed = parser(text)
        if parsed is not None:
            logger.debug("Recovered JSON from model response via stage '%s'", stage)
            return JsonExtraction(value=parsed, stage=stage)

    logger.warning("No JSON could be recovered from model response (length=%d)", len(text))
    return JsonExtraction(value=None, stage=None)


def safe_json_parse(text: Any) -> Optional[Any]:
    """Parse JSON out of an unreliable model response.

    Returns:
        The parsed value from the first stage that succeeds, or None.
    """
    return extract_json(text).value
