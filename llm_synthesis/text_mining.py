"""Reading analysis fields out of model replies that are not usable JSON.

Applied to the last reply once retries are spent. Each miner tries a few
phrasings models commonly fall back to ("KPIs:" followed by a bullet list,
"sentiment score: 0.6", "themes include ...") and always returns a valid
output model, possibly empty.
"""

import json
import logging
import math
import re
from typing import Any, List, Optional, Sequence

from llm_synthesis.fallback import FALLBACK_THEME
from llm_synthesis.json_repair import extract_balanced_array, repair_json_text
from llm_synthesis.schema import (
    KpiDetectionOutput,
    SentimentOutput,
    ThemeAnalysisOutput,
    ThemeGroup,
)

logger = logging.getLogger(__name__)

DEFAULT_KPI_EXPLANATION = (
    "These KPIs were identified based on their correlation with other metrics "
    "in the survey data."
)

# A bullet ("-", "*") or numbered ("1.") list item on a single line.
_ITEM = r"(?:-|\*|\d+\.)[ \t]*[\w \t]+"
_ITEM_TEXT = re.compile(r"(?:-|\*|\d+\.)[ \t]*([\w \t]+)")

_KPI_LIST = re.compile(rf"KPIs?:?\s*((?:{_ITEM}\s*)+)", re.IGNORECASE)
_KPI_INLINE_ARRAY = re.compile(r"kpis\"?\s*:?\s*\[(.*?)\]", re.IGNORECASE)
_KPI_SENTENCE = re.compile(
    r"(?:key|important|significant)\s+(?:indicators?|metrics?|KPIs?|factors?)\s+"
    r"(?:are|is|include)\s+([\w\s,]+)",
    re.IGNORECASE,
)
_EXPLANATION = re.compile(r"(?:explanation|reasoning|analysis):\s*([\s\S]+?)(?:\n\n|\Z)", re.IGNORECASE)

_SCORE_PATTERNS = (
    re.compile(r"sentiment\s+score\s*:?\s*(-?\d+\.?\d*)", re.IGNORECASE),
    re.compile(r"score\s*:?\s*(-?\d+\.?\d*)", re.IGNORECASE),
    re.compile(r"(-?\d+\.?\d*)\s*/\s*1(?![\d.])"),
    re.compile(r"score\s+of\s+(-?\d+\.?\d*)", re.IGNORECASE),
)
_LABEL_PATTERNS = (
    re.compile(r"sentiment\s+label\s*:?\s*[\"']?(Positive|Negative|Neutral)[\"']?", re.IGNORECASE),
    re.compile(r"sentiment\s+is\s+[\"']?(Positive|Negative|Neutral)[\"']?", re.IGNORECASE),
    re.compile(r"sentiment\s*:?\s*[\"']?(Positive|Negative|Neutral)[\"']?", re.IGNORECASE),
    re.compile(r"(Positive|Negative|Neutral)\s+sentiment", re.IGNORECASE),
)
_REASON_PATTERNS = (
    re.compile(r"\breasoning\s*:?\s*[\"']?([^\"'\n]+)[\"']?", re.IGNORECASE),
    re.compile(r"\bexplanation\s*:?\s*[\"']?([^\"'\n]+)[\"']?", re.IGNORECASE),
    re.compile(r"\breason\s*:?\s*[\"']?([^\"'\n]+)[\"']?", re.IGNORECASE),
)
_SCORE_OR_LABEL_LINE = re.compile(r"sentiment\s+score|sentiment\s+label|score\s*:|label\s*:", re.IGNORECASE)
_LABEL_THRESHOLD = 0.3

_THEMES_KEY = re.compile(r"themes\"?\s*:?\s*(?=\[)", re.IGNORECASE)
_THEME_NAME = re.compile(r"theme\"?\s*:?\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_THEME_RESPONSES = re.compile(r"responses\"?\s*:?\s*\[([\s\S]*?)\]", re.IGNORECASE)
_QUOTED = re.compile(r"[\"']([^\"']+)[\"']")
_BULLET_SPLIT = re.compile(r"\n\s*[-*]\s*")
_THEME_LIST = re.compile(rf"themes?:?\s*((?:{_ITEM}\s*)+)", re.IGNORECASE)
_THEME_SENTENCE = re.compile(
    r"(?:themes|categories|topics)\s+(?:include|are|identified)\s+([\w\s,]+)",
    re.IGNORECASE,
)

_MIN_PARAGRAPH_CHARS = 20


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


def mine_kpis(text: str) -> KpiDetectionOutput:
    """Recover KPI names and an explanation from free text.

    Tried in order: a "KPIs:" bullet list, an inline ``kpis: [...]`` array,
    and a sentence such as "the key metrics are A, B".
    """
    kpis = _kpis_from_list(text) or _kpis_from_inline_array(text) or _kpis_from_sentence(text)
    return KpiDetectionOutput(kpis=kpis, explanation=_kpi_explanation(text))


def _kpis_from_list(text: str) -> List[str]:
    match = _KPI_LIST.search(text)
    if not match:
        return []
    return _list_items(match.group(1))


def _kpis_from_inline_array(text: str) -> List[str]:
    match = _KPI_INLINE_ARRAY.search(text)
    if not match:
        return []
    return _split_names(match.group(1).replace('"', ""))


def _kpis_from_sentence(text: str) -> List[str]:
    match = _KPI_SENTENCE.search(text)
    if not match:
        return []
    return _split_names(match.group(1))


def _kpi_explanation(text: str) -> str:
    match = _EXPLANATION.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    for paragraph in text.split("\n\n"):
        if not _KPI_LIST.search(paragraph) and len(paragraph) > _MIN_PARAGRAPH_CHARS:
            return paragraph.strip()
    return DEFAULT_KPI_EXPLANATION


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------


def mine_sentiment(text: str) -> SentimentOutput:
    """Recover a sentiment score, label and reason from free text.

    Scores are clamped to [-1, 1]. When no label is stated it is inferred
    from the score: above 0.3 is Positive, below -0.3 Negative.
    """
    score = _first_float(_SCORE_PATTERNS, text)
    score = 0.0 if score is None else max(-1.0, min(1.0, score))

    label = _first_group(_LABEL_PATTERNS, text)
    if label is None:
        if score > _LABEL_THRESHOLD:
            label = "Positive"
        elif score < -_LABEL_THRESHOLD:
            label = "Negative"
        else:
            label = "Neutral"

    reason = _first_group(_REASON_PATTERNS, text)
    if reason is None:
        reason = next(
            (
                paragraph.strip()
                for paragraph in text.split("\n\n")
                if not _SCORE_OR_LABEL_LINE.search(paragraph) and len(paragraph) > _MIN_PARAGRAPH_CHARS
            ),
            "",
        )

    return SentimentOutput(sentiment_score=score, sentiment_label=label, reason=reason.strip())


def _first_float(patterns: Sequence[re.Pattern], text: str) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            try:
                value = float(match.group(1))
            except ValueError:
                continue
            if math.isfinite(value):
                return value
    return None


def _first_group(patterns: Sequence[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------


def mine_themes(text: str, verbatim_responses: Sequence[str]) -> ThemeAnalysisOutput:
    """Recover themes from free text.

    Tried in order: a ``themes: [...]`` array (parsed, repaired, then read
    pairwise with regexes), a bullet list of theme names, and a sentence such
    as "themes include A, B". Bare theme names get consecutive, evenly sized
    slices of the responses. With nothing found, every response goes under
    a single "General Feedback" theme.
    """
    responses = [str(response) for response in verbatim_responses]

    themes = _themes_from_array(text)
    if themes:
        return ThemeAnalysisOutput(themes=themes)

    names = _theme_names_from_list(text) or _theme_names_from_sentence(text)
    if names:
        return ThemeAnalysisOutput(themes=distribute_responses(names, responses))

    logger.info("No themes found in model reply; grouping %d responses as %r", len(responses), FALLBACK_THEME)
    return ThemeAnalysisOutput(themes=[ThemeGroup(theme=FALLBACK_THEME, responses=responses)])


def distribute_responses(names: Sequence[str], responses: Sequence[str]) -> List[ThemeGroup]:
    """Give each theme name a consecutive slice of ``ceil(n / k)`` responses."""
    per_theme = math.ceil(len(responses) / len(names)) if names else 0
    return [
        ThemeGroup(
            theme=name,
            responses=list(responses[index * per_theme : (index + 1) * per_theme]),
        )
        for index, name in enumerate(names)
    ]


def _themes_from_array(text: str) -> List[ThemeGroup]:
    key = _THEMES_KEY.search(text)
    if not key:
        return []
    block = extract_balanced_array(text, key.end())
    if block is None:
        return []

    for candidate in (block, repair_json_text(block)):
        items = _loads_list(candidate)
        if items is not None:
            return [group for group in map(_theme_group, items) if group is not None]

    names = [name.strip() for name in _THEME_NAME.findall(block)]
    response_blocks = _THEME_RESPONSES.findall(block)
    if not names or len(names) != len(response_blocks):
        return []
    return [
        ThemeGroup(theme=name, responses=_responses_from_block(raw))
        for name, raw in zip(names, response_blocks)
        if name
    ]


def _theme_group(item: Any) -> Optional[ThemeGroup]:
    if not isinstance(item, dict):
        return None
    name = str(item.get("theme") or "").strip()
    responses = item.get("responses")
    if not name or responses is None:
        return None
    if not isinstance(responses, list):
        responses = [responses]
    return ThemeGroup(theme=name, responses=[str(response) for response in responses])


def _responses_from_block(raw: str) -> List[str]:
    quoted = [item.strip() for item in _QUOTED.findall(raw) if item.strip()]
    if quoted:
        return quoted
    parts = [part.strip() for part in _BULLET_SPLIT.split(raw) if part.strip()]
    return parts or [raw.strip()]


def _theme_names_from_list(text: str) -> List[str]:
    match = _THEME_LIST.search(text)
    if not match:
        return []
    return _list_items(match.group(1))


def _theme_names_from_sentence(text: str) -> List[str]:
    match = _THEME_SENTENCE.search(text)
    if not match:
        return []
    return _split_names(match.group(1))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _list_items(block: str) -> List[str]:
    return [item.strip() for item in _ITEM_TEXT.findall(block) if item.strip()]


def _split_names(text: str) -> List[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def _loads_list(candidate: str) -> Optional[List[Any]]:
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None
