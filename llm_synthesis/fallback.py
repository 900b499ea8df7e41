"""Deterministic survey analysis used when no model reply is usable.

Sentiment comes from keyword counts, themes collapse into a single
"General Feedback" theme, KPIs are picked from the numeric columns, and NPS
is computed from the rows when they carry advocate scores.
"""

import logging
import math
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from app.domain.survey import CanonicalField
from app.mappers.column_normalizer import normalize_column_name, normalize_rows
from branch_analysis.nps import calculate_nps
from llm_synthesis.prompt_builder import numeric_columns
from llm_synthesis.schema import (
    CategorizedComments,
    KpiDetectionOutput,
    NPSBreakdown,
    OverallSentiment,
    SentimentDistribution,
    SentimentOutput,
    SurveyAnalysisOutput,
    Theme,
    ThemeAnalysisOutput,
    ThemeGroup,
)

logger = logging.getLogger(__name__)

POSITIVE_WORDS: Tuple[str, ...] = (
    "good", "great", "excellent", "happy", "satisfied", "like", "love", "best", "awesome",
)
NEGATIVE_WORDS: Tuple[str, ...] = (
    "bad", "poor", "terrible", "unhappy", "dissatisfied", "dislike", "hate", "worst", "awful",
)

FALLBACK_THEME = "General Feedback"
FALLBACK_THEME_SAMPLE = 10
MAX_FALLBACK_KPIS = 5

_RATING_COLUMNS: Tuple[str, ...] = (
    CanonicalField.SATISFACTION_RATING.value,
    CanonicalField.ADVOCATE_SCORE.value,
)
_NON_KPI_COLUMNS: Tuple[str, ...] = (
    CanonicalField.CASE_ID.value,
    CanonicalField.PHONE.value,
    CanonicalField.IP_ADDRESS.value,
    CanonicalField.DATE.value,
)
_DEMOGRAPHIC_HEADERS: Tuple[str, ...] = ("age", "âge")


def classify_comment(comment: str) -> str:
    """Label one comment "positive", "negative" or "neutral".

    Words are matched as substrings, so "dislike" counts for both lists and
    such comments usually end up neutral.
    """
    positive_hits, negative_hits = keyword_hits(comment)
    if positive_hits > negative_hits:
        return "positive"
    if negative_hits > positive_hits:
        return "negative"
    return "neutral"


def keyword_hits(text: str) -> Tuple[int, int]:
    """Count (positive, negative) keyword substrings in ``text``."""
    lowered = text.lower()
    return (
        sum(1 for word in POSITIVE_WORDS if word in lowered),
        sum(1 for word in NEGATIVE_WORDS if word in lowered),
    )


def _percent(count: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(count / total * 100 + 0.5))


def build_fallback_analysis(
    verbatim_responses: Sequence[str],
    survey_data: Optional[Sequence[Mapping[str, Any]]] = None,
) -> SurveyAnalysisOutput:
    """Build an analysis without a model.

    Args:
        verbatim_responses: Every comment, not just the prompt sample.
        survey_data: Raw survey rows; only used for NPS.

    Returns:
        A SurveyAnalysisOutput with no KPIs and a single neutral theme.
    """
    comments = [str(comment) for comment in verbatim_responses]
    buckets: dict = {"positive": [], "neutral": [], "negative": []}
    for comment in comments:
        buckets[classify_comment(comment)].append(comment)

    total = len(comments)
    positive_pct = _percent(len(buckets["positive"]), total)
    negative_pct = _percent(len(buckets["negative"]), total)
    neutral_pct = 100 - positive_pct - negative_pct

    logger.info(
        "Fallback sentiment comments=%d positive=%d neutral=%d negative=%d",
        total,
        len(buckets["positive"]),
        len(buckets["neutral"]),
        len(buckets["negative"]),
    )

    themes: List[Theme] = [
        Theme(theme=FALLBACK_THEME, responses=comments[:FALLBACK_THEME_SAMPLE], sentiment=0.0)
    ]

    return SurveyAnalysisOutput(
        kpis=[],
        themes=themes,
        overall_sentiment=OverallSentiment(
            score=(positive_pct - negative_pct) / 100,
            distribution=SentimentDistribution(
                positive=positive_pct,
                neutral=neutral_pct,
                negative=negative_pct,
            ),
            comment_count=total,
            categorized_comments=CategorizedComments(**buckets),
        ),
        nps=_fallback_nps(survey_data),
    )


def _fallback_nps(survey_data: Optional[Sequence[Mapping[str, Any]]]) -> Optional[NPSBreakdown]:
    if not survey_data:
        return None
    result = calculate_nps(normalize_rows(survey_data))
    if result is None:
        return None
    return NPSBreakdown(
        score=result.score,
        promoters=result.promoters,
        passives=result.passives,
        detractors=result.detractors,
    )


def fallback_kpis(survey_data: Sequence[Mapping[str, Any]]) -> KpiDetectionOutput:
    """Pick KPI columns without a model.

    Numeric rating columns come first, then other numeric columns; case
    numbers, phone numbers, IP addresses, dates and age are skipped.
    """
    columns = [
        column
        for column in numeric_columns(survey_data)
        if normalize_column_name(column) not in _NON_KPI_COLUMNS
        and column.strip().lower() not in _DEMOGRAPHIC_HEADERS
    ]
    ratings = [column for column in columns if normalize_column_name(column) in _RATING_COLUMNS]
    kpis = (ratings + [column for column in columns if column not in ratings])[:MAX_FALLBACK_KPIS]

    if not kpis:
        return KpiDetectionOutput(kpis=[], explanation="The survey data has no numeric columns.")
    return KpiDetectionOutput(
        kpis=kpis,
        explanation="Numeric survey columns selected without a model, rating columns first.",
    )


def keyword_sentiment(text: str) -> SentimentOutput:
    """Score one response from keyword counts.

    The score is (positive - negative) / (positive + negative) matches, 0
    when neither list matches.
    """
    positive_hits, negative_hits = keyword_hits(text)
    total = positive_hits + negative_hits
    return SentimentOutput(
        sentiment_score=(positive_hits - negative_hits) / total if total else 0.0,
        sentiment_label=classify_comment(text).capitalize(),
        reason=(
            f"Keyword estimate without a model: {positive_hits} positive and "
            f"{negative_hits} negative keyword match(es)."
        ),
    )


def fallback_themes(verbatim_responses: Sequence[str]) -> ThemeAnalysisOutput:
    """Group every response under the single fallback theme."""
    return ThemeAnalysisOutput(
        themes=[ThemeGroup(theme=FALLBACK_THEME, responses=[str(item) for item in verbatim_responses])]
    )
