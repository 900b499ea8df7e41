"""
branch_analysis/nps.py

Net Promoter Score from advocate (likelihood-to-recommend) scores.
"""

from __future__ import annotations

from typing import Final, Sequence

from app.domain.survey import NPSResult, SurveyRow
from app.validators.rating_parser import is_rating
from branch_analysis.aggregator import advocate_rating

PROMOTER_MIN: Final[int] = 9
PASSIVE_MIN: Final[int] = 7


def calculate_nps(rows: Sequence[SurveyRow]) -> NPSResult | None:
    """Compute NPS over every row with a readable advocate score.

    Promoters score 9-10, passives 7-8, detractors 0-6. Scores outside the
    0-10 scale are ignored.

    Args:
        rows: Normalized survey rows.

    Returns:
        The NPS breakdown with percentage shares, or None when no row carries
        a usable advocate score.
    """
    scores = [
        float(value)
        for value in map(advocate_rating, rows)
        if is_rating(value) and 0 <= value <= 10
    ]
    if not scores:
        return None

    total = len(scores)
    promoters = sum(1 for score in scores if score >= PROMOTER_MIN)
    passives = sum(1 for score in scores if PASSIVE_MIN <= score < PROMOTER_MIN)
    detractors = total - promoters - passives

    promoter_pct = promoters / total * 100
    passive_pct = passives / total * 100
    detractor_pct = detractors / total * 100
    return NPSResult(
        score=round(promoter_pct - detractor_pct, 1),
        promoters=round(promoter_pct, 1),
        passives=round(passive_pct, 1),
        detractors=round(detractor_pct, 1),
        respondent_count=total,
    )
