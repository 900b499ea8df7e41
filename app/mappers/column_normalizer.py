"""
app/mappers/column_normalizer.py

Header normalization for heterogeneous survey exports.

Survey exports name the same question many ways ("Agence", "Branch name",
"Raisons du score", ...). ``normalize_column_name`` maps a raw header onto a
``CanonicalField`` value using, in order:

    1. exact lookup in ``COLUMN_SYNONYMS``
    2. first synonym (in table order) contained in the header
    3. keyword checks for branch and satisfaction headers
    4. the original header, unchanged

Table order decides which field wins when several synonyms are contained in
one header, so entries must not be re-sorted.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Final, Iterable, Mapping, Sequence

from app.domain.survey import CanonicalField, SurveyRow

logger = logging.getLogger(__name__)

_F = CanonicalField

COLUMN_SYNONYMS: Final[tuple[tuple[str, CanonicalField], ...]] = (
    # Case number
    ("case", _F.CASE_ID),
    ("case number", _F.CASE_ID),
    ("case #", _F.CASE_ID),
    ("case_number", _F.CASE_ID),
    ("casenumber", _F.CASE_ID),
    ("case no", _F.CASE_ID),
    ("case no.", _F.CASE_ID),
    ("id", _F.CASE_ID),
    ("reference", _F.CASE_ID),
    ("ref", _F.CASE_ID),
    ("ref.", _F.CASE_ID),
    ("ticket", _F.CASE_ID),
    ("ticket #", _F.CASE_ID),
    ("ticket number", _F.CASE_ID),
    ("numéro de dossier", _F.CASE_ID),
    ("numero de dossier", _F.CASE_ID),
    ("numéro", _F.CASE_ID),
    ("numero", _F.CASE_ID),
    # Country
    ("country", _F.COUNTRY),
    ("pays", _F.COUNTRY),
    ("nation", _F.COUNTRY),
    ("country/region", _F.COUNTRY),
    ("region", _F.COUNTRY),
    ("location country", _F.COUNTRY),
    # Branch
    ("branch", _F.BRANCH),
    ("agence", _F.BRANCH),
    ("office", _F.BRANCH),
    ("succursale", _F.BRANCH),
    ("location", _F.BRANCH),
    ("site", _F.BRANCH),
    ("branch name", _F.BRANCH),
    ("branch office", _F.BRANCH),
    ("branch location", _F.BRANCH),
    ("nom de l'agence", _F.BRANCH),
    ("nom agence", _F.BRANCH),
    # Date
    ("date", _F.DATE),
    ("survey date", _F.DATE),
    ("date of survey", _F.DATE),
    ("submission date", _F.DATE),
    ("response date", _F.DATE),
    ("date de réponse", _F.DATE),
    ("date de soumission", _F.DATE),
    ("created at", _F.DATE),
    ("timestamp", _F.DATE),
    # First name
    ("name", _F.NAME),
    ("first name", _F.NAME),
    ("firstname", _F.NAME),
    ("prénom", _F.NAME),
    ("prenom", _F.NAME),
    ("given name", _F.NAME),
    ("customer name", _F.NAME),
    ("client name", _F.NAME),
    ("respondent name", _F.NAME),
    # Surname
    ("surname", _F.SURNAME),
    ("last name", _F.SURNAME),
    ("lastname", _F.SURNAME),
    ("nom", _F.SURNAME),
    ("family name", _F.SURNAME),
    ("nom de famille", _F.SURNAME),
    # Email
    ("email", _F.EMAIL),
    ("e-mail", _F.EMAIL),
    ("courriel", _F.EMAIL),
    ("email address", _F.EMAIL),
    ("adresse email", _F.EMAIL),
    ("adresse e-mail", _F.EMAIL),
    ("customer email", _F.EMAIL),
    ("client email", _F.EMAIL),
    # Phone
    ("phone", _F.PHONE),
    ("telephone", _F.PHONE),
    ("phone number", _F.PHONE),
    ("tel", _F.PHONE),
    ("tel.", _F.PHONE),
    ("téléphone", _F.PHONE),
    ("telephone number", _F.PHONE),
    ("mobile", _F.PHONE),
    ("mobile number", _F.PHONE),
    ("cell", _F.PHONE),
    ("cell phone", _F.PHONE),
    ("numéro de téléphone", _F.PHONE),
    ("numero de telephone", _F.PHONE),
    # IP address
    ("ip", _F.IP_ADDRESS),
    ("ip address", _F.IP_ADDRESS),
    ("adresse ip", _F.IP_ADDRESS),
    ("ipaddress", _F.IP_ADDRESS),
    # Reason for score
    ("reasons of score", _F.REASON_FOR_SCORE),
    ("reason", _F.REASON_FOR_SCORE),
    ("reasons", _F.REASON_FOR_SCORE),
    ("score reason", _F.REASON_FOR_SCORE),
    ("raisons du score", _F.REASON_FOR_SCORE),
    ("comments", _F.REASON_FOR_SCORE),
    ("feedback", _F.REASON_FOR_SCORE),
    ("comment", _F.REASON_FOR_SCORE),
    ("verbatim", _F.REASON_FOR_SCORE),
    ("customer feedback", _F.REASON_FOR_SCORE),
    ("client feedback", _F.REASON_FOR_SCORE),
    ("additional comments", _F.REASON_FOR_SCORE),
    ("commentaires", _F.REASON_FOR_SCORE),
    ("commentaire", _F.REASON_FOR_SCORE),
    ("remarques", _F.REASON_FOR_SCORE),
    ("observations", _F.REASON_FOR_SCORE),
    # Need callback
    ("need callback", _F.NEED_CALLBACK),
    ("callback", _F.NEED_CALLBACK),
    ("rappel nécessaire", _F.NEED_CALLBACK),
    ("call back", _F.NEED_CALLBACK),
    ("callback required", _F.NEED_CALLBACK),
    ("requires callback", _F.NEED_CALLBACK),
    ("needs callback", _F.NEED_CALLBACK),
    ("follow up", _F.NEED_CALLBACK),
    ("follow-up", _F.NEED_CALLBACK),
    ("followup", _F.NEED_CALLBACK),
    ("rappel", _F.NEED_CALLBACK),
    ("besoin de rappel", _F.NEED_CALLBACK),
    ("contact customer", _F.NEED_CALLBACK),
    # Advocate score
    ("as", _F.ADVOCATE_SCORE),
    ("advocate score", _F.ADVOCATE_SCORE),
    ("nps", _F.ADVOCATE_SCORE),
    ("net promoter score", _F.ADVOCATE_SCORE),
    ("score", _F.ADVOCATE_SCORE),
    ("promoter score", _F.ADVOCATE_SCORE),
    ("recommendation score", _F.ADVOCATE_SCORE),
    ("likelihood to recommend", _F.ADVOCATE_SCORE),
    ("would recommend", _F.ADVOCATE_SCORE),
    ("recommendation", _F.ADVOCATE_SCORE),
    ("promoter", _F.ADVOCATE_SCORE),
    ("score de recommandation", _F.ADVOCATE_SCORE),
    # Account type
    ("what is the primary account that you have with ecobank", _F.ACCOUNT_TYPE),
    ("account type", _F.ACCOUNT_TYPE),
    ("primary account", _F.ACCOUNT_TYPE),
    ("type de compte", _F.ACCOUNT_TYPE),
    ("account", _F.ACCOUNT_TYPE),
    ("compte", _F.ACCOUNT_TYPE),
    ("type of account", _F.ACCOUNT_TYPE),
    ("account category", _F.ACCOUNT_TYPE),
    ("product type", _F.ACCOUNT_TYPE),
    ("product", _F.ACCOUNT_TYPE),
    # Improvement area
    ("what needs to be improved based on your experience", _F.IMPROVEMENT_AREA),
    ("improvements", _F.IMPROVEMENT_AREA),
    ("improvement areas", _F.IMPROVEMENT_AREA),
    ("areas for improvement", _F.IMPROVEMENT_AREA),
    ("amélioration", _F.IMPROVEMENT_AREA),
    ("what can be improved", _F.IMPROVEMENT_AREA),
    ("suggestions for improvement", _F.IMPROVEMENT_AREA),
    ("improvement suggestions", _F.IMPROVEMENT_AREA),
    ("what would you improve", _F.IMPROVEMENT_AREA),
    ("how can we improve", _F.IMPROVEMENT_AREA),
    ("suggestions", _F.IMPROVEMENT_AREA),
    ("améliorer", _F.IMPROVEMENT_AREA),
    ("à améliorer", _F.IMPROVEMENT_AREA),
    ("a ameliorer", _F.IMPROVEMENT_AREA),
    # Staff
    ("which staff served you", _F.SERVED_BY_STAFF),
    ("staff", _F.SERVED_BY_STAFF),
    ("employee", _F.SERVED_BY_STAFF),
    ("served by", _F.SERVED_BY_STAFF),
    ("personnel", _F.SERVED_BY_STAFF),
    ("staff member", _F.SERVED_BY_STAFF),
    ("employee name", _F.SERVED_BY_STAFF),
    ("agent", _F.SERVED_BY_STAFF),
    ("agent name", _F.SERVED_BY_STAFF),
    ("representative", _F.SERVED_BY_STAFF),
    ("rep", _F.SERVED_BY_STAFF),
    ("service agent", _F.SERVED_BY_STAFF),
    ("nom de l'employé", _F.SERVED_BY_STAFF),
    ("nom de l'agent", _F.SERVED_BY_STAFF),
    ("servi par", _F.SERVED_BY_STAFF),
    # Satisfaction rating
    ("how would you rate your overall satisfaction with your branch visit", _F.SATISFACTION_RATING),
    ("satisfaction", _F.SATISFACTION_RATING),
    ("overall satisfaction", _F.SATISFACTION_RATING),
    ("rating", _F.SATISFACTION_RATING),
    ("satisfaction rating", _F.SATISFACTION_RATING),
    ("satisfaction score", _F.SATISFACTION_RATING),
    ("niveau de satisfaction", _F.SATISFACTION_RATING),
    ("customer satisfaction", _F.SATISFACTION_RATING),
    ("visit satisfaction", _F.SATISFACTION_RATING),
    ("branch satisfaction", _F.SATISFACTION_RATING),
    ("experience rating", _F.SATISFACTION_RATING),
    ("how satisfied", _F.SATISFACTION_RATING),
    ("satisfaction level", _F.SATISFACTION_RATING),
    ("rate your experience", _F.SATISFACTION_RATING),
    ("rate your satisfaction", _F.SATISFACTION_RATING),
    ("évaluation", _F.SATISFACTION_RATING),
    ("evaluation", _F.SATISFACTION_RATING),
    ("note", _F.SATISFACTION_RATING),
)

_EXACT_LOOKUP: Final[dict[str, CanonicalField]] = {}
for _synonym, _field in COLUMN_SYNONYMS:
    _EXACT_LOOKUP.setdefault(_synonym, _field)

_CANONICAL_VALUES: Final[frozenset[str]] = frozenset(field.value for field in CanonicalField)

_BRANCH_KEYWORDS: Final[tuple[str, ...]] = ("branch", "agence")
_SATISFACTION_KEYWORDS: Final[tuple[str, ...]] = ("satisfaction", "rating")
_BRANCH_FALLBACK_KEYWORDS: Final[tuple[str, ...]] = ("branch", "agence", "office", "location")
_RATING_HEADER_KEYWORDS: Final[tuple[str, ...]] = ("rating", "score", "satisfaction", "nps")


@lru_cache(maxsize=2048)
def normalize_column_name(header: str) -> str:
    """
    Map a raw header onto a canonical field name, or return it unchanged.
    """

    lowered = header.lower().strip()

    exact = _EXACT_LOOKUP.get(lowered)
    if exact is not None:
        return exact.value

    for synonym, canonical in COLUMN_SYNONYMS:
        if synonym in lowered:
            logger.debug(
                "Mapped column %r to %r by partial match with %r",
                header,
                canonical.value,
                synonym,
            )
            return canonical.value

    if any(keyword in lowered for keyword in _BRANCH_KEYWORDS):
        return CanonicalField.BRANCH.value

    if any(keyword in lowered for keyword in _SATISFACTION_KEYWORDS):
        return CanonicalField.SATISFACTION_RATING.value

    return header


def normalize_rows(rows: Sequence[Mapping[str, object]]) -> list[SurveyRow]:
    """
    Rename every row's keys to canonical names.

    Headers are resolved once per distinct column. When two raw columns land
    on the same canonical name the later column's value is kept.
    """

    header_map: dict[str, str] = {}
    normalized: list[SurveyRow] = []
    for row in rows:
        mapped: SurveyRow = {}
        for key, value in row.items():
            target = header_map.get(key)
            if target is None:
                target = normalize_column_name(str(key))
                header_map[key] = target
            mapped[target] = value  # type: ignore[assignment]
        normalized.append(mapped)

    unmapped = sorted(
        raw for raw, target in header_map.items() if raw == target and target not in _CANONICAL_VALUES
    )
    if unmapped:
        logger.debug("Columns passed through without a canonical mapping: %s", unmapped)
    return normalized


def ensure_branch_column(
    raw_rows: Sequence[Mapping[str, object]],
    normalized_rows: list[SurveyRow],
) -> str | None:
    """
    Fill the Branch field from a likely raw column when normalization found none.

    Returns the raw column used, or None when Branch was already present or no
    candidate column exists. ``normalized_rows`` is updated in place.
    """

    branch_key = CanonicalField.BRANCH.value
    if any(branch_key in row for row in normalized_rows):
        return None
    if not raw_rows:
        return None

    candidates = [
        key
        for key in raw_rows[0].keys()
        if any(keyword in str(key).lower() for keyword in _BRANCH_FALLBACK_KEYWORDS)
    ]
    if not candidates:
        logger.warning("No branch column could be identified among %s", list(raw_rows[0].keys()))
        return None

    branch_column = candidates[0]
    logger.info("Using %r as branch column", branch_column)
    for raw, normalized in zip(raw_rows, normalized_rows):
        normalized[branch_key] = raw.get(branch_column)  # type: ignore[assignment]
    return str(branch_column)


def has_rating_field(row: Mapping[str, object]) -> bool:
    """
    Return True when the row carries any satisfaction or score column.
    """

    if CanonicalField.SATISFACTION_RATING.value in row or CanonicalField.ADVOCATE_SCORE.value in row:
        return True
    return any(
        keyword in str(key).lower()
        for key in row.keys()
        for keyword in _RATING_HEADER_KEYWORDS
    )


def canonical_headers(headers: Iterable[str]) -> dict[str, str]:
    """
    Return ``{raw_header: canonical_or_raw}`` for a header row.
    """

    return {header: normalize_column_name(header) for header in headers}

