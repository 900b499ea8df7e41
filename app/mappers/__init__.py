"""
app/mappers package marker.
"""

from app.mappers.column_normalizer import (
    COLUMN_SYNONYMS,
    canonical_headers,
    ensure_branch_column,
    has_rating_field,
    normalize_column_name,
    normalize_rows,
)

__all__ = [
    "COLUMN_SYNONYMS",
    "canonical_headers",
    "ensure_branch_column",
    "has_rating_field",
    "normalize_column_name",
    "normalize_rows",
]
