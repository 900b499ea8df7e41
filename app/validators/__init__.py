"""
app/validators package marker.
"""

from app.validators.rating_parser import UNPARSEABLE, is_rating, parse_rating

__all__ = [
    "UNPARSEABLE",
    "is_rating",
    "parse_rating",
]
