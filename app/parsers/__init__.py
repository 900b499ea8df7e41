"""
app/parsers package marker.
"""

from app.parsers.survey_table_parser import (
    SurveyParseError,
    infer_cell_value,
    parse_survey_table,
    parse_survey_upload,
    rows_to_csv,
)

__all__ = [
    "SurveyParseError",
    "infer_cell_value",
    "parse_survey_table",
    "parse_survey_upload",
    "rows_to_csv",
]
