"""
app/services package marker.
"""

from app.services.survey_analysis_service import (
    SurveyAnalysisResult,
    SurveyAnalysisService,
    get_survey_analysis_service,
)
from app.services.survey_ingestion_service import (
    SurveyIngestionService,
    SurveyUploadError,
    get_survey_ingestion_service,
)

__all__ = [
    "SurveyAnalysisResult",
    "SurveyAnalysisService",
    "get_survey_analysis_service",
    "SurveyIngestionService",
    "SurveyUploadError",
    "get_survey_ingestion_service",
]
