"""
app/api/routers package marker.
"""

from app.api.routers.branch_analysis import router as branch_analysis_router
from app.api.routers.survey_analysis import router as survey_analysis_router

__all__ = [
    "branch_analysis_router",
    "survey_analysis_router",
]
