"""
app/domain package marker.
"""

from app.domain.survey import (
    BranchImprovement,
    BranchRanking,
    BranchSurveyResult,
    CanonicalField,
    CategoryCount,
    CellValue,
    ImprovementCount,
    NPSResult,
    ReasonData,
    RecommendationMatrix,
    SurveyRow,
)

__all__ = [
    "BranchImprovement",
    "BranchRanking",
    "BranchSurveyResult",
    "CanonicalField",
    "CategoryCount",
    "CellValue",
    "ImprovementCount",
    "NPSResult",
    "ReasonData",
    "RecommendationMatrix",
    "SurveyRow",
]
