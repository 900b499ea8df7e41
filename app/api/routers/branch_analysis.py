"""
app/api/routers/branch_analysis.py

Branch survey upload and analysis HTTP endpoints.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status

from app.api.dependencies import get_survey_upload
from app.domain.survey import BranchSurveyResult
from app.parsers.survey_table_parser import SurveyParseError
from app.schemas.branch_analysis import (
    BranchAnalysisResponse,
    BranchImprovementResponse,
    BranchRankingResponse,
    CategoryCountResponse,
    ImprovementCountResponse,
    NPSResponse,
    ReasonDataResponse,
    RecommendationMatrixResponse,
)
from app.services.survey_ingestion_service import (
    SurveyIngestionService,
    SurveyUploadError,
    get_survey_ingestion_service,
)

router = APIRouter(prefix="/branch-analysis", tags=["branch-analysis"])


@router.post("/upload", response_model=BranchAnalysisResponse)
def upload_branch_survey(
    file: UploadFile = Depends(get_survey_upload),
    categories: list[str] | None = Query(
        default=None,
        description="Optional recommendation matrix categories (repeatable)",
    ),
    ingestion_service: SurveyIngestionService = Depends(get_survey_ingestion_service),
) -> BranchAnalysisResponse:
    """
    Parse one survey file and return its per-branch analysis.
    """

    cleaned_categories = [item.strip() for item in categories or [] if item.strip()]
    try:
        result = ingestion_service.analyze_upload(
            stream=file.file,
            filename=file.filename or "",
            categories=cleaned_categories or None,
        )
    except SurveyUploadError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except SurveyParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        file.file.close()

    return build_branch_analysis_response(result)


def build_branch_analysis_response(result: BranchSurveyResult) -> BranchAnalysisResponse:
    """
    Map the domain result onto the API response model.
    """

    matrix = result.recommendation_matrix
    return BranchAnalysisResponse(
        rows_received=result.rows_received,
        rows_without_branch=result.rows_without_branch,
        branch_data=[dict(row) for row in result.branch_data],
        branch_rankings=[BranchRankingResponse(**asdict(item)) for item in result.branch_rankings],
        improvement_categories=[
            ImprovementCountResponse(**asdict(item)) for item in result.improvement_categories
        ],
        reasons_data=[ReasonDataResponse(**asdict(item)) for item in result.reasons_data],
        branch_improvements=[
            BranchImprovementResponse(
                branch=item.branch,
                satisfaction=item.satisfaction,
                top_improvements=[
                    CategoryCountResponse(category=entry.category, count=entry.count)
                    for entry in item.top_improvements
                ],
            )
            for item in result.branch_improvements
        ],
        recommendation_matrix=RecommendationMatrixResponse(
            rows=[dict(row) for row in matrix.rows],
            categories=list(matrix.categories),
            is_synthetic=matrix.is_synthetic,
        ),
        nps=NPSResponse(**asdict(result.nps)) if result.nps is not None else None,
        warnings=list(result.warnings),
    )
