"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

from app.parsers.survey_table_parser import SUPPORTED_EXTENSIONS

SURVEY_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/tab-separated-values",
    "text/plain",
    "application/json",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def get_survey_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a supported survey table by extension
    or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    has_supported_extension = filename.endswith(tuple(SUPPORTED_EXTENSIONS))
    has_supported_content_type = content_type in SURVEY_CONTENT_TYPES

    if not has_supported_extension and not has_supported_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "Unsupported survey file. Allowed extensions: "
                + ", ".join(sorted(SUPPORTED_EXTENSIONS))
                + "."
            ),
        )

    return file
