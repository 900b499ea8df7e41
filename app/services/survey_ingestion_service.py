"""
app/services/survey_ingestion_service.py

Service layer for survey upload handling: size limits, file parsing, and
the branch analysis run over the parsed rows.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import BinaryIO, Sequence

from app.config import get_survey_upload_settings
from app.domain.survey import BranchSurveyResult
from app.logging_utils import log_event
from app.parsers.survey_table_parser import parse_survey_upload
from branch_analysis.orchestrator import BranchAnalysisOrchestrator

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 1024 * 1024


class SurveyUploadError(ValueError):
    """
    Raised when an upload is rejected before parsing (size or row limits).
    """

    def __init__(self, message: str, *, status_code: int = 413) -> None:
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict[str, object]:
        return {"message": str(self), "status_code": self.status_code}


class SurveyIngestionService:
    """
    Reads one uploaded survey file and returns its branch analysis.
    """

    def __init__(
        self,
        *,
        max_bytes: int,
        max_rows: int,
        orchestrator: BranchAnalysisOrchestrator | None = None,
    ) -> None:
        self._max_bytes = max(1, max_bytes)
        self._max_rows = max(1, max_rows)
        self._orchestrator = orchestrator or BranchAnalysisOrchestrator()

    def analyze_upload(
        self,
        *,
        stream: BinaryIO,
        filename: str,
        categories: Sequence[str] | None = None,
    ) -> BranchSurveyResult:
        """
        Parse an uploaded file and aggregate it per branch.

        Args:
            stream:     Binary file object positioned at the start of the upload.
            filename:   Original file name; its extension selects the parser.
            categories: Optional recommendation matrix categories.

        Raises:
            SurveyUploadError: The upload exceeds the configured limits.
            SurveyParseError:  The file cannot be parsed as a survey table.
        """

        data = self._read_limited(stream)
        rows = parse_survey_upload(data, filename)
        if len(rows) > self._max_rows:
            raise SurveyUploadError(
                f"Survey has {len(rows)} rows; the limit is {self._max_rows}."
            )

        log_event(
            logger,
            logging.INFO,
            "survey_upload_parsed",
            filename=filename,
            bytes=len(data),
            rows=len(rows),
        )
        return self._orchestrator.run(rows, categories=categories)

    def _read_limited(self, stream: BinaryIO) -> bytes:
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = stream.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > self._max_bytes:
                raise SurveyUploadError(
                    f"Upload exceeds the maximum size of {self._max_bytes} bytes."
                )
            chunks.append(chunk)

        if total == 0:
            raise SurveyUploadError("Uploaded file is empty.", status_code=400)
        return b"".join(chunks)


@lru_cache(maxsize=1)
def get_survey_ingestion_service() -> SurveyIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """
    settings = get_survey_upload_settings()
    return SurveyIngestionService(
        max_bytes=settings.max_bytes,
        max_rows=settings.max_rows,
    )
