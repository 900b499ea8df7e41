"""
Run the branch analysis on a local survey file from CLI.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from app.api.routers.branch_analysis import build_branch_analysis_response
from app.parsers.survey_table_parser import SurveyParseError
from app.services.survey_ingestion_service import SurveyUploadError, get_survey_ingestion_service


def main() -> int:
    parser = argparse.ArgumentParser(description="Analyse one survey export per branch.")
    parser.add_argument("path", help="CSV, TSV, JSON or Excel survey file.")
    parser.add_argument(
        "--category",
        dest="categories",
        action="append",
        default=None,
        help="Recommendation matrix category (repeatable).",
    )
    args = parser.parse_args()

    path = Path(args.path)
    service = get_survey_ingestion_service()
    try:
        with path.open("rb") as stream:
            result = service.analyze_upload(
                stream=stream,
                filename=path.name,
                categories=args.categories,
            )
    except (OSError, SurveyParseError, SurveyUploadError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    payload = build_branch_analysis_response(result).model_dump(exclude={"branch_data"})
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
