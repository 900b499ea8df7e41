"""Validation layer for raw LLM survey output.

Recovers JSON from the response with the tolerant extractor and validates
it against the output model the caller asked for.
"""

from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from llm_synthesis.json_repair import extract_json
from llm_synthesis.schema import SurveyAnalysisOutput

OutputT = TypeVar("OutputT", bound=BaseModel)


class LLMOutputValidationError(Exception):
    """Raised when LLM output fails parsing or schema validation.

    Attributes:
        stage: Which validation step failed ("json_parse" or "schema").
        errors: List of human-readable error descriptions.
        raw_response: The string that failed validation.
        extracted_by: Extractor stage that recovered JSON before the schema
            check failed; None when nothing was recovered.
    """

    def __init__(
        self,
        stage: str,
        errors: List[str],
        raw_response: str,
        extracted_by: Optional[str] = None,
    ) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        self.extracted_by = extracted_by
        message = (
            f"LLM output validation failed at stage '{stage}': "
            + "; ".join(errors)
        )
        super().__init__(message)


def validate_model_output(raw_response: Any, output_model: Type[OutputT]) -> OutputT:
    """Parse and validate a raw LLM response against ``output_model``.

    Steps:
        1. Recover a JSON value with the staged extractor.
        2. Require a top-level object.
        3. Validate against ``output_model``.

    Raises:
        LLMOutputValidationError: If no JSON can be recovered or the
            recovered value does not match the model.
    """
    raw_text = raw_response if isinstance(raw_response, str) else str(raw_response or "")

    extraction = extract_json(raw_response)
    if not extraction.recovered:
        raise LLMOutputValidationError(
            stage="json_parse",
            errors=["no JSON object could be recovered from the response"],
            raw_response=raw_text,
        )

    data = extraction.value
    if not isinstance(data, dict):
        raise LLMOutputValidationError(
            stage="schema",
            errors=["top-level JSON must be an object"],
            raw_response=raw_text,
            extracted_by=extraction.stage,
        )

    try:
        return output_model.model_validate(data)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(loc) for loc in e['loc']) or '<root>'}: {e['msg']}"
            for e in exc.errors()
        ]
        raise LLMOutputValidationError(
            stage="schema",
            errors=errors,
            raw_response=raw_text,
            extracted_by=extraction.stage,
        ) from exc


def validate_analysis_output(raw_response: Any) -> SurveyAnalysisOutput:
    """Validate a comprehensive analysis response."""
    return validate_model_output(raw_response, SurveyAnalysisOutput)
