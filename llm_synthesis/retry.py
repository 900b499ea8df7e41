"""Re-asking the model when its reply cannot be used.

Every failed attempt is kept as a ``ModelAttempt``: which validation step
failed, which extractor stage (if any) recovered JSON, and the raw reply.
The next prompt carries a correction note built from that record. A reply
with no JSON gets the "JSON only" reminder; a reply that parsed but did not
fit gets the schema errors. Adapter transport errors are not retried here.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Type

from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.schema import SurveyAnalysisOutput
from llm_synthesis.validator import LLMOutputValidationError, OutputT, validate_model_output

logger = logging.getLogger(__name__)

MAX_ERRORS_IN_NOTE = 5


@dataclass(frozen=True)
class ModelAttempt:
    """One unusable model reply."""

    number: int
    failure_stage: str
    errors: List[str]
    extracted_by: Optional[str]
    raw_response: str


class LLMRetryExhaustedError(Exception):
    """Raised when no attempt produced a usable reply.

    Attributes:
        attempts: Every failed attempt, oldest first.
    """

    def __init__(self, attempts: List[ModelAttempt]) -> None:
        self.attempts = attempts
        last = attempts[-1]
        super().__init__(
            f"Model output unusable after {len(attempts)} attempt(s); "
            f"last failure at stage '{last.failure_stage}': {'; '.join(last.errors)}"
        )

    @property
    def last_raw_response(self) -> str:
        return self.attempts[-1].raw_response


def correction_note(attempt: ModelAttempt) -> str:
    """Text appended to the prompt after an unusable reply."""
    if attempt.failure_stage == "json_parse":
        return (
            "Your previous reply contained no JSON object. Reply with the JSON "
            "object only, without markdown fences or commentary."
        )
    listed = "\n".join(f"- {error}" for error in attempt.errors[:MAX_ERRORS_IN_NOTE])
    return (
        "Your previous reply did not match the required format:\n"
        f"{listed}\n"
        "Reply with the corrected JSON object only."
    )


def request_structured_output(
    adapter: BaseLLMAdapter,
    prompt: str,
    output_model: Type[OutputT],
    max_retries: int = 1,
) -> OutputT:
    """Ask the model for ``output_model`` and re-ask on unusable replies.

    Args:
        adapter: An LLM adapter implementing ``generate(prompt) -> str``.
        prompt: The fully formatted prompt string.
        output_model: Pydantic model the reply must validate against.
        max_retries: Additional attempts after the first failure.

    Returns:
        A validated ``output_model`` instance.

    Raises:
        LLMAdapterError: Propagated unchanged from the adapter.
        LLMRetryExhaustedError: If every attempt was unusable.
    """
    attempts: List[ModelAttempt] = []
    total_attempts = 1 + max(0, max_retries)
    next_prompt = prompt

    for number in range(1, total_attempts + 1):
        raw = adapter.generate(next_prompt)
        try:
            result = validate_model_output(raw, output_model)
        except LLMOutputValidationError as exc:
            attempt = ModelAttempt(
                number=number,
                failure_stage=exc.stage,
                errors=list(exc.errors),
                extracted_by=exc.extracted_by,
                raw_response=exc.raw_response,
            )
            attempts.append(attempt)
            logger.warning(
                "%s attempt %d/%d failed at stage '%s' (extracted_by=%s): %s",
                output_model.__name__,
                number,
                total_attempts,
                attempt.failure_stage,
                attempt.extracted_by,
                "; ".join(attempt.errors),
            )
            next_prompt = f"{prompt}\n\n{correction_note(attempt)}"
            continue

        if attempts:
            logger.info(
                "%s validated on attempt %d/%d",
                output_model.__name__,
                number,
                total_attempts,
            )
        return result

    raise LLMRetryExhaustedError(attempts)


def generate_with_retry(
    adapter: BaseLLMAdapter,
    prompt: str,
    max_retries: int = 1,
) -> SurveyAnalysisOutput:
    """Comprehensive-analysis shortcut for ``request_structured_output``."""
    return request_structured_output(adapter, prompt, SurveyAnalysisOutput, max_retries)
