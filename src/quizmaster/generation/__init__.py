"""Generation pipeline: request, extract, decode, validate."""

from __future__ import annotations

from .extract import extract_questions_payload, strip_code_fences
from .pipeline import (
    GenerationResult,
    GenerationState,
    ProgressCallback,
    QuizPipeline,
    SkippedQuestion,
    Stage,
    check_connection,
)
from .transport import (
    OpenAITransport,
    Transport,
    build_prompt,
    build_request_payload,
)
from .validate import (
    is_valid_question_count,
    is_valid_topic,
    validate_question,
    validate_request,
)

__all__ = [
    "extract_questions_payload",
    "strip_code_fences",
    "GenerationResult",
    "GenerationState",
    "ProgressCallback",
    "QuizPipeline",
    "SkippedQuestion",
    "Stage",
    "check_connection",
    "OpenAITransport",
    "Transport",
    "build_prompt",
    "build_request_payload",
    "is_valid_question_count",
    "is_valid_topic",
    "validate_question",
    "validate_request",
]
