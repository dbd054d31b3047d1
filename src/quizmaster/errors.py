"""Error taxonomy shared by the quiz generation pipeline."""

from __future__ import annotations

__all__ = [
    "QuizError",
    "ValidationError",
    "TransportError",
    "ExtractionError",
    "GenerationError",
]


class QuizError(RuntimeError):
    """Base class for every recoverable quizmaster failure."""


class ValidationError(QuizError):
    """Raised for out-of-bounds pipeline input or a malformed question.

    ``index`` is the position of the offending record inside the decoded
    batch, or ``None`` when the error concerns the caller's own input.
    """

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class TransportError(QuizError):
    """Raised when the generation service cannot be reached or rejects us."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExtractionError(QuizError):
    """Raised when the response envelope is missing an expected field."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class GenerationError(QuizError):
    """Terminal pipeline failure; no session is created on this path."""

    PARSE_FAILED = "parse failed"
    NO_VALID_QUESTIONS = "no valid questions"
    UNEXPECTED = "unexpected error"

    def __init__(self, reason: str, *, detail: str | None = None) -> None:
        message = f"{reason}: {detail}" if detail else reason
        super().__init__(message)
        self.reason = reason
        self.detail = detail
