"""AI-generated multiple-choice quizzes in the terminal."""

from .errors import (
    ExtractionError,
    GenerationError,
    QuizError,
    TransportError,
    ValidationError,
)
from .generation import (
    GenerationResult,
    QuizPipeline,
    Stage,
)
from .models import ByIndex, ByText, Question, QuizSession, UserStats

__all__ = [
    "ExtractionError",
    "GenerationError",
    "QuizError",
    "TransportError",
    "ValidationError",
    "GenerationResult",
    "QuizPipeline",
    "Stage",
    "ByIndex",
    "ByText",
    "Question",
    "QuizSession",
    "UserStats",
]
