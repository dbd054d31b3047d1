"""Validation for pipeline input and decoded question records."""

from __future__ import annotations

from typing import Any, List, Tuple

from ..errors import ValidationError
from ..models import (
    DEFAULT_EXPLANATION,
    AnswerKey,
    ByIndex,
    ByText,
    Question,
    letter_index,
    option_letter,
)

__all__ = [
    "MIN_TOPIC_LENGTH",
    "MAX_TOPIC_LENGTH",
    "MIN_QUESTION_COUNT",
    "MAX_QUESTION_COUNT",
    "is_valid_topic",
    "is_valid_question_count",
    "validate_request",
    "validate_question",
]

MIN_TOPIC_LENGTH = 2
MAX_TOPIC_LENGTH = 100
MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 20


def is_valid_topic(topic: Any) -> bool:
    if not isinstance(topic, str):
        return False
    return MIN_TOPIC_LENGTH <= len(topic.strip()) <= MAX_TOPIC_LENGTH


def is_valid_question_count(count: Any) -> bool:
    if isinstance(count, bool) or not isinstance(count, int):
        return False
    return MIN_QUESTION_COUNT <= count <= MAX_QUESTION_COUNT


def validate_request(topic: Any, count: Any) -> Tuple[str, int]:
    """Check generation input before any network traffic.

    Returns the trimmed topic and the count. Raises ValidationError with an
    actionable message when either is out of bounds.
    """
    if not isinstance(topic, str) or not topic.strip():
        raise ValidationError("Topic cannot be empty")
    if not is_valid_topic(topic):
        raise ValidationError(
            f"Topic must be between {MIN_TOPIC_LENGTH} and "
            f"{MAX_TOPIC_LENGTH} characters"
        )
    if not is_valid_question_count(count):
        raise ValidationError(
            f"Number of questions must be between {MIN_QUESTION_COUNT} "
            f"and {MAX_QUESTION_COUNT}"
        )
    return topic.strip(), count


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_options(raw: Any) -> List[str] | None:
    if not isinstance(raw, list):
        return None
    options: List[str] = []
    for item in raw:
        text = _coerce_text(item)
        if text is None:
            return None
        options.append(text)
    return options


def _resolve_answer_key(
    answer: str, options: List[str], index: int
) -> AnswerKey:
    if len(answer) == 1 and answer.isalpha():
        position = letter_index(answer)
        if not 0 <= position < len(options):
            last = option_letter(len(options) - 1)
            raise ValidationError(
                f"Question at index {index} has invalid correct answer "
                f"'{answer}'. Must be a letter between A and {last}",
                index=index,
            )
        return ByIndex(position)
    if answer not in options:
        raise ValidationError(
            f"Question at index {index} has correct answer '{answer}' "
            "which is not in the options list",
            index=index,
        )
    return ByText(answer)


def validate_question(record: Any, index: int) -> Question:
    """Validate one decoded question record and build a :class:`Question`.

    Expected keys: question, options (list, at least two), correct_answer
    (a single letter indexing ``options`` or the exact text of one option)
    and explanation. A blank explanation is replaced in ``record`` with a
    default; nothing else in the record is modified.
    """
    if record is None:
        raise ValidationError(f"Question at index {index} is null", index=index)
    if not isinstance(record, dict):
        raise ValidationError(
            f"Question at index {index} is not an object", index=index
        )

    text = _coerce_text(record.get("question"))
    if text is None or not text.strip():
        raise ValidationError(
            f"Question at index {index} has empty question text", index=index
        )

    options = _coerce_options(record.get("options"))
    if not options:
        raise ValidationError(
            f"Question at index {index} has no options", index=index
        )
    if len(options) < 2:
        raise ValidationError(
            f"Question at index {index} must have at least 2 options",
            index=index,
        )

    answer = _coerce_text(record.get("correct_answer"))
    if answer is None or not answer.strip():
        raise ValidationError(
            f"Question at index {index} has no correct answer", index=index
        )
    answer_key = _resolve_answer_key(answer, options, index)

    explanation = _coerce_text(record.get("explanation"))
    if explanation is None or not explanation.strip():
        record["explanation"] = DEFAULT_EXPLANATION
        explanation = DEFAULT_EXPLANATION

    return Question(
        text=text.strip(),
        options=options,
        answer_key=answer_key,
        explanation=explanation.strip(),
    )
