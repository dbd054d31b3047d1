"""Domain models for generated quizzes.

A :class:`Question` is built once its raw record has been validated. Its
correct answer is held as an explicit :data:`AnswerKey` (either an option
index or the literal option text) and resolved to option text up front, so
scoring never has to re-interpret the raw ``correct_answer`` field.

:class:`QuizSession` owns an ordered, fixed-length run of questions plus a
cursor and timing state. :class:`UserStats` folds completed sessions into
running totals.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Sequence, Union

__all__ = [
    "DEFAULT_EXPLANATION",
    "ByIndex",
    "ByText",
    "AnswerKey",
    "Question",
    "QuizSession",
    "UserStats",
    "option_letter",
    "letter_index",
]

DEFAULT_EXPLANATION = "No explanation provided."

Clock = Callable[[], datetime]


def _now() -> datetime:
    return datetime.now()


def option_letter(index: int) -> str:
    """Return the display letter for a zero-based option index."""

    return chr(ord("A") + index)


def letter_index(letter: str) -> int:
    """Map a single letter to its zero-based option index (``A`` -> 0)."""

    return ord(letter.upper()) - ord("A")


@dataclass(frozen=True)
class ByIndex:
    """Correct answer referenced by option position."""

    index: int

    def resolve(self, options: Sequence[str]) -> str:
        return options[self.index]

    @property
    def raw(self) -> str:
        return option_letter(self.index)


@dataclass(frozen=True)
class ByText:
    """Correct answer given as the literal option text."""

    text: str

    def resolve(self, options: Sequence[str]) -> str:
        return self.text

    @property
    def raw(self) -> str:
        return self.text


AnswerKey = Union[ByIndex, ByText]


@dataclass
class Question:
    """One multiple-choice question and the user's answer state."""

    text: str
    options: list[str]
    answer_key: AnswerKey
    explanation: str = DEFAULT_EXPLANATION
    user_answer: str | None = None
    answered: bool = False
    correct_answer_text: str = field(init=False)

    def __post_init__(self) -> None:
        self.options = list(self.options)
        if len(self.options) < 2:
            raise ValueError("a question needs at least two options")
        if isinstance(self.answer_key, ByIndex):
            if not 0 <= self.answer_key.index < len(self.options):
                raise ValueError(
                    f"answer index {self.answer_key.index} is out of range"
                )
        elif self.answer_key.text not in self.options:
            raise ValueError("answer text must match one of the options")
        self.correct_answer_text = self.answer_key.resolve(self.options)

    @property
    def correct_answer(self) -> str:
        """The answer reference as the generator phrased it (letter or text)."""

        return self.answer_key.raw

    def select(self, answer: str) -> None:
        self.user_answer = answer
        self.answered = True

    def reset_answer(self) -> None:
        self.user_answer = None
        self.answered = False

    def is_correct(self) -> bool:
        if not self.answered:
            return False
        return self.user_answer == self.correct_answer_text

    def option_for_letter(self, letter: str | None) -> str | None:
        if not letter:
            return None
        key = str(letter).strip()[:1]
        if not key.isalpha():
            return None
        idx = letter_index(key)
        if 0 <= idx < len(self.options):
            return self.options[idx]
        return None

    def letter_for_option(self, text: str | None) -> str | None:
        if text is None:
            return None
        for idx, option in enumerate(self.options):
            if option == text:
                return option_letter(idx)
        return None


@dataclass
class QuizSession:
    """An ordered run of questions on one topic.

    The question sequence is fixed at construction; answers mutate the
    contained questions in place.
    """

    topic: str
    questions: tuple[Question, ...]
    clock: Clock = field(default=_now, repr=False, compare=False)
    current_index: int = field(default=0, init=False)
    started_at: datetime = field(init=False)
    ended_at: datetime | None = field(default=None, init=False)
    completed: bool = field(default=False, init=False)
    duration_seconds: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.questions = tuple(self.questions)
        self.started_at = self.clock()

    # Navigation -----------------------------------------------------------

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def has_next(self) -> bool:
        return self.current_index < len(self.questions) - 1

    @property
    def has_previous(self) -> bool:
        return self.current_index > 0

    def advance(self) -> bool:
        if not self.has_next:
            return False
        self.current_index += 1
        return True

    def retreat(self) -> bool:
        if not self.has_previous:
            return False
        self.current_index -= 1
        return True

    def submit_answer(self, answer: str) -> bool:
        question = self.current_question
        if question is None:
            return False
        question.select(answer)
        return True

    # Lifecycle ------------------------------------------------------------

    def complete(self) -> "QuizSession":
        """Mark the session finished; repeated calls leave it untouched."""

        if not self.completed:
            self.ended_at = self.clock()
            self.completed = True
            elapsed = self.ended_at - self.started_at
            self.duration_seconds = int(elapsed.total_seconds())
        return self

    def reset(self) -> None:
        self.current_index = 0
        self.completed = False
        self.ended_at = None
        self.duration_seconds = 0
        self.started_at = self.clock()
        for question in self.questions:
            question.reset_answer()

    def restart(self) -> "QuizSession":
        """Return a fresh, unanswered session over the same questions.

        Unlike :meth:`reset` this leaves ``self`` intact, which keeps a
        session already recorded in :class:`UserStats` unchanged.
        """

        fresh = [
            replace(question, user_answer=None, answered=False)
            for question in self.questions
        ]
        return QuizSession(self.topic, tuple(fresh), clock=self.clock)

    # Scoring --------------------------------------------------------------

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.answered)

    @property
    def correct_count(self) -> int:
        return sum(1 for q in self.questions if q.is_correct())

    @property
    def incorrect_count(self) -> int:
        return sum(1 for q in self.questions if q.answered and not q.is_correct())

    @property
    def score_percentage(self) -> float:
        if not self.questions:
            return 0.0
        return self.correct_count / len(self.questions) * 100.0

    def all_answered(self) -> bool:
        return all(q.answered for q in self.questions)

    # Presentation helpers -------------------------------------------------

    @property
    def progress_fraction(self) -> float:
        if not self.questions:
            return 0.0
        return (self.current_index + 1) / len(self.questions)

    @property
    def progress_label(self) -> str:
        return f"{self.current_index + 1} of {self.total_questions}"

    @property
    def score_label(self) -> str:
        return (
            f"{self.correct_count}/{self.total_questions} "
            f"({self.score_percentage:.1f}%)"
        )

    @property
    def formatted_duration(self) -> str:
        minutes, seconds = divmod(self.duration_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def formatted_start_time(self) -> str:
        if self.started_at is None:
            return "N/A"
        return self.started_at.strftime("%b %d, %Y %H:%M")

    def performance_tier(self) -> str:
        score = self.score_percentage
        if score >= 80:
            return "Excellent Work!"
        if score >= 60:
            return "Good Job!"
        return "Keep Practicing!"


@dataclass
class UserStats:
    """Cross-session performance aggregate for one user.

    Only completed sessions are recorded; stored sessions are read, never
    mutated.
    """

    name: str
    clock: Clock = field(default=_now, repr=False, compare=False)
    last_login: datetime | None = field(default=None, init=False)
    history: list[QuizSession] = field(default_factory=list, init=False)
    quizzes_completed: int = field(default=0, init=False)
    questions_answered: int = field(default=0, init=False)
    correct_answers: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.last_login = self.clock()

    def touch_login(self) -> None:
        self.last_login = self.clock()

    def add_session(self, session: QuizSession | None) -> bool:
        if session is None or not session.completed:
            return False
        if any(past is session for past in self.history):
            return False
        self.history.append(session)
        self.quizzes_completed += 1
        self.questions_answered += session.total_questions
        self.correct_answers += session.correct_count
        return True

    @property
    def overall_accuracy(self) -> float:
        if self.questions_answered == 0:
            return 0.0
        return self.correct_answers / self.questions_answered * 100.0

    @property
    def best_score(self) -> float:
        return max(
            (session.score_percentage for session in self.history),
            default=0.0,
        )

    @property
    def average_score(self) -> float:
        if not self.history:
            return 0.0
        scores = [session.score_percentage for session in self.history]
        return sum(scores) / len(scores)

    def summary_line(self) -> str:
        return (
            f"Quizzes Completed: {self.quizzes_completed} | "
            f"Questions Answered: {self.questions_answered} | "
            f"Overall Accuracy: {self.overall_accuracy:.1f}% | "
            f"Best Score: {self.best_score:.1f}% | "
            f"Average Score: {self.average_score:.1f}%"
        )
