"""Quiz generation pipeline: request, extract, decode, validate, build session.

One :meth:`QuizPipeline.generate` call walks a fixed state machine::

    IDLE -> REQUESTING -> EXTRACTING -> VALIDATING -> READY
                 any state -> FAILED

and always returns a :class:`GenerationResult`; pipeline failures are
reported on the result instead of being raised. :meth:`QuizPipeline.submit`
runs the same work on a single background worker and hands back a
``Future``.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..core.config import ProviderConfig, default_config
from ..errors import ExtractionError, GenerationError, QuizError, ValidationError
from ..models import Question, QuizSession
from .extract import extract_questions_payload
from .transport import Transport, build_request_payload
from .validate import validate_question, validate_request

__all__ = [
    "Stage",
    "GenerationState",
    "SkippedQuestion",
    "GenerationResult",
    "ProgressCallback",
    "QuizPipeline",
    "check_connection",
]


class Stage(str, Enum):
    """Progress notifications, always delivered in declaration order."""

    CONNECTING = "connecting"
    PROCESSING = "processing"
    READY = "ready"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    Stage.CONNECTING: "Connecting to AI service...",
    Stage.PROCESSING: "Processing quiz questions...",
    Stage.READY: "Quiz ready!",
}


class GenerationState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    READY = "ready"
    FAILED = "failed"


ProgressCallback = Callable[[Stage], None]
Dispatcher = Callable[..., Any]


@dataclass(frozen=True)
class SkippedQuestion:
    """A decoded record dropped during validation."""

    index: int
    reason: str


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation call: a session or the error that stopped it."""

    topic: str
    requested: object
    session: Optional[QuizSession] = None
    error: Optional[QuizError] = None
    skipped: Tuple[SkippedQuestion, ...] = ()
    trail: Tuple[GenerationState, ...] = ()

    @property
    def ok(self) -> bool:
        return self.session is not None and self.error is None

    @property
    def state(self) -> GenerationState:
        return self.trail[-1] if self.trail else GenerationState.IDLE

    @property
    def shortfall(self) -> int:
        """How many fewer questions were delivered than requested."""

        if self.session is None or not isinstance(self.requested, int):
            return 0
        return max(0, self.requested - self.session.total_questions)


class _GenerationRun:
    """Per-call state tracking and progress delivery."""

    def __init__(
        self,
        progress: Optional[ProgressCallback],
        dispatch: Optional[Dispatcher],
    ) -> None:
        self._progress = progress
        self._dispatch = dispatch
        self._notified: set[Stage] = set()
        self.trail: List[GenerationState] = [GenerationState.IDLE]

    def enter(self, state: GenerationState) -> None:
        self.trail.append(state)

    def notify(self, stage: Stage) -> None:
        if stage in self._notified:
            return
        self._notified.add(stage)
        if self._progress is None:
            return
        if self._dispatch is not None:
            self._dispatch(self._progress, stage)
        else:
            self._progress(stage)


class QuizPipeline:
    """Turn a topic and question count into a playable :class:`QuizSession`.

    The pipeline owns its transport (and through it the connection pool)
    plus one worker thread; call :meth:`close` on shutdown or use it as a
    context manager.
    """

    def __init__(
        self,
        transport: Transport,
        provider: Optional[ProviderConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._transport = transport
        self._provider = provider or default_config().provider
        self._logger = logger or logging.getLogger("quizmaster.generation")
        self._clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="quizmaster-generate"
        )
        self._closed = False

    def __enter__(self) -> "QuizPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def submit(
        self,
        topic: str,
        count: int,
        *,
        progress: Optional[ProgressCallback] = None,
        dispatch: Optional[Dispatcher] = None,
    ) -> "Future[GenerationResult]":
        """Schedule :meth:`generate` on the background worker.

        Requests are served one at a time in submission order.
        """
        return self._executor.submit(
            self.generate, topic, count, progress=progress, dispatch=dispatch
        )

    def generate(
        self,
        topic: str,
        count: int,
        *,
        progress: Optional[ProgressCallback] = None,
        dispatch: Optional[Dispatcher] = None,
    ) -> GenerationResult:
        run = _GenerationRun(progress, dispatch)
        try:
            clean_topic, clean_count = validate_request(topic, count)
            session, skipped = self._execute(run, clean_topic, clean_count)
        except QuizError as exc:
            run.enter(GenerationState.FAILED)
            self._logger.error(
                "Quiz generation failed",
                extra={
                    "topic": topic,
                    "requested": count,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "failed_after": run.trail[-2].value,
                },
            )
            return GenerationResult(
                topic=str(topic),
                requested=count,
                error=exc,
                trail=tuple(run.trail),
            )
        except Exception as exc:
            run.enter(GenerationState.FAILED)
            self._logger.exception(
                "Unexpected error during quiz generation",
                extra={"topic": topic, "requested": count},
            )
            error = GenerationError(GenerationError.UNEXPECTED, detail=str(exc))
            error.__cause__ = exc
            return GenerationResult(
                topic=str(topic),
                requested=count,
                error=error,
                trail=tuple(run.trail),
            )

        self._logger.info(
            "Quiz generated",
            extra={
                "topic": clean_topic,
                "requested": clean_count,
                "delivered": session.total_questions,
                "skipped": len(skipped),
            },
        )
        return GenerationResult(
            topic=clean_topic,
            requested=clean_count,
            session=session,
            skipped=tuple(skipped),
            trail=tuple(run.trail),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._transport.close()

    def _execute(
        self, run: _GenerationRun, topic: str, count: int
    ) -> Tuple[QuizSession, List[SkippedQuestion]]:
        run.enter(GenerationState.REQUESTING)
        run.notify(Stage.CONNECTING)
        payload = build_request_payload(topic, count, self._provider)
        self._logger.debug(
            "Requesting questions",
            extra={"topic": topic, "requested": count, "model": payload["model"]},
        )
        body = self._transport.send(payload)

        run.enter(GenerationState.EXTRACTING)
        run.notify(Stage.PROCESSING)
        self._logger.debug("Raw API response", extra={"body": body})
        records = self._decode(body)

        run.enter(GenerationState.VALIDATING)
        questions, skipped = self._validate_all(records)
        if not questions:
            raise GenerationError(
                GenerationError.NO_VALID_QUESTIONS,
                detail=f"all {len(records)} question(s) failed validation",
            )

        if self._clock is not None:
            session = QuizSession(topic, tuple(questions), clock=self._clock)
        else:
            session = QuizSession(topic, tuple(questions))
        run.enter(GenerationState.READY)
        run.notify(Stage.READY)
        return session, skipped

    def _decode(self, body: str) -> List[Any]:
        try:
            payload = extract_questions_payload(body)
        except ExtractionError as exc:
            raise GenerationError(
                GenerationError.PARSE_FAILED, detail=str(exc)
            ) from exc
        self._logger.debug("Extracted questions JSON", extra={"payload": payload})
        try:
            records = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise GenerationError(
                GenerationError.PARSE_FAILED,
                detail=f"Failed to parse questions array: {exc}",
            ) from exc
        if not isinstance(records, list):
            raise GenerationError(
                GenerationError.PARSE_FAILED,
                detail="expected a JSON array of questions",
            )
        return records

    def _validate_all(
        self, records: Sequence[Any]
    ) -> Tuple[List[Question], List[SkippedQuestion]]:
        questions: List[Question] = []
        skipped: List[SkippedQuestion] = []
        for index, record in enumerate(records):
            try:
                questions.append(validate_question(record, index))
            except ValidationError as exc:
                skipped.append(SkippedQuestion(index=index, reason=str(exc)))
                self._logger.warning(
                    "Skipping invalid question",
                    extra={"index": index, "reason": str(exc)},
                )
        return questions, skipped


def check_connection(pipeline: QuizPipeline) -> bool:
    """Return True when a one-question generation succeeds."""

    return pipeline.generate("general knowledge", 1).ok
