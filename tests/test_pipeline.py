from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future

import pytest

from fixtures import FakeClock, StubTransport, envelope, make_record
from quizmaster.errors import GenerationError, TransportError, ValidationError
from quizmaster.generation import (
    GenerationResult,
    GenerationState,
    QuizPipeline,
    Stage,
    check_connection,
)

S = GenerationState


def _body(records) -> str:
    return envelope(json.dumps(records))


def _pipeline(transport: StubTransport, **kwargs) -> QuizPipeline:
    return QuizPipeline(transport, **kwargs)


def test_successful_generation_builds_a_session(clock: FakeClock) -> None:
    records = [
        make_record(question=f"Q{i}?", correct_answer="B") for i in range(3)
    ]
    transport = StubTransport(_body(records))
    with _pipeline(transport, clock=clock) as pipeline:
        result = pipeline.generate("  Arithmetic ", 3)

    assert isinstance(result, GenerationResult)
    assert result.ok
    assert result.error is None
    assert result.topic == "Arithmetic"
    assert result.state is S.READY
    assert result.shortfall == 0
    session = result.session
    assert session.topic == "Arithmetic"
    assert [q.text for q in session.questions] == ["Q0?", "Q1?", "Q2?"]
    assert all(q.correct_answer_text == "4" for q in session.questions)
    assert session.current_index == 0
    assert session.started_at == clock.now
    assert transport.closed is True


def test_request_payload_carries_prompt_and_sampling() -> None:
    transport = StubTransport(_body([make_record()]))
    pipeline = _pipeline(transport)
    pipeline.generate('Say "hi" \\ now', 2)
    pipeline.close()

    payload = transport.payloads[0]
    assert payload["model"] == "llama-3.3-70b-versatile"
    assert payload["temperature"] == pytest.approx(0.1)
    assert payload["max_tokens"] == 1500
    assert payload["top_p"] == pytest.approx(0.9)
    message = payload["messages"][0]
    assert message["role"] == "user"
    assert "Generate exactly 2 multiple-choice" in message["content"]
    assert 'Say "hi" \\ now' in message["content"]
    decoded = json.loads(json.dumps(payload))
    assert decoded["messages"][0]["content"] == message["content"]


@pytest.mark.parametrize(
    "topic, count",
    [("", 5), ("a", 5), ("x" * 101, 5), ("Math", 0), ("Math", 21)],
)
def test_bounds_fail_before_any_network_call(topic, count) -> None:
    transport = StubTransport()
    stages = []
    with _pipeline(transport) as pipeline:
        result = pipeline.generate(topic, count, progress=stages.append)

    assert not result.ok
    assert result.session is None
    assert isinstance(result.error, ValidationError)
    assert transport.payloads == []
    assert stages == []
    assert result.trail == (S.IDLE, S.FAILED)


def test_partial_batch_keeps_valid_questions_in_order() -> None:
    records = [
        make_record(question="one?"),
        make_record(question="two?", correct_answer="Z"),
        make_record(question="three?"),
        make_record(question="four?", correct_answer="B"),
        make_record(question="five?", explanation=""),
    ]
    transport = StubTransport(_body(records))
    with _pipeline(transport) as pipeline:
        result = pipeline.generate("numbers", 5)

    assert result.ok
    assert [q.text for q in result.session.questions] == [
        "one?",
        "three?",
        "four?",
        "five?",
    ]
    assert result.shortfall == 1
    assert len(result.skipped) == 1
    assert result.skipped[0].index == 1
    assert "invalid correct answer 'Z'" in result.skipped[0].reason
    assert result.session.questions[-1].explanation == (
        "No explanation provided."
    )


def test_skipped_questions_are_logged_as_warnings(
    caplog: pytest.LogCaptureFixture,
) -> None:
    records = [make_record(), {"question": "broken"}]
    transport = StubTransport(_body(records))
    logger = logging.getLogger("tests.pipeline.skips")
    with caplog.at_level(logging.WARNING, logger=logger.name):
        with _pipeline(transport, logger=logger) as pipeline:
            pipeline.generate("numbers", 2)

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert warnings[0].index == 1


def test_all_invalid_records_fail_with_no_valid_questions() -> None:
    records = [{"question": "x"}, None, make_record(options=["solo"])]
    transport = StubTransport(_body(records))
    with _pipeline(transport) as pipeline:
        result = pipeline.generate("broken", 3)

    assert not result.ok
    assert result.session is None
    assert isinstance(result.error, GenerationError)
    assert result.error.reason == GenerationError.NO_VALID_QUESTIONS
    assert result.trail == (S.IDLE, S.REQUESTING, S.EXTRACTING, S.VALIDATING,
                            S.FAILED)


@pytest.mark.parametrize(
    "body",
    [
        envelope("not json at all"),
        envelope('{"question": "object, not array"}'),
        envelope("[{broken json}]"),
        json.dumps({"choices": []}),
        "",
    ],
)
def test_unparseable_bodies_fail_with_parse_failed(body) -> None:
    transport = StubTransport(body)
    with _pipeline(transport) as pipeline:
        result = pipeline.generate("parsing", 2)

    assert not result.ok
    assert isinstance(result.error, GenerationError)
    assert result.error.reason == GenerationError.PARSE_FAILED
    assert str(result.error).startswith("parse failed")
    assert result.trail[-2] is S.EXTRACTING


def test_transport_failure_is_returned_not_raised(
    caplog: pytest.LogCaptureFixture,
) -> None:
    failure = TransportError(
        "API request failed with status 503: busy", status_code=503,
        body="busy",
    )
    transport = StubTransport(failure)
    logger = logging.getLogger("tests.pipeline.transport")
    with caplog.at_level(logging.ERROR, logger=logger.name):
        with _pipeline(transport, logger=logger) as pipeline:
            result = pipeline.generate("History", 3)

    assert result.error is failure
    assert result.trail == (S.IDLE, S.REQUESTING, S.FAILED)
    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.failed_after == "requesting"
    assert record.error_type == "TransportError"


def test_unexpected_exceptions_are_wrapped() -> None:
    transport = StubTransport(KeyError("boom"))
    with _pipeline(transport) as pipeline:
        result = pipeline.generate("History", 3)

    assert isinstance(result.error, GenerationError)
    assert result.error.reason == GenerationError.UNEXPECTED
    assert isinstance(result.error.__cause__, KeyError)
    assert result.state is S.FAILED


def test_progress_is_reported_in_order_exactly_once() -> None:
    transport = StubTransport(_body([make_record()]))
    stages = []
    with _pipeline(transport) as pipeline:
        pipeline.generate("Order", 1, progress=stages.append)
    assert stages == [Stage.CONNECTING, Stage.PROCESSING, Stage.READY]
    assert [s.label for s in stages] == [
        "Connecting to AI service...",
        "Processing quiz questions...",
        "Quiz ready!",
    ]


def test_progress_stops_at_the_failing_step() -> None:
    transport = StubTransport(TransportError("down"))
    stages = []
    with _pipeline(transport) as pipeline:
        pipeline.generate("Order", 1, progress=stages.append)
    assert stages == [Stage.CONNECTING]


def test_progress_goes_through_dispatcher() -> None:
    transport = StubTransport(_body([make_record()]))
    dispatched = []

    def dispatch(callback, *args):
        dispatched.append(args[0])
        callback(*args)

    seen = []
    with _pipeline(transport) as pipeline:
        pipeline.generate("Order", 1, progress=seen.append, dispatch=dispatch)
    assert dispatched == seen == [
        Stage.CONNECTING,
        Stage.PROCESSING,
        Stage.READY,
    ]


def test_successful_trail_walks_every_state() -> None:
    transport = StubTransport(_body([make_record()]))
    with _pipeline(transport) as pipeline:
        result = pipeline.generate("States", 1)
    assert result.trail == (
        S.IDLE,
        S.REQUESTING,
        S.EXTRACTING,
        S.VALIDATING,
        S.READY,
    )


def test_submit_runs_on_worker_and_serializes_requests() -> None:
    thread_names = []

    def reply(payload):
        thread_names.append(threading.current_thread().name)
        return _body([make_record()])

    transport = StubTransport(reply, reply)
    with _pipeline(transport) as pipeline:
        first = pipeline.submit("First topic", 1)
        second = pipeline.submit("Second topic", 1)
        assert isinstance(first, Future)
        results = [first.result(timeout=5), second.result(timeout=5)]

    assert [r.topic for r in results] == ["First topic", "Second topic"]
    assert all(r.ok for r in results)
    assert all(name.startswith("quizmaster-generate") for name in thread_names)
    assert len(transport.payloads) == 2


def test_submit_reports_failures_on_the_result() -> None:
    transport = StubTransport()
    with _pipeline(transport) as pipeline:
        result = pipeline.submit("", 1).result(timeout=5)
    assert isinstance(result.error, ValidationError)


def test_close_is_idempotent() -> None:
    transport = StubTransport()
    pipeline = _pipeline(transport)
    pipeline.close()
    pipeline.close()
    assert transport.closed is True


def test_check_connection_reflects_generation_outcome() -> None:
    good = StubTransport(_body([make_record()]))
    bad = StubTransport(TransportError("offline"))
    with _pipeline(good) as pipeline:
        assert check_connection(pipeline) is True
    assert good.payloads[0]["messages"][0]["content"].count("exactly 1 ") == 1
    with _pipeline(bad) as pipeline:
        assert check_connection(pipeline) is False


def test_single_option_record_is_dropped_from_a_batch_of_five() -> None:
    good = [make_record(question=f"q{i}?") for i in range(4)]
    records = good[:2] + [make_record(options=["4"])] + good[2:]
    with _pipeline(StubTransport(_body(records))) as pipeline:
        result = pipeline.generate("arithmetic", 5)
    assert result.ok
    assert result.session.total_questions == 4

    defective = [make_record(options=["4"]) for _ in range(5)]
    with _pipeline(StubTransport(_body(defective))) as pipeline:
        failed = pipeline.generate("arithmetic", 5)
    assert failed.error.reason == GenerationError.NO_VALID_QUESTIONS


def test_rejected_count_is_kept_verbatim_on_the_result() -> None:
    with _pipeline(StubTransport()) as pipeline:
        result = pipeline.generate("Math", "five")
    assert result.requested == "five"
    assert result.shortfall == 0
    assert isinstance(result.error, ValidationError)
