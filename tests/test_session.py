from __future__ import annotations

from rich.console import Console

from fixtures import FakeClock
from quizmaster.models import ByIndex, ByText, Question, QuizSession, UserStats
from quizmaster.session import (
    QuizRunResult,
    SessionCommand,
    _apply_command,
    parse_session_command,
    render_results,
    render_user_stats,
    run_quiz_session,
)


def make_provider(commands: list[str]):
    iterator = iter(commands)

    def _provider() -> str:
        return next(iterator)

    return _provider


def _console() -> Console:
    return Console(record=True, width=100, force_terminal=True)


def _session() -> QuizSession:
    questions = (
        Question(
            text="What is the capital of France?",
            options=["Paris", "London", "Rome", "Berlin"],
            answer_key=ByIndex(0),
            explanation="Paris is the capital city of France.",
        ),
        Question(
            text="Select the even number.",
            options=["3", "2"],
            answer_key=ByText("2"),
            explanation="2 is divisible by 2.",
        ),
    )
    return QuizSession("mixed", questions, clock=FakeClock())


def test_parse_session_command_variants() -> None:
    assert parse_session_command("a") == SessionCommand("select", "A")
    assert parse_session_command("  Next ") == SessionCommand("next")
    assert parse_session_command("p") == SessionCommand("prev")
    assert parse_session_command("previous") == SessionCommand("prev")
    assert parse_session_command("submit") == SessionCommand("submit")
    assert parse_session_command("quit") == SessionCommand("quit")
    assert parse_session_command("r") == SessionCommand("reset")
    assert parse_session_command(None) is None
    assert parse_session_command("") is None
    assert parse_session_command("?unknown") is None
    assert parse_session_command("7") is None


def test_run_quiz_session_submit_flow() -> None:
    console = _console()
    session = _session()

    result = run_quiz_session(
        session,
        console,
        make_provider(["b", "n", "b", "submit"]),
        show_explanations=True,
    )

    assert isinstance(result, QuizRunResult)
    assert result.exit_action == "submitted"
    assert result.session is session
    assert session.completed is True
    assert session.answered_count == 2
    assert session.correct_count == 1
    rendered = console.export_text()
    assert "Quiz Results" in rendered
    assert "You scored 1 out of 2" in rendered
    assert "Keep Practicing!" in rendered
    assert "Explanation: question 1" in rendered
    assert "Review all 2 questions" in rendered


def test_run_quiz_session_quit_leaves_session_open() -> None:
    console = _console()
    session = _session()
    result = run_quiz_session(session, console, make_provider(["a", "quit"]))
    assert result.exit_action == "quit"
    assert session.completed is False
    assert "Ending session without submission" in console.export_text()


def test_run_quiz_session_handles_exhausted_input() -> None:
    console = _console()
    result = run_quiz_session(_session(), console, make_provider([]))
    assert result.exit_action == "quit"
    assert "Session interrupted" in console.export_text()


def test_run_quiz_session_empty() -> None:
    console = _console()
    empty = QuizSession("nothing", (), clock=FakeClock())
    result = run_quiz_session(empty, console, make_provider(["submit"]))
    assert result.exit_action == "empty"
    assert "no questions" in console.export_text()


def test_unknown_commands_and_invalid_choices_are_reported() -> None:
    console = _console()
    session = _session()
    run_quiz_session(
        session, console, make_provider(["??", "n", "c", "quit"])
    )
    rendered = console.export_text()
    assert "Unrecognized command" in rendered
    assert "'C' is not a valid choice" in rendered
    assert session.questions[1].answered is False


def test_apply_command_navigation_and_reset() -> None:
    console = _console()
    session = _session()

    outcome = _apply_command(SessionCommand("select", "A"), session, console)
    assert outcome is None
    assert session.questions[0].user_answer == "Paris"
    _apply_command(SessionCommand("next"), session, console)
    assert session.current_index == 1
    _apply_command(SessionCommand("next"), session, console)
    assert session.current_index == 1
    _apply_command(SessionCommand("prev"), session, console)
    assert session.current_index == 0

    _apply_command(SessionCommand("reset"), session, console)
    assert session.answered_count == 0
    assert "Starting over" in console.export_text()


def test_submit_warns_about_unanswered_questions() -> None:
    console = _console()
    outcome = _apply_command(SessionCommand("submit"), _session(), console)
    assert outcome == "submitted"
    assert "2 unanswered question(s)" in console.export_text()


def test_render_results_without_explanations() -> None:
    console = _console()
    session = _session()
    for question in session.questions:
        question.select(question.correct_answer_text)
    session.complete()

    render_results(console, session, show_explanations=False)

    rendered = console.export_text()
    assert "Excellent Work!" in rendered
    assert "100.0%" in rendered
    assert "Completed in 00:00" in rendered
    assert "Explanation:" not in rendered


def test_render_user_stats_table() -> None:
    console = _console()
    stats = UserStats("ada", clock=FakeClock())
    session = _session()
    session.questions[0].select("Paris")
    stats.add_session(session.complete())

    render_user_stats(console, stats)

    rendered = console.export_text()
    assert "Statistics for ada" in rendered
    assert "Quizzes completed" in rendered
    assert "50.0%" in rendered
