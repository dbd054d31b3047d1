"""Rich-powered console front end for a generated quiz session.

The loop renders the current question of a :class:`QuizSession`, reads one
command at a time from an injectable input provider and applies it to the
session (select, navigate, reset, submit, quit). Rendering helpers for the
results and review screens live here too so the CLI can reuse them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import QuizSession, UserStats, option_letter

InputProvider = Callable[[], str]
ExitAction = Literal["submitted", "quit", "empty"]


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "prev", "submit", "quit", "reset", "select"]
    choice: str | None = None


@dataclass(frozen=True)
class QuizRunResult:
    """Return value from ``run_quiz_session``."""

    session: QuizSession
    exit_action: ExitAction


def parse_session_command(raw: str | None) -> SessionCommand | None:
    """Parse raw user input into a structured command."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"s", "submit"}:
        return SessionCommand("submit")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    if lowered in {"r", "reset"}:
        return SessionCommand("reset")
    key = text[0].upper()
    if len(text) == 1 and key.isalpha():
        return SessionCommand("select", key)
    return None


def run_quiz_session(
    session: QuizSession,
    console: Console,
    input_provider: InputProvider,
    *,
    show_explanations: bool = True,
) -> QuizRunResult:
    """Play ``session`` interactively; a submitted session is completed."""

    if not session.questions:
        console.print(
            Panel(
                "This quiz has no questions.",
                title="Quiz Session",
                border_style="yellow",
            )
        )
        return QuizRunResult(session, "empty")

    exit_action: ExitAction = "quit"
    while True:
        _render_question(console, session)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            exit_action = "quit"
            break
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        exit_candidate = _apply_command(command, session, console)
        if exit_candidate:
            exit_action = exit_candidate
            break

    if exit_action == "submitted":
        session.complete()
        render_results(console, session, show_explanations=show_explanations)
    return QuizRunResult(session, exit_action)


def _apply_command(
    command: SessionCommand,
    session: QuizSession,
    console: Console,
) -> ExitAction | None:
    if command.type == "select" and command.choice:
        question = session.current_question
        option = question.option_for_letter(command.choice) if question else None
        if option is None:
            console.print(
                "[red]'%s' is not a valid choice for this question.[/red]"
                % command.choice,
            )
            return None
        session.submit_answer(option)
        console.print(f"Selected [bold]{command.choice}[/].")
        return None
    if command.type == "next":
        session.advance()
        return None
    if command.type == "prev":
        session.retreat()
        return None
    if command.type == "reset":
        session.reset()
        console.print("[yellow]Answers cleared. Starting over.[/]")
        return None
    if command.type == "quit":
        console.print("\n[bold yellow]Ending session without submission.[/]")
        return "quit"
    if command.type == "submit":
        unanswered = session.total_questions - session.answered_count
        if unanswered:
            console.print(
                f"[yellow]{unanswered} unanswered question(s) will count "
                "as incorrect.[/]"
            )
        return "submitted"
    return None


def _render_question(console: Console, session: QuizSession) -> None:
    question = session.current_question
    if question is None:
        return
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total_questions}", "dim"),
        (f"  {session.topic}", "dim italic"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.text, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")

    for idx, option in enumerate(question.options):
        chosen = question.answered and option == question.user_answer
        indicator = "•" if chosen else " "
        row_text = Text(indicator + " ")
        row_text += Text(option, style="bold green" if chosen else "")
        table.add_row(option_letter(idx), row_text)

    console.print(table)
    keys = ", ".join(option_letter(i) for i in range(len(question.options)))
    console.print(
        Text(
            f"Answered {session.answered_count}/{session.total_questions} | "
            f"Commands: choices [{keys}], n (next), p (prev), r (reset), "
            "submit, quit",
            style="dim",
        )
    )


def _tier_style(session: QuizSession) -> str:
    score = session.score_percentage
    if score >= 80:
        return "green"
    if score >= 60:
        return "cyan"
    return "red"


def render_results(
    console: Console,
    session: QuizSession,
    *,
    show_explanations: bool = True,
) -> None:
    """Render the score panel, the per-question review and explanations."""

    style = _tier_style(session)
    console.print()
    console.rule(Text("Quiz Results", style="bold magenta"))
    console.print(
        Panel(
            Text.assemble(
                (f"{session.score_percentage:.1f}%\n", f"bold {style}"),
                (
                    f"You scored {session.correct_count} out of "
                    f"{session.total_questions}\n",
                    style,
                ),
                (f"Completed in {session.formatted_duration}", "dim"),
            ),
            title=session.performance_tier(),
            border_style=style,
            expand=False,
        )
    )

    review = Table(
        title=(
            f"Review all {session.total_questions} questions • "
            f"{session.correct_count} correct • "
            f"{session.incorrect_count} incorrect"
        ),
        box=box.SIMPLE,
        expand=True,
    )
    review.add_column("#", justify="right")
    review.add_column("Question", overflow="fold")
    review.add_column("Your answer")
    review.add_column("Correct answer")
    review.add_column("Result", justify="center")
    for idx, question in enumerate(session.questions, start=1):
        outcome = "✅" if question.is_correct() else "❌"
        review.add_row(
            str(idx),
            question.text,
            question.user_answer or "—",
            question.correct_answer_text,
            outcome,
        )
    console.print(review)

    if not show_explanations:
        return
    for idx, question in enumerate(session.questions, start=1):
        border = "green" if question.is_correct() else "red"
        console.print(
            Panel(
                question.explanation,
                title=f"Explanation: question {idx}",
                border_style=border,
            )
        )


def render_user_stats(console: Console, stats: UserStats) -> None:
    table = Table(
        title=f"Statistics for {stats.name}",
        show_header=False,
        box=box.MINIMAL_DOUBLE_HEAD,
        expand=False,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Quizzes completed", str(stats.quizzes_completed))
    table.add_row("Questions answered", str(stats.questions_answered))
    table.add_row("Overall accuracy", f"{stats.overall_accuracy:.1f}%")
    table.add_row("Best score", f"{stats.best_score:.1f}%")
    table.add_row("Average score", f"{stats.average_score:.1f}%")
    console.print(table)
