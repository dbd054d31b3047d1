"""Command-line entry point: ``quizmaster init|start|check|version``."""

from __future__ import annotations

import argparse
import logging
from importlib import metadata
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .core.ai import API_KEY_ENV, resolve_api_key
from .core.config import (
    ConfigError,
    ProviderConfig,
    QuizmasterConfig,
    load_config,
    resolve_config_path,
    write_template,
)
from .core.logging import configure_logger
from .core.workspace import WorkspaceError, ensure_workspace
from .generation import (
    GenerationResult,
    OpenAITransport,
    QuizPipeline,
    Stage,
    check_connection,
)
from .generation.validate import (
    MAX_QUESTION_COUNT,
    MIN_QUESTION_COUNT,
    is_valid_question_count,
)
from .models import QuizSession, UserStats
from .session import render_user_stats, run_quiz_session
from .view.quiz import QuizApp

_INTERRUPTS = (EOFError, KeyboardInterrupt)


def _make_console() -> Console:
    return Console()


def _build_pipeline(
    api_key: str, provider: ProviderConfig, logger: logging.Logger
) -> QuizPipeline:
    return QuizPipeline(
        OpenAITransport.from_config(api_key, provider),
        provider,
        logger=logger.getChild("generation"),
    )


def _prepare(
    args: argparse.Namespace,
) -> tuple[QuizmasterConfig, logging.Logger, Path, Optional[str]]:
    config = load_config(explicit_path=args.config)
    layout = ensure_workspace()
    logger, log_path = configure_logger(
        "quizmaster",
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=bool(getattr(args, "verbose", False)) or config.logging.verbose,
    )
    api_key = resolve_api_key(
        override=getattr(args, "api_key", None),
        config_key=config.provider.api_key,
    )
    return config, logger, log_path, api_key


def _print_missing_key(console: Console, config_path: Path) -> None:
    console.print("[bold red]No API key found.[/] Provide one of:")
    console.print(f"  - {API_KEY_ENV} in the environment or a .env file")
    console.print("  - --api-key on the command line")
    console.print(
        f"  - api_key under \\[provider] in {escape(str(config_path))}"
    )


def _cmd_init(args: argparse.Namespace, console: Console) -> int:
    path = resolve_config_path(explicit_path=args.config)
    write_template(path, overwrite=args.force)
    console.print(f"Created template {escape(str(path))}")
    return 0


def _cmd_check(args: argparse.Namespace, console: Console) -> int:
    config, logger, _, api_key = _prepare(args)
    if not api_key:
        config_path = resolve_config_path(explicit_path=args.config)
        _print_missing_key(console, config_path)
        return 2
    with _build_pipeline(api_key, config.provider, logger) as pipeline:
        with console.status("Checking connection..."):
            ok = check_connection(pipeline)
    if ok:
        console.print(f"[green]Connected to {config.provider.api_base}[/]")
        return 0
    console.print(
        f"[red]Could not generate a quiz via {config.provider.api_base}.[/]"
    )
    return 1


def _cmd_start(args: argparse.Namespace, console: Console) -> int:
    config, logger, log_path, api_key = _prepare(args)
    if not api_key:
        config_path = resolve_config_path(explicit_path=args.config)
        _print_missing_key(console, config_path)
        return 2
    count = args.count if args.count is not None else config.quiz.default_count
    if not is_valid_question_count(count):
        console.print(
            f"[red]Error:[/] question count must be between {MIN_QUESTION_COUNT} "
            f"and {MAX_QUESTION_COUNT} (got {count})."
        )
        return 2
    show_explanations = config.quiz.show_explanations and args.explain
    stats = UserStats(args.name)
    logger.info(
        "Quiz session started",
        extra={"user": args.name, "count": count, "tui": args.tui},
    )

    with _build_pipeline(api_key, config.provider, logger) as pipeline:
        if args.tui:
            topic = args.topic or _ask(console, "[bold]Quiz topic:[/] ")
            if not topic:
                return 0
            QuizApp(
                pipeline,
                topic,
                count,
                stats=stats,
                show_explanations=show_explanations,
            ).run()
            code = 0
        else:
            code = _play(
                pipeline,
                console,
                topic=args.topic,
                count=count,
                stats=stats,
                show_explanations=show_explanations,
            )
    console.print(f"[dim]Log file: {escape(str(log_path))}[/]")
    return code


def _ask(console: Console, prompt: str) -> Optional[str]:
    try:
        return console.input(prompt).strip()
    except _INTERRUPTS:
        return None


def _next_step(console: Console, *, can_retake: bool) -> str:
    first = "\\[r]etake" if can_retake else "\\[r]etry"
    while True:
        answer = _ask(console, f"{first}, \\[n]ew topic or \\[q]uit? ")
        if answer is None:
            return "quit"
        lowered = answer.lower()
        if lowered in {"r", "retake", "retry"}:
            return "retake"
        if lowered in {"n", "new"}:
            return "new"
        if lowered in {"q", "quit", "exit"}:
            return "quit"
        console.print("[red]Please answer r, n or q.[/]")


def _generate_with_status(
    pipeline: QuizPipeline, console: Console, topic: str, count: int
) -> GenerationResult:
    with console.status(Stage.CONNECTING.label, spinner="dots") as status:
        future = pipeline.submit(
            topic,
            count,
            progress=lambda stage: status.update(stage.label),
        )
        result = future.result()
    if result.ok and result.shortfall:
        console.print(
            f"[yellow]Skipped {len(result.skipped)} invalid question(s); "
            f"playing {result.session.total_questions} of "
            f"{result.requested}.[/]"
        )
    return result


def _play(
    pipeline: QuizPipeline,
    console: Console,
    *,
    topic: Optional[str],
    count: int,
    stats: UserStats,
    show_explanations: bool,
) -> int:
    input_provider: Callable[[], str] = lambda: console.input("> ")
    session: Optional[QuizSession] = None
    while True:
        if session is None:
            if not topic:
                topic = _ask(console, "[bold]Quiz topic:[/] ")
                if not topic:
                    return 0
            result = _generate_with_status(pipeline, console, topic, count)
            if not result.ok:
                console.print(
                    "[red]Failed to generate quiz:[/] "
                    f"{escape(str(result.error))}"
                )
                step = _next_step(console, can_retake=False)
                if step == "new":
                    topic = None
                elif step == "quit":
                    return 0
                continue
            session = result.session

        run = run_quiz_session(
            session,
            console,
            input_provider,
            show_explanations=show_explanations,
        )
        if run.exit_action == "submitted" and stats.add_session(run.session):
            render_user_stats(console, stats)

        step = _next_step(console, can_retake=True)
        if step == "retake":
            session = session.restart()
        elif step == "new":
            session = None
            topic = None
        else:
            return 0


def _cmd_version(args: argparse.Namespace, console: Console) -> int:
    try:
        version = metadata.version("quizmaster")
    except metadata.PackageNotFoundError:
        version = "unknown"
    console.print(version)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="quizmaster",
        description="Generate and play multiple-choice quizzes on any topic.",
    )
    sub = p.add_subparsers(dest="command")

    sp_init = sub.add_parser("init", help="Write a config template")
    sp_init.add_argument("--config", type=Path)
    sp_init.add_argument(
        "--force", action="store_true", help="Overwrite an existing config"
    )

    sp_start = sub.add_parser("start", help="Generate and play a quiz")
    sp_start.add_argument("--topic")
    sp_start.add_argument("--count", type=int)
    sp_start.add_argument("--name", default="Player")
    sp_start.add_argument(
        "--tui", action="store_true", help="Use the Textual interface"
    )
    sp_start.add_argument("--explain", dest="explain", action="store_true")
    sp_start.add_argument("--no-explain", dest="explain", action="store_false")
    sp_start.set_defaults(explain=True)
    sp_start.add_argument("--api-key")
    sp_start.add_argument("--config", type=Path)
    sp_start.add_argument("--verbose", action="store_true")

    sp_check = sub.add_parser(
        "check", help="Verify the generation service is reachable"
    )
    sp_check.add_argument("--api-key")
    sp_check.add_argument("--config", type=Path)
    sp_check.add_argument("--verbose", action="store_true")

    sub.add_parser("version", help="Print the installed version")
    return p


_HANDLERS = {
    "init": _cmd_init,
    "start": _cmd_start,
    "check": _cmd_check,
    "version": _cmd_version,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    handler = _HANDLERS.get(args.command or "")
    if handler is None:
        parser.print_help()
        return 2
    console = _make_console()
    try:
        return handler(args, console)
    except (ConfigError, WorkspaceError) as exc:
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 2
