from typing import List, Optional

from textual.app import App, ComposeResult, ScreenStackError
from textual.containers import Container, Vertical
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Button, Static

from ..generation import GenerationResult, QuizPipeline, Stage
from ..models import Question, QuizSession, UserStats, option_letter

_UI_MISSING = (NoMatches, ScreenStackError)


class QuizApp(App):
    CSS = """
#status { color: $text-muted; }
#choices Button.selected { background: $accent; color: black; }
#footer { height: auto; }
"""
    BINDINGS = [
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("a", "select_a", "Select A"),
        ("b", "select_b", "Select B"),
        ("c", "select_c", "Select C"),
        ("d", "select_d", "Select D"),
        ("r", "reset", "Reset"),
        ("s", "submit", "Submit"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        pipeline: QuizPipeline,
        topic: str,
        count: int,
        *,
        stats: Optional[UserStats] = None,
        show_explanations: bool = True,
    ) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._topic = topic
        self._count = count
        self.stats = stats
        self.show_explanations = show_explanations
        self.session: Optional[QuizSession] = None
        self.result: Optional[GenerationResult] = None
        self.status_text = "Preparing quiz..."

    def compose(self) -> ComposeResult:
        yield Static(self.status_text, id="status")
        yield Container(id="stage")
        with Container(id="footer"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            yield Button("Submit", id="submit")
            yield Static(self._answered_text(), id="answered")

    def on_mount(self) -> None:
        self.run_worker(
            self._generate, thread=True, exclusive=True, group="generation"
        )

    def _generate(self) -> None:
        # Runs on a worker thread; UI updates are marshaled back.
        result = self._pipeline.generate(
            self._topic,
            self._count,
            progress=self.on_progress,
            dispatch=self.call_from_thread,
        )
        self.call_from_thread(self.on_generated, result)

    # Generation callbacks (always invoked on the UI thread)
    def on_progress(self, stage: Stage) -> None:
        self._set_status(stage.label)

    def on_generated(self, result: GenerationResult) -> None:
        self.result = result
        if not result.ok:
            self._set_status(f"Failed to generate quiz: {result.error}")
            return
        self.session = result.session
        note = Stage.READY.label
        if result.skipped:
            note += f" ({len(result.skipped)} invalid question(s) skipped)"
        self._set_status(note)
        self._update_stage()

    # Pure helpers for navigation and selection (testable without running App)
    def current_question(self) -> Optional[Question]:
        if self.session is None:
            return None
        return self.session.current_question

    def next_question(self) -> int:
        if self.session is None:
            return 0
        if self.session.completed:
            return self.session.current_index
        self.session.advance()
        self._update_stage()
        return self.session.current_index

    def prev_question(self) -> int:
        if self.session is None:
            return 0
        if self.session.completed:
            return self.session.current_index
        self.session.retreat()
        self._update_stage()
        return self.session.current_index

    def select_answer(self, key: str) -> bool:
        question = self.current_question()
        if question is None or self.session.completed:
            return False
        option = question.option_for_letter(key)
        if option is None:
            return False
        self.session.submit_answer(option)
        self._update_stage()
        return True

    def submit_quiz(self) -> bool:
        if self.session is None or self.session.completed:
            return False
        self.session.complete()
        if self.stats is not None:
            self.stats.add_session(self.session)
        self._show_results()
        return True

    def results_text(self) -> str:
        if self.session is None:
            return ""
        session = self.session
        lines = [
            session.performance_tier(),
            f"{session.score_percentage:.1f}%",
            f"You scored {session.correct_count} out of "
            f"{session.total_questions}",
            f"Completed in {session.formatted_duration}",
            "",
        ]
        for idx, question in enumerate(session.questions, start=1):
            mark = "✓" if question.is_correct() else "✗"
            lines.append(f"{mark} {idx}. {question.text}")
            lines.append(f"   Answer: {question.correct_answer_text}")
            if self.show_explanations:
                lines.append(f"   {question.explanation}")
        if self.stats is not None:
            lines.append("")
            lines.append(self.stats.summary_line())
        return "\n".join(lines)

    def _answered_text(self) -> str:
        if self.session is None:
            return "Answered: 0/0"
        return (
            f"Answered: {self.session.answered_count}/"
            f"{self.session.total_questions}"
        )

    def _set_status(self, text: str) -> None:
        self.status_text = text
        try:
            self.query_one("#status", Static).update(text)
        except _UI_MISSING:
            return

    def _update_stage(self) -> None:
        question = self.current_question()
        if question is None:
            return
        try:
            stage = self.query_one("#stage", Container)
        except _UI_MISSING:
            return
        stage.remove_children()
        stage.mount(
            QuestionView(
                question,
                index=self.session.current_index + 1,
                total=self.session.total_questions,
            )
        )
        try:
            self.query_one("#answered", Static).update(self._answered_text())
        except _UI_MISSING:
            return

    def _show_results(self) -> None:
        try:
            stage = self.query_one("#stage", Container)
        except _UI_MISSING:
            return
        stage.remove_children()
        stage.mount(
            Static(self.results_text(), id="results", markup=False)
        )

    def action_next(self) -> None:
        self.next_question()

    def action_prev(self) -> None:
        self.prev_question()

    def action_select_a(self) -> None:
        self.select_answer("A")

    def action_select_b(self) -> None:
        self.select_answer("B")

    def action_select_c(self) -> None:
        self.select_answer("C")

    def action_select_d(self) -> None:
        self.select_answer("D")

    def action_reset(self) -> None:
        if self.session is None:
            return
        if self.session.completed:
            # recorded sessions stay untouched; retake a fresh copy
            self.session = self.session.restart()
        else:
            self.session.reset()
        self._update_stage()

    def action_submit(self) -> None:
        self.submit_quiz()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("choice-") and len(bid) == 8:
            self.select_answer(bid[-1])
        elif bid == "submit":
            self.action_submit()
        elif bid == "next":
            self.action_next()
        elif bid == "prev":
            self.action_prev()


class QuestionView(Widget):
    """Render one question with lettered choices, progress and selection."""

    def __init__(self, question: Question, index: int, total: int) -> None:
        super().__init__()
        self.question = question
        self.index = index
        self.total = total

    def compose(self) -> ComposeResult:
        yield Static(self.question.text, id="stem", markup=False)
        with Vertical(id="choices"):
            labels = self.choice_labels()
            for idx, option in enumerate(self.question.options):
                key = option_letter(idx)
                btn = Button(labels[idx], id=f"choice-{key}")
                chosen = self.question.answered and (
                    option == self.question.user_answer
                )
                if chosen:
                    btn.add_class("selected")
                yield btn
        yield Static(f"{self.index}/{self.total}", id="progress")
        yield Static(self.selection_text(), id="feedback")

    def selection_text(self) -> str:
        letter = self.question.letter_for_option(self.question.user_answer)
        return f"Selected: {letter}" if letter else ""

    def choice_labels(self) -> List[str]:
        return [
            f"{option_letter(idx)}) {option}"
            for idx, option in enumerate(self.question.options)
        ]

