# topic_quiz/client/session.py
"""
Quiz session controller.

Owns the question list, the current position, the recorded answers, the
score, the dedup ledger and the single countdown timer of one quiz run, and
moves between the SETUP, ACTIVE and FINISHED states. Rendering is delegated
to a SessionListener so the controller can be driven by any front end (or a
test) from a running asyncio loop.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from topic_quiz.core.errors import (
    DuplicateExhaustion,
    GenerationInProgress,
    ParseError,
    QuizError,
    ValidationError,
)
from topic_quiz.core.models import Question
from topic_quiz.core.normalizer import normalize_items

from .feedback import FEEDBACK_DELAY_SECONDS, Feedback, annotate, build_feedback
from .ledger import QuestionLedger
from .timer import QUESTION_SECONDS, CountdownTimer, urgency_for

logger = logging.getLogger("quiz.session")

MIN_COUNT = 1
MAX_COUNT = 20
DEFAULT_MORE_COUNT = 5


class SessionState(Enum):
    SETUP = "setup"
    ACTIVE = "active"
    FINISHED = "finished"


class QuestionSource(Protocol):
    async def fetch(self, topic: str, count: int, used_questions_text: str = "") -> List[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class QuestionView:
    position: int           # 0-based
    total: int
    text: str
    options: Tuple[str, ...]
    progress_percent: float
    selected_index: Optional[int] = None
    marks: Dict[int, str] = field(default_factory=dict)
    locked: bool = False


@dataclass(frozen=True)
class QuizStats:
    total: int
    correct: int
    wrong: int
    percent: int
    elapsed_seconds: int

    @property
    def time_taken(self) -> str:
        mins, secs = divmod(self.elapsed_seconds, 60)
        return f"{mins}:{secs:02d}"


@dataclass
class FetchReport:
    requested: int
    added: int = 0
    duplicates: int = 0
    rounds: int = 0
    stale: bool = False
    exhausted: bool = False

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - self.added)


class SessionListener:
    """No-op rendering hooks; front ends override what they display."""

    def on_loading(self, active: bool, message: str = "") -> None:
        pass

    def on_question(self, view: QuestionView) -> None:
        pass

    def on_tick(self, remaining: int, urgency: str) -> None:
        pass

    def on_feedback(self, feedback: Feedback) -> None:
        pass

    def on_questions_added(self, added: int, total: int) -> None:
        pass

    def on_notice(self, message: str) -> None:
        pass

    def on_finished(self, stats: QuizStats) -> None:
        pass


def compute_stats(score: int, total: int, started_at: float, finished_at: float) -> QuizStats:
    # half-up rounding: 2.5 -> 3
    percent = (200 * score + total) // (2 * total) if total else 0
    elapsed = max(1, math.floor(finished_at - started_at))
    return QuizStats(
        total=total,
        correct=score,
        wrong=total - score,
        percent=percent,
        elapsed_seconds=elapsed,
    )


def _validate_count(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or not MIN_COUNT <= count <= MAX_COUNT:
        raise ValidationError(f"Please choose between {MIN_COUNT} and {MAX_COUNT} questions.")
    return count


def _clamp_count(count: Any) -> int:
    try:
        value = int(count)
    except (TypeError, ValueError):
        value = DEFAULT_MORE_COUNT
    return max(MIN_COUNT, min(MAX_COUNT, value))


class QuizSession:
    def __init__(
        self,
        source: QuestionSource,
        listener: Optional[SessionListener] = None,
        *,
        question_seconds: int = QUESTION_SECONDS,
        tick_interval: float = 1.0,
        feedback_delay: float = FEEDBACK_DELAY_SECONDS,
        topup_rounds: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self.listener = listener or SessionListener()
        self.feedback_delay = feedback_delay
        self.topup_rounds = topup_rounds
        self._clock = clock

        self.topic: str = ""
        self.count: int = DEFAULT_MORE_COUNT
        self.questions: List[Question] = []
        self.ledger = QuestionLedger()
        self.current_index = 0
        self.answers: Dict[int, Optional[int]] = {}
        self.score = 0
        self.started_at: Optional[float] = None
        self.state = SessionState.SETUP
        self.stats: Optional[QuizStats] = None
        self.is_loading = False

        self._generation = 0
        self._advance_task: Optional[asyncio.Task] = None
        self._timer = CountdownTimer(
            duration=question_seconds,
            on_tick=self._on_tick,
            on_expire=self._on_timer_expired,
            interval=tick_interval,
            name=f"session-{id(self):x}",
        )

    # ---------- read-only helpers ----------

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def current_view(self) -> Optional[QuestionView]:
        question = self.current_question
        if question is None:
            return None
        pos = self.current_index
        answered = pos in self.answers
        selected = self.answers.get(pos)
        return QuestionView(
            position=pos,
            total=len(self.questions),
            text=question.text,
            options=question.options,
            progress_percent=(pos + 1) / len(self.questions) * 100,
            selected_index=selected,
            marks=annotate(question, selected) if answered else {},
            locked=answered,
        )

    # ---------- transitions ----------

    async def start(self, topic: str, count: int) -> FetchReport:
        if self.is_loading:
            raise GenerationInProgress("Questions are still being generated.")
        topic = (topic or "").strip()
        if not topic:
            raise ValidationError("Please enter a topic.")
        count = _validate_count(count)

        self._stop_clocks()
        self._generation += 1
        self.topic, self.count = topic, count
        self.questions = []
        self.ledger.clear()
        self._reset_progress()
        self.state = SessionState.SETUP

        report = await self._fetch_and_append(count)
        if report.stale:
            return report

        self.started_at = self._clock()
        self.state = SessionState.ACTIVE
        logger.info(f"Quiz on {topic!r} started with {len(self.questions)} question(s)")
        self._show_current()
        return report

    def submit_answer(self, selected_index: Optional[int]) -> Optional[Feedback]:
        question = self.current_question
        if self.state is not SessionState.ACTIVE or question is None:
            return None
        pos = self.current_index
        if pos in self.answers:
            logger.debug(f"Question {pos} already answered; ignoring selection {selected_index}")
            return None
        if selected_index is not None and not 0 <= selected_index < len(question.options):
            raise ValidationError(f"Option {selected_index} does not exist.")

        self._timer.stop()
        self.answers[pos] = selected_index
        feedback = build_feedback(pos, question, selected_index)
        self.score += feedback.score_delta
        self.listener.on_feedback(feedback)
        self._schedule_advance(pos)
        return feedback

    def advance(self) -> None:
        if self.state is not SessionState.ACTIVE:
            return
        self._stop_clocks()
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
            self._show_current()
        else:
            self._finish()

    def retreat(self) -> bool:
        if self.state is not SessionState.ACTIVE or self.current_index <= 0:
            return False
        self._stop_clocks()
        self.current_index -= 1
        self._show_current()
        return True

    async def append_more(self, count: Any = DEFAULT_MORE_COUNT) -> FetchReport:
        if not self.topic:
            raise ValidationError("Start a quiz first (choose a topic).")
        if self.is_loading:
            raise GenerationInProgress("Questions are still being generated.")
        count = _clamp_count(count)

        report = await self._fetch_and_append(count)
        if not report.stale and report.added:
            self.listener.on_questions_added(report.added, len(self.questions))
        return report

    async def restart(self) -> Optional[FetchReport]:
        if self.is_loading:
            raise GenerationInProgress("Questions are still being generated.")
        if not self.questions:
            if not self.topic:
                raise ValidationError("Start a quiz first (choose a topic).")
            return await self.start(self.topic, self.count)

        self._stop_clocks()
        self._reset_progress()
        self.started_at = self._clock()
        self.state = SessionState.ACTIVE
        logger.info(f"Quiz on {self.topic!r} restarted")
        self._show_current()
        return None

    def reset(self) -> None:
        """Back to SETUP, dropping questions and any response still in flight."""
        self._stop_clocks()
        self._generation += 1
        self.questions = []
        self.ledger.clear()
        self._reset_progress()
        self.state = SessionState.SETUP
        if self.is_loading:
            self.is_loading = False
            self.listener.on_loading(False)

    # ---------- internals ----------

    def _reset_progress(self) -> None:
        self.current_index = 0
        self.answers = {}
        self.score = 0
        self.stats = None

    def _stop_clocks(self) -> None:
        self._timer.stop()
        task, self._advance_task = self._advance_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _show_current(self) -> None:
        view = self.current_view()
        if view is None:
            return
        self.listener.on_question(view)
        self._timer.start()

    def _finish(self) -> None:
        self._stop_clocks()
        self.stats = compute_stats(self.score, len(self.questions), self.started_at or self._clock(), self._clock())
        self.state = SessionState.FINISHED
        logger.info(
            f"Quiz on {self.topic!r} finished: {self.stats.correct}/{self.stats.total} "
            f"({self.stats.percent}%) in {self.stats.time_taken}"
        )
        self.listener.on_finished(self.stats)

    def _on_tick(self, remaining: int) -> None:
        self.listener.on_tick(remaining, urgency_for(remaining))

    async def _on_timer_expired(self) -> None:
        if self.state is not SessionState.ACTIVE:
            return
        if self.current_index in self.answers:
            # revisited question: nothing left to score
            self.advance()
            return
        logger.info(f"Time is up on question {self.current_index}")
        self.submit_answer(None)

    def _schedule_advance(self, position: int) -> None:
        if self._advance_task is not None and not self._advance_task.done():
            self._advance_task.cancel()
        if self.feedback_delay <= 0:
            self._advance_task = None
            self.advance()
            return
        self._advance_task = asyncio.get_running_loop().create_task(
            self._advance_after(position), name="quiz-auto-advance"
        )

    async def _advance_after(self, position: int) -> None:
        await asyncio.sleep(self.feedback_delay)
        self._advance_task = None
        if self.state is SessionState.ACTIVE and self.current_index == position:
            self.advance()

    def _set_loading(self, active: bool) -> None:
        self.is_loading = active
        self.listener.on_loading(active, "Generating questions…" if active else "")

    async def _fetch_and_append(self, count: int) -> FetchReport:
        generation = self._generation
        report = FetchReport(requested=count)
        usable_seen = False
        self._set_loading(True)
        try:
            needed = count
            while True:
                directive = self.ledger.build_exclusion_directive()
                try:
                    items = await self._source.fetch(self.topic, needed, directive)
                except QuizError as e:
                    if generation != self._generation:
                        logger.info(f"Ignoring failure of superseded request: {e.message}")
                        report.stale = True
                        return report
                    if report.rounds == 0:
                        raise
                    logger.warning(f"Follow-up request failed, keeping {report.added} question(s): {e.message}")
                    break
                if generation != self._generation:
                    logger.warning(f"Dropping provider response for superseded session round {generation}")
                    report.stale = True
                    return report

                report.rounds += 1
                candidates = normalize_items(items, needed)
                usable_seen = usable_seen or bool(candidates)
                accepted, added = self.ledger.record_and_filter(candidates, self.questions)
                self.questions.extend(accepted)
                report.added += added
                report.duplicates += len(candidates) - added

                needed = count - report.added
                if needed <= 0 or added == 0 or report.rounds > self.topup_rounds:
                    break
                logger.info(f"Only {report.added}/{count} new question(s); requesting {needed} more")
        finally:
            if generation == self._generation:
                self._set_loading(False)

        if report.added == 0:
            if not usable_seen:
                raise ParseError("Server returned no usable questions.")
            if not self.questions:
                raise DuplicateExhaustion(
                    "No new unique questions were generated for that topic. Try a different topic.",
                    hard=True,
                )
            report.exhausted = True
            logger.warning("Server returned duplicates; no new questions added.")
            self.listener.on_notice("No new questions were added; the server only returned repeats.")
        elif report.shortfall:
            logger.warning(f"Returning short: {report.added}/{count} new question(s) after {report.rounds} round(s)")
        return report
