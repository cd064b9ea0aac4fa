"""
Quiz Session Engine.

Drives a single play-through over a pre-built queue of questions,
independent of what the questions are about:

    IDLE -> PLAYING -> FINISHED

Answers pop the head of the queue into the correct or wrong history,
skips rotate it to the back. A short-lived feedback flash is set on
every graded answer and cleared by a timer.

Calls on a finished or empty session are ignored; nothing here raises.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, Protocol, TypeVar

from loguru import logger

P = TypeVar("P")


class QuizStatus(str, Enum):
    IDLE = "IDLE"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"


class AnswerResult(str, Enum):
    CORRECT = "CORRECT"
    WRONG = "WRONG"
    DONT_KNOW = "DONT_KNOW"


class Feedback(str, Enum):
    CORRECT = "CORRECT"
    WRONG = "WRONG"


@dataclass(frozen=True)
class Question(Generic[P]):
    """A question in the queue: the item id, what to show, and the item itself."""

    id: str
    prompt: str
    payload: P


def to_question(item: Any) -> Question:
    """Wrap an item with ``id`` and ``name`` attributes as a question."""
    return Question(id=item.id, prompt=item.name, payload=item)


@dataclass
class QuizHistory(Generic[P]):
    correct: list[Question[P]] = field(default_factory=list)
    wrong: list[Question[P]] = field(default_factory=list)


@dataclass
class QuizStats:
    total: int = 0
    remaining: int = 0
    correct_count: int = 0
    wrong_count: int = 0


@dataclass
class QuizState(Generic[P]):
    """Full state of one play-through."""

    status: QuizStatus = QuizStatus.IDLE
    queue: list[Question[P]] = field(default_factory=list)
    current_question: Optional[Question[P]] = None
    last_wrong: Optional[Question[P]] = None
    history: QuizHistory[P] = field(default_factory=QuizHistory)
    feedback: Optional[Feedback] = None
    score: float = 0
    stats: QuizStats = field(default_factory=QuizStats)


# =============================================================================
# Feedback Timer
# =============================================================================


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


FeedbackScheduler = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer_scheduler(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    """Run ``callback`` once after ``delay_seconds`` on a daemon timer thread."""
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


# =============================================================================
# Session
# =============================================================================


class QuizSession(Generic[P]):
    """
    State machine for one quiz play-through.

    Args:
        questions: Queue snapshot; the session never mutates the caller's list
        score_fn: Score awarded per correctly answered payload
        initial_correct: Questions credited up front (replay of mistakes)
        feedback_clear_ms: Lifetime of the feedback flash
        scheduler: Timer factory for clearing feedback (threading.Timer by default)
    """

    def __init__(
        self,
        questions: Sequence[Question[P]],
        score_fn: Callable[[P], float],
        initial_correct: Iterable[Question[P]] = (),
        feedback_clear_ms: int = 500,
        scheduler: Optional[FeedbackScheduler] = None,
    ):
        self.score_fn = score_fn
        self.feedback_clear_ms = feedback_clear_ms
        self._scheduler = scheduler or thread_timer_scheduler
        self._lock = threading.RLock()
        self._feedback_token = 0
        self._pending_timer: Optional[TimerHandle] = None

        self.initial_correct: list[Question[P]] = list(initial_correct)
        self.state: QuizState[P] = QuizState()
        self._start(list(questions))

    def _start(self, questions: list[Question[P]]) -> None:
        if not questions:
            self.state.status = QuizStatus.FINISHED
            logger.debug("Quiz session started with an empty queue")
            return

        self.state = QuizState(
            status=QuizStatus.PLAYING,
            queue=questions,
            current_question=questions[0],
            history=QuizHistory(correct=list(self.initial_correct)),
            score=sum(self.score_fn(q.payload) for q in self.initial_correct),
            stats=QuizStats(
                total=len(questions) + len(self.initial_correct),
                remaining=len(questions),
                correct_count=len(self.initial_correct),
                wrong_count=0,
            ),
        )
        logger.debug(
            f"Quiz session started: {len(questions)} questions, "
            f"{len(self.initial_correct)} pre-credited"
        )

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def status(self) -> QuizStatus:
        return self.state.status

    @property
    def current_question(self) -> Optional[Question[P]]:
        return self.state.current_question

    @property
    def feedback(self) -> Optional[Feedback]:
        return self.state.feedback

    @property
    def score(self) -> float:
        return self.state.score

    @property
    def stats(self) -> QuizStats:
        return self.state.stats

    @property
    def is_finished(self) -> bool:
        return self.state.status is QuizStatus.FINISHED

    def outcome_ids(self) -> tuple[list[str], list[str]]:
        """
        Ids answered in this session, for the progress store.

        Pre-credited questions are left out: they were not asked again.
        """
        credited = len(self.initial_correct)
        correct = [q.id for q in self.state.history.correct[credited:]]
        wrong = [q.id for q in self.state.history.wrong]
        return correct, wrong

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def advance(self, result: AnswerResult) -> None:
        """Grade the current question and move to the next one."""
        state = self.state
        current = state.current_question
        if current is None:
            return

        try:
            result = AnswerResult(result)
        except ValueError:
            logger.debug(f"Ignoring unknown answer result: {result!r}")
            return
        state.queue = state.queue[1:]

        if result is AnswerResult.CORRECT:
            state.history.correct.append(current)
            state.score += self.score_fn(current.payload)
        else:
            state.history.wrong.append(current)
            state.last_wrong = current

        if not state.queue:
            state.status = QuizStatus.FINISHED
            state.current_question = None
        else:
            state.current_question = state.queue[0]

        state.stats = QuizStats(
            total=state.stats.total,
            remaining=len(state.queue),
            correct_count=len(state.history.correct),
            wrong_count=len(state.history.wrong),
        )

        if result is AnswerResult.DONT_KNOW:
            self._set_feedback(None)
        else:
            self._set_feedback(Feedback(result.value))

    def submit_answer(self, is_correct: bool) -> None:
        self.advance(AnswerResult.CORRECT if is_correct else AnswerResult.WRONG)

    def give_up(self) -> None:
        """Reveal the current question; counts as wrong."""
        self.advance(AnswerResult.DONT_KNOW)

    def skip(self) -> None:
        """Move the current question to the back of the queue."""
        state = self.state
        if state.current_question is None or not state.queue:
            return
        head, *tail = state.queue
        state.queue = [*tail, head]
        state.current_question = state.queue[0]

    def close(self) -> None:
        """Cancel a pending feedback timer."""
        with self._lock:
            self._cancel_pending()

    # -------------------------------------------------------------------------
    # Feedback flash
    # -------------------------------------------------------------------------

    def _cancel_pending(self) -> None:
        if self._pending_timer is not None:
            self._pending_timer.cancel()
            self._pending_timer = None

    def _set_feedback(self, feedback: Optional[Feedback]) -> None:
        with self._lock:
            self._cancel_pending()
            self._feedback_token += 1
            self.state.feedback = feedback
            if feedback is None:
                return
            token = self._feedback_token
            self._pending_timer = self._scheduler(
                self.feedback_clear_ms / 1000,
                lambda: self._clear_feedback(token),
            )

    def _clear_feedback(self, token: int) -> None:
        with self._lock:
            # A newer flash owns the field now
            if token != self._feedback_token:
                return
            self.state.feedback = None
            self._pending_timer = None
