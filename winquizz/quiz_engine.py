"""
Quiz engine core logic for WinQuizz.
Handles question selection, session transitions, answer evaluation and the
once-per-second session clock.
"""
import asyncio
import logging
import random
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .models import (
    MAX_OPTIONS, AnswerResult, CompletionReason, Question, QuizSession, QuizSettings,
    ScoringRules, SessionState, Skipped, TickOutcome
)
from .scoring import score_correct, score_incorrect, score_skip

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class InvalidOptionError(ValueError):
    """Raised when a submitted option index does not address the current question."""
    pass


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TimerLifecycleLogger:
    """Structured logging for session timer lifecycle events."""

    @staticmethod
    def log_timer_start(session_key: str, interval: float) -> None:
        """Log session clock start."""
        logger.info(
            f"Session timer: START - Session {session_key}, Interval {interval}s",
            extra={
                'event_type': 'timer_start',
                'session_key': session_key,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(session_key: str, question_remaining: int, total_remaining: int) -> None:
        """Log clock updates (throttled to avoid spam)."""
        if total_remaining % 10 == 0 or question_remaining <= 5:
            logger.debug(
                f"Session timer: TICK - Session {session_key}, Question {question_remaining}s, Total {total_remaining}s",
                extra={
                    'event_type': 'timer_tick',
                    'session_key': session_key,
                    'question_remaining': question_remaining,
                    'total_remaining': total_remaining,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(session_key: str, completion_type: str, ticks: int) -> None:
        """Log the end of a session clock (session over or cancellation)."""
        logger.info(
            f"Session timer: COMPLETED - Session {session_key}, Type {completion_type}, Ticks {ticks}",
            extra={
                'event_type': 'timer_completed',
                'session_key': session_key,
                'completion_type': completion_type,
                'ticks': ticks,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_cleanup_start(session_key: str) -> float:
        """Log start of session task cleanup."""
        cleanup_start_time = time.time()
        logger.info(
            f"Session timer: CLEANUP_START - Session {session_key}",
            extra={
                'event_type': 'timer_cleanup_start',
                'session_key': session_key,
                'timestamp': cleanup_start_time
            }
        )
        return cleanup_start_time

    @staticmethod
    def log_timer_cleanup_complete(session_key: str, cleanup_start_time: float, success: bool) -> None:
        """Log completion of session task cleanup."""
        cleanup_duration = time.time() - cleanup_start_time
        status = "SUCCESS" if success else "FAILED"
        logger.info(
            f"Session timer: CLEANUP_COMPLETE - Session {session_key}, Status {status}, Duration {cleanup_duration:.3f}s",
            extra={
                'event_type': 'timer_cleanup_complete',
                'session_key': session_key,
                'cleanup_duration': cleanup_duration,
                'success': success,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_state_transition(session_key: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log session state transitions."""
        logger.info(
            f"Session: STATE_TRANSITION - Session {session_key}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'session_state_transition',
                'session_key': session_key,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_key: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Session timer: ERROR - Session {session_key}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_key': session_key,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_callback(session_key: str, details: str) -> None:
        """Log a tick or transition that outlived its session."""
        logger.warning(
            f"Session timer: STALE_CALLBACK - Session {session_key}: {details}",
            extra={
                'event_type': 'timer_stale_callback',
                'session_key': session_key,
                'details': details,
                'timestamp': time.time()
            }
        )


class SessionTicker:
    """Cooperative one-second clock that drives a single session."""

    def __init__(self, session_key: str, interval: float = 1.0):
        """Initialize the ticker."""
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._session_key = session_key
        self._interval = interval
        self._tick_count = 0

    async def run(self, tick_callback: Callable[[], Awaitable[bool]]) -> None:
        """
        Call tick_callback once per interval until it returns False or the
        ticker is cancelled.

        Args:
            tick_callback: Coroutine function returning True while the
                session should keep ticking
        """
        self._is_cancelled = False
        TimerLifecycleLogger.log_timer_start(self._session_key, self._interval)

        try:
            completion_type = "cancelled"
            while not self._is_cancelled:
                await asyncio.sleep(self._interval)
                if self._is_cancelled:
                    break

                self._tick_count += 1
                keep_running = await tick_callback()
                if not keep_running:
                    completion_type = "session_over"
                    break

            TimerLifecycleLogger.log_timer_completion(self._session_key, completion_type, self._tick_count)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._session_key, "asyncio_cancelled", self._tick_count)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._session_key,
                "tick_execution_error",
                str(e),
                "run"
            )
            raise

    def start(self, tick_callback: Callable[[], Awaitable[bool]]) -> asyncio.Task:
        """Schedule the ticker on the running event loop."""
        self._task = asyncio.create_task(self.run(tick_callback))
        return self._task

    def cancel(self) -> None:
        """Stop the ticker. No tick fires after this returns."""
        self._is_cancelled = True
        if self._task and not self._task.done() and self._task is not _current_task():
            logger.debug(f"Cancelling ticker task for session {self._session_key}")
            self._task.cancel()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def is_cancelled(self) -> bool:
        """Check if ticker is cancelled."""
        return self._is_cancelled

    @property
    def tick_count(self) -> int:
        return self._tick_count


class QuizEngine:
    """Core quiz engine: question selection, session state machine and timing."""

    CANCEL_TIMEOUT = 2.0  # seconds to wait for cancelled tasks to unwind

    def __init__(self, tick_interval: float = 1.0):
        """Initialize the quiz engine."""
        self.tick_interval = tick_interval
        self._timers: Dict[str, SessionTicker] = {}  # Session key -> ticker
        self._transitions: Dict[str, asyncio.Task] = {}  # Session key -> deferred transition

    # ------------------------------------------------------------------
    # Question selection
    # ------------------------------------------------------------------

    def select_questions(self, questions: Sequence[Question], settings: QuizSettings) -> List[Question]:
        """
        Select and order questions based on quiz settings.

        Args:
            questions: Available questions
            settings: Quiz configuration settings

        Returns:
            List of selected and ordered questions

        Raises:
            ValueError: If questions list is empty
        """
        if not questions:
            raise ValueError("Cannot select questions from empty list")

        selected_questions = list(questions)

        if settings.random_order:
            selected_questions = self.shuffle_questions(selected_questions)

        if settings.question_count is not None:
            selected_questions = self.limit_question_count(selected_questions, settings.question_count)

        return selected_questions

    def shuffle_questions(self, questions: List[Question]) -> List[Question]:
        """Return a new list with questions in random order."""
        shuffled = questions.copy()
        random.shuffle(shuffled)
        return shuffled

    def limit_question_count(self, questions: List[Question], count: int) -> List[Question]:
        """
        Limit the number of questions to the specified count.

        Note:
            If count is greater than available questions, returns all questions.
            If count is less than 1, returns empty list.
        """
        if count < 1:
            return []

        return questions[:count]

    # ------------------------------------------------------------------
    # Session state holder
    # ------------------------------------------------------------------

    def create_session(
        self,
        quiz_name: str,
        questions: Sequence[Question],
        settings: Optional[QuizSettings] = None,
        rules: Optional[ScoringRules] = None,
        channel_id: Optional[int] = None,
        owner_id: Optional[int] = None,
        session_duration: Optional[int] = None
    ) -> QuizSession:
        """
        Build a session in the NOT_STARTED state.

        The total duration is the explicit session_duration, else
        settings.session_duration, else one question clock per question.

        Raises:
            ValueError: If there are no questions, a question is malformed,
                or a duration is not positive
        """
        if not questions:
            raise ValueError("A quiz session needs at least one question")

        settings = settings or QuizSettings()
        rules = rules or ScoringRules()

        if settings.timer_duration <= 0:
            raise ValueError(f"Question timer must be positive, got {settings.timer_duration}")

        for i, question in enumerate(questions):
            if len(question.options) < 2:
                raise ValueError(f"Question {i} needs at least two options")
            if len(question.options) > MAX_OPTIONS:
                raise ValueError(f"Question {i} has more than {MAX_OPTIONS} options")
            if not 0 <= question.correct_index < len(question.options):
                raise ValueError(f"Question {i} has correct index {question.correct_index} out of range")

        total_duration = session_duration or settings.session_duration or len(questions) * settings.timer_duration
        if total_duration <= 0:
            raise ValueError(f"Session duration must be positive, got {total_duration}")

        session = QuizSession(
            quiz_name=quiz_name,
            questions=tuple(questions),
            settings=settings,
            rules=rules,
            total_duration=total_duration,
            channel_id=channel_id,
            owner_id=owner_id
        )
        logger.debug(
            f"Created session {session.session_id} for quiz '{quiz_name}' "
            f"({len(questions)} questions, {total_duration}s total)"
        )
        return session

    # ------------------------------------------------------------------
    # Transition controller
    # ------------------------------------------------------------------

    def begin_session(self, session: QuizSession) -> bool:
        """
        Move a session from NOT_STARTED to the first question and arm both clocks.

        Returns:
            True if the session started, False if it was not NOT_STARTED
        """
        if session.state is not SessionState.NOT_STARTED:
            logger.warning(f"Cannot begin session {session.session_id}: state is {session.state.value}")
            return False

        session.state = SessionState.IN_PROGRESS
        session.current_index = 0
        session.answered = False
        session.last_result = None
        session.question_seconds_remaining = session.settings.timer_duration
        session.total_seconds_remaining = session.total_duration
        session.start_time = datetime.now()

        TimerLifecycleLogger.log_state_transition(
            session.session_id,
            SessionState.NOT_STARTED.value,
            SessionState.IN_PROGRESS.value,
            "question 1"
        )
        return True

    def advance(self, session: QuizSession) -> bool:
        """
        Move past the evaluated current question.

        Returns:
            True if a new question is now current, False if the session
            completed or the current question has not been evaluated yet
        """
        if session.state is not SessionState.IN_PROGRESS or not session.answered:
            return False

        next_index = session.current_index + 1
        if next_index >= len(session.questions):
            self.complete_session(session, CompletionReason.FINISHED)
            return False

        session.current_index = next_index
        session.answered = False
        session.last_result = None
        session.question_seconds_remaining = session.settings.timer_duration

        logger.debug(f"Session {session.session_id} advanced to question {next_index + 1}/{len(session.questions)}")
        return True

    def complete_session(self, session: QuizSession, reason: CompletionReason) -> bool:
        """
        Put a session into its terminal state.

        An already evaluated current question counts as consumed, so
        current_index always equals the number of evaluated questions.

        Returns:
            True if the session was completed now, False if it already was
        """
        if session.state is SessionState.COMPLETED:
            return False

        previous_state = session.state
        if session.answered and session.current_index < len(session.questions):
            session.current_index += 1

        session.state = SessionState.COMPLETED
        session.completion_reason = reason

        TimerLifecycleLogger.log_state_transition(
            session.session_id,
            previous_state.value,
            SessionState.COMPLETED.value,
            reason.value
        )
        return True

    def abandon_session(self, session: QuizSession) -> bool:
        """Tear a session down without finishing it."""
        return self.complete_session(session, CompletionReason.ABANDONED)

    # ------------------------------------------------------------------
    # Answer evaluator
    # ------------------------------------------------------------------

    def submit_answer(self, session: QuizSession, option_index: int) -> Optional[AnswerResult]:
        """
        Evaluate an answer to the current question.

        Args:
            session: Session in progress
            option_index: Zero-based index of the chosen option

        Returns:
            The evaluation result, or None when the session is not in progress
            or the current question was already evaluated

        Raises:
            InvalidOptionError: If option_index does not address an option
        """
        if session.state is not SessionState.IN_PROGRESS or session.answered:
            logger.debug(f"Ignoring answer for session {session.session_id}: question already closed")
            return None

        question = session.current_question
        if (isinstance(option_index, bool) or not isinstance(option_index, int)
                or not 0 <= option_index < len(question.options)):
            raise InvalidOptionError(
                f"Option {option_index!r} is out of range for a question with {len(question.options)} options"
            )

        if option_index == question.correct_index:
            new_streak = session.streak + 1
            result = score_correct(question, session.rules, session.question_seconds_remaining, new_streak)
            session.streak = new_streak
            session.best_streak = max(session.best_streak, new_streak)
            session.correct_count += 1
        else:
            result = score_incorrect(question, session.rules, option_index)
            session.streak = 0

        self._record_result(session, result)
        return result

    def skip_question(self, session: QuizSession, timed_out: bool = False) -> Optional[Skipped]:
        """
        Skip the current question, manually or because its clock ran out.

        Returns:
            The Skipped result, or None if the question was already closed
        """
        if session.state is not SessionState.IN_PROGRESS or session.answered:
            return None

        result = score_skip(session.current_question, session.rules, timed_out)
        session.streak = 0
        self._record_result(session, result)
        return result

    def _record_result(self, session: QuizSession, result: AnswerResult) -> None:
        session.score += result.points
        session.answered = True
        session.last_result = result
        session.history.append(result)
        logger.debug(
            f"Session {session.session_id} question {session.current_index + 1}: "
            f"{type(result).__name__} {result.points:+d}, score {session.score}, streak {session.streak}"
        )

    # ------------------------------------------------------------------
    # Timer driver
    # ------------------------------------------------------------------

    def tick(self, session: QuizSession) -> TickOutcome:
        """
        Advance the session clocks by one second.

        The question clock only runs while the question is open; the total
        clock always runs. Total expiry wins over a simultaneous question
        timeout.
        """
        if session.state is not SessionState.IN_PROGRESS:
            return TickOutcome()

        if not session.answered and session.question_seconds_remaining > 0:
            session.question_seconds_remaining -= 1
        if session.total_seconds_remaining > 0:
            session.total_seconds_remaining -= 1

        TimerLifecycleLogger.log_timer_update(
            session.session_id,
            session.question_seconds_remaining,
            session.total_seconds_remaining
        )

        if session.total_seconds_remaining == 0:
            self.complete_session(session, CompletionReason.TIME_UP)
            return TickOutcome(completed=True)

        if not session.answered and session.question_seconds_remaining == 0:
            return TickOutcome(result=self.skip_question(session, timed_out=True))

        return TickOutcome()

    def start_session_timer(
        self,
        session_key: str,
        tick_callback: Callable[[], Awaitable[bool]]
    ) -> SessionTicker:
        """
        Start the one-second clock for a session, replacing any previous one.

        Must be called from a running event loop.
        """
        existing = self._timers.pop(session_key, None)
        if existing is not None and not existing.is_cancelled:
            TimerLifecycleLogger.log_stale_callback(session_key, "replacing a ticker that was still running")
            existing.cancel()

        ticker = SessionTicker(session_key, self.tick_interval)
        self._timers[session_key] = ticker
        ticker.start(tick_callback)
        return ticker

    def schedule_transition(
        self,
        session_key: str,
        delay: float,
        callback: Callable[[], Awaitable[Any]]
    ) -> asyncio.Task:
        """
        Run callback after delay seconds unless cancelled first.

        Only one deferred transition is pending per session; scheduling a new
        one cancels the previous.
        """
        self.cancel_transition(session_key)

        async def _deferred():
            try:
                await asyncio.sleep(delay)
                if self._transitions.get(session_key) is asyncio.current_task():
                    del self._transitions[session_key]
                await callback()
            except asyncio.CancelledError:
                logger.debug(f"Deferred transition cancelled for session {session_key}")
                raise
            except Exception as e:
                TimerLifecycleLogger.log_timer_error(session_key, "transition_error", str(e), "schedule_transition")
                logger.debug("Transition failure details", exc_info=True)

        task = asyncio.create_task(_deferred())
        self._transitions[session_key] = task
        return task

    def cancel_transition(self, session_key: str) -> bool:
        """Cancel the pending deferred transition for a session, if any."""
        task = self._transitions.pop(session_key, None)
        if task is None:
            return False
        if not task.done() and task is not _current_task():
            task.cancel()
        return True

    async def cancel_session_tasks(self, session_key: str) -> bool:
        """
        Cancel the ticker and any deferred transition of a session and wait
        for them to unwind.

        Returns:
            True if anything was cancelled, False if nothing was registered
        """
        cleanup_start_time = TimerLifecycleLogger.log_timer_cleanup_start(session_key)
        current = _current_task()
        pending_tasks = []

        ticker = self._timers.pop(session_key, None)
        if ticker is not None:
            ticker.cancel()
            if ticker.task and not ticker.task.done() and ticker.task is not current:
                pending_tasks.append(ticker.task)

        transition = self._transitions.pop(session_key, None)
        if transition is not None:
            if not transition.done() and transition is not current:
                transition.cancel()
                pending_tasks.append(transition)

        success = True
        if pending_tasks:
            _, still_pending = await asyncio.wait(pending_tasks, timeout=self.CANCEL_TIMEOUT)
            if still_pending:
                success = False
                TimerLifecycleLogger.log_timer_error(
                    session_key,
                    "cancellation_timeout",
                    f"{len(still_pending)} task(s) did not unwind within {self.CANCEL_TIMEOUT}s",
                    "cancel_session_tasks"
                )

        TimerLifecycleLogger.log_timer_cleanup_complete(session_key, cleanup_start_time, success)
        return ticker is not None or transition is not None

    def get_timer_status(self, session_key: str) -> Optional[dict]:
        """
        Get the status of a session's clock.

        Returns:
            Dictionary with ticker status or None if no ticker is registered
        """
        ticker = self._timers.get(session_key)
        if ticker is None:
            return None
        return {
            'tick_count': ticker.tick_count,
            'is_cancelled': ticker.is_cancelled,
            'transition_pending': session_key in self._transitions
        }

    def has_session_tasks(self, session_key: str) -> bool:
        return session_key in self._timers or session_key in self._transitions
