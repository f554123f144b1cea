"""
Quiz session controller for WinQuizz.
Runs one timed quiz session per Discord channel and routes clock ticks,
answers and transitions between the engine, the view and the result sink.
"""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from .api_client import QuizApiClient, QuizApiError
from .config_manager import ConfigManager
from .data_manager import DataManager
from .models import AnswerResult, Question, QuizSession, QuizSettings, SessionState
from .quiz_engine import InvalidOptionError, QuizEngine, TimerLifecycleLogger


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class InvalidSessionStateError(QuizControllerError):
    """Raised when session is in an invalid state for the requested operation."""
    pass


class NotSessionOwnerError(QuizControllerError):
    """Raised when someone other than the player tries to drive a session."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel has at most one session, owned by the user who started it.
    The controller owns the session clock and the deferred auto-advance for
    every session; the view passed to start_quiz renders what happens and
    must provide the coroutines show_question(session), show_tick(session),
    show_result(session, result) and show_completion(session, summary).
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        api_client: Optional[QuizApiClient] = None,
        quiz_engine: Optional[QuizEngine] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Instance for loading quiz data
            config_manager: Instance for managing configuration
            api_client: Optional result sink for finished sessions
            quiz_engine: Optional engine, mainly for tests that need a fast clock
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.api_client = api_client
        self.quiz_engine = quiz_engine or QuizEngine()

        # Active sessions and their views mapped by channel ID
        self._active_sessions: Dict[int, QuizSession] = {}
        self._views: Dict[int, Any] = {}

        self.logger.info("QuizController initialized")

    # ------------------------------------------------------------------
    # Session lookup
    # ------------------------------------------------------------------

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        """Get the active session for a channel."""
        return self._active_sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        session = self._active_sessions.get(channel_id)
        return session is not None and not session.is_completed

    def get_session_state(self, channel_id: int) -> Optional[SessionState]:
        """
        Get the current state of a channel's session.

        Returns:
            The session state, or None if the channel has no session
        """
        session = self._active_sessions.get(channel_id)
        return session.state if session is not None else None

    def _is_current(self, channel_id: int, session: QuizSession) -> bool:
        return self._active_sessions.get(channel_id) is session

    def _require_session(self, channel_id: int, user_id: Optional[int]) -> QuizSession:
        session = self._active_sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No active quiz in channel {channel_id}")
        if session.state is not SessionState.IN_PROGRESS:
            raise InvalidSessionStateError(f"Quiz in channel {channel_id} is {session.state.value}")
        if user_id is not None and session.owner_id is not None and user_id != session.owner_id:
            raise NotSessionOwnerError(f"User {user_id} does not own the quiz in channel {channel_id}")
        return session

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start_quiz(
        self,
        channel_id: int,
        owner_id: int,
        quiz_name: str,
        view: Any,
        settings: Optional[QuizSettings] = None
    ) -> Dict[str, Any]:
        """
        Start a quiz session in a channel and show its first question.

        Args:
            channel_id: Discord channel identifier
            owner_id: User who plays the session
            quiz_name: Name of the quiz to start
            view: Renderer for this session
            settings: Optional quiz settings, uses global config if None

        Returns:
            Dictionary with operation results and session info
        """
        session = None
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(f"Quiz already running in channel {channel_id}")

            if not self.data_manager.quiz_exists(quiz_name):
                available_quizzes = self.data_manager.get_available_quizzes()
                if not available_quizzes:
                    raise ValueError("No quiz files available. Please add quiz files to the quizzes directory.")
                raise ValueError(f"Quiz '{quiz_name}' not found. Available quizzes: {', '.join(available_quizzes)}")

            quiz = self.data_manager.get_quiz(quiz_name)
            if settings is None:
                settings = self.config_manager.get_quiz_settings()

            selected_questions = self.quiz_engine.select_questions(quiz.questions, settings)
            if not selected_questions:
                raise ValueError("No questions available after applying settings")

            session = self.quiz_engine.create_session(
                quiz_name,
                selected_questions,
                settings=settings,
                rules=self.config_manager.get_scoring_rules(),
                channel_id=channel_id,
                owner_id=owner_id,
                session_duration=quiz.duration_seconds
            )
            session.remote_session_id = self.data_manager.get_remote_session_id(quiz_name)

            self._active_sessions[channel_id] = session
            self._views[channel_id] = view
            self.quiz_engine.begin_session(session)

            self.logger.info(
                f"Started quiz '{quiz_name}' for channel {channel_id}: "
                f"questions={len(selected_questions)}, total={session.total_duration}s",
                extra={
                    'event_type': 'session_started',
                    'channel_id': channel_id,
                    'owner_id': owner_id,
                    'session_id': session.session_id,
                    'timestamp': time.time()
                }
            )

            await view.show_question(session)
            if not self._is_current(channel_id, session):
                raise InvalidSessionStateError("Session was stopped before its first question was shown")
            self.quiz_engine.start_session_timer(
                str(channel_id),
                lambda: self._on_tick(channel_id, session)
            )

            return {
                'success': True,
                'message': f"Started quiz '{quiz_name}' with {len(selected_questions)} questions.",
                'session_info': self.get_session_progress(channel_id)
            }

        except Exception as e:
            if session is not None and self._is_current(channel_id, session):
                await self._discard_session(channel_id, session)
            return self._handle_session_error(channel_id, e, "start_quiz")

    async def submit_answer(
        self,
        channel_id: int,
        user_id: Optional[int],
        option_index: int,
        question_index: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Submit the player's answer to the current question.

        Args:
            question_index: Question the answer was given for; a mismatch
                with the current question means the click is stale

        Returns:
            Dictionary with operation results; 'result' holds the evaluation
        """
        try:
            session = self._require_session(channel_id, user_id)
            if question_index is not None and question_index != session.current_index:
                return self._already_answered()
            question = session.current_question
            result = self.quiz_engine.submit_answer(session, option_index)
        except InvalidOptionError as e:
            self.logger.warning(f"Rejected answer in channel {channel_id}: {e}")
            return {
                'success': False,
                'message': str(e),
                'user_message': "❌ That option does not exist for this question."
            }
        except QuizControllerError as e:
            return self._handle_session_error(channel_id, e, "submit_answer")

        if result is None:
            return self._already_answered()

        time_taken = session.settings.timer_duration - session.question_seconds_remaining
        await self._present_result(channel_id, session, result, session.settings.answer_reveal_delay)
        await self._report_answer(session, question, option_index, time_taken, result)

        return {
            'success': True,
            'message': f"Answer recorded: {result.points:+d} points",
            'result': result,
            'session_info': self.get_session_progress(channel_id)
        }

    async def skip_question(
        self,
        channel_id: int,
        user_id: Optional[int],
        question_index: Optional[int] = None
    ) -> Dict[str, Any]:
        """Skip the current question on behalf of the player."""
        try:
            session = self._require_session(channel_id, user_id)
        except QuizControllerError as e:
            return self._handle_session_error(channel_id, e, "skip_question")

        if question_index is not None and question_index != session.current_index:
            return self._already_answered()

        result = self.quiz_engine.skip_question(session)
        if result is None:
            return self._already_answered()

        await self._present_result(channel_id, session, result, session.settings.skip_reveal_delay)

        return {
            'success': True,
            'message': f"Question skipped: {result.points:+d} points",
            'result': result,
            'session_info': self.get_session_progress(channel_id)
        }

    async def stop_quiz(self, channel_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Abandon the channel's session. Abandoned sessions are never reported.

        Args:
            channel_id: Discord channel identifier
            user_id: Requesting user; None skips the ownership check

        Returns:
            Dictionary with operation results and final session info
        """
        session = self._active_sessions.get(channel_id)
        if session is None:
            return {
                'success': False,
                'message': "No active quiz to stop in this channel",
                'user_message': "ℹ️ No active quiz found in this channel"
            }

        if user_id is not None and session.owner_id is not None and user_id != session.owner_id:
            return self._handle_session_error(
                channel_id,
                NotSessionOwnerError(f"User {user_id} does not own the quiz in channel {channel_id}"),
                "stop_quiz"
            )

        session_info = self.get_session_progress(channel_id)
        await self._discard_session(channel_id, session)

        return {
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': session_info
        }

    async def shutdown(self) -> int:
        """
        Abandon every active session and cancel its tasks.

        Returns:
            Number of sessions torn down
        """
        sessions = list(self._active_sessions.items())
        for channel_id, session in sessions:
            await self._discard_session(channel_id, session)

        if sessions:
            self.logger.info(f"Shut down {len(sessions)} active sessions")
        return len(sessions)

    # ------------------------------------------------------------------
    # Clock and transition callbacks
    # ------------------------------------------------------------------

    async def _on_tick(self, channel_id: int, session: QuizSession) -> bool:
        """Advance the session clocks; returns False once the ticker should stop."""
        if not self._is_current(channel_id, session):
            TimerLifecycleLogger.log_stale_callback(str(channel_id), "tick for a session that is no longer active")
            return False

        outcome = self.quiz_engine.tick(session)

        if outcome.completed:
            await self._finalize_session(channel_id, session)
            return False

        if outcome.result is not None:
            await self._present_result(channel_id, session, outcome.result, session.settings.skip_reveal_delay)
        else:
            await self._notify_view(channel_id, 'show_tick', session)

        return not session.is_completed

    async def _on_advance(self, channel_id: int, session: QuizSession) -> None:
        if not self._is_current(channel_id, session):
            TimerLifecycleLogger.log_stale_callback(str(channel_id), "transition for a session that is no longer active")
            return

        if self.quiz_engine.advance(session):
            await self._notify_view(channel_id, 'show_question', session)
        elif session.is_completed:
            await self._finalize_session(channel_id, session)

    async def _present_result(
        self,
        channel_id: int,
        session: QuizSession,
        result: AnswerResult,
        delay: float
    ) -> None:
        await self._notify_view(channel_id, 'show_result', session, result)
        if self._is_current(channel_id, session) and not session.is_completed:
            self.quiz_engine.schedule_transition(
                str(channel_id),
                delay,
                lambda: self._on_advance(channel_id, session)
            )

    async def _notify_view(self, channel_id: int, method: str, *args) -> None:
        view = self._views.get(channel_id)
        if view is None:
            return
        try:
            await getattr(view, method)(*args)
        except Exception as e:
            self.logger.error(f"View {method} failed for channel {channel_id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Completion and teardown
    # ------------------------------------------------------------------

    def build_summary(self, session: QuizSession) -> Dict[str, Any]:
        """Build the final summary of a completed session."""
        return {
            'session_id': session.remote_session_id or session.session_id,
            'local_session_id': session.session_id,
            'quiz_name': session.quiz_name,
            'channel_id': session.channel_id,
            'owner_id': session.owner_id,
            'final_score': session.score,
            'correct_answers': session.correct_count,
            'questions_answered': session.current_index,
            'total_questions': len(session.questions),
            'best_streak': session.best_streak,
            'total_time': session.elapsed_seconds,
            'completion_reason': session.completion_reason.value if session.completion_reason else None
        }

    async def _finalize_session(self, channel_id: int, session: QuizSession) -> None:
        """Cancel tasks, report and announce a session that finished or ran out of time."""
        if not self._is_current(channel_id, session):
            return

        await self.quiz_engine.cancel_session_tasks(str(channel_id))
        view = self._views.pop(channel_id, None)
        del self._active_sessions[channel_id]

        summary = self.build_summary(session)
        self.logger.info(
            f"Quiz '{session.quiz_name}' completed in channel {channel_id}: "
            f"score={summary['final_score']}, reason={summary['completion_reason']}",
            extra={
                'event_type': 'session_completed',
                'channel_id': channel_id,
                'session_id': session.session_id,
                'final_score': summary['final_score'],
                'completion_reason': summary['completion_reason'],
                'timestamp': time.time()
            }
        )

        await self._report_result(summary)

        if view is not None:
            try:
                await view.show_completion(session, summary)
            except Exception as e:
                self.logger.error(f"Failed to show completion for channel {channel_id}: {e}", exc_info=True)

    async def _discard_session(self, channel_id: int, session: QuizSession) -> None:
        self.quiz_engine.abandon_session(session)
        timer_cancelled = await self.quiz_engine.cancel_session_tasks(str(channel_id))
        if self._is_current(channel_id, session):
            del self._active_sessions[channel_id]
        self._views.pop(channel_id, None)

        self.logger.info(
            f"Stopped and cleaned up session for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )

    async def _report_result(self, summary: Dict[str, Any]) -> bool:
        if self.api_client is None or not self.api_client.enabled:
            self.logger.debug(f"Result reporting disabled, keeping result for session {summary['session_id']} local")
            return False
        try:
            await self.api_client.report_result(summary)
            return True
        except QuizApiError as e:
            self.logger.warning(f"Failed to report result for session {summary['session_id']}: {e}")
            return False

    async def _report_answer(
        self,
        session: QuizSession,
        question: Question,
        option_index: int,
        time_taken: int,
        result: AnswerResult
    ) -> bool:
        if session.remote_session_id is None or self.api_client is None or not self.api_client.enabled:
            return False

        try:
            await self.api_client.report_answer(
                session.remote_session_id, question, option_index, time_taken, result
            )
            return True
        except QuizApiError as e:
            self.logger.warning(f"Failed to report answer for session {session.remote_session_id}: {e}")
            return False

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a channel's session.

        Returns:
            Dictionary with progress info, None if no session
        """
        session = self._active_sessions.get(channel_id)

        if session is None:
            return None

        total_questions = len(session.questions)
        return {
            'quiz_name': session.quiz_name,
            'current_question': min(session.current_index + 1, total_questions),
            'total_questions': total_questions,
            'state': session.state.value,
            'owner_id': session.owner_id,
            'score': session.score,
            'streak': session.streak,
            'best_streak': session.best_streak,
            'correct_answers': session.correct_count,
            'question_seconds_remaining': session.question_seconds_remaining,
            'total_seconds_remaining': session.total_seconds_remaining,
            'answered': session.answered,
            'start_time': session.start_time,
            'settings': {
                'question_count': session.settings.question_count,
                'random_order': session.settings.random_order,
                'timer_duration': session.settings.timer_duration
            }
        }

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of the session status.

        Returns:
            Formatted string describing the session status
        """
        session_info = self.get_session_progress(channel_id)

        if session_info is None:
            return "No active quiz session in this channel."

        status_parts = [
            f"Quiz: {session_info['quiz_name']}",
            f"Progress: {session_info['current_question']}/{session_info['total_questions']}",
            f"Score: {session_info['score']}",
            f"Streak: {session_info['streak']}",
            f"Question timer: {session_info['question_seconds_remaining']}s",
            f"Time left: {session_info['total_seconds_remaining']}s"
        ]

        duration = datetime.now() - session_info['start_time']
        minutes = int(duration.total_seconds() // 60)
        seconds = int(duration.total_seconds() % 60)
        status_parts.append(f"Duration: {minutes}m {seconds}s")

        return " | ".join(status_parts)

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        """
        Get information about all active sessions.

        Returns:
            Dictionary mapping channel IDs to session progress info
        """
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id, session in self._active_sessions.items()
            if not session.is_completed
        }

    def get_available_quizzes(self) -> List[str]:
        return self.data_manager.get_available_quizzes()

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------

    def _already_answered(self) -> Dict[str, Any]:
        return {
            'success': False,
            'message': "Question already answered",
            'user_message': "ℹ️ This question has already been answered."
        }

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and turn it into a result dictionary.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error details and a user-facing message
        """
        if isinstance(error, QuizControllerError):
            self.logger.warning(f"{operation} rejected for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'message': str(error),
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running in this channel. Please stop it first with `/stop`."

        elif isinstance(error, SessionNotFoundError):
            return "❌ No active quiz found in this channel. Start a quiz with `/start`."

        elif isinstance(error, NotSessionOwnerError):
            return "❌ Only the player who started this quiz can do that."

        elif isinstance(error, InvalidSessionStateError):
            return "❌ This quiz is no longer accepting answers."

        elif "quiz" in str(error).lower() and "not found" in str(error).lower():
            return f"❌ {error}"

        elif "question" in str(error).lower():
            return "❌ Error loading quiz questions. Please try a different quiz."

        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."
