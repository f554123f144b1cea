"""
Configuration manager for WinQuizz settings, scoring rules and backend access.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
from pathlib import Path
import os

from .models import QuizSettings, ScoringRules


class ConfigManager:
    """Manages bot configuration settings, quiz parameters and scoring rules."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = None  # Use all questions by default
    DEFAULT_RANDOM_ORDER = False
    DEFAULT_TIMER_DURATION = 15
    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"

    # Validation limits
    MIN_TIMER_DURATION = 5
    MAX_TIMER_DURATION = 300  # 5 minutes
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_SESSION_DURATION = 10
    MAX_SESSION_DURATION = 3600  # 1 hour
    MIN_REVEAL_DELAY = 0
    MAX_REVEAL_DELAY = 10

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings(timer_duration=self.DEFAULT_TIMER_DURATION)
        self._scoring_rules = ScoringRules()
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._api_base_url: Optional[str] = None
        self._api_token: Optional[str] = None

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current quiz settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(
            question_count=self._global_settings.question_count,
            random_order=self._global_settings.random_order,
            timer_duration=self._global_settings.timer_duration,
            session_duration=self._global_settings.session_duration,
            answer_reveal_delay=self._global_settings.answer_reveal_delay,
            skip_reveal_delay=self._global_settings.skip_reveal_delay
        )

    def get_scoring_rules(self) -> ScoringRules:
        return self._scoring_rules

    def _check_int(self, value: Any, label: str, minimum: int, maximum: int, unit: str = "") -> Optional[Dict[str, Any]]:
        """
        Validate an integer setting.

        Returns:
            An error result dictionary, or None if the value is acceptable
        """
        suffix = f" {unit}" if unit else ""
        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}{suffix}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too low: Minimum is {minimum}{suffix}"
            }

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum}{suffix}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too high: Maximum is {maximum}{suffix}"
            }

        return None

    def set_question_count(self, count: Optional[int]) -> Dict[str, Any]:
        """
        Set the number of questions for quizzes.

        Args:
            count: Number of questions, or None to use all questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if count is None:
            self._global_settings.question_count = None
            self.logger.info("Question count set to use all available questions")
            return {
                'success': True,
                'message': "Question count set to use all available questions",
                'user_message': "✅ Will use all available questions from each quiz"
            }

        error = self._check_int(count, "Question count", self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT)
        if error:
            return error

        self._global_settings.question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> Optional[int]:
        return self._global_settings.question_count

    def set_random_order(self, random_order: bool) -> Dict[str, Any]:
        """
        Set whether questions should be presented in random order.

        Args:
            random_order: True for random order, False for sequential

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(random_order, bool):
            error_msg = f"Random order must be a boolean, got {type(random_order).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(random_order).__name__}"
            }

        self._global_settings.random_order = random_order
        order_type = "random" if random_order else "sequential"
        self.logger.info(f"Question order set to {order_type}")

        return {
            'success': True,
            'message': f"Question order set to {order_type}",
            'user_message': f"✅ Questions will be presented in {order_type} order"
        }

    def get_random_order(self) -> bool:
        return self._global_settings.random_order

    def toggle_random_order(self) -> Dict[str, Any]:
        """
        Toggle the random order setting.

        Returns:
            Dictionary with success status, new value, and user-friendly message
        """
        new_value = not self._global_settings.random_order
        result = self.set_random_order(new_value)
        if result['success']:
            result['new_value'] = new_value
        return result

    def set_timer_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the per-question timer.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._check_int(duration, "Timer duration", self.MIN_TIMER_DURATION, self.MAX_TIMER_DURATION, "seconds")
        if error:
            return error

        self._global_settings.timer_duration = duration
        self.logger.info(f"Timer duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Timer duration set to {duration} seconds",
            'user_message': f"✅ Timer set to {duration} seconds"
        }

    def get_timer_duration(self) -> int:
        return self._global_settings.timer_duration

    def set_session_duration(self, duration: Optional[int]) -> Dict[str, Any]:
        """
        Set the whole-session time limit.

        Args:
            duration: Limit in seconds, or None for one question timer per question

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if duration is None:
            self._global_settings.session_duration = None
            self.logger.info("Session duration derived from question count")
            return {
                'success': True,
                'message': "Session duration derived from question count",
                'user_message': "✅ Session time limit is now one question timer per question"
            }

        error = self._check_int(
            duration, "Session duration", self.MIN_SESSION_DURATION, self.MAX_SESSION_DURATION, "seconds"
        )
        if error:
            return error

        self._global_settings.session_duration = duration
        self.logger.info(f"Session duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Session duration set to {duration} seconds",
            'user_message': f"✅ Session time limit set to {duration} seconds"
        }

    def set_reveal_delays(self, answer_delay: float, skip_delay: float) -> Dict[str, Any]:
        """
        Set how long results stay on screen before the next question.

        Args:
            answer_delay: Seconds after an answer
            skip_delay: Seconds after a skip or timeout

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        for label, value in (("Answer reveal delay", answer_delay), ("Skip reveal delay", skip_delay)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                error_msg = f"{label} must be a number, got {type(value).__name__}"
                self.logger.error(error_msg)
                return {
                    'success': False,
                    'error': error_msg,
                    'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
                }
            if not self.MIN_REVEAL_DELAY <= value <= self.MAX_REVEAL_DELAY:
                error_msg = f"{label} must be between {self.MIN_REVEAL_DELAY} and {self.MAX_REVEAL_DELAY} seconds"
                self.logger.error(error_msg)
                return {
                    'success': False,
                    'error': error_msg,
                    'user_message': f"❌ {error_msg}"
                }

        self._global_settings.answer_reveal_delay = float(answer_delay)
        self._global_settings.skip_reveal_delay = float(skip_delay)
        self.logger.info(f"Reveal delays set to {answer_delay}s (answer) and {skip_delay}s (skip)")
        return {
            'success': True,
            'message': f"Reveal delays set to {answer_delay}s and {skip_delay}s",
            'user_message': f"✅ Results stay visible for {answer_delay}s after answers and {skip_delay}s after skips"
        }

    def set_scoring_rules(
        self,
        base_points: Optional[int] = None,
        wrong_penalty: Optional[int] = None,
        skip_penalty: Optional[int] = None,
        streak_bonuses: Optional[Iterable[Iterable[int]]] = None
    ) -> Dict[str, Any]:
        """
        Replace parts of the point schedule. Omitted values keep their current setting.

        Penalties must not be positive and streak thresholds must be positive
        and unique.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        current = self._scoring_rules
        values = {
            'base_points': current.base_points if base_points is None else base_points,
            'wrong_penalty': current.wrong_penalty if wrong_penalty is None else wrong_penalty,
            'skip_penalty': current.skip_penalty if skip_penalty is None else skip_penalty,
        }

        for key, value in values.items():
            if isinstance(value, bool) or not isinstance(value, int):
                error_msg = f"{key} must be an integer, got {type(value).__name__}"
                self.logger.error(error_msg)
                return {'success': False, 'error': error_msg, 'user_message': f"❌ Invalid scoring value: {key}"}

        if values['base_points'] < 0 or values['wrong_penalty'] > 0 or values['skip_penalty'] > 0:
            error_msg = "Base points must be non-negative and penalties must not be positive"
            self.logger.error(error_msg)
            return {'success': False, 'error': error_msg, 'user_message': f"❌ {error_msg}"}

        bonuses: Tuple[Tuple[int, int], ...] = current.streak_bonuses
        if streak_bonuses is not None:
            try:
                bonuses = tuple(sorted((int(t), int(b)) for t, b in streak_bonuses))
            except (TypeError, ValueError) as e:
                error_msg = f"Streak bonuses must be [threshold, bonus] pairs: {e}"
                self.logger.error(error_msg)
                return {'success': False, 'error': error_msg, 'user_message': "❌ Invalid streak bonus table"}

            thresholds = [t for t, _ in bonuses]
            if any(t < 1 for t in thresholds) or len(set(thresholds)) != len(thresholds):
                error_msg = "Streak thresholds must be positive and unique"
                self.logger.error(error_msg)
                return {'success': False, 'error': error_msg, 'user_message': f"❌ {error_msg}"}

        self._scoring_rules = ScoringRules(streak_bonuses=bonuses, **values)
        self.logger.info(f"Scoring rules set to {self._scoring_rules}")
        return {
            'success': True,
            'message': "Scoring rules updated",
            'user_message': "✅ Scoring rules updated"
        }

    def set_api_settings(self, base_url: Optional[str], token: Optional[str] = None) -> Dict[str, Any]:
        """
        Configure the quiz backend. An empty base URL disables reporting.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if base_url and not base_url.startswith(("http://", "https://")):
            error_msg = f"Backend URL must start with http:// or https://, got {base_url}"
            self.logger.error(error_msg)
            return {'success': False, 'error': error_msg, 'user_message': f"❌ Invalid backend URL: {base_url}"}

        self._api_base_url = base_url or None
        self._api_token = token or None
        state = f"enabled at {self._api_base_url}" if self._api_base_url else "disabled"
        self.logger.info(f"Quiz backend {state}")
        return {
            'success': True,
            'message': f"Quiz backend {state}",
            'user_message': f"✅ Quiz backend {state}"
        }

    def get_api_settings(self) -> Dict[str, Optional[str]]:
        return {'base_url': self._api_base_url, 'token': self._api_token}

    def set_quiz_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory path for quiz files.

        Args:
            directory: Path to quiz files directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            error_msg = f"Quiz directory must be a string, got {type(directory).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            }

        if not directory.strip():
            error_msg = "Quiz directory cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {directory}"
            }

        self._quiz_directory = normalized_path
        self.logger.info(f"Quiz directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Quiz directory set to {normalized_path}",
            'user_message': f"✅ Quiz directory set to {normalized_path}"
        }

    def get_quiz_directory(self) -> str:
        return self._quiz_directory

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            random_order=self.DEFAULT_RANDOM_ORDER,
            timer_duration=self.DEFAULT_TIMER_DURATION
        )
        self._scoring_rules = ScoringRules()
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        issues: List[str] = []
        settings = self._global_settings

        if settings.question_count is not None and not (
                self.MIN_QUESTION_COUNT <= settings.question_count <= self.MAX_QUESTION_COUNT):
            issues.append(f"Invalid question count: {settings.question_count}")

        if not isinstance(settings.random_order, bool):
            issues.append(f"Invalid random order setting: {settings.random_order}")

        if not self.MIN_TIMER_DURATION <= settings.timer_duration <= self.MAX_TIMER_DURATION:
            issues.append(f"Invalid timer duration: {settings.timer_duration}")

        if settings.session_duration is not None and not (
                self.MIN_SESSION_DURATION <= settings.session_duration <= self.MAX_SESSION_DURATION):
            issues.append(f"Invalid session duration: {settings.session_duration}")

        for label, delay in (("answer", settings.answer_reveal_delay), ("skip", settings.skip_reveal_delay)):
            if not self.MIN_REVEAL_DELAY <= delay <= self.MAX_REVEAL_DELAY:
                issues.append(f"Invalid {label} reveal delay: {delay}")

        if not isinstance(self._quiz_directory, str) or not self._quiz_directory.strip():
            issues.append(f"Invalid quiz directory: {self._quiz_directory}")

        return {"valid": not issues, "issues": issues}

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        rules = self._scoring_rules

        question_count_str = str(settings.question_count) if settings.question_count is not None else "all available"
        order_str = "random" if settings.random_order else "sequential"
        session_str = (f"{settings.session_duration} seconds" if settings.session_duration
                       else "timer x questions")
        streak_str = ", ".join(f"{t}+: +{b}" for t, b in rules.streak_bonuses) or "none"

        return (
            f"Quiz Settings:\n"
            f"• Questions: {question_count_str}\n"
            f"• Order: {order_str}\n"
            f"• Timer: {settings.timer_duration} seconds\n"
            f"• Session limit: {session_str}\n"
            f"• Points: +{rules.base_points} correct, {rules.wrong_penalty} wrong, {rules.skip_penalty} skip\n"
            f"• Streak bonuses: {streak_str}\n"
            f"• Quiz Directory: {self._quiz_directory}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Check the configuration for errors and questionable values.

        Returns:
            Dictionary with health status, warnings and errors
        """
        validation_result = self.validate_settings()
        health_check = {
            'healthy': validation_result['valid'],
            'warnings': [],
            'errors': [f"❌ {issue}" for issue in validation_result['issues']]
        }

        quiz_dir = Path(self._quiz_directory)
        if not quiz_dir.exists():
            health_check['warnings'].append(f"⚠️ Quiz directory does not exist: {self._quiz_directory}")
        elif not os.access(quiz_dir, os.R_OK):
            health_check['healthy'] = False
            health_check['errors'].append(f"❌ Cannot read quiz directory: {self._quiz_directory}")

        if self._global_settings.timer_duration < 10:
            health_check['warnings'].append(
                f"⚠️ Short timer duration ({self._global_settings.timer_duration}s) may not give users enough time"
            )

        return health_check
