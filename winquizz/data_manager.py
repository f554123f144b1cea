"""
Data manager for quiz definitions.
Loads JSON quiz files, validates them, and keeps the built-in demo quizzes
and quizzes fetched from the backend in one registry.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .demo_quizzes import DEMO_QUIZZES
from .models import MAX_OPTIONS, Question, Quiz


class QuizFormatError(ValueError):
    """Raised when quiz data does not have the expected structure."""
    pass


class DataManager:
    """Manages loading and validation of quiz definitions."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, quiz_directory: str = "./quizzes/", include_demo_quizzes: bool = True):
        """
        Initialize DataManager with quiz directory path.

        Args:
            quiz_directory: Path to directory containing JSON quiz files
            include_demo_quizzes: Register the built-in demo quizzes on load
        """
        self.quiz_directory = Path(quiz_directory)
        self.include_demo_quizzes = include_demo_quizzes
        self.loaded_quizzes: Dict[str, Quiz] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self.fallback_quiz_created = False
        self._remote_sessions: Dict[str, str] = {}  # quiz name -> backend session id

    def load_quiz_files(self) -> Dict[str, Quiz]:
        """
        Load all JSON files from the quiz directory, then register the demo quizzes.

        Errors are collected in get_load_errors() instead of being raised.

        Returns:
            Dictionary mapping quiz names to Quiz objects
        """
        self.loaded_quizzes.clear()
        self._remote_sessions.clear()
        self.load_errors.clear()
        self.fallback_quiz_created = False

        self._load_directory()

        if self.include_demo_quizzes:
            for name, data in DEMO_QUIZZES.items():
                if name not in self.loaded_quizzes:
                    self.register_quiz(self.parse_quiz(name, data))

        return self.loaded_quizzes

    def _load_directory(self) -> None:
        directory_error = self._ensure_quiz_directory()
        if directory_error:
            self.load_errors.append(directory_error)
            self._create_fallback_quiz()
            return

        try:
            json_files = sorted(self.quiz_directory.glob("*.json"))
        except OSError as e:
            self.load_errors.append(f"System error scanning {self.quiz_directory}: {e}")
            self._create_fallback_quiz()
            return

        if not json_files:
            self.logger.warning(f"No JSON files found in {self.quiz_directory}")
            self.load_errors.append(f"No quiz files found in {self.quiz_directory}")
            self._create_sample_quiz()
            return

        successful_loads = 0
        for json_file in json_files:
            error = self._load_quiz_file_safely(json_file)
            if error is None:
                successful_loads += 1
            else:
                self.load_errors.append(f"{json_file.name}: {error}")

        if successful_loads == 0:
            self.logger.error("No quiz files could be loaded successfully")
            self.load_errors.append("All quiz files failed to load")
            self._create_fallback_quiz()
            return

        self.logger.info(f"Successfully loaded {successful_loads} quiz files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

    def parse_quiz(self, name: str, data: Any) -> Quiz:
        """
        Validate quiz data and build a Quiz.

        Expected structure:
        {
            "title": str,                 # optional, defaults to name
            "description": str,           # optional
            "duration_seconds": int,      # optional session cap
            "questions": [
                {
                    "question": str,
                    "options": [str, ...],   # at least two
                    "correct": int,          # zero-based option index
                    "explanation": str,      # optional
                    "points": int,           # optional base credit override
                    "id": str                # optional
                }
            ]
        }

        Backend sessions use question_text_english, correct_answer and
        explanation_english for the same fields; both spellings are accepted.

        Raises:
            QuizFormatError: If the data does not match the structure
        """
        if not isinstance(data, dict):
            raise QuizFormatError("Quiz data must be a JSON object")

        questions_data = data.get("questions")
        if not isinstance(questions_data, list):
            raise QuizFormatError("Quiz data must contain a 'questions' array")
        if not questions_data:
            raise QuizFormatError("Questions array cannot be empty")

        questions = tuple(self._parse_question(i, q) for i, q in enumerate(questions_data))

        duration = data.get("duration_seconds")
        if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0):
            raise QuizFormatError("'duration_seconds' must be a positive integer")

        title = data.get("title") or name
        return Quiz(
            name=name,
            title=str(title),
            questions=questions,
            duration_seconds=duration,
            description=str(data.get("description") or "")
        )

    def _parse_question(self, i: int, question_data: Any) -> Question:
        if not isinstance(question_data, dict):
            raise QuizFormatError(f"Question {i} must be an object")

        text = question_data.get("question", question_data.get("question_text_english"))
        if not isinstance(text, str) or not text.strip():
            raise QuizFormatError(f"Question {i} missing 'question' text")

        options = question_data.get("options")
        if not isinstance(options, list) or len(options) < 2:
            raise QuizFormatError(f"Question {i} needs an 'options' array with at least two entries")
        if len(options) > MAX_OPTIONS:
            raise QuizFormatError(f"Question {i} has {len(options)} options, at most {MAX_OPTIONS} are supported")
        if not all(isinstance(option, str) for option in options):
            raise QuizFormatError(f"Question {i} options must be strings")

        correct = question_data.get("correct", question_data.get("correct_answer"))
        if isinstance(correct, bool) or not isinstance(correct, int):
            raise QuizFormatError(f"Question {i} missing integer 'correct' index")
        if not 0 <= correct < len(options):
            raise QuizFormatError(f"Question {i} 'correct' index {correct} is out of range")

        points = question_data.get("points")
        if points is not None and (isinstance(points, bool) or not isinstance(points, int)):
            raise QuizFormatError(f"Question {i} 'points' must be an integer")

        question_id = question_data.get("id")
        return Question(
            text=text,
            options=tuple(options),
            correct_index=correct,
            explanation=question_data.get("explanation", question_data.get("explanation_english")),
            points=points,
            question_id=str(question_id) if question_id is not None else None
        )

    def register_quiz(self, quiz: Quiz, remote_session_id: Optional[str] = None) -> None:
        """Add or replace a quiz in the registry."""
        self.loaded_quizzes[quiz.name] = quiz
        if remote_session_id is not None:
            self._remote_sessions[quiz.name] = remote_session_id
        else:
            self._remote_sessions.pop(quiz.name, None)
        self.logger.info(f"Registered quiz '{quiz.name}' with {len(quiz.questions)} questions")

    def register_remote_quiz(self, session_id: str, data: Any) -> Quiz:
        """
        Register a quiz fetched from the backend under the name remote-<session_id>.

        Raises:
            QuizFormatError: If the backend data is not a valid quiz
        """
        quiz = self.parse_quiz(f"remote-{session_id}", data)
        self.register_quiz(quiz, remote_session_id=session_id)
        return quiz

    def get_available_quizzes(self) -> List[str]:
        return list(self.loaded_quizzes.keys())

    def get_quiz(self, quiz_name: str) -> Optional[Quiz]:
        return self.loaded_quizzes.get(quiz_name)

    def get_quiz_questions(self, quiz_name: str) -> Optional[List[Question]]:
        """
        Retrieve questions for a specific quiz.

        Returns:
            List of Question objects for the quiz, or None if quiz not found
        """
        quiz = self.loaded_quizzes.get(quiz_name)
        return list(quiz.questions) if quiz else None

    def get_remote_session_id(self, quiz_name: str) -> Optional[str]:
        return self._remote_sessions.get(quiz_name)

    def quiz_exists(self, quiz_name: str) -> bool:
        return quiz_name in self.loaded_quizzes

    def get_quiz_count(self) -> int:
        return len(self.loaded_quizzes)

    def get_question_count(self, quiz_name: str) -> int:
        """
        Get the number of questions in a specific quiz.

        Returns:
            Number of questions in the quiz, or 0 if quiz not found
        """
        quiz = self.loaded_quizzes.get(quiz_name)
        return len(quiz.questions) if quiz else 0

    def _ensure_quiz_directory(self) -> Optional[str]:
        """
        Make sure the quiz directory exists and is readable.

        Returns:
            An error message, or None if the directory is usable
        """
        try:
            if not self.quiz_directory.exists():
                parent_dir = self.quiz_directory.parent
                parent_dir.mkdir(parents=True, exist_ok=True)
                if not os.access(parent_dir, os.W_OK):
                    return f"Permission denied: Cannot write to {parent_dir}"

                self.quiz_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created quiz directory: {self.quiz_directory}")

            if not os.access(self.quiz_directory, os.R_OK):
                return f"Permission denied: Cannot read from {self.quiz_directory}"

            return None

        except PermissionError:
            return f"Permission denied: Cannot access {self.quiz_directory}"
        except OSError as e:
            return f"System error accessing {self.quiz_directory}: {e}"

    def _load_quiz_file_safely(self, json_file: Path) -> Optional[str]:
        """
        Load a single quiz file.

        Returns:
            An error message, or None if the quiz was registered
        """
        try:
            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return (f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                        f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB")

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self.register_quiz(self.parse_quiz(json_file.stem, data))
            return None

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return f"Invalid JSON: {e}"
        except UnicodeDecodeError as e:
            self.logger.error(f"Invalid encoding in {json_file}: {e}")
            return f"Invalid encoding: {e}"
        except QuizFormatError as e:
            self.logger.error(f"Invalid quiz structure in {json_file}: {e}")
            return str(e)
        except PermissionError:
            return "Permission denied"
        except OSError as e:
            return f"System error: {e}"
        except Exception as e:
            self.logger.error(f"Unexpected error loading {json_file}: {e}")
            return f"Unexpected error: {e}"

    def _create_sample_quiz(self) -> None:
        """Write a sample quiz file into an empty quiz directory and load it."""
        sample_quiz_data = {
            "title": "Sample Quiz",
            "description": "Edit or replace this file to add your own questions.",
            "questions": [
                {
                    "question": "What is the capital of India?",
                    "options": ["Mumbai", "Delhi", "Kolkata", "Chennai"],
                    "correct": 1,
                    "explanation": "New Delhi is the capital of India."
                },
                {
                    "question": "What is 2 + 2?",
                    "options": ["3", "4", "5", "22"],
                    "correct": 1
                },
                {
                    "question": "What programming language is this bot written in?",
                    "options": ["Python", "Java", "Go", "Ruby"],
                    "correct": 0
                }
            ]
        }

        sample_file_path = self.quiz_directory / "sample_quiz.json"
        try:
            if not sample_file_path.exists():
                with open(sample_file_path, 'w', encoding='utf-8') as f:
                    json.dump(sample_quiz_data, f, indent=2, ensure_ascii=False)
                self.logger.info(f"Created sample quiz file: {sample_file_path}")
        except OSError as e:
            self.logger.error(f"Failed to create sample quiz: {e}")
            self.load_errors.append(f"Failed to create sample quiz: {e}")

        self.register_quiz(self.parse_quiz("sample_quiz", sample_quiz_data))

    def _create_fallback_quiz(self) -> None:
        """Register a minimal in-memory quiz when the quiz directory is unusable."""
        fallback = Quiz(
            name="fallback_quiz",
            title="Fallback Quiz",
            questions=(
                Question(
                    text="This is a fallback question. What should you do when quiz files can't be loaded?",
                    options=(
                        "Check the quiz directory and file permissions",
                        "Restart the computer",
                        "Delete the bot"
                    ),
                    correct_index=0
                ),
            )
        )
        self.register_quiz(fallback)
        self.fallback_quiz_created = True
        self.logger.warning("Created fallback quiz due to file loading failures")

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def is_fallback_quiz_active(self) -> bool:
        return self.fallback_quiz_created

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self.loaded_quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'fallback_active': self.is_fallback_quiz_active(),
            'quiz_directory': str(self.quiz_directory),
            'available_quizzes': list(self.loaded_quizzes.keys())
        }
