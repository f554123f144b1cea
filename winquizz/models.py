"""
Core data models for the WinQuizz quiz engine.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
import uuid

MAX_OPTIONS = 10  # one answer button per option; A to J


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice question."""
    text: str
    options: Tuple[str, ...]
    correct_index: int
    explanation: Optional[str] = None
    points: Optional[int] = None  # overrides the configured base credit
    question_id: Optional[str] = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


@dataclass(frozen=True)
class Quiz:
    """A named, ordered set of questions."""
    name: str
    title: str
    questions: Tuple[Question, ...]
    duration_seconds: Optional[int] = None
    description: str = ""


@dataclass
class QuizSettings:
    """Configuration settings for a quiz session."""
    question_count: Optional[int] = None
    random_order: bool = False
    timer_duration: int = 15
    session_duration: Optional[int] = None
    answer_reveal_delay: float = 3.0
    skip_reveal_delay: float = 2.0


@dataclass(frozen=True)
class ScoringRules:
    """Point schedule applied by the answer evaluator."""
    base_points: int = 20
    wrong_penalty: int = -4
    skip_penalty: int = -2
    streak_bonuses: Tuple[Tuple[int, int], ...] = ((3, 10), (5, 20), (10, 50))


class SessionState(Enum):
    """Lifecycle states of a quiz session."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CompletionReason(Enum):
    """Why a session reached COMPLETED."""
    FINISHED = "finished"
    TIME_UP = "time_up"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of evaluating one question."""
    points: int
    correct_index: int
    breakdown: Tuple[str, ...] = ()
    explanation: Optional[str] = None


@dataclass(frozen=True)
class Correct(AnswerResult):
    time_bonus: int = 0
    streak_bonus: int = 0
    streak: int = 0


@dataclass(frozen=True)
class Incorrect(AnswerResult):
    selected_index: int = -1


@dataclass(frozen=True)
class Skipped(AnswerResult):
    timed_out: bool = False


@dataclass(frozen=True)
class TickOutcome:
    """What happened during a single timer tick."""
    result: Optional[Skipped] = None
    completed: bool = False


@dataclass
class QuizSession:
    """
    Mutable state of one user's attempt at one quiz.

    Only QuizEngine mutates these fields; everything else reads them.
    """
    quiz_name: str
    questions: Tuple[Question, ...]
    settings: QuizSettings
    rules: ScoringRules
    total_duration: int
    channel_id: Optional[int] = None
    owner_id: Optional[int] = None
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.NOT_STARTED
    completion_reason: Optional[CompletionReason] = None
    current_index: int = 0
    score: int = 0
    streak: int = 0
    best_streak: int = 0
    correct_count: int = 0
    question_seconds_remaining: int = 0
    total_seconds_remaining: int = 0
    answered: bool = False
    last_result: Optional[AnswerResult] = None
    history: List[AnswerResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    remote_session_id: Optional[str] = None

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def elapsed_seconds(self) -> int:
        if self.state is SessionState.NOT_STARTED:
            return 0
        return self.total_duration - self.total_seconds_remaining
