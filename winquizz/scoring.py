"""
Answer evaluation for WinQuizz sessions.

Point policy:
    - Correct answer: base credit + time bonus (seconds left on the question
      clock) + every streak bonus whose threshold the new streak meets.
    - Wrong answer: fixed penalty.
    - Skip (manual or timeout): fixed penalty.
"""
from typing import List, Tuple

from .models import Correct, Incorrect, Question, ScoringRules, Skipped


def _signed(points: int) -> str:
    return f"+{points}" if points >= 0 else str(points)


def base_credit(question: Question, rules: ScoringRules) -> int:
    """Return the correct-answer credit for a question."""
    return question.points if question.points is not None else rules.base_points


def streak_bonus_lines(streak: int, rules: ScoringRules) -> List[Tuple[int, str]]:
    """
    Collect the streak bonuses earned by a streak value.

    Thresholds are checked independently, so a streak of 5 earns both the
    3+ and the 5+ bonus.

    Args:
        streak: Streak after counting the current correct answer
        rules: Scoring rules in effect

    Returns:
        List of (bonus, label) pairs in threshold order
    """
    earned = []
    for threshold, bonus in sorted(rules.streak_bonuses):
        if streak >= threshold:
            earned.append((bonus, f"{threshold}+ Streak: {_signed(bonus)}"))
    return earned


def score_correct(
    question: Question,
    rules: ScoringRules,
    seconds_remaining: int,
    streak: int
) -> Correct:
    """
    Score a correct answer.

    Args:
        question: The question that was answered
        rules: Scoring rules in effect
        seconds_remaining: Question clock at the moment of submission
        streak: Streak including this answer

    Returns:
        Correct result with the full point breakdown
    """
    base = base_credit(question, rules)
    time_bonus = max(0, seconds_remaining)
    bonuses = streak_bonus_lines(streak, rules)
    streak_bonus = sum(bonus for bonus, _ in bonuses)

    breakdown = [f"Correct Answer: {_signed(base)}", f"Time Bonus: {_signed(time_bonus)}"]
    breakdown.extend(label for _, label in bonuses)

    return Correct(
        points=base + time_bonus + streak_bonus,
        correct_index=question.correct_index,
        breakdown=tuple(breakdown),
        explanation=question.explanation,
        time_bonus=time_bonus,
        streak_bonus=streak_bonus,
        streak=streak
    )


def score_incorrect(question: Question, rules: ScoringRules, selected_index: int) -> Incorrect:
    """Score a wrong answer."""
    return Incorrect(
        points=rules.wrong_penalty,
        correct_index=question.correct_index,
        breakdown=(f"Wrong Answer: {_signed(rules.wrong_penalty)}",),
        explanation=question.explanation,
        selected_index=selected_index
    )


def score_skip(question: Question, rules: ScoringRules, timed_out: bool = False) -> Skipped:
    """Score a skipped question. Timeouts cost the same as manual skips."""
    label = "Time's Up" if timed_out else "Skipped"
    return Skipped(
        points=rules.skip_penalty,
        correct_index=question.correct_index,
        breakdown=(f"{label}: {_signed(rules.skip_penalty)} points",),
        explanation=question.explanation,
        timed_out=timed_out
    )
