"""
User aggregate and course proficiency updates as pure functions.

Settlement reads the ORM rows into these value objects, applies a QuizOutcome and
writes the result back. Derived scores (reputation, proficiency) are always
recomputed in full from the counters, never adjusted incrementally.
"""
import math
from dataclasses import dataclass, fields, replace
from datetime import date


@dataclass(frozen=True)
class QuizOutcome:
    score: int
    passed: bool
    stake: int
    reward: int


@dataclass(frozen=True)
class UserCounters:
    tasks_completed: int = 0
    quizzes_taken: int = 0
    quizzes_passed: int = 0
    quizzes_failed: int = 0
    avg_mcq_score: float = 0.0
    tokens_earned: int = 0
    tokens_lost: int = 0
    upvotes_received: int = 0
    downvotes_received: int = 0
    downvotes_lost: int = 0
    downvotes_defended: int = 0
    reviews_given: int = 0


@dataclass(frozen=True)
class Streak:
    current_days: int = 0
    longest: int = 0
    last_active: date | None = None


@dataclass(frozen=True)
class ProficiencyCounters:
    upvotes_received: int = 0
    downvotes_received: int = 0
    downvotes_lost: int = 0
    downvotes_defended: int = 0
    tasks_attempted: int = 0
    tasks_completed: int = 0
    quizzes_passed: int = 0
    quizzes_failed: int = 0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def read_counters(cls, row):
    """Build a counters dataclass from an ORM row with matching column names."""
    return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})


def write_counters(counters, row) -> None:
    for f in fields(counters):
        setattr(row, f.name, getattr(counters, f.name))


# ---- User ----

def apply_quiz_outcome(counters: UserCounters, outcome: QuizOutcome) -> UserCounters:
    taken = counters.quizzes_taken + 1
    total = counters.avg_mcq_score * counters.quizzes_taken + outcome.score
    updated = replace(
        counters,
        quizzes_taken=taken,
        avg_mcq_score=_round_half_up(total / taken * 100) / 100,
    )
    if outcome.passed:
        return replace(
            updated,
            quizzes_passed=counters.quizzes_passed + 1,
            tokens_earned=counters.tokens_earned + outcome.reward,
        )
    return replace(
        updated,
        quizzes_failed=counters.quizzes_failed + 1,
        tokens_lost=counters.tokens_lost + outcome.stake,
    )


def compute_reputation(c: UserCounters) -> int:
    """
    rep = upvotes*10 - downvotesLost*15 + downvotesDefended*5
        + quizzesPassed*3 - tokensLost/10 + tasksCompleted*2
    Clamped to 0.
    """
    raw = (
        c.upvotes_received * 10
        - c.downvotes_lost * 15
        + c.downvotes_defended * 5
        + c.quizzes_passed * 3
        - c.tokens_lost / 10
        + c.tasks_completed * 2
    )
    return max(0, _round_half_up(raw))


def advance_streak(streak: Streak, today: date) -> Streak:
    """Bump if active the day after last_active; reset to 1 after a gap; no-op on the same day."""
    if streak.last_active is not None:
        gap = (today - streak.last_active).days
        if gap <= 0:
            return streak
        current = streak.current_days + 1 if gap == 1 else 1
    else:
        current = 1
    return Streak(current_days=current, longest=max(streak.longest, current), last_active=today)


# ---- Course proficiency ----

def apply_quiz_to_proficiency(counters: ProficiencyCounters, outcome: QuizOutcome) -> ProficiencyCounters:
    if outcome.passed:
        return replace(
            counters,
            tasks_attempted=counters.tasks_attempted + 1,
            tasks_completed=counters.tasks_completed + 1,
            quizzes_passed=counters.quizzes_passed + 1,
        )
    return replace(
        counters,
        tasks_attempted=counters.tasks_attempted + 1,
        quizzes_failed=counters.quizzes_failed + 1,
    )


def compute_proficiency(c: ProficiencyCounters) -> int:
    """
    score = upvotes*10 - downvotesLost*15 + downvotesDefended*5
          + tasksCompleted*3 - quizzesFailed*2 + quizzesPassed*5
    Clamped to 0.
    """
    return max(
        0,
        c.upvotes_received * 10
        - c.downvotes_lost * 15
        + c.downvotes_defended * 5
        + c.tasks_completed * 3
        - c.quizzes_failed * 2
        + c.quizzes_passed * 5,
    )
