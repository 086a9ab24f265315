"""
Settlement: the one-time application of a closed MCQ phase to the ledger, the
user aggregate and course proficiency.

The whole unit runs in one transaction that starts with a compare-and-set on
quiz_attempts.token_settled. A concurrent reader that loses the race matches
zero rows and rolls back; a failure anywhere rolls the flag back with
everything else, so a retry applies the unit exactly once.
"""
import logging
from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quizstake.errors import NotFound, RetryConflict
from quizstake.models.course_proficiency import CourseProficiency
from quizstake.models.quiz_attempt import QuizAttempt
from quizstake.models.task import Task
from quizstake.models.token_ledger import LedgerEntryType
from quizstake.models.user import User
from quizstake.services.aggregates import (
    ProficiencyCounters,
    QuizOutcome,
    Streak,
    UserCounters,
    advance_streak,
    apply_quiz_outcome,
    apply_quiz_to_proficiency,
    compute_proficiency,
    compute_reputation,
    read_counters,
    write_counters,
)
from quizstake.services.ledger import post_entry
from quizstake.services.quiz_machine import MAX_SCORE

logger = logging.getLogger(__name__)


def _claim(db: Session, attempt_id: str) -> bool:
    result = db.execute(
        update(QuizAttempt)
        .where(QuizAttempt.id == attempt_id, QuizAttempt.token_settled.is_(False))
        .values(token_settled=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _apply_to_user(user: User, outcome: QuizOutcome, today: date) -> None:
    counters = apply_quiz_outcome(read_counters(UserCounters, user), outcome)
    write_counters(counters, user)
    user.reputation = compute_reputation(counters)

    streak = advance_streak(
        Streak(
            current_days=user.streak_current_days,
            longest=user.streak_longest,
            last_active=user.streak_last_active,
        ),
        today,
    )
    user.streak_current_days = streak.current_days
    user.streak_longest = streak.longest
    user.streak_last_active = streak.last_active


def _apply_to_proficiency(db: Session, user_id: str, course_id: str, outcome: QuizOutcome) -> CourseProficiency:
    prof = (
        db.query(CourseProficiency)
        .filter(CourseProficiency.user_id == user_id, CourseProficiency.course_id == course_id)
        .with_for_update()
        .first()
    )
    if prof is None:
        prof = CourseProficiency(user_id=user_id, course_id=course_id, proficiency_score=0)
        write_counters(ProficiencyCounters(), prof)
        db.add(prof)
    counters = apply_quiz_to_proficiency(read_counters(ProficiencyCounters, prof), outcome)
    write_counters(counters, prof)
    prof.proficiency_score = compute_proficiency(counters)
    return prof


def settle_attempt(db: Session, attempt: QuizAttempt, task: Task, today: date) -> bool:
    """
    Settle a closed attempt and commit, together with any pending changes the
    caller made to the attempt row. Returns False (after rolling back) when the
    attempt was already settled by someone else.
    """
    if not _claim(db, attempt.id):
        db.rollback()
        db.refresh(attempt)
        logger.info("attempt %s already settled; returning cached outcome", attempt.id)
        return False

    try:
        user = db.query(User).filter(User.id == attempt.user_id).with_for_update().first()
        if not user:
            raise NotFound("User not found")

        stake = attempt.effective_stake
        outcome = QuizOutcome(
            score=attempt.mcq_score,
            passed=bool(attempt.mcq_passed),
            stake=stake,
            reward=task.reward,
        )
        if outcome.passed:
            total = stake + task.reward
            post_entry(
                db, user, LedgerEntryType.REWARD, total,
                task_id=task.id,
                note=(
                    f"MCQ passed ({outcome.score}/{MAX_SCORE}, attempt #{attempt.attempt_number}). "
                    f"Stake {stake} returned + {task.reward} reward."
                ),
            )
            attempt.tokens_awarded = total
        else:
            # Stake was already debited at start; entry documents the forfeit
            post_entry(
                db, user, LedgerEntryType.PENALTY, 0,
                task_id=task.id,
                note=(
                    f"MCQ failed ({outcome.score}/{MAX_SCORE}, attempt #{attempt.attempt_number}). "
                    f"Stake of {stake} forfeited."
                ),
            )
            attempt.tokens_awarded = -stake

        _apply_to_user(user, outcome, today)
        _apply_to_proficiency(db, user.id, attempt.course_id, outcome)
        attempt.token_settled = True
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        logger.warning("settlement of attempt %s lost a race: %s", attempt.id, e)
        raise RetryConflict("Quiz result is being processed. Please try again.") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(attempt)
    logger.info(
        "settled attempt %s user=%s passed=%s tokens_awarded=%s",
        attempt.id, attempt.user_id, attempt.mcq_passed, attempt.tokens_awarded,
    )
    return True
