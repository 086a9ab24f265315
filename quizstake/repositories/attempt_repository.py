"""
Attempt persistence: one history per (user, task), newest first.
All operations are sync and never commit; the quiz service owns the transaction.
"""
from sqlalchemy.orm import Session

from quizstake.models.quiz_attempt import QuizAttempt, AttemptStatus


def list_attempts(db: Session, user_id: str, task_id: str) -> list[QuizAttempt]:
    """All attempts for user+task, newest first (highest attempt number, then latest created)."""
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.user_id == user_id, QuizAttempt.task_id == task_id)
        .order_by(QuizAttempt.attempt_number.desc(), QuizAttempt.created_at.desc())
        .all()
    )


def latest_attempt(db: Session, user_id: str, task_id: str) -> QuizAttempt | None:
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.user_id == user_id, QuizAttempt.task_id == task_id)
        .order_by(QuizAttempt.attempt_number.desc(), QuizAttempt.created_at.desc())
        .first()
    )


def get_attempt(db: Session, attempt_id: str) -> QuizAttempt | None:
    return db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()


def count_completed(attempts: list[QuizAttempt]) -> int:
    """Attempts that consumed a slot. An open MCQ session doesn't."""
    return sum(1 for a in attempts if a.status != AttemptStatus.MCQ_IN_PROGRESS.value)


def add_attempt(db: Session, attempt: QuizAttempt) -> QuizAttempt:
    db.add(attempt)
    return attempt


def delete_attempt(db: Session, attempt: QuizAttempt) -> None:
    db.delete(attempt)


class AttemptRepository:
    """Thin wrapper for dependency injection; delegates to module functions."""

    @staticmethod
    def list_attempts(db: Session, user_id: str, task_id: str) -> list[QuizAttempt]:
        return list_attempts(db, user_id, task_id)

    @staticmethod
    def latest_attempt(db: Session, user_id: str, task_id: str) -> QuizAttempt | None:
        return latest_attempt(db, user_id, task_id)

    @staticmethod
    def get_attempt(db: Session, attempt_id: str) -> QuizAttempt | None:
        return get_attempt(db, attempt_id)

    @staticmethod
    def count_completed(attempts: list[QuizAttempt]) -> int:
        return count_completed(attempts)

    @staticmethod
    def add_attempt(db: Session, attempt: QuizAttempt) -> QuizAttempt:
        return add_attempt(db, attempt)

    @staticmethod
    def delete_attempt(db: Session, attempt: QuizAttempt) -> None:
        delete_attempt(db, attempt)
