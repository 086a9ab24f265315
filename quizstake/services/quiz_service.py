"""
Quiz attempt orchestration: start (re-entry policy + stake debit), answers,
result read (close + settlement), theory questions and submission, attempt info.

Transactions are owned here. The slow external generator is always called with
no write pending, and before any token moves.
"""
import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quizstake.errors import Conflict, InsufficientFunds, InvalidState, NotFound, RetryConflict
from quizstake.models.quiz_attempt import QuizAttempt, AttemptStatus
from quizstake.models.task import Task
from quizstake.models.token_ledger import LedgerEntryType
from quizstake.models.user import User
from quizstake.repositories.attempt_repository import AttemptRepository
from quizstake.services.ledger import post_entry
from quizstake.services.quiz_machine import (
    AnswerSubmitted,
    McqClosed,
    McqResponse,
    TheoryIssued,
    TheorySubmitted,
    TheoryPending,
    state_of,
    transition,
    write_state,
)
from quizstake.services.settlement import settle_attempt
from quizstake.services.stake import DECAY_BASE, decay_percent, decayed_stake
from quizstake.services.theory_storage import TheoryStorage

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (AttemptStatus.FAILED.value, AttemptStatus.SUBMITTED.value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QuizService:
    """One user's attempts at one task. Generator and clock are injected so tests can replace them."""

    def __init__(
        self,
        generator,
        repository: AttemptRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._generator = generator
        self._repo = repository or AttemptRepository()
        self._clock = clock or utcnow

    # ---------- lookups ----------

    @staticmethod
    def _get_task(db: Session, task_id: str) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFound("Task not found")
        return task

    def _latest(self, db: Session, user_id: str, task_id: str) -> QuizAttempt:
        attempt = self._repo.latest_attempt(db, user_id, task_id)
        if not attempt:
            raise NotFound("No quiz attempt found")
        return attempt

    # ---------- start ----------

    def start_attempt(self, db: Session, user_id: str, task_id: str) -> QuizAttempt:
        task = self._get_task(db, task_id)
        if task.is_superseded:
            raise Conflict("This task has been superseded by a newer announcement. Check your updated tasks.")
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound("User not found")

        history = self._repo.list_attempts(db, user_id, task_id)
        latest = history[0] if history else None
        abandoned_id = None
        refund = 0
        if latest is not None:
            if latest.status == AttemptStatus.MCQ_IN_PROGRESS.value:
                # Client dropped mid-quiz: refund and restart at the same attempt number
                abandoned_id = latest.id
                refund = 0 if latest.token_settled else latest.effective_stake
            elif latest.status not in RETRYABLE_STATUSES:
                raise Conflict("You have an unfinished quiz. Submit your theory solutions before re-attempting.")

        attempt_number = self._repo.count_completed(history) + 1
        stake = decayed_stake(task.token_stake, attempt_number)
        if user.token_balance + refund < stake:
            raise InsufficientFunds(
                f"Insufficient tokens. Need {stake} (attempt #{attempt_number}), have {user.token_balance + refund}"
            )

        course = task.course
        generator_args = dict(
            task_title=task.title,
            task_topic=task.topic,
            course_name=course.title,
            book_pdf_path=course.book_pdf_path,
        )
        # End the read transaction before the slow call; rows reload on next access
        db.rollback()
        mcqs = self._generator.generate_mcqs(**generator_args)

        now = self._clock()
        try:
            user = db.query(User).filter(User.id == user_id).with_for_update().first()
            if abandoned_id is not None:
                abandoned = self._repo.get_attempt(db, abandoned_id)
                if abandoned is None or abandoned.status != AttemptStatus.MCQ_IN_PROGRESS.value:
                    raise RetryConflict("Quiz state changed while starting. Please try again.")
                if refund:
                    post_entry(
                        db, user, LedgerEntryType.BONUS, refund,
                        task_id=task.id,
                        note=f'Refund interrupted quiz stake for: "{task.title}"',
                    )
                self._repo.delete_attempt(db, abandoned)
                # the delete must reach the in-progress unique index before the insert
                db.flush()
            post_entry(
                db, user, LedgerEntryType.STAKE, -stake,
                task_id=task.id,
                note=(
                    f"Staked {stake} tokens (attempt #{attempt_number}, "
                    f"decay={decay_percent(attempt_number)}%) for: \"{task.title}\""
                ),
            )
            attempt = self._repo.add_attempt(db, QuizAttempt(
                user_id=user_id,
                task_id=task.id,
                course_id=task.course_id,
                attempt_number=attempt_number,
                effective_stake=stake,
                mcqs=mcqs,
                mcq_responses=[],
                mcq_started_at=now,
                theory_questions=[],
                status=AttemptStatus.MCQ_IN_PROGRESS.value,
                token_settled=False,
                created_at=now,
            ))
            db.commit()
        except (IntegrityError, StaleDataError) as e:
            db.rollback()
            logger.warning("concurrent start for user=%s task=%s: %s", user_id, task_id, e)
            raise RetryConflict("Cleaned up interrupted quiz. Please try again.") from e
        except Exception:
            db.rollback()
            raise

        db.refresh(attempt)
        logger.info(
            "quiz started user=%s task=%s attempt=#%s stake=%s refunded=%s",
            user_id, task_id, attempt_number, stake, refund,
        )
        return attempt

    # ---------- answers ----------

    def answer_question(
        self, db: Session, user_id: str, task_id: str, question_index: int, selected_answer: int | None
    ) -> tuple[McqResponse, int]:
        """Record one answer. Returns the scored response and how many questions remain."""
        attempt = self._latest(db, user_id, task_id)
        state = transition(state_of(attempt), AnswerSubmitted(question_index, selected_answer, self._clock()))
        write_state(attempt, state)
        try:
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise RetryConflict("Another answer was recorded at the same time. Please try again.") from e
        return state.responses[-1], len(state.questions) - len(state.responses)

    # ---------- result ----------

    def get_mcq_result(self, db: Session, user_id: str, task_id: str) -> QuizAttempt:
        """
        Close the MCQ phase on first read and settle it. Later reads return the
        stored outcome without touching the ledger.
        """
        attempt = self._latest(db, user_id, task_id)
        if attempt.status != AttemptStatus.MCQ_IN_PROGRESS.value:
            return attempt
        task = self._get_task(db, task_id)
        now = self._clock()
        write_state(attempt, transition(state_of(attempt), McqClosed(now)))
        settle_attempt(db, attempt, task, now.date())
        return attempt

    # ---------- theory ----------

    def get_theory_questions(self, db: Session, user_id: str, task_id: str) -> list[str]:
        """Generated once on first read of theory_pending and cached on the attempt."""
        attempt = self._latest(db, user_id, task_id)
        if attempt.status == AttemptStatus.FAILED.value:
            raise InvalidState("MCQ not passed. Theory unavailable.")
        if attempt.status == AttemptStatus.SUBMITTED.value or attempt.theory_questions:
            return list(attempt.theory_questions)
        state = state_of(attempt)
        if not isinstance(state, TheoryPending):
            raise InvalidState("Finish the MCQ phase before fetching theory questions.")

        task = self._get_task(db, task_id)
        generator_args = dict(
            task_title=task.title,
            task_topic=task.topic,
            course_name=task.course.title,
            book_pdf_path=task.course.book_pdf_path,
        )
        db.rollback()
        questions = self._generator.generate_theory_questions(**generator_args)

        # attempt reloads here; another reader may have cached questions meanwhile
        state = transition(state_of(attempt), TheoryIssued(tuple(questions)))
        write_state(attempt, state)
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            db.refresh(attempt)
            if attempt.theory_questions:
                return list(attempt.theory_questions)
            raise RetryConflict("Theory questions are being prepared. Please try again.")
        return list(state.theory_questions)

    def submit_theory(
        self, db: Session, user_id: str, task_id: str, file: UploadFile, storage: TheoryStorage
    ) -> QuizAttempt:
        attempt = self._latest(db, user_id, task_id)
        if attempt.status != AttemptStatus.THEORY_PENDING.value:
            raise InvalidState(f"Cannot submit. Status: {attempt.status}")
        state = state_of(attempt)
        if not state.theory_questions:
            raise InvalidState("Fetch the theory questions before submitting solutions")

        path = storage.save(file, user_id)
        try:
            write_state(attempt, transition(state, TheorySubmitted(path, self._clock())))
            db.commit()
        except StaleDataError as e:
            db.rollback()
            storage.discard(path)
            raise RetryConflict("Submission collided with another request. Please try again.") from e
        except Exception:
            db.rollback()
            storage.discard(path)
            raise
        db.refresh(attempt)
        logger.info("theory submitted user=%s task=%s path=%s", user_id, task_id, path)
        return attempt

    # ---------- read views ----------

    def get_attempt_info(self, db: Session, user_id: str, task_id: str) -> dict:
        task = self._get_task(db, task_id)
        attempts = self._repo.list_attempts(db, user_id, task_id)
        completed = self._repo.count_completed(attempts)
        latest = attempts[0] if attempts else None
        return {
            "total_attempts": completed,
            "next_attempt_number": completed + 1,
            "original_stake": task.token_stake,
            "next_stake": decayed_stake(task.token_stake, completed + 1),
            "decay_rate": DECAY_BASE,
            "can_retry": latest is None or latest.status in RETRYABLE_STATUSES,
            "latest_status": latest.status if latest else None,
            "history": attempts,
        }

    def get_task_stake(self, db: Session, task_id: str) -> int:
        return self._get_task(db, task_id).token_stake

    def get_attempt_detail(self, db: Session, attempt_id: str) -> QuizAttempt:
        attempt = self._repo.get_attempt(db, attempt_id)
        if not attempt:
            raise NotFound("Attempt not found")
        return attempt


def mcq_breakdown(attempt: QuizAttempt) -> list[dict]:
    """Per-question result rows. Only meaningful once the attempt is settled."""
    responses = {r["question_index"]: r for r in attempt.mcq_responses or []}
    rows = []
    for i, mcq in enumerate(attempt.mcqs):
        r = responses.get(i, {})
        selected = r.get("selected_answer")
        rows.append({
            "question": mcq["question"],
            "your_answer": mcq["options"][selected] if selected is not None else "Unattempted",
            "correct_answer": mcq["options"][mcq["correct_answer"]],
            "points": r.get("points", 0),
        })
    return rows


def mcq_detail(attempt: QuizAttempt) -> list[dict]:
    """Question, options and the user's response; correct answers only after settlement."""
    responses = {r["question_index"]: r for r in attempt.mcq_responses or []}
    rows = []
    for i, mcq in enumerate(attempt.mcqs):
        r = responses.get(i, {})
        q = public_question(mcq, reveal=attempt.token_settled)
        q.update({
            "selected_answer": r.get("selected_answer"),
            "is_correct": r.get("is_correct"),
            "points": r.get("points", 0),
        })
        rows.append(q)
    return rows


def public_question(mcq: dict, reveal: bool) -> dict:
    return {
        "question": mcq["question"],
        "options": list(mcq["options"]),
        "correct_answer": mcq["correct_answer"] if reveal else None,
    }
