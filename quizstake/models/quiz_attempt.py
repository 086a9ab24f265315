import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, JSON, Index, text
from quizstake.database import Base


class AttemptStatus(str, enum.Enum):
    MCQ_IN_PROGRESS = "mcq_in_progress"
    THEORY_PENDING = "theory_pending"
    FAILED = "failed"
    SUBMITTED = "submitted"


class QuizAttempt(Base):
    """
    One attempt by a user at a task: MCQ phase, settlement outcome, theory phase.
    Kept as an audit record; only an abandoned mcq_in_progress row is ever deleted.
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("ix_quiz_attempts_user_task", "user_id", "task_id", "attempt_number"),
        # One open MCQ session per (user, task)
        Index(
            "ix_quiz_attempts_user_task_in_progress",
            "user_id",
            "task_id",
            unique=True,
            postgresql_where=text("status = 'mcq_in_progress'"),
            sqlite_where=text("status = 'mcq_in_progress'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(String(36), ForeignKey("tasks.id"), nullable=False)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)
    attempt_number = Column(Integer, nullable=False)
    effective_stake = Column(Integer, nullable=False)  # decayed stake charged at start, never recomputed

    # MCQ phase: [{"question", "options", "correct_answer"}], responses see quiz_machine.McqResponse
    mcqs = Column(JSON, nullable=False)
    mcq_responses = Column(JSON, nullable=False, default=list)
    mcq_started_at = Column(DateTime, nullable=False)
    mcq_score = Column(Integer, nullable=True)
    mcq_passed = Column(Boolean, nullable=True)

    # Theory phase
    theory_questions = Column(JSON, nullable=False, default=list)
    theory_submission_path = Column(String(512), nullable=True)
    theory_submitted_at = Column(DateTime, nullable=True)

    status = Column(String(20), nullable=False, default=AttemptStatus.MCQ_IN_PROGRESS.value)
    token_settled = Column(Boolean, nullable=False, default=False)
    tokens_awarded = Column(Integer, nullable=True)  # null until settlement

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Optimistic locking: concurrent writers to the same attempt raise StaleDataError
    __mapper_args__ = {"version_id_col": version}
