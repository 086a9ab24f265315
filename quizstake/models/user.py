import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Float, Date, DateTime
from quizstake.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "student"
    CR = "cr"
    ADMIN = "admin"


class User(Base):
    """
    Student account plus the aggregate counters the quiz core maintains.
    token_balance is a running total of token_ledger; it's only written through
    services.ledger.post_entry.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)

    token_balance = Column(Integer, nullable=False, default=0)
    reputation = Column(Integer, nullable=False, default=0)

    # Aggregate stats
    tasks_completed = Column(Integer, nullable=False, default=0)
    quizzes_taken = Column(Integer, nullable=False, default=0)
    quizzes_passed = Column(Integer, nullable=False, default=0)
    quizzes_failed = Column(Integer, nullable=False, default=0)
    avg_mcq_score = Column(Float, nullable=False, default=0.0)
    tokens_earned = Column(Integer, nullable=False, default=0)
    tokens_lost = Column(Integer, nullable=False, default=0)
    # Peer review stats (written by the review service, read by the reputation formula)
    upvotes_received = Column(Integer, nullable=False, default=0)
    downvotes_received = Column(Integer, nullable=False, default=0)
    downvotes_lost = Column(Integer, nullable=False, default=0)
    downvotes_defended = Column(Integer, nullable=False, default=0)
    reviews_given = Column(Integer, nullable=False, default=0)

    # Streak
    streak_current_days = Column(Integer, nullable=False, default=0)
    streak_longest = Column(Integer, nullable=False, default=0)
    streak_last_active = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
