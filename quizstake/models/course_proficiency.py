"""Per-user per-course skill metric. Created lazily at the first quiz settlement for the pair."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from quizstake.database import Base


class CourseProficiency(Base):
    __tablename__ = "course_proficiencies"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_proficiencies_user_course"),
        Index("ix_course_proficiencies_course_score", "course_id", "proficiency_score"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)

    # Peer review metrics
    upvotes_received = Column(Integer, nullable=False, default=0)
    downvotes_received = Column(Integer, nullable=False, default=0)
    downvotes_lost = Column(Integer, nullable=False, default=0)  # arbitration sided with the downvoter
    downvotes_defended = Column(Integer, nullable=False, default=0)  # arbitration sided with the reviewee

    # Task & quiz metrics
    tasks_attempted = Column(Integer, nullable=False, default=0)
    tasks_completed = Column(Integer, nullable=False, default=0)
    quizzes_passed = Column(Integer, nullable=False, default=0)
    quizzes_failed = Column(Integer, nullable=False, default=0)

    proficiency_score = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
