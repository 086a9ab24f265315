import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from quizstake.database import Base


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"


class Task(Base):
    """Course task generated from an announcement. Read-only from the quiz core."""
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    topic = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    token_stake = Column(Integer, nullable=False)  # base stake for attempt #1
    reward = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value)
    superseded_by_id = Column(String(36), ForeignKey("tasks.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    course = relationship("Course", lazy="joined")

    @property
    def is_superseded(self) -> bool:
        return self.status == TaskStatus.SUPERSEDED.value or self.superseded_by_id is not None
