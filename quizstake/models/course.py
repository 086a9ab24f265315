import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from quizstake.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_code = Column(String(20), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    book_pdf_path = Column(String(512), nullable=True)  # reference material handed to the question generator
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
