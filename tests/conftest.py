from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import quizstake.models  # noqa: F401 - register tables on Base.metadata
from quizstake.database import Base
from quizstake.errors import UpstreamGenerationFailure
from quizstake.models.course import Course
from quizstake.models.task import Task
from quizstake.services.accounts import open_account
from quizstake.services.quiz_service import QuizService

# Correct option per question for the canned MCQ set
CORRECT = [0, 1, 2, 3, 0, 1]
WRONG = [(c + 1) % 4 for c in CORRECT]


class FakeGenerator:
    """Canned questions. Set fail=True to simulate the upstream model being down."""

    def __init__(self):
        self.fail = False
        self.mcq_calls = 0
        self.theory_calls = 0

    def generate_mcqs(self, *, task_title, task_topic, course_name, book_pdf_path=None):
        self.mcq_calls += 1
        if self.fail:
            raise UpstreamGenerationFailure("Question generator temporarily unavailable.")
        return [
            {
                "question": f"{task_topic} question {i + 1}?",
                "options": ["A", "B", "C", "D"],
                "correct_answer": c,
            }
            for i, c in enumerate(CORRECT)
        ]

    def generate_theory_questions(self, *, task_title, task_topic, course_name, book_pdf_path=None):
        self.theory_calls += 1
        if self.fail:
            raise UpstreamGenerationFailure("Question generator temporarily unavailable.")
        return [f"Derive result {i + 1} for {task_topic}." for i in range(7)]


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def service(generator, clock):
    return QuizService(generator=generator, clock=clock)


@pytest.fixture
def user(db):
    return open_account(db, "student@example.com", "Student One", initial_tokens=100)


@pytest.fixture
def course(db):
    c = Course(course_code="CS201", title="Data Structures")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def task(db, course):
    t = Task(course_id=course.id, title="Heaps", topic="Binary heaps", token_stake=10, reward=5)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@pytest.fixture
def answer_all(service, db, clock):
    """Answer questions 0..n-1 in order, step_seconds apart."""

    def _answer_all(user_id, task_id, answers, step_seconds=5):
        for i, a in enumerate(answers):
            clock.advance(step_seconds)
            service.answer_question(db, user_id, task_id, i, a)

    return _answer_all
