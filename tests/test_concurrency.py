"""
Races between two sessions on a shared file-backed SQLite database: concurrent
starts, answers and result reads, plus a settlement that fails partway.
"""
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from conftest import CORRECT, FakeClock, FakeGenerator
import quizstake.models  # noqa: F401 - register tables on Base.metadata
from quizstake.database import Base
from quizstake.errors import RetryConflict
from quizstake.models.course import Course
from quizstake.models.course_proficiency import CourseProficiency
from quizstake.models.quiz_attempt import AttemptStatus, QuizAttempt
from quizstake.models.task import Task
from quizstake.models.token_ledger import LedgerEntryType, TokenLedger
from quizstake.models.user import User
from quizstake.repositories.attempt_repository import AttemptRepository
from quizstake.services import settlement
from quizstake.services.accounts import open_account
from quizstake.services.ledger import is_reconciled
from quizstake.services.quiz_service import QuizService


class RacingGenerator(FakeGenerator):
    """Runs a competing request once, while this request's questions are being generated."""

    def __init__(self, competitor):
        super().__init__()
        self._competitor = competitor

    def generate_mcqs(self, **kwargs):
        competitor, self._competitor = self._competitor, None
        if competitor is not None:
            competitor()
        return super().generate_mcqs(**kwargs)


@pytest.fixture
def make_session(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'quiz.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = []

    def _make():
        s = factory()
        sessions.append(s)
        return s

    try:
        yield _make
    finally:
        for s in sessions:
            s.close()
        engine.dispose()


@pytest.fixture
def seeded(make_session):
    s = make_session()
    user = open_account(s, "racer@example.com", "Racer", initial_tokens=100)
    course = Course(course_code="CS301", title="Algorithms")
    s.add(course)
    s.commit()
    task = Task(course_id=course.id, title="Sorting", topic="Merge sort", token_stake=10, reward=5)
    s.add(task)
    s.commit()
    return user.id, task.id


@pytest.fixture
def race_clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


def _answer_all(service, session, clock, user_id, task_id, answers):
    for i, a in enumerate(answers):
        clock.advance(2)
        service.answer_question(session, user_id, task_id, i, a)


def test_concurrent_start_loser_retries_without_debit(make_session, seeded, race_clock):
    user_id, task_id = seeded
    a, b = make_session(), make_session()
    service_a = QuizService(generator=FakeGenerator(), clock=race_clock)
    service_b = QuizService(
        generator=RacingGenerator(lambda: service_a.start_attempt(a, user_id, task_id)),
        clock=race_clock,
    )

    with pytest.raises(RetryConflict):
        service_b.start_attempt(b, user_id, task_id)

    check = make_session()
    user = check.get(User, user_id)
    assert user.token_balance == 90
    assert check.query(QuizAttempt).count() == 1
    stakes = [e for e in check.query(TokenLedger).all() if e.type == LedgerEntryType.STAKE.value]
    assert len(stakes) == 1
    assert is_reconciled(check, user)


def test_concurrent_answers_keep_both_responses(make_session, seeded, race_clock):
    user_id, task_id = seeded
    a, b = make_session(), make_session()
    service_a = QuizService(generator=FakeGenerator(), clock=race_clock)
    service_b = QuizService(generator=FakeGenerator(), clock=race_clock)
    service_a.start_attempt(a, user_id, task_id)

    # b holds the attempt as it was before a's answer lands
    held = AttemptRepository.latest_attempt(b, user_id, task_id)  # noqa: F841 - keep b's stale copy alive
    race_clock.advance(2)
    service_a.answer_question(a, user_id, task_id, 0, CORRECT[0])

    with pytest.raises(RetryConflict):
        service_b.answer_question(b, user_id, task_id, 1, CORRECT[1])
    service_b.answer_question(b, user_id, task_id, 1, CORRECT[1])

    attempt = make_session().query(QuizAttempt).one()
    assert [r["question_index"] for r in attempt.mcq_responses] == [0, 1]


def test_concurrent_result_reads_settle_once(make_session, seeded, race_clock):
    user_id, task_id = seeded
    a, b = make_session(), make_session()
    service_a = QuizService(generator=FakeGenerator(), clock=race_clock)
    service_b = QuizService(generator=FakeGenerator(), clock=race_clock)
    service_a.start_attempt(a, user_id, task_id)
    _answer_all(service_a, a, race_clock, user_id, task_id, CORRECT)

    # b loads the still-open attempt, then a settles it
    stale = AttemptRepository.latest_attempt(b, user_id, task_id)
    assert stale.status == AttemptStatus.MCQ_IN_PROGRESS.value
    first = service_a.get_mcq_result(a, user_id, task_id)
    entries_after_first = len(make_session().query(TokenLedger).all())

    second = service_b.get_mcq_result(b, user_id, task_id)
    assert second.token_settled is True
    assert second.tokens_awarded == first.tokens_awarded == 15
    assert second.mcq_score == 12

    check = make_session()
    user = check.get(User, user_id)
    assert user.token_balance == 105
    assert user.quizzes_taken == 1
    assert len(check.query(TokenLedger).all()) == entries_after_first
    rewards = [e for e in check.query(TokenLedger).all() if e.type == LedgerEntryType.REWARD.value]
    assert len(rewards) == 1
    assert check.query(CourseProficiency).one().quizzes_passed == 1
    assert is_reconciled(check, user)


def test_failed_settlement_rolls_back_and_retries_once(make_session, seeded, race_clock, monkeypatch):
    user_id, task_id = seeded
    a = make_session()
    service = QuizService(generator=FakeGenerator(), clock=race_clock)
    service.start_attempt(a, user_id, task_id)
    _answer_all(service, a, race_clock, user_id, task_id, CORRECT)

    def broken(*args, **kwargs):
        raise RuntimeError("proficiency write failed")

    monkeypatch.setattr(settlement, "_apply_to_proficiency", broken)
    with pytest.raises(RuntimeError):
        service.get_mcq_result(a, user_id, task_id)

    check = make_session()
    attempt = check.query(QuizAttempt).one()
    assert attempt.token_settled is False
    assert attempt.status == AttemptStatus.MCQ_IN_PROGRESS.value
    assert attempt.tokens_awarded is None
    user = check.get(User, user_id)
    assert user.token_balance == 90
    assert user.quizzes_taken == 0
    assert check.query(CourseProficiency).count() == 0
    check.close()

    monkeypatch.undo()
    result = service.get_mcq_result(a, user_id, task_id)
    assert result.tokens_awarded == 15
    service.get_mcq_result(a, user_id, task_id)

    check = make_session()
    user = check.get(User, user_id)
    assert user.token_balance == 105
    assert user.quizzes_taken == 1
    rewards = [e for e in check.query(TokenLedger).all() if e.type == LedgerEntryType.REWARD.value]
    assert len(rewards) == 1
    assert is_reconciled(check, user)


def test_proficiency_insert_collision_is_retry_conflict(make_session, seeded, race_clock, monkeypatch):
    user_id, task_id = seeded
    a = make_session()
    service = QuizService(generator=FakeGenerator(), clock=race_clock)
    service.start_attempt(a, user_id, task_id)
    _answer_all(service, a, race_clock, user_id, task_id, CORRECT)

    def collide(*args, **kwargs):
        raise IntegrityError("INSERT INTO course_proficiencies", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(settlement, "_apply_to_proficiency", collide)
    with pytest.raises(RetryConflict):
        service.get_mcq_result(a, user_id, task_id)

    check = make_session()
    assert check.query(QuizAttempt).one().token_settled is False
    assert check.get(User, user_id).token_balance == 90
