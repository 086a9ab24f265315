from datetime import datetime, timedelta

import pytest

from quizstake.errors import Conflict, InvalidAnswer, InvalidState
from quizstake.services.quiz_machine import (
    PTS,
    AnswerSubmitted,
    Failed,
    McqClosed,
    McqInProgress,
    McqQuestion,
    Submitted,
    TheoryIssued,
    TheoryPending,
    TheorySubmitted,
    question_deadline_ms,
    transition,
)

T0 = datetime(2026, 3, 2, 9, 0, 0)
QUESTIONS = tuple(McqQuestion(f"Q{i}", ("A", "B", "C", "D"), i % 4) for i in range(6))


def started() -> McqInProgress:
    return McqInProgress(questions=QUESTIONS, started_at=T0)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def test_deadlines_are_cumulative():
    assert question_deadline_ms(0) == 17_000
    assert question_deadline_ms(1) == 34_000
    assert question_deadline_ms(5) == 102_000


def test_correct_wrong_and_skipped_points():
    s = transition(started(), AnswerSubmitted(0, 0, at(3)))
    s = transition(s, AnswerSubmitted(1, 0, at(6)))
    s = transition(s, AnswerSubmitted(2, None, at(9)))
    assert [r.points for r in s.responses] == [PTS["correct"], PTS["wrong"], PTS["unattempted"]]
    assert [r.is_correct for r in s.responses] == [True, False, None]


def test_late_correct_answer_scores_as_unattempted():
    s = transition(started(), AnswerSubmitted(0, 0, at(17.001)))
    r = s.responses[0]
    assert r.is_correct is None
    assert r.points == PTS["unattempted"]
    assert r.selected_answer == 0


def test_answer_on_deadline_is_on_time():
    s = transition(started(), AnswerSubmitted(1, 1, at(34)))
    assert s.responses[0].is_correct is True


def test_time_taken_is_measured_from_question_slot():
    s = transition(started(), AnswerSubmitted(2, 2, at(40)))
    assert s.responses[0].time_taken_ms == 40_000 - 2 * 15_000


def test_duplicate_answer_rejected_without_change():
    s = transition(started(), AnswerSubmitted(0, 0, at(3)))
    with pytest.raises(Conflict, match="Q0 already answered"):
        transition(s, AnswerSubmitted(0, 1, at(4)))
    assert len(s.responses) == 1
    assert s.responses[0].selected_answer == 0


@pytest.mark.parametrize("index, option", [(6, 0), (-1, 0), (0, 4), (0, -1)])
def test_out_of_range_answers(index, option):
    with pytest.raises(InvalidAnswer):
        transition(started(), AnswerSubmitted(index, option, at(1)))


def test_close_backfills_unanswered_and_passes():
    s = started()
    for i in range(5):
        s = transition(s, AnswerSubmitted(i, i % 4, at(i + 1)))
    closed = transition(s, McqClosed(at(200)))
    assert isinstance(closed, TheoryPending)
    assert closed.score == 5 * 2 - 1
    assert [r.question_index for r in closed.responses] == list(range(6))
    assert closed.responses[5].selected_answer is None
    assert closed.responses[5].answered_at is None


def test_close_below_threshold_fails():
    s = transition(started(), AnswerSubmitted(0, 0, at(1)))
    closed = transition(s, McqClosed(at(200)))
    assert isinstance(closed, Failed)
    assert closed.score == 2 - 5


def test_exactly_threshold_passes():
    # 5 correct + 1 wrong = 8
    s = started()
    for i in range(5):
        s = transition(s, AnswerSubmitted(i, i % 4, at(i + 1)))
    s = transition(s, AnswerSubmitted(5, 0, at(6)))
    closed = transition(s, McqClosed(at(7)))
    assert isinstance(closed, TheoryPending)
    assert closed.score == 8


def _passed() -> TheoryPending:
    s = started()
    for i in range(6):
        s = transition(s, AnswerSubmitted(i, i % 4, at(i + 1)))
    return transition(s, McqClosed(at(10)))


def test_theory_questions_issued_once():
    s = transition(_passed(), TheoryIssued(("a", "b")))
    again = transition(s, TheoryIssued(("x", "y")))
    assert again.theory_questions == ("a", "b")


def test_submit_requires_issued_questions():
    with pytest.raises(InvalidState):
        transition(_passed(), TheorySubmitted("f.pdf", at(60)))


def test_submit_moves_to_submitted():
    s = transition(_passed(), TheoryIssued(tuple("abcdefg")))
    done = transition(s, TheorySubmitted("f.pdf", at(60)))
    assert isinstance(done, Submitted)
    assert done.submission_path == "f.pdf"
    assert done.score == 12


@pytest.mark.parametrize(
    "state_factory, event",
    [
        (_passed, AnswerSubmitted(0, 0, T0)),
        (_passed, McqClosed(T0)),
        (started, TheoryIssued(("a",))),
        (started, TheorySubmitted("f.pdf", T0)),
    ],
)
def test_invalid_transitions(state_factory, event):
    with pytest.raises(InvalidState):
        transition(state_factory(), event)


def test_terminal_states_accept_nothing():
    failed = transition(started(), McqClosed(at(1)))
    assert isinstance(failed, Failed)
    for event in (AnswerSubmitted(0, 0, T0), McqClosed(T0), TheoryIssued(("a",)), TheorySubmitted("f", T0)):
        with pytest.raises(InvalidState):
            transition(failed, event)
