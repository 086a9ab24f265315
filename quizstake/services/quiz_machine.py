"""
Quiz attempt state machine.

Each status is its own frozen dataclass carrying only the fields valid in that
state. transition(state, event) looks the pair up in a table; any pair not in the
table is rejected with InvalidState, so invalid moves can't be expressed by
forgetting a status check.

    McqInProgress --AnswerSubmitted--> McqInProgress
    McqInProgress --McqClosed--------> TheoryPending (score >= 8) | Failed
    TheoryPending --TheoryIssued-----> TheoryPending (questions cached once)
    TheoryPending --TheorySubmitted--> Submitted
    Failed, Submitted: terminal

Deadlines are cumulative from the MCQ start: question i must be answered within
(i + 1) * (budget + grace). Time not used on early questions is not banked.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Union

from quizstake.errors import Conflict, InvalidAnswer, InvalidState
from quizstake.models.quiz_attempt import AttemptStatus, QuizAttempt

MCQ_COUNT = 6
THEORY_COUNT = 7
OPTIONS_PER_QUESTION = 4
PTS = {"correct": 2, "unattempted": -1, "wrong": -2}
MAX_SCORE = MCQ_COUNT * PTS["correct"]
PASS_THRESHOLD = 8
TIME_LIMIT_MS = 15_000
TIME_GRACE_MS = 2_000


@dataclass(frozen=True)
class McqQuestion:
    question: str
    options: tuple[str, ...]
    correct_answer: int


@dataclass(frozen=True)
class McqResponse:
    question_index: int
    selected_answer: int | None
    answered_at: datetime | None
    time_taken_ms: int | None
    is_correct: bool | None  # None = unattempted
    points: int


# ---- States ----

@dataclass(frozen=True)
class McqInProgress:
    questions: tuple[McqQuestion, ...]
    started_at: datetime
    responses: tuple[McqResponse, ...] = ()
    status = AttemptStatus.MCQ_IN_PROGRESS


@dataclass(frozen=True)
class TheoryPending:
    questions: tuple[McqQuestion, ...]
    responses: tuple[McqResponse, ...]
    score: int
    theory_questions: tuple[str, ...] = ()
    status = AttemptStatus.THEORY_PENDING


@dataclass(frozen=True)
class Failed:
    questions: tuple[McqQuestion, ...]
    responses: tuple[McqResponse, ...]
    score: int
    status = AttemptStatus.FAILED


@dataclass(frozen=True)
class Submitted:
    questions: tuple[McqQuestion, ...]
    responses: tuple[McqResponse, ...]
    score: int
    theory_questions: tuple[str, ...]
    submission_path: str
    submitted_at: datetime
    status = AttemptStatus.SUBMITTED


AttemptState = Union[McqInProgress, TheoryPending, Failed, Submitted]


# ---- Events ----

@dataclass(frozen=True)
class AnswerSubmitted:
    question_index: int
    selected_answer: int | None
    at: datetime


@dataclass(frozen=True)
class McqClosed:
    at: datetime


@dataclass(frozen=True)
class TheoryIssued:
    questions: tuple[str, ...]


@dataclass(frozen=True)
class TheorySubmitted:
    path: str
    at: datetime


Event = Union[AnswerSubmitted, McqClosed, TheoryIssued, TheorySubmitted]


# ---- Scoring ----

def question_deadline_ms(question_index: int) -> int:
    return (question_index + 1) * (TIME_LIMIT_MS + TIME_GRACE_MS)


def score_answer(
    question: McqQuestion,
    question_index: int,
    selected_answer: int | None,
    elapsed_ms: int,
    answered_at: datetime,
) -> McqResponse:
    if elapsed_ms > question_deadline_ms(question_index) or selected_answer is None:
        points, is_correct = PTS["unattempted"], None
    elif selected_answer == question.correct_answer:
        points, is_correct = PTS["correct"], True
    else:
        points, is_correct = PTS["wrong"], False
    return McqResponse(
        question_index=question_index,
        selected_answer=selected_answer,
        answered_at=answered_at,
        time_taken_ms=elapsed_ms - question_index * TIME_LIMIT_MS,
        is_correct=is_correct,
        points=points,
    )


def unattempted(question_index: int) -> McqResponse:
    return McqResponse(
        question_index=question_index,
        selected_answer=None,
        answered_at=None,
        time_taken_ms=None,
        is_correct=None,
        points=PTS["unattempted"],
    )


# ---- Transitions ----

def _answer(state: McqInProgress, event: AnswerSubmitted) -> McqInProgress:
    i = event.question_index
    if not 0 <= i < len(state.questions):
        raise InvalidAnswer(f"Question index {i} out of range (0-{len(state.questions) - 1})")
    if any(r.question_index == i for r in state.responses):
        raise Conflict(f"Q{i} already answered")
    if event.selected_answer is not None and not 0 <= event.selected_answer < len(state.questions[i].options):
        raise InvalidAnswer(f"Option {event.selected_answer} is not offered for Q{i}")
    elapsed_ms = int((event.at - state.started_at).total_seconds() * 1000)
    response = score_answer(state.questions[i], i, event.selected_answer, elapsed_ms, event.at)
    return replace(state, responses=state.responses + (response,))


def _close(state: McqInProgress, event: McqClosed) -> Union[TheoryPending, Failed]:
    answered = {r.question_index for r in state.responses}
    backfill = tuple(unattempted(i) for i in range(len(state.questions)) if i not in answered)
    responses = tuple(sorted(state.responses + backfill, key=lambda r: r.question_index))
    score = sum(r.points for r in responses)
    if score >= PASS_THRESHOLD:
        return TheoryPending(questions=state.questions, responses=responses, score=score)
    return Failed(questions=state.questions, responses=responses, score=score)


def _issue_theory(state: TheoryPending, event: TheoryIssued) -> TheoryPending:
    if state.theory_questions:
        return state
    return replace(state, theory_questions=tuple(event.questions))


def _submit_theory(state: TheoryPending, event: TheorySubmitted) -> Submitted:
    if not state.theory_questions:
        raise InvalidState("Fetch the theory questions before submitting solutions")
    return Submitted(
        questions=state.questions,
        responses=state.responses,
        score=state.score,
        theory_questions=state.theory_questions,
        submission_path=event.path,
        submitted_at=event.at,
    )


_TRANSITIONS = {
    (McqInProgress, AnswerSubmitted): _answer,
    (McqInProgress, McqClosed): _close,
    (TheoryPending, TheoryIssued): _issue_theory,
    (TheoryPending, TheorySubmitted): _submit_theory,
}


def transition(state: AttemptState, event: Event) -> AttemptState:
    handler = _TRANSITIONS.get((type(state), type(event)))
    if handler is None:
        raise InvalidState(f"Quiz is {state.status.value}; cannot apply {type(event).__name__}")
    return handler(state, event)


# ---- Row mapping ----

def _question_from_dict(d: dict) -> McqQuestion:
    return McqQuestion(question=d["question"], options=tuple(d["options"]), correct_answer=d["correct_answer"])


def _response_from_dict(d: dict) -> McqResponse:
    answered_at = d.get("answered_at")
    return McqResponse(
        question_index=d["question_index"],
        selected_answer=d.get("selected_answer"),
        answered_at=datetime.fromisoformat(answered_at) if answered_at else None,
        time_taken_ms=d.get("time_taken_ms"),
        is_correct=d.get("is_correct"),
        points=d["points"],
    )


def response_to_dict(r: McqResponse) -> dict:
    return {
        "question_index": r.question_index,
        "selected_answer": r.selected_answer,
        "answered_at": r.answered_at.isoformat() if r.answered_at else None,
        "time_taken_ms": r.time_taken_ms,
        "is_correct": r.is_correct,
        "points": r.points,
    }


def state_of(attempt: QuizAttempt) -> AttemptState:
    questions = tuple(_question_from_dict(d) for d in attempt.mcqs)
    responses = tuple(_response_from_dict(d) for d in attempt.mcq_responses or [])
    theory = tuple(attempt.theory_questions or [])
    status = AttemptStatus(attempt.status)
    if status == AttemptStatus.MCQ_IN_PROGRESS:
        return McqInProgress(questions=questions, started_at=attempt.mcq_started_at, responses=responses)
    if status == AttemptStatus.THEORY_PENDING:
        return TheoryPending(questions=questions, responses=responses, score=attempt.mcq_score, theory_questions=theory)
    if status == AttemptStatus.FAILED:
        return Failed(questions=questions, responses=responses, score=attempt.mcq_score)
    return Submitted(
        questions=questions,
        responses=responses,
        score=attempt.mcq_score,
        theory_questions=theory,
        submission_path=attempt.theory_submission_path,
        submitted_at=attempt.theory_submitted_at,
    )


def write_state(attempt: QuizAttempt, state: AttemptState) -> None:
    """Copy a state onto the row. JSON columns get fresh lists so the ORM sees the change."""
    attempt.status = state.status.value
    attempt.mcq_responses = [response_to_dict(r) for r in state.responses]
    if isinstance(state, McqInProgress):
        return
    attempt.mcq_score = state.score
    attempt.mcq_passed = not isinstance(state, Failed)
    if isinstance(state, (TheoryPending, Submitted)):
        attempt.theory_questions = list(state.theory_questions)
    if isinstance(state, Submitted):
        attempt.theory_submission_path = state.submission_path
        attempt.theory_submitted_at = state.submitted_at
