"""Request/response models for /api/quiz. MCQs sent to the client never carry correct_answer."""
from datetime import datetime
from pydantic import BaseModel, Field


# ---- Start ----

class McqPublic(BaseModel):
    """MCQ as shown to the student during the quiz (no correct answer)."""
    index: int
    question: str
    options: list[str]
    time_limit: int  # seconds


class QuizStartResponse(BaseModel):
    message: str
    attempt_id: str
    mcqs: list[McqPublic]
    pass_threshold: int
    token_stake: int
    attempt_number: int
    original_stake: int


# ---- Answer ----

class AnswerRequest(BaseModel):
    question_index: int = Field(..., ge=0)
    selected_answer: int | None = Field(None, ge=0, description="Option index; null = skipped")


class AnswerResponse(BaseModel):
    question_index: int
    points: int
    is_correct: bool | None
    remaining: int


# ---- Result ----

class BreakdownItem(BaseModel):
    question: str
    your_answer: str
    correct_answer: str
    points: int


class McqResultResponse(BaseModel):
    score: int
    max_score: int
    passed: bool
    threshold: int
    tokens_awarded: int | None
    breakdown: list[BreakdownItem]


# ---- Theory ----

class TheoryQuestion(BaseModel):
    number: int
    question: str


class TheoryQuestionsResponse(BaseModel):
    questions: list[TheoryQuestion]


class TheorySubmitResponse(BaseModel):
    message: str
    submitted_at: datetime


# ---- Attempt info / detail ----

class AttemptHistoryItem(BaseModel):
    attempt_number: int
    stake: int
    score: int | None
    passed: bool | None
    status: str
    date: datetime


class AttemptInfoResponse(BaseModel):
    total_attempts: int
    next_attempt_number: int
    original_stake: int
    next_stake: int
    decay_rate: float
    can_retry: bool
    latest_status: str | None
    history: list[AttemptHistoryItem]


class McqDetailItem(BaseModel):
    question: str
    options: list[str]
    correct_answer: int | None  # null until the attempt is settled
    selected_answer: int | None
    is_correct: bool | None
    points: int


class AttemptDetailResponse(BaseModel):
    id: str
    user_id: str
    task_id: str
    course_id: str
    attempt_number: int
    effective_stake: int
    mcq_score: int | None
    mcq_passed: bool | None
    status: str
    tokens_awarded: int | None
    mcq_detail: list[McqDetailItem]
    theory_questions: list[str]
    theory_submission_path: str | None
    theory_submitted_at: datetime | None
    created_at: datetime
