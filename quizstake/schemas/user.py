"""Response models for /api/users and the JWT payload."""
from datetime import date, datetime
from pydantic import BaseModel


# ---- Profile ----

class UserStats(BaseModel):
    tasks_completed: int
    quizzes_taken: int
    quizzes_passed: int
    quizzes_failed: int
    avg_mcq_score: float
    tokens_earned: int
    tokens_lost: int
    upvotes_received: int
    downvotes_received: int
    downvotes_lost: int
    downvotes_defended: int
    reviews_given: int

    class Config:
        from_attributes = True


class StreakResponse(BaseModel):
    current_days: int
    longest: int
    last_active: date | None


class UserMeResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    token_balance: int
    reputation: int
    stats: UserStats
    streak: StreakResponse


# ---- Ledger ----

class LedgerEntryResponse(BaseModel):
    id: str
    task_id: str | None
    type: str
    amount: int
    balance_after: int
    note: str
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerResponse(BaseModel):
    token_balance: int
    ledger_total: int
    reconciled: bool
    entries: list[LedgerEntryResponse]


# ---- Proficiency ----

class CourseProficiencyResponse(BaseModel):
    course_id: str
    upvotes_received: int
    downvotes_received: int
    downvotes_lost: int
    downvotes_defended: int
    tasks_attempted: int
    tasks_completed: int
    quizzes_passed: int
    quizzes_failed: int
    proficiency_score: int

    class Config:
        from_attributes = True


# ---- Auth ----

class TokenPayload(BaseModel):
    sub: str  # user id
    email: str
    exp: int
    type: str = "access"
