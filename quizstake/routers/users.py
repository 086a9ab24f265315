"""
Current-user endpoints (Bearer token):
- GET /api/users/me: balance, reputation, quiz stats, streak
- GET /api/users/me/ledger: token ledger, newest first, with reconciliation check
- GET /api/users/me/proficiency: per-course proficiency
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from quizstake.database import get_db
from quizstake.auth import get_current_user
from quizstake.models.user import User
from quizstake.models.course_proficiency import CourseProficiency
from quizstake.schemas.user import (
    CourseProficiencyResponse,
    LedgerEntryResponse,
    LedgerResponse,
    StreakResponse,
    UserMeResponse,
    UserStats,
)
from quizstake.services.ledger import ledger_total, list_entries

router = APIRouter(prefix="/api/users", tags=["users"])


# ---------- Profile ----------


@router.get("/me", response_model=UserMeResponse)
def get_me(user: User = Depends(get_current_user)):
    """Current user: balance, reputation, quiz stats and streak."""
    return UserMeResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        token_balance=user.token_balance,
        reputation=user.reputation,
        stats=UserStats.model_validate(user),
        streak=StreakResponse(
            current_days=user.streak_current_days,
            longest=user.streak_longest,
            last_active=user.streak_last_active,
        ),
    )


# ---------- Tokens ----------


@router.get("/me/ledger", response_model=LedgerResponse)
def get_my_ledger(
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Ledger entries, newest first. reconciled = balance matches the sum of every entry."""
    total = ledger_total(db, user.id)
    return LedgerResponse(
        token_balance=user.token_balance,
        ledger_total=total,
        reconciled=total == user.token_balance,
        entries=[LedgerEntryResponse.model_validate(e) for e in list_entries(db, user.id, limit=limit)],
    )


# ---------- Proficiency ----------


@router.get("/me/proficiency", response_model=list[CourseProficiencyResponse])
def get_my_proficiency(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-course proficiency, highest score first."""
    rows = (
        db.query(CourseProficiency)
        .filter(CourseProficiency.user_id == user.id)
        .order_by(CourseProficiency.proficiency_score.desc())
        .all()
    )
    return [CourseProficiencyResponse.model_validate(p) for p in rows]
