"""
Token ledger: every balance change is one append-only TokenLedger row, and
users.token_balance is kept as the running total. post_entry is the only writer
of token_balance. Callers own the transaction (nothing here commits).
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizstake.errors import InsufficientFunds
from quizstake.models.token_ledger import TokenLedger, LedgerEntryType
from quizstake.models.user import User

logger = logging.getLogger(__name__)


def post_entry(
    db: Session,
    user: User,
    entry_type: LedgerEntryType,
    amount: int,
    *,
    task_id: str | None = None,
    note: str = "",
) -> TokenLedger:
    """Apply a signed amount to the user's balance and append the matching entry."""
    new_balance = user.token_balance + amount
    if new_balance < 0:
        raise InsufficientFunds(
            f"Insufficient tokens. Need {-amount}, have {user.token_balance}"
        )
    user.token_balance = new_balance
    entry = TokenLedger(
        user_id=user.id,
        task_id=task_id,
        type=entry_type.value,
        amount=amount,
        balance_after=new_balance,
        note=note,
    )
    db.add(entry)
    logger.debug("ledger %s user=%s amount=%s balance=%s", entry_type.value, user.id, amount, new_balance)
    return entry


def ledger_total(db: Session, user_id: str) -> int:
    return db.query(func.coalesce(func.sum(TokenLedger.amount), 0)).filter(
        TokenLedger.user_id == user_id,
    ).scalar() or 0


def is_reconciled(db: Session, user: User) -> bool:
    """Balance snapshot equals the sum of all entries."""
    return ledger_total(db, user.id) == user.token_balance


def list_entries(db: Session, user_id: str, limit: int = 100) -> list[TokenLedger]:
    return (
        db.query(TokenLedger)
        .filter(TokenLedger.user_id == user_id)
        .order_by(TokenLedger.created_at.desc())
        .limit(limit)
        .all()
    )
