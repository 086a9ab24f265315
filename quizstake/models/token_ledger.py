"""Append-only token ledger. Rows are never updated or deleted."""
import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from quizstake.database import Base


class LedgerEntryType(str, enum.Enum):
    INITIAL = "initial"
    STAKE = "stake"
    REWARD = "reward"
    PENALTY = "penalty"
    BONUS = "bonus"


class TokenLedger(Base):
    __tablename__ = "token_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(String(36), ForeignKey("tasks.id"), nullable=True)
    type = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)  # signed
    balance_after = Column(Integer, nullable=False)
    note = Column(String(512), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
