"""
Account provisioning.

open_account is the hook the (external) auth/registration service calls when a
student signs up. It writes the opening grant through the ledger so
balance == sum(entries) from row one.
"""
from sqlalchemy.orm import Session

from quizstake.config import get_settings
from quizstake.models.token_ledger import LedgerEntryType
from quizstake.models.user import User, UserRole
from quizstake.services.ledger import post_entry


def open_account(
    db: Session,
    email: str,
    full_name: str = "",
    *,
    initial_tokens: int | None = None,
    role: UserRole = UserRole.STUDENT,
) -> User:
    if initial_tokens is None:
        initial_tokens = get_settings().initial_token_grant
    user = User(email=email.strip().lower(), full_name=full_name, role=role.value, token_balance=0)
    db.add(user)
    db.flush()
    if initial_tokens:
        post_entry(db, user, LedgerEntryType.INITIAL, initial_tokens, note="Opening token grant")
    db.commit()
    db.refresh(user)
    return user
