import pytest

from quizstake.errors import InsufficientFunds
from quizstake.models.token_ledger import LedgerEntryType, TokenLedger
from quizstake.services.accounts import open_account
from quizstake.services.ledger import is_reconciled, ledger_total, list_entries, post_entry


def test_open_account_writes_initial_entry(db):
    user = open_account(db, "  New@Example.com ", "New", initial_tokens=100)
    assert user.email == "new@example.com"
    assert user.token_balance == 100
    entries = list_entries(db, user.id)
    assert [(e.type, e.amount, e.balance_after) for e in entries] == [("initial", 100, 100)]
    assert is_reconciled(db, user)


def test_open_account_without_grant(db):
    user = open_account(db, "zero@example.com", initial_tokens=0)
    assert user.token_balance == 0
    assert ledger_total(db, user.id) == 0
    assert is_reconciled(db, user)


def test_post_entry_tracks_running_balance(db, user):
    post_entry(db, user, LedgerEntryType.STAKE, -30, note="stake")
    post_entry(db, user, LedgerEntryType.REWARD, 45, note="reward")
    db.commit()
    assert user.token_balance == 115
    rows = db.query(TokenLedger).filter(TokenLedger.user_id == user.id).all()
    assert sorted(r.balance_after for r in rows) == [70, 100, 115]
    assert ledger_total(db, user.id) == 115


def test_post_entry_refuses_negative_balance(db, user):
    with pytest.raises(InsufficientFunds):
        post_entry(db, user, LedgerEntryType.STAKE, -101)
    db.rollback()
    db.refresh(user)
    assert user.token_balance == 100
    assert len(list_entries(db, user.id)) == 1
