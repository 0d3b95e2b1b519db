"""
tests/test_ledger_service.py — Ledger Integration Tests
========================================================
Covers registration, atomic debit/credit, idempotency keys, best-effort
reward distribution, replay, and history filters.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agora.database.models import (
    Account,
    Currency,
    EntityType,
    LedgerTransaction,
    TransactionKind,
)
from agora.errors import InsufficientBalance, InvalidRequest, NotFound
from agora.services import ledger_service
from agora.services.ledger_service import TransactionIntent, make_intent
from conftest import fund, make_account


def _ledger_sum(engine, account_id: int, currency: Currency) -> Decimal:
    with Session(engine) as session:
        total = session.scalar(
            select(func.coalesce(func.sum(LedgerTransaction.amount), 0)).where(
                LedgerTransaction.account_id == account_id,
                LedgerTransaction.currency == currency.value,
            )
        )
    return Decimal(str(total)).quantize(Decimal("0.0001"))


class TestRegisterAccount:
    def test_new_account_starts_with_one_acent_zero_dcents(self, engine):
        account = ledger_service.register_account(engine, username="alice")
        balance = ledger_service.get_balance(engine, account.id)
        assert balance.acent == Decimal("1")
        assert balance.dcent == Decimal("0")

    def test_writes_exactly_one_opening_transaction(self, engine):
        account = ledger_service.register_account(engine, username="bob")
        history = ledger_service.get_transaction_history(engine, account.id)
        assert len(history) == 1
        assert history[0].kind == TransactionKind.ACCOUNT_OPENING
        assert history[0].currency == Currency.ACENT
        assert history[0].amount == Decimal("1")

    def test_duplicate_username_rejected(self, engine):
        ledger_service.register_account(engine, username="carol")
        with pytest.raises(InvalidRequest):
            ledger_service.register_account(engine, username="carol")

    def test_blank_username_rejected(self, engine):
        with pytest.raises(InvalidRequest):
            ledger_service.register_account(engine, username="   ")

    def test_display_name_defaults_to_username(self, engine):
        account = ledger_service.register_account(engine, username="dave")
        assert account.display_name == "dave"


class TestRecordTransaction:
    def test_credit_updates_balance_and_log_together(self, engine):
        account_id = make_account(engine, "erin")
        with Session(engine) as session:
            txn, created = ledger_service.record_transaction(session, make_intent(
                account_id, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "vote",
            ))
            session.commit()
            assert created
            assert txn.id is not None

        assert ledger_service.get_balance(engine, account_id).acent == Decimal("2")
        assert _ledger_sum(engine, account_id, Currency.ACENT) == Decimal("2")

    def test_debit_to_exactly_zero_is_allowed(self, engine):
        account_id = make_account(engine, "frank", dcents=1)
        with Session(engine) as session:
            ledger_service.record_transaction(session, make_intent(
                account_id, TransactionKind.DELEGATION_REVOCATION, Currency.DCENT, -1, "x",
            ))
            session.commit()
        assert ledger_service.get_balance(engine, account_id).dcent == Decimal("0")

    def test_overdraft_fails_closed(self, engine):
        account_id = make_account(engine, "gina", dcents=2)
        with Session(engine) as session:
            with pytest.raises(InsufficientBalance):
                ledger_service.record_transaction(session, make_intent(
                    account_id, TransactionKind.COMMENT_CREATION, Currency.DCENT, -3, "x",
                ))
            session.rollback()

        assert ledger_service.get_balance(engine, account_id).dcent == Decimal("2")
        history = ledger_service.get_transaction_history(
            engine, account_id, kind=TransactionKind.COMMENT_CREATION
        )
        assert history == []

    def test_zero_amount_rejected(self, engine):
        account_id = make_account(engine, "hank")
        with Session(engine) as session:
            with pytest.raises(InvalidRequest):
                ledger_service.record_transaction(session, make_intent(
                    account_id, TransactionKind.VOTE_CAST, Currency.ACENT, 0, "x",
                ))

    def test_unknown_account(self, engine):
        with Session(engine) as session:
            with pytest.raises(NotFound):
                ledger_service.record_transaction(session, make_intent(
                    999, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x",
                ))

    def test_float_amount_rejected(self):
        with pytest.raises(TypeError):
            make_intent(1, TransactionKind.VOTE_CAST, Currency.ACENT, 0.1, "x")

    def test_fractional_amounts_do_not_drift(self, engine):
        account_id = make_account(engine, "ivy")
        for _ in range(30):
            fund(engine, account_id, Currency.DCENT, "0.1")
        assert ledger_service.get_balance(engine, account_id).dcent == Decimal("3.0000")
        assert _ledger_sum(engine, account_id, Currency.DCENT) == Decimal("3.0000")


class TestIdempotency:
    def test_same_key_applies_once(self, engine):
        account_id = make_account(engine, "jack")
        intent = make_intent(
            account_id, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "vote",
            entity_type=EntityType.VOTE, entity_id=42,
        )
        first, created_first = ledger_service.replay_transaction(engine, intent)
        second, created_second = ledger_service.replay_transaction(engine, intent)

        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        assert ledger_service.get_balance(engine, account_id).acent == Decimal("2")

    def test_default_key_format(self):
        key = ledger_service.idempotency_key(
            TransactionKind.QUIZ_PASS, EntityType.QUIZ, 7, 3
        )
        assert key == "quiz_pass:quiz:7:3"

    def test_no_entity_means_no_key(self):
        intent = make_intent(1, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x")
        assert intent.idempotency_key is None


class TestDistributeRewards:
    def test_all_applied(self, engine):
        a = make_account(engine, "kim")
        b = make_account(engine, "lee")
        outcome = ledger_service.distribute_rewards(engine, [
            make_intent(a, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x",
                        entity_type=EntityType.VOTE, entity_id=1),
            make_intent(b, TransactionKind.PROPOSAL_REVENUE, Currency.ACENT, 1, "x",
                        entity_type=EntityType.VOTE, entity_id=1),
        ])
        assert outcome.ok
        assert len(outcome.applied) == 2

    def test_failure_is_returned_not_raised(self, engine):
        a = make_account(engine, "max")
        good = make_intent(a, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x",
                           entity_type=EntityType.VOTE, entity_id=5)
        bad = make_intent(999, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x",
                          entity_type=EntityType.VOTE, entity_id=5)

        outcome = ledger_service.distribute_rewards(engine, [bad, good])

        assert not outcome.ok
        assert outcome.failed == [bad]
        assert len(outcome.applied) == 1
        assert ledger_service.get_balance(engine, a).acent == Decimal("2")

    def test_failed_intent_can_be_replayed(self, engine):
        a = make_account(engine, "ned")
        intent = make_intent(a, TransactionKind.VOTE_CAST, Currency.ACENT, 1, "x",
                             entity_type=EntityType.VOTE, entity_id=9)

        real = ledger_service.replay_transaction
        with patch.object(ledger_service, "replay_transaction",
                          side_effect=InvalidRequest("db hiccup")):
            outcome = ledger_service.distribute_rewards(engine, [intent])
        assert outcome.failed == [intent]
        assert ledger_service.get_balance(engine, a).acent == Decimal("1")

        _, created = real(engine, outcome.failed[0])
        assert created
        assert ledger_service.get_balance(engine, a).acent == Decimal("2")

        # A second replay of the same intent is a no-op.
        _, created_again = real(engine, outcome.failed[0])
        assert not created_again
        assert ledger_service.get_balance(engine, a).acent == Decimal("2")


class TestTransactionHistory:
    def test_newest_first_and_filters(self, engine):
        account_id = make_account(engine, "olga", dcents=4)
        fund(engine, account_id, Currency.ACENT, 2)

        history = ledger_service.get_transaction_history(engine, account_id)
        assert [t.kind for t in history] == [
            TransactionKind.QUIZ_PASS,
            TransactionKind.COMMENT_VOTE,
            TransactionKind.ACCOUNT_OPENING,
        ]

        dcent_only = ledger_service.get_transaction_history(
            engine, account_id, currency=Currency.DCENT
        )
        assert len(dcent_only) == 1
        assert dcent_only[0].amount == Decimal("4")

        limited = ledger_service.get_transaction_history(engine, account_id, limit=1)
        assert len(limited) == 1

    def test_unknown_account(self, engine):
        with pytest.raises(NotFound):
            ledger_service.get_transaction_history(engine, 12345)

    def test_intent_is_plain_and_hashable(self):
        intent = TransactionIntent(
            account_id=1,
            kind=TransactionKind.VOTE_CAST,
            currency=Currency.ACENT,
            amount=Decimal("1"),
            description="x",
        )
        assert hash(intent) == hash(intent)

    def test_balance_equals_history_sum(self, engine):
        account_id = make_account(engine, "pete", acents=3, dcents=2)
        with Session(engine) as session:
            account = session.get(Account, account_id)
            acent, dcent = account.acent_balance, account.dcent_balance
        assert _ledger_sum(engine, account_id, Currency.ACENT) == acent
        assert _ledger_sum(engine, account_id, Currency.DCENT) == dcent
