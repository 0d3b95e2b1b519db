"""
agora.services.ledger_service — Dual-Currency Ledger
=====================================================

The single choke point for balance changes.  :func:`record_transaction`
inserts one :class:`LedgerTransaction` and adjusts the matching balance in
the caller's session, so both land in the same database transaction or
neither does.

Core state transitions (vote, delegation, comment) commit first.  Flat
rewards that follow are *best-effort*: :func:`distribute_rewards` applies
each :class:`TransactionIntent` in its own session, logs failures, and hands
them back so a retry job can call :func:`replay_transaction`.  Idempotency
keys make those replays safe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from agora.constants import STARTING_ACENTS, to_amount
from agora.database.models import (
    Account,
    Currency,
    EntityType,
    LedgerTransaction,
    TransactionKind,
)
from agora.errors import AgoraError, InsufficientBalance, InvalidRequest, NotFound

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TransactionIntent:
    """A balance change that has been decided but not necessarily applied.

    Kept deliberately plain so failed rewards can be queued, logged and
    replayed later.
    """

    account_id: int
    kind: TransactionKind
    currency: Currency
    amount: Decimal
    description: str
    related_entity_type: EntityType | None = None
    related_entity_id: int | None = None
    idempotency_key: str | None = None


@dataclass(slots=True)
class RewardOutcome:
    """Result of a best-effort reward batch."""

    applied: list[int] = field(default_factory=list)   # transaction ids
    failed: list[TransactionIntent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(frozen=True, slots=True)
class Balance:
    account_id: int
    acent: Decimal
    dcent: Decimal


def idempotency_key(
    kind: TransactionKind,
    entity_type: EntityType,
    entity_id: int,
    account_id: int,
) -> str:
    """Default key: one transaction of *kind* per entity per account."""
    return f"{kind}:{entity_type}:{entity_id}:{account_id}"


def make_intent(
    account_id: int,
    kind: TransactionKind,
    currency: Currency,
    amount: Decimal | int | str,
    description: str,
    *,
    entity_type: EntityType | None = None,
    entity_id: int | None = None,
) -> TransactionIntent:
    """Build an intent with the default idempotency key when an entity is given."""
    key = None
    if entity_type is not None and entity_id is not None:
        key = idempotency_key(kind, entity_type, entity_id, account_id)
    return TransactionIntent(
        account_id=account_id,
        kind=kind,
        currency=currency,
        amount=to_amount(amount),
        description=description,
        related_entity_type=entity_type,
        related_entity_id=entity_id,
        idempotency_key=key,
    )


# ---------------------------------------------------------------------------
# Session-level primitives
# ---------------------------------------------------------------------------
def get_account(session: Session, account_id: int, *, for_update: bool = False) -> Account:
    """Fetch an Account or raise :class:`NotFound`.

    ``for_update`` takes a row lock so concurrent writers to the same
    account serialise behind this transaction.
    """
    account = session.get(Account, account_id, with_for_update=True if for_update else None)
    if account is None:
        raise NotFound(f"Account {account_id} not found")
    return account


def _find_by_key(session: Session, key: str) -> LedgerTransaction | None:
    return session.scalar(
        select(LedgerTransaction).where(LedgerTransaction.idempotency_key == key)
    )


def record_transaction(
    session: Session, intent: TransactionIntent
) -> tuple[LedgerTransaction, bool]:
    """Append one transaction and apply it to the account balance.

    Runs inside the caller's session and does not commit.  Returns
    ``(transaction, created)``; ``created`` is False when the idempotency
    key was already recorded, in which case the balance is untouched.

    Raises
    ------
    InsufficientBalance
        If a debit would take the balance below zero.  Nothing is written.
    InvalidRequest
        For a zero amount.
    NotFound
        If the account does not exist.
    """
    amount = to_amount(intent.amount)
    if amount == 0:
        raise InvalidRequest("Ledger amount must be non-zero")

    currency = Currency(intent.currency)
    account = get_account(session, intent.account_id, for_update=True)

    if intent.idempotency_key is not None:
        existing = _find_by_key(session, intent.idempotency_key)
        if existing is not None:
            logger.debug("Transaction %s already recorded", intent.idempotency_key)
            return existing, False

    new_balance = to_amount(account.balance_for(currency)) + amount
    if new_balance < 0:
        raise InsufficientBalance(
            f"Account {account.id} has {account.balance_for(currency)} {currency}, "
            f"needs {-amount}"
        )

    txn = LedgerTransaction(
        account_id=account.id,
        kind=TransactionKind(intent.kind).value,
        currency=currency.value,
        amount=amount,
        related_entity_type=(
            EntityType(intent.related_entity_type).value
            if intent.related_entity_type is not None else None
        ),
        related_entity_id=intent.related_entity_id,
        description=intent.description,
        idempotency_key=intent.idempotency_key,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(txn)
            session.flush()
    except IntegrityError:
        # A concurrent writer recorded the same key first.
        existing = (
            _find_by_key(session, intent.idempotency_key)
            if intent.idempotency_key is not None else None
        )
        if existing is None:
            raise
        return existing, False

    account.set_balance(currency, new_balance)
    session.flush()
    return txn, True


# ---------------------------------------------------------------------------
# Engine-level operations
# ---------------------------------------------------------------------------
def replay_transaction(
    engine: Engine, intent: TransactionIntent
) -> tuple[LedgerTransaction, bool]:
    """Apply *intent* in its own transaction.

    Safe to call repeatedly for intents that carry an idempotency key.
    """
    with Session(engine, expire_on_commit=False) as session:
        txn, created = record_transaction(session, intent)
        session.commit()
        if created:
            logger.info(
                "Applied %s %s %s to account %d",
                intent.kind, txn.amount, intent.currency, intent.account_id,
            )
        return txn, created


def distribute_rewards(engine: Engine, intents: Iterable[TransactionIntent]) -> RewardOutcome:
    """Best-effort application of post-commit rewards.

    Each intent commits independently.  A failure is logged and returned in
    :attr:`RewardOutcome.failed`; it never raises.
    """
    outcome = RewardOutcome()
    for intent in intents:
        try:
            txn, _ = replay_transaction(engine, intent)
        except (AgoraError, SQLAlchemyError):
            logger.warning(
                "Reward %s for account %d failed; queued for replay",
                intent.idempotency_key or intent.kind, intent.account_id,
                exc_info=True,
            )
            outcome.failed.append(intent)
        else:
            outcome.applied.append(txn.id)
    return outcome


def register_account(
    engine: Engine,
    *,
    username: str,
    display_name: str | None = None,
    email: str | None = None,
    location: dict | None = None,
) -> Account:
    """Create an account holding the opening balance of 1 Acent, 0 Dcents.

    The opening Acent is written as an ``account_opening`` transaction so
    the balance always equals the sum of the account's history.
    """
    username = username.strip()
    if not username:
        raise InvalidRequest("Username is required")

    with Session(engine, expire_on_commit=False) as session:
        account = Account(
            username=username,
            display_name=(display_name or username).strip(),
            email=email,
            location=location,
            acent_balance=Decimal("0"),
            dcent_balance=Decimal("0"),
        )
        try:
            with session.begin_nested():
                session.add(account)
                session.flush()
        except IntegrityError:
            raise InvalidRequest("Username or email already registered") from None

        record_transaction(session, make_intent(
            account.id,
            TransactionKind.ACCOUNT_OPENING,
            Currency.ACENT,
            STARTING_ACENTS,
            "Account opening balance",
            entity_type=EntityType.ACCOUNT,
            entity_id=account.id,
        ))
        session.commit()
        session.refresh(account)
        session.expunge(account)

    logger.info("Registered account %d (%s)", account.id, account.username)
    return account


def get_balance(engine: Engine, account_id: int) -> Balance:
    with Session(engine) as session:
        account = get_account(session, account_id)
        return Balance(
            account_id=account.id,
            acent=to_amount(account.acent_balance),
            dcent=to_amount(account.dcent_balance),
        )


def get_transaction_history(
    engine: Engine,
    account_id: int,
    *,
    kind: TransactionKind | None = None,
    currency: Currency | None = None,
    related_entity_type: EntityType | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = None,
) -> list[LedgerTransaction]:
    """An account's transactions, newest first, optionally filtered."""
    with Session(engine) as session:
        get_account(session, account_id)
        stmt = select(LedgerTransaction).where(LedgerTransaction.account_id == account_id)
        if kind is not None:
            stmt = stmt.where(LedgerTransaction.kind == TransactionKind(kind).value)
        if currency is not None:
            stmt = stmt.where(LedgerTransaction.currency == Currency(currency).value)
        if related_entity_type is not None:
            stmt = stmt.where(
                LedgerTransaction.related_entity_type == EntityType(related_entity_type).value
            )
        if since is not None:
            stmt = stmt.where(LedgerTransaction.created_at >= since)
        if until is not None:
            stmt = stmt.where(LedgerTransaction.created_at < until)
        stmt = stmt.order_by(LedgerTransaction.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = list(session.scalars(stmt).all())
        session.expunge_all()
        return rows
