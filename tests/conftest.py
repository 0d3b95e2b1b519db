"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of agora.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from agora.config import AgoraConfig  # noqa: E402
from agora.database.models import Base, Currency, TransactionKind  # noqa: E402
from agora.services import ledger_service, proposal_service, quiz_service  # noqa: E402

QUIZ_QUESTIONS = [
    {
        "text": "Which budget line does the proposal change?",
        "explanation": "Section 1 moves funds to park maintenance.",
        "options": [
            {"text": "Parks", "is_correct": True},
            {"text": "Roads", "is_correct": False},
        ],
    },
    {
        "text": "When does it take effect?",
        "explanation": "Next fiscal year.",
        "options": [
            {"text": "Immediately", "is_correct": False},
            {"text": "Next fiscal year", "is_correct": True},
            {"text": "Never", "is_correct": False},
        ],
    },
]

CORRECT_ANSWERS = [
    {"question_index": 0, "selected_option_id": "0.0"},
    {"question_index": 1, "selected_option_id": "1.1"},
]


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Agora tables.

    Uses StaticPool so every session shares the same in-memory database.
    pysqlite's implicit transaction handling is switched off so SAVEPOINTs
    nest inside a real BEGIN, as they do on PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine(db_engine):
    return db_engine


@pytest.fixture
def test_config() -> AgoraConfig:
    return AgoraConfig(platform_name="Agora Test", api_port=8000, token_ttl_hours=1)


# ---------------------------------------------------------------------------
# Factories: plain functions so tests can also import them directly
# ---------------------------------------------------------------------------
def fund(engine: Engine, account_id: int, currency: Currency, amount) -> None:
    """Top up a balance through the ledger so history and balance agree."""
    kind = (
        TransactionKind.QUIZ_PASS if currency == Currency.ACENT
        else TransactionKind.COMMENT_VOTE
    )
    ledger_service.replay_transaction(engine, ledger_service.TransactionIntent(
        account_id=account_id,
        kind=kind,
        currency=currency,
        amount=Decimal(str(amount)),
        description="test funding",
    ))


def make_account(engine: Engine, username: str, *, acents=0, dcents=0) -> int:
    """Register an account and add *acents*/*dcents* on top of the opening balance."""
    account = ledger_service.register_account(engine, username=username)
    if acents:
        fund(engine, account.id, Currency.ACENT, acents)
    if dcents:
        fund(engine, account.id, Currency.DCENT, dcents)
    return account.id


def make_proposal(engine: Engine, author_id: int, **kwargs) -> int:
    """Fund the 5 Acent fee and create a proposal."""
    fund(engine, author_id, Currency.ACENT, 5)
    kwargs.setdefault("title", "Fix the park benches")
    kwargs.setdefault("content", "Replace the six broken benches on Elm Street.")
    proposal = proposal_service.create_proposal(engine, author_id=author_id, **kwargs)
    return proposal.id


def make_quiz(engine: Engine, proposal_id: int, author_id: int, **kwargs) -> int:
    kwargs.setdefault("title", "Bench quiz")
    kwargs.setdefault("questions", QUIZ_QUESTIONS)
    quiz = quiz_service.create_quiz(
        engine, proposal_id=proposal_id, author_id=author_id, **kwargs
    )
    return quiz.id


def pass_quiz(engine: Engine, quiz_id: int, account_id: int):
    return quiz_service.submit_quiz_attempt(
        engine, quiz_id=quiz_id, account_id=account_id, answers=CORRECT_ANSWERS
    )


def make_token(account_id: int, username: str = "tester") -> str:
    from agora.api.auth import issue_token

    return issue_token(account_id, username)
