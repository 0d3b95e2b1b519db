"""
agora.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- accounts             — Members and their two balances
- ledger_transactions  — Append-only transaction log (one row per balance change)
- proposals            — Civic proposals with vote tallies and scope
- quizzes              — One competence quiz per proposal
- passed_quizzes       — Quizzes an account has passed (grows monotonically)
- votes                — One direct vote per (proposal, voter)
- vote_delegators      — Delegators whose proxy a vote consumed
- delegations          — One vote proxy per (proposal, delegator)
- comments             — Proposal comments with accrued revenue
- comment_votes        — One up/down vote per (comment, voter)
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from agora.constants import (
    REDELEGATION_COOLDOWN,
    ensure_utc,
    utcnow,
)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Agora ORM models."""


def _amount_column(default: Decimal = Decimal("0")):
    return mapped_column(Numeric(18, 4, asdecimal=True), nullable=False, default=default)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Currency(enum.StrEnum):
    ACENT = "acent"
    DCENT = "dcent"


class TransactionKind(enum.StrEnum):
    """Why a balance changed."""
    ACCOUNT_OPENING = "account_opening"
    QUIZ_PASS = "quiz_pass"
    VOTE_CAST = "vote_cast"
    DELEGATION_RECEIVED = "delegation_received"
    DELEGATION_GIVEN = "delegation_given"
    COMMENT_VOTE = "comment_vote"
    PROPOSAL_CREATION = "proposal_creation"
    COMMENT_CREATION = "comment_creation"
    PROPOSAL_REVENUE = "proposal_revenue"
    DELEGATION_REVOCATION = "delegation_revocation"
    COMMENT_INTEGRATION = "comment_integration"


class EntityType(enum.StrEnum):
    """Kinds of record a transaction can point at."""
    ACCOUNT = "account"
    PROPOSAL = "proposal"
    QUIZ = "quiz"
    VOTE = "vote"
    DELEGATION = "delegation"
    COMMENT = "comment"
    COMMENT_VOTE = "comment_vote"


class Scope(enum.StrEnum):
    """Governance levels, narrowest first."""
    NEIGHBORHOOD = "neighborhood"
    CITY = "city"
    STATE = "state"
    REGION = "region"
    COUNTRY = "country"
    WORLDWIDE = "worldwide"
    INTERPLANETARY = "interplanetary"


class ProposalStatus(enum.StrEnum):
    ACTIVE = "active"
    CLOSED = "closed"
    ESCALATED = "escalated"


class VoteType(enum.StrEnum):
    YES = "yes"
    NO = "no"


class DelegationStatus(enum.StrEnum):
    ACTIVE = "active"
    REVOKED = "revoked"
    USED = "used"


class CommentVoteType(enum.StrEnum):
    UP = "up"
    DOWN = "down"


# ---------------------------------------------------------------------------
# Account — one row per member
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), unique=True, default=None)
    location: Mapped[dict | None] = mapped_column(JSON, default=None)
    acent_balance: Mapped[Decimal] = _amount_column()
    dcent_balance: Mapped[Decimal] = _amount_column()
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    transactions: Mapped[list[LedgerTransaction]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    passed_quizzes: Mapped[list[PassedQuiz]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    def balance_for(self, currency: Currency) -> Decimal:
        if currency == Currency.ACENT:
            return self.acent_balance
        return self.dcent_balance

    def set_balance(self, currency: Currency, value: Decimal) -> None:
        if currency == Currency.ACENT:
            self.acent_balance = value
        else:
            self.dcent_balance = value

    def __repr__(self) -> str:
        return f"<Account id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# LedgerTransaction — append-only balance journal
# ---------------------------------------------------------------------------
class LedgerTransaction(Base):
    """Immutable record of one balance change.

    Rows are only ever inserted, inside the same database transaction that
    adjusts ``accounts.<currency>_balance``.  ``idempotency_key`` makes
    replays of the same logical reward collapse onto the original row.
    """
    __tablename__ = "ledger_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 4, asdecimal=True), nullable=False)
    related_entity_type: Mapped[str | None] = mapped_column(String(30), default=None)
    related_entity_id: Mapped[int | None] = mapped_column(Integer, default=None)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped[Account] = relationship(back_populates="transactions")

    __table_args__ = (
        Index(
            "ix_ledger_transactions_idempotent",
            "idempotency_key",
            unique=True,
            postgresql_where=idempotency_key.isnot(None),
            sqlite_where=idempotency_key.isnot(None),
        ),
        Index("ix_ledger_transactions_account_time", "account_id", "created_at"),
        Index("ix_ledger_transactions_kind", "kind"),
        Index(
            "ix_ledger_transactions_entity", "related_entity_type", "related_entity_id"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction id={self.id} account={self.account_id} "
            f"kind={self.kind} {self.amount} {self.currency}>"
        )


# ---------------------------------------------------------------------------
# Proposal — civic proposal with tallies and scope
# ---------------------------------------------------------------------------
class Proposal(Base):
    __tablename__ = "proposals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[dict | None] = mapped_column(JSON, default=None)
    scope: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Scope.NEIGHBORHOOD.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProposalStatus.ACTIVE.value
    )
    yes_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    no_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalation_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    voting_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revenue: Mapped[Decimal] = _amount_column()
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    quiz: Mapped[Quiz | None] = relationship(back_populates="proposal", uselist=False)

    __table_args__ = (
        Index("ix_proposals_status_deadline", "status", "voting_deadline"),
        Index("ix_proposals_author", "author_id"),
    )

    def is_voting_open(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return (
            self.status == ProposalStatus.ACTIVE
            and ensure_utc(now) < ensure_utc(self.voting_deadline)
        )

    def __repr__(self) -> str:
        return f"<Proposal id={self.id} scope={self.scope} status={self.status}>"


# ---------------------------------------------------------------------------
# Quiz — competence gate for one proposal
# ---------------------------------------------------------------------------
class Quiz(Base):
    """Multiple-choice quiz attached to a proposal.

    ``questions`` holds a list of
    ``{"text", "explanation", "options": [{"id", "text", "is_correct"}]}``.
    There is no update path: a quiz is immutable once created.
    """
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("proposals.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    questions: Mapped[list] = mapped_column(JSON, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    proposal: Mapped[Proposal] = relationship(back_populates="quiz")

    def __repr__(self) -> str:
        return f"<Quiz id={self.id} proposal={self.proposal_id}>"


# ---------------------------------------------------------------------------
# PassedQuiz — competence certificates
# ---------------------------------------------------------------------------
class PassedQuiz(Base):
    __tablename__ = "passed_quizzes"

    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    passed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped[Account] = relationship(back_populates="passed_quizzes")

    def __repr__(self) -> str:
        return f"<PassedQuiz account={self.account_id} quiz={self.quiz_id}>"


# ---------------------------------------------------------------------------
# Vote — direct vote on a proposal
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    delegators: Mapped[list[VoteDelegator]] = relationship(
        back_populates="vote", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("proposal_id", "voter_id", name="uq_votes_proposal_voter"),
    )

    def __repr__(self) -> str:
        return f"<Vote id={self.id} proposal={self.proposal_id} voter={self.voter_id}>"


class VoteDelegator(Base):
    """A delegator whose proxy was consumed by a vote."""
    __tablename__ = "vote_delegators"

    vote_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("votes.id", ondelete="CASCADE"), primary_key=True
    )
    delegator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )

    vote: Mapped[Vote] = relationship(back_populates="delegators")


# ---------------------------------------------------------------------------
# Delegation — per-proposal vote proxy
# ---------------------------------------------------------------------------
class Delegation(Base):
    __tablename__ = "delegations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    delegator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    delegatee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=DelegationStatus.ACTIVE.value
    )
    used_by_vote_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("votes.id", ondelete="SET NULL"), nullable=True
    )
    revocation_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_redelegation_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "proposal_id", "delegator_id", name="uq_delegations_proposal_delegator"
        ),
        Index("ix_delegations_delegatee", "proposal_id", "delegatee_id", "status"),
    )

    def can_redelegate(self, now: datetime | None = None) -> bool:
        """True when never redelegated or the last redelegation is over a year old."""
        if self.last_redelegation_date is None:
            return True
        now = ensure_utc(now or utcnow())
        return ensure_utc(self.last_redelegation_date) < now - REDELEGATION_COOLDOWN

    def __repr__(self) -> str:
        return (
            f"<Delegation id={self.id} proposal={self.proposal_id} "
            f"{self.delegator_id}->{self.delegatee_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# Comment — discussion with revenue accrual
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_competent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_integrated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_integrated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    integration_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    acent_revenue_earned: Mapped[Decimal] = _amount_column()
    dcent_revenue_earned: Mapped[Decimal] = _amount_column()
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_comments_proposal_upvotes", "proposal_id", "upvotes"),
    )

    def __repr__(self) -> str:
        return (
            f"<Comment id={self.id} proposal={self.proposal_id} "
            f"up={self.upvotes} integrated={self.is_integrated}>"
        )


class CommentVote(Base):
    __tablename__ = "comment_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "voter_id", name="uq_comment_votes_comment_voter"),
    )

    def __repr__(self) -> str:
        return f"<CommentVote comment={self.comment_id} voter={self.voter_id} {self.vote_type}>"
