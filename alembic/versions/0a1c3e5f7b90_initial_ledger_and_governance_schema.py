"""Initial ledger and governance schema

Revision ID: 0a1c3e5f7b90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1c3e5f7b90"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _amount(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 4), nullable=False, **kwargs)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade() -> None:
    """Create accounts, ledger, proposals, quizzes, votes, delegations, comments."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(30), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(254), unique=True),
        sa.Column("location", sa.JSON()),
        _amount("acent_balance", server_default="0"),
        _amount("dcent_balance", server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False),
        _amount("amount"),
        sa.Column("related_entity_type", sa.String(30)),
        sa.Column("related_entity_id", sa.Integer()),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("idempotency_key", sa.String(200)),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_ledger_transactions_idempotent",
        "ledger_transactions",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("idempotency_key IS NOT NULL"),
        sqlite_where=sa.text("idempotency_key IS NOT NULL"),
    )
    op.create_index(
        "ix_ledger_transactions_account_time",
        "ledger_transactions",
        ["account_id", "created_at"],
    )
    op.create_index("ix_ledger_transactions_kind", "ledger_transactions", ["kind"])
    op.create_index(
        "ix_ledger_transactions_entity",
        "ledger_transactions",
        ["related_entity_type", "related_entity_id"],
    )

    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "author_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("location", sa.JSON()),
        sa.Column("scope", sa.String(20), nullable=False, server_default="neighborhood"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("yes_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("no_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "escalation_threshold", sa.Integer(), nullable=False, server_default="100"
        ),
        sa.Column("voting_deadline", sa.DateTime(timezone=True), nullable=False),
        _amount("revenue", server_default="0"),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index(
        "ix_proposals_status_deadline", "proposals", ["status", "voting_deadline"]
    )
    op.create_index("ix_proposals_author", "proposals", ["author_id"])

    op.create_table(
        "quizzes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id", sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column(
            "created_by", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
    )

    op.create_table(
        "passed_quizzes",
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "quiz_id", sa.Integer(),
            sa.ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        _timestamp("passed_at"),
    )

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id", sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "voter_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("vote_type", sa.String(10), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("proposal_id", "voter_id", name="uq_votes_proposal_voter"),
    )

    op.create_table(
        "vote_delegators",
        sa.Column(
            "vote_id", sa.Integer(),
            sa.ForeignKey("votes.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "delegator_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True,
        ),
    )

    op.create_table(
        "delegations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id", sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "delegator_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "delegatee_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column(
            "used_by_vote_id", sa.Integer(),
            sa.ForeignKey("votes.id", ondelete="SET NULL"),
        ),
        sa.Column("revocation_date", sa.DateTime(timezone=True)),
        sa.Column("last_redelegation_date", sa.DateTime(timezone=True)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint(
            "proposal_id", "delegator_id", name="uq_delegations_proposal_delegator"
        ),
    )
    op.create_index(
        "ix_delegations_delegatee",
        "delegations",
        ["proposal_id", "delegatee_id", "status"],
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id", sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "author_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_competent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_integrated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "auto_integrated", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("integration_date", sa.DateTime(timezone=True)),
        _amount("acent_revenue_earned", server_default="0"),
        _amount("dcent_revenue_earned", server_default="0"),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_comments_proposal_upvotes", "comments", ["proposal_id", "upvotes"]
    )

    op.create_table(
        "comment_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "comment_id", sa.Integer(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "voter_id", sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("vote_type", sa.String(10), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "comment_id", "voter_id", name="uq_comment_votes_comment_voter"
        ),
    )


def downgrade() -> None:
    """Drop every Agora table."""
    op.drop_table("comment_votes")
    op.drop_index("ix_comments_proposal_upvotes", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_delegations_delegatee", table_name="delegations")
    op.drop_table("delegations")
    op.drop_table("vote_delegators")
    op.drop_table("votes")
    op.drop_table("passed_quizzes")
    op.drop_table("quizzes")
    op.drop_index("ix_proposals_author", table_name="proposals")
    op.drop_index("ix_proposals_status_deadline", table_name="proposals")
    op.drop_table("proposals")
    op.drop_index("ix_ledger_transactions_entity", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_kind", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_account_time", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_idempotent", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_table("accounts")
