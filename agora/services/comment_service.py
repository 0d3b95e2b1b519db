"""
agora.services.comment_service — Comment Economy
=================================================

Competent authors (passed the proposal's quiz) comment for free; everyone
else pays 3 Dcents, charged in the same transaction that creates the
comment.  Upvotes accrue 0.1 of revenue until the comment is integrated,
either automatically (upvotes reach half the proposal's yes votes) or by
the proposal author.  Integration pays the accrued amount out in Acents.

Every comment vote also earns the voter and the comment author 1 Dcent
each.  Those flat rewards are best-effort; the integration payout is not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora.constants import (
    COMMENT_VOTE_REWARD,
    NON_COMPETENT_COMMENT_COST,
    ensure_utc,
    to_amount,
    utcnow,
)
from agora.database.models import (
    Comment,
    CommentVote,
    CommentVoteType,
    Currency,
    EntityType,
    Proposal,
    TransactionKind,
)
from agora.engine.revenue import accrue_upvote, integration_payout, should_auto_integrate
from agora.errors import (
    AlreadyIntegrated,
    DuplicateVote,
    InsufficientBalance,
    InsufficientDcents,
    InvalidRequest,
    NotFound,
    SelfVote,
    Unauthorized,
)
from agora.services.ledger_service import (
    RewardOutcome,
    distribute_rewards,
    get_account,
    make_intent,
    record_transaction,
)
from agora.services.quiz_service import is_competent

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommentVoteResult:
    comment: Comment
    comment_vote_id: int
    auto_integrated: bool = False
    payout_transaction_id: int | None = None
    rewards: RewardOutcome = field(default_factory=RewardOutcome)


def _get_comment(session: Session, comment_id: int, *, for_update: bool = False) -> Comment:
    comment = session.get(Comment, comment_id, with_for_update=True if for_update else None)
    if comment is None:
        raise NotFound(f"Comment {comment_id} not found")
    return comment


def _integrate(
    session: Session, comment: Comment, *, auto: bool, now: datetime
) -> int | None:
    """Flag *comment* integrated and pay its author.  Returns the payout txn id."""
    comment.is_integrated = True
    comment.auto_integrated = auto
    comment.integration_date = now

    payout = integration_payout(
        is_competent=comment.is_competent,
        acent_revenue=to_amount(comment.acent_revenue_earned),
        dcent_revenue=to_amount(comment.dcent_revenue_earned),
    )
    if payout is None:
        session.flush()
        return None

    description = f"Comment {comment.id} integrated"
    if payout.converted:
        description += " (Dcent revenue paid as Acents)"
    txn, _ = record_transaction(session, make_intent(
        comment.author_id,
        TransactionKind.COMMENT_INTEGRATION,
        payout.currency,
        payout.amount,
        description,
        entity_type=EntityType.COMMENT,
        entity_id=comment.id,
    ))
    return txn.id


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def create_comment(
    engine: Engine,
    *,
    proposal_id: int,
    author_id: int,
    content: str,
) -> Comment:
    """Post a comment; non-competent authors pay 3 Dcents.

    Raises
    ------
    InsufficientDcents
        The author is not competent and holds fewer than 3 Dcents.  No
        comment is created.
    """
    content = content.strip()
    if not content:
        raise InvalidRequest("Comment content is required")

    with Session(engine, expire_on_commit=False) as session:
        get_account(session, author_id, for_update=True)
        if session.get(Proposal, proposal_id) is None:
            raise NotFound(f"Proposal {proposal_id} not found")

        competent = is_competent(session, author_id, proposal_id)
        comment = Comment(
            proposal_id=proposal_id,
            author_id=author_id,
            content=content,
            is_competent=competent,
        )
        session.add(comment)
        session.flush()

        if not competent:
            try:
                record_transaction(session, make_intent(
                    author_id,
                    TransactionKind.COMMENT_CREATION,
                    Currency.DCENT,
                    -NON_COMPETENT_COMMENT_COST,
                    f"Comment on proposal {proposal_id}",
                    entity_type=EntityType.COMMENT,
                    entity_id=comment.id,
                ))
            except InsufficientBalance as exc:
                raise InsufficientDcents(str(exc)) from exc

        session.commit()
        session.refresh(comment)
        session.expunge(comment)

    logger.info(
        "Comment %d on proposal %d by account %d (%s)",
        comment.id, proposal_id, author_id, "competent" if competent else "paid",
    )
    return comment


def vote_on_comment(
    engine: Engine,
    *,
    comment_id: int,
    voter_id: int,
    vote_type: CommentVoteType | str,
    now: datetime | None = None,
) -> CommentVoteResult:
    """Up- or downvote a comment.

    An upvote on a live comment accrues revenue and may auto-integrate it,
    with the payout committed alongside.  Voter and author then receive
    1 Dcent each.
    """
    now = ensure_utc(now or utcnow())
    try:
        vote_type = CommentVoteType(vote_type)
    except ValueError:
        raise InvalidRequest(f"Unknown comment vote type {vote_type!r}") from None

    with Session(engine, expire_on_commit=False) as session:
        get_account(session, voter_id)
        comment = _get_comment(session, comment_id, for_update=True)
        if comment.author_id == voter_id:
            raise SelfVote()

        comment_vote = CommentVote(
            comment_id=comment_id, voter_id=voter_id, vote_type=vote_type.value
        )
        try:
            with session.begin_nested():
                session.add(comment_vote)
                session.flush()
        except IntegrityError:
            raise DuplicateVote(
                f"Account {voter_id} already voted on comment {comment_id}"
            ) from None

        auto = False
        payout_id = None
        if vote_type == CommentVoteType.UP:
            comment.upvotes += 1
            accrual = accrue_upvote(
                is_competent=comment.is_competent, is_integrated=comment.is_integrated
            )
            comment.acent_revenue_earned = to_amount(comment.acent_revenue_earned) + accrual.acent
            comment.dcent_revenue_earned = to_amount(comment.dcent_revenue_earned) + accrual.dcent

            proposal = session.get(Proposal, comment.proposal_id)
            if should_auto_integrate(
                upvotes=comment.upvotes,
                proposal_yes_votes=proposal.yes_votes,
                is_integrated=comment.is_integrated,
            ):
                payout_id = _integrate(session, comment, auto=True, now=now)
                auto = True
        else:
            comment.downvotes += 1

        session.commit()
        session.refresh(comment)
        session.expunge(comment)
        comment_vote_id = comment_vote.id

    if auto:
        logger.info(
            "Comment %d auto-integrated at %d upvotes", comment_id, comment.upvotes
        )

    rewards = distribute_rewards(engine, [
        make_intent(
            account_id,
            TransactionKind.COMMENT_VOTE,
            Currency.DCENT,
            COMMENT_VOTE_REWARD,
            f"{vote_type.capitalize()}vote on comment {comment_id}",
            entity_type=EntityType.COMMENT_VOTE,
            entity_id=comment_vote_id,
        )
        for account_id in (voter_id, comment.author_id)
    ])
    return CommentVoteResult(
        comment=comment,
        comment_vote_id=comment_vote_id,
        auto_integrated=auto,
        payout_transaction_id=payout_id,
        rewards=rewards,
    )


def integrate_comment(
    engine: Engine,
    comment_id: int,
    *,
    actor_id: int,
    now: datetime | None = None,
) -> Comment:
    """Manually integrate a comment.  Only the proposal's author may."""
    now = ensure_utc(now or utcnow())

    with Session(engine, expire_on_commit=False) as session:
        comment = _get_comment(session, comment_id, for_update=True)
        proposal = session.get(Proposal, comment.proposal_id)
        if proposal is None or proposal.author_id != actor_id:
            raise Unauthorized("Only the proposal author can integrate comments")
        if comment.is_integrated:
            raise AlreadyIntegrated()

        _integrate(session, comment, auto=False, now=now)
        session.commit()
        session.refresh(comment)
        session.expunge(comment)

    logger.info("Comment %d integrated by account %d", comment_id, actor_id)
    return comment


def list_comments(engine: Engine, proposal_id: int) -> list[Comment]:
    """Comments on a proposal, most upvoted first."""
    with Session(engine) as session:
        rows = list(session.scalars(
            select(Comment)
            .where(Comment.proposal_id == proposal_id)
            .order_by(Comment.upvotes.desc(), Comment.id)
        ).all())
        session.expunge_all()
        return rows
