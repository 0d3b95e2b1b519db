"""
agora.services.proposal_service — Proposal Lifecycle & Voting
==============================================================

``cast_vote`` is the one place a vote happens.  It runs as two phases:

1. **Core** (one DB transaction): lock voter and proposal, check the gates,
   insert the Vote (unique per proposal+voter), consume delegations, update
   the tallies.
2. **Rewards** (best-effort, after commit): ``vote_cast`` to the voter,
   ``proposal_revenue`` to the author on a yes vote, ``delegation_received``
   to the voter for each consumed delegation.

State machine::

    active ──(deadline passes, below threshold)──▶ closed
    active ──(deadline passes, threshold met)────▶ active at the next scope
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
    DELEGATION_RECEIVED_REWARD,
    PROPOSAL_CREATION_COST,
    VOTE_CAST_REWARD,
    YES_VOTE_AUTHOR_REWARD,
    ensure_utc,
    to_amount,
    utcnow,
)
from agora.database.models import (
    Currency,
    EntityType,
    Proposal,
    ProposalStatus,
    Scope,
    TransactionKind,
    Vote,
    VoteType,
)
from agora.engine import escalation
from agora.errors import (
    AgoraError,
    AlreadyDelegated,
    DuplicateVote,
    EscalationNotEligible,
    InvalidRequest,
    NotFound,
    QuizNotPassed,
    VotingClosed,
)
from agora.services import delegation_service
from agora.services.ledger_service import (
    RewardOutcome,
    distribute_rewards,
    get_account,
    make_intent,
    record_transaction,
)
from agora.services.quiz_service import get_proposal_quiz, has_passed_quiz

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VoteResult:
    vote_id: int
    proposal_id: int
    voter_id: int
    vote_type: VoteType
    delegated_by: list[int] = field(default_factory=list)
    rewards: RewardOutcome = field(default_factory=RewardOutcome)


def get_proposal(
    session: Session, proposal_id: int, *, for_update: bool = False
) -> Proposal:
    proposal = session.get(
        Proposal, proposal_id, with_for_update=True if for_update else None
    )
    if proposal is None:
        raise NotFound(f"Proposal {proposal_id} not found")
    return proposal


def load_proposal(engine: Engine, proposal_id: int) -> Proposal:
    with Session(engine) as session:
        proposal = get_proposal(session, proposal_id)
        session.expunge(proposal)
        return proposal


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------
def create_proposal(
    engine: Engine,
    *,
    author_id: int,
    title: str,
    content: str,
    location: dict | None = None,
    scope: Scope | str = Scope.NEIGHBORHOOD,
    voting_deadline: datetime | None = None,
    now: datetime | None = None,
) -> Proposal:
    """Publish a proposal for 5 Acents.

    The charge and the proposal are written together; if the author cannot
    pay, no proposal exists.
    """
    now = ensure_utc(now or utcnow())
    title, content = title.strip(), content.strip()
    if not title or not content:
        raise InvalidRequest("Proposal title and content are required")
    escalation.scope_level(scope)
    scope = Scope(scope)
    deadline = (
        ensure_utc(voting_deadline) if voting_deadline is not None
        else now + escalation.voting_window(scope)
    )
    if deadline <= now:
        raise InvalidRequest("Voting deadline must be in the future")

    with Session(engine, expire_on_commit=False) as session:
        get_account(session, author_id, for_update=True)
        proposal = Proposal(
            author_id=author_id,
            title=title,
            content=content,
            location=location,
            scope=scope.value,
            status=ProposalStatus.ACTIVE.value,
            escalation_threshold=escalation.threshold_for(scope),
            voting_deadline=deadline,
        )
        session.add(proposal)
        session.flush()

        record_transaction(session, make_intent(
            author_id,
            TransactionKind.PROPOSAL_CREATION,
            Currency.ACENT,
            -PROPOSAL_CREATION_COST,
            f"Created proposal {proposal.id}",
            entity_type=EntityType.PROPOSAL,
            entity_id=proposal.id,
        ))
        session.commit()
        session.refresh(proposal)
        session.expunge(proposal)

    logger.info(
        "Proposal %d created by account %d at %s scope", proposal.id, author_id, scope
    )
    return proposal


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------
def cast_vote(
    engine: Engine,
    *,
    proposal_id: int,
    voter_id: int,
    vote_type: VoteType | str,
    now: datetime | None = None,
) -> VoteResult:
    """Record a direct vote and distribute its rewards.

    Raises
    ------
    NotFound
        Unknown proposal or voter.
    VotingClosed
        Proposal not active or its deadline has passed.
    AlreadyDelegated
        The voter handed this vote to someone else.
    QuizNotPassed
        The proposal has a quiz the voter has not passed.
    DuplicateVote
        The voter already voted on this proposal.
    """
    now = ensure_utc(now or utcnow())
    try:
        vote_type = VoteType(vote_type)
    except ValueError:
        raise InvalidRequest(f"Unknown vote type {vote_type!r}") from None

    with Session(engine, expire_on_commit=False) as session:
        get_account(session, voter_id, for_update=True)
        proposal = get_proposal(session, proposal_id, for_update=True)
        if not proposal.is_voting_open(now):
            raise VotingClosed(f"Voting on proposal {proposal_id} is closed")

        if delegation_service.has_open_delegation(session, proposal_id, voter_id):
            raise AlreadyDelegated()
        quiz = get_proposal_quiz(session, proposal_id)
        if quiz is not None and not has_passed_quiz(session, voter_id, quiz.id):
            raise QuizNotPassed(
                f"Pass the quiz for proposal {proposal_id} or delegate your vote"
            )

        vote = Vote(proposal_id=proposal_id, voter_id=voter_id, vote_type=vote_type.value)
        try:
            with session.begin_nested():
                session.add(vote)
                session.flush()
        except IntegrityError:
            raise DuplicateVote(
                f"Account {voter_id} already voted on proposal {proposal_id}"
            ) from None

        consumed = delegation_service.consume_for_vote(
            session, proposal_id=proposal_id, delegatee_id=voter_id, vote=vote
        )

        if vote_type == VoteType.YES:
            proposal.yes_votes += 1
            proposal.revenue = to_amount(proposal.revenue) + YES_VOTE_AUTHOR_REWARD
        else:
            proposal.no_votes += 1
        proposal.total_votes += 1

        author_id = proposal.author_id
        vote_id = vote.id
        session.commit()

    delegated_by = [d.delegator_id for d in consumed]
    logger.info(
        "Vote %d: account %d voted %s on proposal %d (+%d delegated)",
        vote_id, voter_id, vote_type, proposal_id, len(delegated_by),
    )

    intents = [
        make_intent(
            voter_id,
            TransactionKind.VOTE_CAST,
            Currency.ACENT,
            VOTE_CAST_REWARD,
            f"Voted on proposal {proposal_id}",
            entity_type=EntityType.VOTE,
            entity_id=vote_id,
        ),
    ]
    if vote_type == VoteType.YES:
        intents.append(make_intent(
            author_id,
            TransactionKind.PROPOSAL_REVENUE,
            Currency.ACENT,
            YES_VOTE_AUTHOR_REWARD,
            f"Yes vote on proposal {proposal_id}",
            entity_type=EntityType.VOTE,
            entity_id=vote_id,
        ))
    if delegated_by:
        intents.append(make_intent(
            voter_id,
            TransactionKind.DELEGATION_RECEIVED,
            Currency.DCENT,
            DELEGATION_RECEIVED_REWARD * len(delegated_by),
            f"Cast {len(delegated_by)} delegated vote(s) on proposal {proposal_id}",
            entity_type=EntityType.VOTE,
            entity_id=vote_id,
        ))

    return VoteResult(
        vote_id=vote_id,
        proposal_id=proposal_id,
        voter_id=voter_id,
        vote_type=vote_type,
        delegated_by=delegated_by,
        rewards=distribute_rewards(engine, intents),
    )


def list_votes(engine: Engine, proposal_id: int) -> list[dict]:
    """Votes on a proposal with the delegators each one carried."""
    with Session(engine) as session:
        get_proposal(session, proposal_id)
        votes = session.scalars(
            select(Vote).where(Vote.proposal_id == proposal_id).order_by(Vote.id)
        ).all()
        return [
            {
                "id": v.id,
                "voter_id": v.voter_id,
                "vote_type": v.vote_type,
                "delegated_by": sorted(d.delegator_id for d in v.delegators),
                "created_at": v.created_at,
            }
            for v in votes
        ]


# ---------------------------------------------------------------------------
# Escalation & closing
# ---------------------------------------------------------------------------
def escalate_proposal(
    engine: Engine, proposal_id: int, *, now: datetime | None = None
) -> Proposal:
    """Move an eligible proposal one scope up and reopen voting there.

    At ``interplanetary`` this is a no-op and returns the proposal as is.
    """
    now = ensure_utc(now or utcnow())

    with Session(engine, expire_on_commit=False) as session:
        proposal = get_proposal(session, proposal_id, for_update=True)
        plan = escalation.plan_escalation(proposal.scope, now)
        if plan is None:
            logger.debug("Proposal %d already at the top scope", proposal_id)
            session.expunge(proposal)
            return proposal

        if not escalation.is_eligible(
            status=proposal.status,
            yes_votes=proposal.yes_votes,
            escalation_threshold=proposal.escalation_threshold,
            voting_deadline=proposal.voting_deadline,
            now=now,
        ):
            raise EscalationNotEligible(
                f"Proposal {proposal_id} has {proposal.yes_votes}/"
                f"{proposal.escalation_threshold} yes votes, deadline "
                f"{ensure_utc(proposal.voting_deadline).isoformat()}"
            )

        previous = proposal.scope
        proposal.scope = plan.scope.value
        proposal.escalation_threshold = plan.escalation_threshold
        proposal.voting_deadline = plan.voting_deadline
        proposal.yes_votes = 0
        proposal.no_votes = 0
        proposal.total_votes = 0
        proposal.status = ProposalStatus.ACTIVE.value
        session.commit()
        session.refresh(proposal)
        session.expunge(proposal)

    logger.info("Proposal %d escalated %s -> %s", proposal_id, previous, plan.scope)
    return proposal


def close_proposal(
    engine: Engine, proposal_id: int, *, now: datetime | None = None
) -> Proposal:
    """Close an active proposal whose voting window has elapsed."""
    now = ensure_utc(now or utcnow())

    with Session(engine, expire_on_commit=False) as session:
        proposal = get_proposal(session, proposal_id, for_update=True)
        if proposal.status != ProposalStatus.ACTIVE:
            raise InvalidRequest(f"Proposal {proposal_id} is {proposal.status}")
        if now < ensure_utc(proposal.voting_deadline):
            raise InvalidRequest(f"Voting on proposal {proposal_id} is still open")

        proposal.status = ProposalStatus.CLOSED.value
        proposal.closed_at = now
        session.commit()
        session.refresh(proposal)
        session.expunge(proposal)

    logger.info("Proposal %d closed", proposal_id)
    return proposal


def sweep_expired_proposals(
    engine: Engine, *, now: datetime | None = None, batch_size: int = 500
) -> dict:
    """Escalate or close every active proposal past its deadline.

    Eligible proposals below the top scope escalate; all others close.
    Each proposal is handled in its own transaction.

    Returns a dict with ``checked``, ``escalated``, ``closed``, ``failed``.
    """
    now = ensure_utc(now or utcnow())

    with Session(engine) as session:
        expired = session.execute(
            select(
                Proposal.id,
                Proposal.scope,
                Proposal.yes_votes,
                Proposal.escalation_threshold,
            )
            .where(
                Proposal.status == ProposalStatus.ACTIVE.value,
                Proposal.voting_deadline <= now,
            )
            .order_by(Proposal.voting_deadline)
            .limit(batch_size)
        ).all()

    escalated: list[int] = []
    closed: list[int] = []
    failed: list[int] = []
    for row in expired:
        climbs = (
            row.yes_votes >= row.escalation_threshold
            and escalation.next_scope(row.scope) is not None
        )
        try:
            if climbs:
                escalate_proposal(engine, row.id, now=now)
                escalated.append(row.id)
            else:
                close_proposal(engine, row.id, now=now)
                closed.append(row.id)
        except AgoraError:
            # Changed underneath us (e.g. closed by a concurrent sweep).
            logger.warning("Sweep skipped proposal %d", row.id, exc_info=True)
            failed.append(row.id)

    if expired:
        logger.info(
            "Sweep: %d expired, %d escalated, %d closed",
            len(expired), len(escalated), len(closed),
        )
    return {
        "checked": len(expired),
        "escalated": escalated,
        "closed": closed,
        "failed": failed,
        "timestamp": now.isoformat(),
    }
