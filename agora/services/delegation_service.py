"""
agora.services.delegation_service — Per-Proposal Vote Proxies
==============================================================

A member who has not passed a proposal's quiz can hand their vote to one
who has.  The delegation is one-shot: when the delegatee votes directly it
is consumed (``used``) and the delegator is recorded on that vote.

Lifecycle::

    active ──(delegatee votes)──▶ used
       └────(delegator revokes, −1 Dcent)──▶ revoked
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora.constants import (
    DELEGATION_GIVEN_REWARD,
    DELEGATION_REVOCATION_PENALTY,
    ensure_utc,
    utcnow,
)
from agora.database.models import (
    Currency,
    Delegation,
    DelegationStatus,
    EntityType,
    Proposal,
    TransactionKind,
    Vote,
    VoteDelegator,
)
from agora.errors import (
    AlreadyVoted,
    DelegateeAlreadyVoted,
    DelegateeNotCompetent,
    DelegationNotActive,
    DuplicateDelegation,
    InvalidRequest,
    NotFound,
    SelfDelegation,
    Unauthorized,
    VotingClosed,
)
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
class DelegationResult:
    delegation: Delegation
    rewards: RewardOutcome


def find_delegation(session: Session, proposal_id: int, delegator_id: int) -> int | None:
    """Id of the delegator's delegation on a proposal, whatever its status."""
    return session.scalar(
        select(Delegation.id).where(
            Delegation.proposal_id == proposal_id,
            Delegation.delegator_id == delegator_id,
        )
    )


def _has_voted(session: Session, proposal_id: int, account_id: int) -> bool:
    return session.scalar(
        select(Vote.id).where(Vote.proposal_id == proposal_id, Vote.voter_id == account_id)
    ) is not None


def create_delegation(
    engine: Engine,
    *,
    proposal_id: int,
    delegator_id: int,
    delegatee_id: int,
    now: datetime | None = None,
) -> DelegationResult:
    """Hand *delegator*'s vote on a proposal to *delegatee*.

    The delegator earns ``+1`` Dcent once the delegation is committed.

    Raises
    ------
    VotingClosed, SelfDelegation, NotFound, DelegateeNotCompetent,
    DuplicateDelegation, AlreadyVoted, DelegateeAlreadyVoted
    """
    now = ensure_utc(now or utcnow())

    with Session(engine, expire_on_commit=False) as session:
        get_account(session, delegator_id, for_update=True)
        proposal = session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFound(f"Proposal {proposal_id} not found")
        if not proposal.is_voting_open(now):
            raise VotingClosed(f"Voting on proposal {proposal_id} is closed")
        if delegator_id == delegatee_id:
            raise SelfDelegation()
        get_account(session, delegatee_id)

        quiz = get_proposal_quiz(session, proposal_id)
        if quiz is not None and not has_passed_quiz(session, delegatee_id, quiz.id):
            raise DelegateeNotCompetent(
                f"Account {delegatee_id} has not passed the quiz for proposal {proposal_id}"
            )

        if find_delegation(session, proposal_id, delegator_id) is not None:
            raise DuplicateDelegation()
        if _has_voted(session, proposal_id, delegator_id):
            raise AlreadyVoted()
        # A delegation to someone who already voted could never be consumed.
        if _has_voted(session, proposal_id, delegatee_id):
            raise DelegateeAlreadyVoted(
                f"Account {delegatee_id} already voted on proposal {proposal_id}"
            )

        delegation = Delegation(
            proposal_id=proposal_id,
            delegator_id=delegator_id,
            delegatee_id=delegatee_id,
            status=DelegationStatus.ACTIVE.value,
        )
        try:
            with session.begin_nested():
                session.add(delegation)
                session.flush()
        except IntegrityError:
            raise DuplicateDelegation() from None

        session.commit()

    logger.info(
        "Delegation %d: %d -> %d on proposal %d",
        delegation.id, delegator_id, delegatee_id, proposal_id,
    )

    rewards = distribute_rewards(engine, [
        make_intent(
            delegator_id,
            TransactionKind.DELEGATION_GIVEN,
            Currency.DCENT,
            DELEGATION_GIVEN_REWARD,
            f"Delegated vote on proposal {proposal_id}",
            entity_type=EntityType.DELEGATION,
            entity_id=delegation.id,
        ),
    ])
    return DelegationResult(delegation=delegation, rewards=rewards)


def revoke_delegation(
    engine: Engine,
    delegation_id: int,
    *,
    actor_id: int,
    now: datetime | None = None,
) -> Delegation:
    """Withdraw an active delegation at a cost of 1 Dcent.

    The status change and the penalty commit together.  A delegator who no
    longer holds the Dcent cannot revoke (:class:`InsufficientBalance`).
    """
    now = ensure_utc(now or utcnow())

    with Session(engine, expire_on_commit=False) as session:
        delegation = session.get(Delegation, delegation_id, with_for_update=True)
        if delegation is None:
            raise NotFound(f"Delegation {delegation_id} not found")
        if delegation.delegator_id != actor_id:
            raise Unauthorized("Only the delegator can revoke a delegation")
        if delegation.status != DelegationStatus.ACTIVE:
            raise DelegationNotActive(
                f"Delegation {delegation_id} is {delegation.status}"
            )

        delegation.status = DelegationStatus.REVOKED.value
        delegation.revocation_date = now
        record_transaction(session, make_intent(
            delegation.delegator_id,
            TransactionKind.DELEGATION_REVOCATION,
            Currency.DCENT,
            -DELEGATION_REVOCATION_PENALTY,
            f"Revoked delegation on proposal {delegation.proposal_id}",
            entity_type=EntityType.DELEGATION,
            entity_id=delegation.id,
        ))
        session.commit()
        session.refresh(delegation)

    logger.info("Delegation %d revoked by account %d", delegation_id, actor_id)
    return delegation


def consume_for_vote(
    session: Session,
    *,
    proposal_id: int,
    delegatee_id: int,
    vote: Vote,
) -> list[Delegation]:
    """Mark every active delegation to *delegatee_id* as used by *vote*.

    Runs inside the caller's transaction.  Returns the consumed delegations.
    """
    delegations = list(session.scalars(
        select(Delegation)
        .where(
            Delegation.proposal_id == proposal_id,
            Delegation.delegatee_id == delegatee_id,
            Delegation.status == DelegationStatus.ACTIVE.value,
        )
        .order_by(Delegation.id)
        .with_for_update()
    ).all())

    for delegation in delegations:
        delegation.status = DelegationStatus.USED.value
        delegation.used_by_vote_id = vote.id
        session.add(VoteDelegator(vote_id=vote.id, delegator_id=delegation.delegator_id))
    session.flush()
    return delegations


def has_open_delegation(session: Session, proposal_id: int, delegator_id: int) -> bool:
    """True if the delegator's vote is still with (or was spent by) a delegatee."""
    status = session.scalar(
        select(Delegation.status).where(
            Delegation.proposal_id == proposal_id,
            Delegation.delegator_id == delegator_id,
        )
    )
    return status in (DelegationStatus.ACTIVE, DelegationStatus.USED)


def list_delegations(
    engine: Engine,
    account_id: int,
    *,
    direction: str = "given",
    proposal_id: int | None = None,
) -> list[Delegation]:
    """Delegations *given* by or *received* by an account, newest first."""
    if direction == "given":
        column = Delegation.delegator_id
    elif direction == "received":
        column = Delegation.delegatee_id
    else:
        raise InvalidRequest("direction must be 'given' or 'received'")

    with Session(engine) as session:
        stmt = select(Delegation).where(column == account_id)
        if proposal_id is not None:
            stmt = stmt.where(Delegation.proposal_id == proposal_id)
        rows = list(session.scalars(stmt.order_by(Delegation.id.desc())).all())
        session.expunge_all()
        return rows
