"""
agora.api.routes.proposals — Proposals, voting & escalation
=============================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agora.api import serializers
from agora.api.deps import get_current_account_id, get_engine
from agora.database.models import Scope, VoteType
from agora.services import proposal_service

router = APIRouter(prefix="/proposals", tags=["proposals"])


class ProposalCreate(BaseModel):
    title: str
    content: str
    location: dict | None = None
    scope: Scope = Scope.NEIGHBORHOOD
    voting_deadline: datetime | None = None


class VoteCreate(BaseModel):
    vote_type: VoteType


@router.post("", status_code=201)
def create_proposal(
    body: ProposalCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    proposal = proposal_service.create_proposal(
        engine,
        author_id=account_id,
        title=body.title,
        content=body.content,
        location=body.location,
        scope=body.scope,
        voting_deadline=body.voting_deadline,
    )
    return serializers.proposal(proposal)


@router.get("/{proposal_id}")
def get_proposal(proposal_id: int, engine=Depends(get_engine)):
    return serializers.proposal(proposal_service.load_proposal(engine, proposal_id))


@router.post("/{proposal_id}/votes", status_code=201)
def cast_vote(
    proposal_id: int,
    body: VoteCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    result = proposal_service.cast_vote(
        engine, proposal_id=proposal_id, voter_id=account_id, vote_type=body.vote_type
    )
    return {
        "vote_id": result.vote_id,
        "proposal_id": result.proposal_id,
        "vote_type": result.vote_type,
        "delegated_by": result.delegated_by,
        "rewards": serializers.rewards(result.rewards),
    }


@router.get("/{proposal_id}/votes")
def list_votes(proposal_id: int, engine=Depends(get_engine)):
    return {"votes": proposal_service.list_votes(engine, proposal_id)}


@router.post("/{proposal_id}/escalate", dependencies=[Depends(get_current_account_id)])
def escalate(proposal_id: int, engine=Depends(get_engine)):
    """Escalate an eligible proposal.  Any signed-in member may trigger it;
    eligibility alone decides the outcome.
    """
    return serializers.proposal(proposal_service.escalate_proposal(engine, proposal_id))
