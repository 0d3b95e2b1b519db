"""
agora.api.routes.delegations — Vote proxies
=============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agora.api import serializers
from agora.api.deps import get_current_account_id, get_engine
from agora.services import delegation_service

router = APIRouter(tags=["delegations"])


class DelegationCreate(BaseModel):
    delegatee_id: int


@router.post("/proposals/{proposal_id}/delegations", status_code=201)
def create_delegation(
    proposal_id: int,
    body: DelegationCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    result = delegation_service.create_delegation(
        engine,
        proposal_id=proposal_id,
        delegator_id=account_id,
        delegatee_id=body.delegatee_id,
    )
    return {
        **serializers.delegation(result.delegation),
        "rewards": serializers.rewards(result.rewards),
    }


@router.delete("/delegations/{delegation_id}")
def revoke_delegation(
    delegation_id: int,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    delegation = delegation_service.revoke_delegation(
        engine, delegation_id, actor_id=account_id
    )
    return serializers.delegation(delegation)
