"""
agora.api.routes.accounts — Registration, balances & history
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from agora.api import serializers
from agora.api.auth import issue_token
from agora.api.deps import get_config, get_current_account_id, get_engine
from agora.config import AgoraConfig
from agora.database.models import Currency, EntityType, TransactionKind
from agora.services import delegation_service, ledger_service, quiz_service

router = APIRouter(prefix="/accounts", tags=["accounts"])


class AccountCreate(BaseModel):
    username: str
    display_name: str | None = None
    email: str | None = None
    location: dict | None = None


@router.post("", status_code=201)
def register(
    body: AccountCreate,
    engine=Depends(get_engine),
    cfg: AgoraConfig = Depends(get_config),
):
    account = ledger_service.register_account(
        engine,
        username=body.username,
        display_name=body.display_name,
        email=body.email,
        location=body.location,
    )
    return {
        "id": account.id,
        "username": account.username,
        "display_name": account.display_name,
        "acent_balance": serializers.amount(account.acent_balance),
        "dcent_balance": serializers.amount(account.dcent_balance),
        "token": issue_token(account.id, account.username, ttl_hours=cfg.token_ttl_hours),
    }


@router.get("/me/balance")
def my_balance(
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    balance = ledger_service.get_balance(engine, account_id)
    return {
        "account_id": balance.account_id,
        "acent": serializers.amount(balance.acent),
        "dcent": serializers.amount(balance.dcent),
    }


@router.get("/me/transactions")
def my_transactions(
    kind: TransactionKind | None = None,
    currency: Currency | None = None,
    entity_type: EntityType | None = None,
    limit: int | None = Query(None, ge=1, le=500),
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    rows = ledger_service.get_transaction_history(
        engine,
        account_id,
        kind=kind,
        currency=currency,
        related_entity_type=entity_type,
        limit=limit,
    )
    return {"transactions": [serializers.transaction(t) for t in rows]}


@router.get("/me/delegations")
def my_delegations(
    direction: str = "given",
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    rows = delegation_service.list_delegations(engine, account_id, direction=direction)
    return {"delegations": [serializers.delegation(d) for d in rows]}


@router.get("/me/quizzes")
def my_passed_quizzes(
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    return {"passed_quiz_ids": quiz_service.list_passed_quizzes(engine, account_id)}
