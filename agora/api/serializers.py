"""
agora.api.serializers — ORM rows to JSON-ready dicts
======================================================

Amounts are rendered as strings so no client ever sees a float balance.
"""

from __future__ import annotations

from decimal import Decimal

from agora.constants import to_amount
from agora.database.models import Comment, Delegation, LedgerTransaction, Proposal
from agora.services.ledger_service import RewardOutcome


def amount(value: Decimal) -> str:
    return str(to_amount(value))


def rewards(outcome: RewardOutcome) -> dict:
    return {
        "applied": outcome.applied,
        "failed": [
            {"account_id": i.account_id, "kind": str(i.kind), "amount": amount(i.amount)}
            for i in outcome.failed
        ],
    }


def transaction(txn: LedgerTransaction) -> dict:
    return {
        "id": txn.id,
        "kind": txn.kind,
        "currency": txn.currency,
        "amount": amount(txn.amount),
        "related_entity_type": txn.related_entity_type,
        "related_entity_id": txn.related_entity_id,
        "description": txn.description,
        "created_at": txn.created_at,
    }


def proposal(p: Proposal) -> dict:
    return {
        "id": p.id,
        "author_id": p.author_id,
        "title": p.title,
        "content": p.content,
        "location": p.location,
        "scope": p.scope,
        "status": p.status,
        "yes_votes": p.yes_votes,
        "no_votes": p.no_votes,
        "total_votes": p.total_votes,
        "escalation_threshold": p.escalation_threshold,
        "voting_deadline": p.voting_deadline,
        "revenue": amount(p.revenue),
        "closed_at": p.closed_at,
    }


def delegation(d: Delegation) -> dict:
    return {
        "id": d.id,
        "proposal_id": d.proposal_id,
        "delegator_id": d.delegator_id,
        "delegatee_id": d.delegatee_id,
        "status": d.status,
        "used_by_vote_id": d.used_by_vote_id,
        "revocation_date": d.revocation_date,
    }


def comment(c: Comment) -> dict:
    return {
        "id": c.id,
        "proposal_id": c.proposal_id,
        "author_id": c.author_id,
        "content": c.content,
        "is_competent": c.is_competent,
        "upvotes": c.upvotes,
        "downvotes": c.downvotes,
        "is_integrated": c.is_integrated,
        "auto_integrated": c.auto_integrated,
        "integration_date": c.integration_date,
        "acent_revenue_earned": amount(c.acent_revenue_earned),
        "dcent_revenue_earned": amount(c.dcent_revenue_earned),
    }
