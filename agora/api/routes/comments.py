"""
agora.api.routes.comments — Comments, comment votes & integration
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agora.api import serializers
from agora.api.deps import get_current_account_id, get_engine
from agora.database.models import CommentVoteType
from agora.services import comment_service

router = APIRouter(tags=["comments"])


class CommentCreate(BaseModel):
    content: str


class CommentVoteCreate(BaseModel):
    vote_type: CommentVoteType


@router.post("/proposals/{proposal_id}/comments", status_code=201)
def create_comment(
    proposal_id: int,
    body: CommentCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    comment = comment_service.create_comment(
        engine, proposal_id=proposal_id, author_id=account_id, content=body.content
    )
    return serializers.comment(comment)


@router.get("/proposals/{proposal_id}/comments")
def list_comments(proposal_id: int, engine=Depends(get_engine)):
    return {
        "comments": [
            serializers.comment(c) for c in comment_service.list_comments(engine, proposal_id)
        ]
    }


@router.post("/comments/{comment_id}/votes", status_code=201)
def vote_on_comment(
    comment_id: int,
    body: CommentVoteCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    result = comment_service.vote_on_comment(
        engine, comment_id=comment_id, voter_id=account_id, vote_type=body.vote_type
    )
    return {
        "comment": serializers.comment(result.comment),
        "auto_integrated": result.auto_integrated,
        "rewards": serializers.rewards(result.rewards),
    }


@router.put("/comments/{comment_id}/integrate")
def integrate_comment(
    comment_id: int,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    comment = comment_service.integrate_comment(engine, comment_id, actor_id=account_id)
    return serializers.comment(comment)
