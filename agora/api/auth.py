"""
agora.api.auth — JWT issuance
===============================

Tokens are issued at registration and carry the account id in ``sub``.
Credential checks (passwords, OAuth) are outside this service.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import APIRouter, Depends

from agora.api.deps import JWT_ALGORITHM, JWT_SECRET, get_current_account_id

router = APIRouter(prefix="/auth", tags=["auth"])


def issue_token(account_id: int, username: str, *, ttl_hours: int = 24) -> str:
    payload = {
        "sub": str(account_id),
        "username": username,
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


@router.get("/me")
def me(account_id: int = Depends(get_current_account_id)):
    """Return the account id behind the current token."""
    return {"account_id": account_id}
