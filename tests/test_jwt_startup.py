"""
tests/test_jwt_startup — JWT Secret Validation at Startup
===========================================================
The API must refuse to start when JWT_SECRET is missing, blank, too
short, or a known weak default.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest
from fastapi import HTTPException

from agora.api import deps
from agora.api.auth import issue_token


class TestJWTSecretValidation:
    """_load_jwt_secret() rejects bad secrets and accepts good ones."""

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    @pytest.mark.parametrize("weak", ["agora-dev-secret-change-me", "change-me"])
    def test_rejects_known_weak_default(self, weak):
        with patch.dict(os.environ, {"JWT_SECRET": weak}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                deps._load_jwt_secret()

    def test_accepts_strong_secret(self):
        good_secret = "a" * 64
        with patch.dict(os.environ, {"JWT_SECRET": good_secret}):
            assert deps._load_jwt_secret() == good_secret


class TestBearerTokens:
    def test_issued_token_round_trips(self):
        token = issue_token(7, "alice")
        assert deps.get_current_account_id(f"Bearer {token}") == 7

    def test_expired_token_rejected(self):
        token = jwt.encode(
            {"sub": "7", "exp": datetime.now(UTC) - timedelta(minutes=1)},
            deps.JWT_SECRET,
            algorithm=deps.JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException) as excinfo:
            deps.get_current_account_id(f"Bearer {token}")
        assert excinfo.value.status_code == 401

    def test_non_numeric_subject_rejected(self):
        token = jwt.encode({"sub": "alice"}, deps.JWT_SECRET, algorithm=deps.JWT_ALGORITHM)
        with pytest.raises(HTTPException):
            deps.get_current_account_id(f"Bearer {token}")

    def test_missing_bearer_prefix(self):
        with pytest.raises(HTTPException):
            deps.get_current_account_id("Token abc")
