"""
agora.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn agora.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from agora import __version__  # noqa: E402
from agora.api.auth import router as auth_router  # noqa: E402
from agora.api.deps import get_config, get_engine  # noqa: E402
from agora.api.routes.accounts import router as accounts_router  # noqa: E402
from agora.api.routes.comments import router as comments_router  # noqa: E402
from agora.api.routes.delegations import router as delegations_router  # noqa: E402
from agora.api.routes.proposals import router as proposals_router  # noqa: E402
from agora.api.routes.quizzes import router as quizzes_router  # noqa: E402
from agora.config import AgoraConfig  # noqa: E402
from agora.constants import SCOPE_LADDER, THRESHOLD_MULTIPLIERS, VOTING_WINDOW_DAYS  # noqa: E402
from agora.errors import AgoraError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Agora API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Agora API shutting down")


app = FastAPI(
    title="Agora API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AgoraError)
async def agora_error_handler(request: Request, exc: AgoraError):
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(accounts_router, prefix="/api")
app.include_router(proposals_router, prefix="/api")
app.include_router(quizzes_router, prefix="/api")
app.include_router(delegations_router, prefix="/api")
app.include_router(comments_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/meta")
def meta(cfg: AgoraConfig = Depends(get_config)):
    """Platform name and the fixed scope ladder."""
    return {
        "platform_name": cfg.platform_name,
        "version": __version__,
        "scopes": [
            {"scope": scope, "threshold_multiplier": mult, "voting_window_days": days}
            for scope, mult, days in zip(
                SCOPE_LADDER, THRESHOLD_MULTIPLIERS, VOTING_WINDOW_DAYS, strict=True
            )
        ],
    }
