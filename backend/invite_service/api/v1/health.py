# backend/invite_service/api/v1/health.py

"""
Health endpoints for the invite service.

- /ping     -> plain-text "pong" for load balancers
- /health   -> lightweight liveness JSON, including the invite count
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from invite_service.api.deps import get_invite_store
from invite_service.core.errors import StoreUnavailable

logger = logging.getLogger("invite_service.health")

router = APIRouter(tags=["health"])


@router.get("/ping", response_class=PlainTextResponse, summary="Ping")
def ping():
    return "pong"


@router.get("/health", summary="Liveness probe")
def health(request: Request):
    """
    Liveness check used by infra.

    - Returns 200 as long as the app process is up and the store answers.
    - Returns 503 when the invite store is missing or unusable.
    """
    try:
        invite_count = len(get_invite_store(request))
    except StoreUnavailable as exc:
        logger.exception("Invite store health check failed")
        raise HTTPException(
            status_code=503,
            detail={
                "message": "Invite store unavailable.",
                "store": "down",
                "error": str(exc),
            },
        )

    return {
        "status": "ok",
        "service": "invite-service",
        "version": request.app.version,
        "store": "up",
        "invites": invite_count,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }
