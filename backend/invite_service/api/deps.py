# backend/invite_service/api/deps.py
"""
Shared API dependencies.

The invite store and the validation rate limiter are owned by the app
instance (see main.create_app) and handed to endpoints through these
dependencies, so tests can build an app around their own store.
"""

from __future__ import annotations

from fastapi import Request

from invite_service.core.errors import StoreUnavailable
from invite_service.core.rate_limit import SimpleRateLimiter
from invite_service.services.invites import InviteStore


def get_invite_store(request: Request) -> InviteStore:
    store = getattr(request.app.state, "invite_store", None)
    if not isinstance(store, InviteStore):
        raise StoreUnavailable("Invite store is not initialized")
    return store


def validate_rate_limit(request: Request) -> None:
    limiter: SimpleRateLimiter = request.app.state.validate_limiter
    limiter.hit(request)
