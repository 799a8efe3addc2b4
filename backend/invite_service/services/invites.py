# backend/invite_service/services/invites.py
"""
In-memory invite store.

Owns the mapping user_id -> Invite and is the only thing that mutates invite
state. One lock covers both the primary index (by user id) and the secondary
index (by token) so every check-then-act sequence is atomic.
"""

from __future__ import annotations

import logging
import secrets
import string
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from invite_service.core.errors import InviteValidationError, StoreUnavailable

logger = logging.getLogger("invite_service.store")

INVITE_TOKEN_LENGTH = 6
INVITE_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
INVITE_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days, same for every invite


@dataclass
class Invite:
    user_id: str
    client_id: int
    app_key: str
    app_url: str
    token: str
    created: int
    expired: int
    active: bool = False

    def is_expired(self, now: float) -> bool:
        return self.expired <= now


@dataclass(frozen=True)
class InviteSummary:
    user_id: str
    active: bool


def generate_invite_token(length: int = INVITE_TOKEN_LENGTH) -> str:
    # Opaque short token from the OS CSPRNG
    return "".join(secrets.choice(INVITE_TOKEN_ALPHABET) for _ in range(length))


class InviteStore:
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] = generate_invite_token,
    ):
        self._clock = clock
        self._token_factory = token_factory
        self._lock = threading.Lock()
        self._invites: Optional[Dict[str, Invite]] = {}
        self._user_by_token: Dict[str, str] = {}

    def _records(self) -> Dict[str, Invite]:
        if not isinstance(self._invites, dict):
            raise StoreUnavailable("Invite store corrupted")
        return self._invites

    def _new_token(self) -> str:
        # Called with the lock held
        while True:
            token = self._token_factory()
            if token not in self._user_by_token:
                return token
            logger.info("Invite token collision, regenerating")

    def create_invite(self, user_id: str, client_id: int, app_key: str, app_url: str) -> Invite:
        """
        Return the invite for `user_id`, creating it on first request.

        An existing record is returned unchanged, expired or not: same token,
        same expiry. Only a brand-new record gets a fresh token and a 7-day window.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise InviteValidationError("userId is required")

        with self._lock:
            records = self._records()

            existing = records.get(user_id)
            if existing is not None:
                logger.debug("Invite already exists user_id=%s", user_id)
                return replace(existing)

            created = int(self._clock())
            invite = Invite(
                user_id=user_id,
                client_id=client_id,
                app_key=app_key,
                app_url=app_url,
                token=self._new_token(),
                created=created,
                expired=created + INVITE_TTL_SECONDS,
                active=False,
            )
            records[user_id] = invite
            self._user_by_token[invite.token] = user_id

            logger.info(
                "Invite created user_id=%s client_id=%s expired=%s",
                user_id,
                client_id,
                invite.expired,
            )
            return replace(invite)

    def validate_invite(self, token: str) -> Optional[Invite]:
        """
        Redeem a token.

        Returns the activated invite, or None when the token is unknown or the
        invite has expired. The two failure cases are not distinguished.
        Validating again before expiry succeeds again; `active` stays True.
        """
        with self._lock:
            records = self._records()

            user_id = self._user_by_token.get(token)
            invite = records.get(user_id) if user_id is not None else None
            if invite is None:
                logger.debug("Invite validation failed: unknown token")
                return None

            if invite.is_expired(self._clock()):
                logger.debug("Invite validation failed: expired user_id=%s", invite.user_id)
                return None

            if not invite.active:
                invite.active = True
                logger.info("Invite activated user_id=%s", invite.user_id)

            return replace(invite)

    def get_invites(self, active: Optional[bool] = None) -> List[InviteSummary]:
        """
        List `{user_id, active}` for every invite, in creation order.
        `active=None` means no filter; True/False keep exact matches only.
        """
        with self._lock:
            records = self._records()
            return [
                InviteSummary(user_id=invite.user_id, active=invite.active)
                for invite in records.values()
                if active is None or invite.active is active
            ]

    def get_invite(self, user_id: str) -> Optional[Invite]:
        with self._lock:
            invite = self._records().get(user_id)
            return replace(invite) if invite is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records())
