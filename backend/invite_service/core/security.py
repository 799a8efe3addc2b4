from __future__ import annotations

import logging
import secrets
from typing import Mapping, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from invite_service.core.config import Settings
from invite_service.core.errors import InvalidUser

logger = logging.getLogger("invite_service")

# auto_error=False: a missing Authorization header is answered with the same
# 403 as a wrong password instead of HTTPBasic's own 401 challenge.
basic_scheme = HTTPBasic(auto_error=False)


def check_credentials(users: Mapping[str, str], name: str, password: str) -> bool:
    """
    Compare a Basic auth pair against the static credential table.
    Unknown names and wrong passwords are indistinguishable to the caller.
    """
    expected = users.get(name)
    if expected is None:
        # Burn the same comparison time as a known user
        secrets.compare_digest(password.encode("utf-8"), b"")
        return False
    return secrets.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))


def _settings_from_request(request: Request) -> Settings:
    return request.app.state.settings


def require_basic_user(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
) -> str:
    """
    Dependency guarding operator endpoints (GET /invite).
    Returns the authenticated user name; raises InvalidUser (403) otherwise.
    """
    if credentials is None:
        raise InvalidUser()

    settings = _settings_from_request(request)
    if not check_credentials(settings.basic_auth_users, credentials.username, credentials.password):
        logger.warning("Basic auth rejected user=%s path=%s", credentials.username, request.url.path)
        raise InvalidUser()

    return credentials.username
