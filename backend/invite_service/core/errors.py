# backend/invite_service/core/errors.py

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Optional

from invite_service.core.request_context import get_request_id

logger = logging.getLogger("invite_service")


class InviteErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVALID_USER = "INVALID_USER"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class InviteError(Exception):
    """
    Base class for invite lifecycle errors.

    Each subclass carries the HTTP status and stable error code that the
    exception handlers in main.py put on the wire.
    """

    status_code: int = 500
    code: InviteErrorCode = InviteErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InviteValidationError(InviteError, ValueError):
    """Malformed or missing invite fields."""

    status_code = 400
    code = InviteErrorCode.VALIDATION_ERROR


class InviteNotFound(InviteError):
    """
    No live invite for a token.

    Deliberately covers both "no such token" and "token expired" so that
    callers cannot probe which tokens once existed.
    """

    status_code = 404
    code = InviteErrorCode.INVITE_NOT_FOUND

    def __init__(self, message: str = "Invalid or expired invite token."):
        super().__init__(message)


class InvalidUser(InviteError):
    """Missing or wrong Basic auth credentials; unknown names look the same."""

    status_code = 403
    code = InviteErrorCode.INVALID_USER

    def __init__(self, message: str = "invalid user!"):
        super().__init__(message)


class StoreUnavailable(InviteError, RuntimeError):
    """The invite store's backing mapping is missing or unusable."""

    status_code = 500
    code = InviteErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str = "Invite store unavailable."):
        super().__init__(message)


class RequestIdFilter(logging.Filter):
    """
    Injects request_id into every LogRecord as `record.request_id`.
    Safe in non-request contexts (falls back to "-").
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def install_request_id_logging(
    logger_name: str = "invite_service",
    *,
    include_root: bool = True,
) -> None:
    """
    Attach RequestIdFilter so logs can include %(request_id)s in the formatter.
    Call once during startup (main.py does this right after logging.basicConfig()).
    """
    filt = RequestIdFilter()

    if include_root:
        root = logging.getLogger()
        root.addFilter(filt)

    logging.getLogger(logger_name).addFilter(filt)


def log_exception_with_context(
    message: str,
    *,
    request_id: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Log an exception with stack trace and request context.

    Use this inside exception handlers so the root cause of a 500 is visible:

        try:
            ...
        except StoreUnavailable:
            log_exception_with_context(
                "Invite store fault",
                extra={"path": "/invite", "method": "GET"}
            )
            raise
    """
    rid = request_id or get_request_id()
    context = " ".join(f"{k}={v}" for k, v in (extra or {}).items())

    # request_id is already an attribute on every record (see main.py), so it
    # goes into the message rather than `extra=`, which refuses to overwrite it.
    # logger.exception includes the stack trace of the currently-handled exception
    logger.exception("%s rid=%s %s", message, rid, context)
