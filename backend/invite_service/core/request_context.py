# backend/invite_service/core/request_context.py
from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

# --- Request id (set by the observability middleware in main.py) ---
request_id_var: ContextVar[Optional[str]] = ContextVar("invite_request_id", default=None)


def set_request_id(rid: str | None) -> None:
    request_id_var.set(rid)


def get_request_id() -> str:
    return request_id_var.get() or "-"
