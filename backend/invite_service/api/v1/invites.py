# backend/invite_service/api/v1/invites.py

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, StrictInt, StrictStr

from invite_service.api.deps import get_invite_store, validate_rate_limit
from invite_service.core.errors import InviteNotFound
from invite_service.core.security import require_basic_user
from invite_service.services.invites import Invite, InviteStore

logger = logging.getLogger("invite_service")

router = APIRouter(prefix="/invite", tags=["invite"])


# ---------- Schemas ----------

class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}


class GenerateInviteRequest(_CamelModel):
    user_id: StrictStr = Field(
        ...,
        alias="userId",
        min_length=1,
        description="the user id that requested the invite to be generated",
        examples=["aleks@example.com"],
    )
    client_id: StrictInt = Field(
        ...,
        alias="clientId",
        description="the client id for which this invite is generated",
        examples=[50],
    )
    app_key: StrictStr = Field(
        ...,
        alias="appKey",
        description="app key used by the SDK",
        examples=["4d4f434841-373836313836303830-3430-616e64726f6964"],
    )
    app_url: StrictStr = Field(
        ...,
        alias="appUrl",
        description="environment url used by the SDK",
        examples=["https://test.example.com/2.1"],
    )


class ValidateInviteRequest(_CamelModel):
    invite_token: StrictStr = Field(
        ...,
        alias="inviteToken",
        description="an app invite token",
        examples=["d4f434"],
    )


class InviteOut(_CamelModel):
    user_id: str = Field(alias="userId")
    client_id: int = Field(alias="clientId")
    token: str
    created: int
    expired: int
    active: bool


class GenerateInviteResponse(_CamelModel):
    status: Literal["OK"] = "OK"
    invite: InviteOut


class ValidateInviteResponse(_CamelModel):
    status: Literal["OK"] = "OK"
    app_key: str = Field(alias="appKey")
    app_url: str = Field(alias="appUrl")


class InviteListItem(_CamelModel):
    user_id: str = Field(alias="userId")
    active: bool


class InviteListResponse(_CamelModel):
    status: Literal["OK"] = "OK"
    invites: List[InviteListItem]


def _invite_out(invite: Invite) -> InviteOut:
    return InviteOut(
        user_id=invite.user_id,
        client_id=invite.client_id,
        token=invite.token,
        created=invite.created,
        expired=invite.expired,
        active=invite.active,
    )


# ---------- Routes ----------

@router.get(
    "",
    response_model=InviteListResponse,
    response_model_by_alias=True,
    summary="List invites",
)
def list_invites(
    active: Optional[bool] = Query(None, description="Only invites with this activation state"),
    user: str = Depends(require_basic_user),
    store: InviteStore = Depends(get_invite_store),
):
    invites = store.get_invites(active)
    logger.info("Invite list user=%s active=%s count=%s", user, active, len(invites))
    return InviteListResponse(
        invites=[InviteListItem(user_id=i.user_id, active=i.active) for i in invites],
    )


@router.post(
    "/generate",
    response_model=GenerateInviteResponse,
    response_model_by_alias=True,
    summary="Generate an invite",
)
def generate_invite(
    body: GenerateInviteRequest,
    store: InviteStore = Depends(get_invite_store),
):
    """
    Idempotent per userId: asking again returns the original invite
    (same token, same expiry) rather than minting a new one.
    """
    invite = store.create_invite(
        user_id=body.user_id,
        client_id=body.client_id,
        app_key=body.app_key,
        app_url=body.app_url,
    )
    return GenerateInviteResponse(invite=_invite_out(invite))


@router.post(
    "/validate",
    response_model=ValidateInviteResponse,
    response_model_by_alias=True,
    summary="Validate an invite token",
    dependencies=[Depends(validate_rate_limit)],
)
def validate_invite(
    body: ValidateInviteRequest,
    store: InviteStore = Depends(get_invite_store),
):
    invite = store.validate_invite(body.invite_token)
    if invite is None:
        raise InviteNotFound()
    return ValidateInviteResponse(app_key=invite.app_key, app_url=invite.app_url)
