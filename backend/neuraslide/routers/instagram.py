"""
Instagram account and direct-message API endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.exceptions import ValidationError
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.instagram import InstagramAccountConnect, SendDMRequest
from neuraslide.services.instagram_service import InstagramService, get_instagram_service
from neuraslide.validators.base import ensure_valid, parse_as
from neuraslide.validators.instagram import (
    validate_connect_account,
    validate_send_dm,
    validate_send_dm_with_link,
)

router = APIRouter()


@router.post("/accounts")
async def connect_account(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: InstagramService = Depends(get_instagram_service),
):
    ensure_valid(validate_connect_account(payload))
    account = await service.connect_account(identity.user_id, parse_as(InstagramAccountConnect, payload))
    return created_response("Instagram account connected successfully", account)


@router.get("/accounts")
async def list_accounts(
    identity: Identity = Depends(require_auth),
    service: InstagramService = Depends(get_instagram_service),
):
    accounts = await service.list_accounts(identity.user_id)
    return success_response("Instagram accounts retrieved successfully", {"accounts": accounts})


@router.post("/dm/send")
async def send_dm(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: InstagramService = Depends(get_instagram_service),
):
    ensure_valid(validate_send_dm(payload))
    result = await service.send_dm(identity.user_id, parse_as(SendDMRequest, payload))
    return success_response("DM sent successfully", result)


@router.post("/dm/send-with-link")
async def send_dm_with_link(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: InstagramService = Depends(get_instagram_service),
):
    ensure_valid(validate_send_dm_with_link(payload))
    result = await service.send_dm(identity.user_id, parse_as(SendDMRequest, payload))
    return success_response("DM sent successfully", result)


@router.get("/dm/conversations")
async def get_dm_conversations(
    account_id: Optional[str] = Query(None, alias="accountId"),
    user_id: Optional[str] = Query(None, alias="userId", description="Instagram participant id"),
    identity: Identity = Depends(require_auth),
    service: InstagramService = Depends(get_instagram_service),
):
    if not account_id:
        raise ValidationError(["Account ID is required"])
    threads = await service.get_dm_threads(identity.user_id, account_id, user_id)
    return success_response("Conversations retrieved successfully", threads)
