"""
Conversation inbox API endpoints.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.exceptions import ValidationError
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.conversation import ConversationStatus, ReplyRequest, SendMessageRequest
from neuraslide.services.conversation_service import ConversationService, get_conversation_service
from neuraslide.validators.base import ensure_valid, parse_as
from neuraslide.validators.conversation import (
    validate_add_tags,
    validate_list_query,
    validate_message_query,
    validate_reply,
    validate_send_message,
    validate_update_status,
)

router = APIRouter()


def _parse_instant(value: Optional[str], label: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError([f"{label} must be a valid ISO-8601 date"])


@router.get("")
async def list_conversations(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    is_automated: Optional[bool] = Query(None, alias="isAutomated"),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    search: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    ensure_valid(validate_list_query(page, limit, status, sort_by, sort_order))
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    conversations, pagination = await service.list_conversations(
        identity.user_id,
        page=page or 1,
        limit=limit or 20,
        status=status,
        is_automated=is_automated,
        tags=tag_list,
        search=search,
        sort_by=sort_by or "lastMessageAt",
        sort_order=(sort_order or "desc").lower(),
    )
    return success_response(
        "Conversations retrieved successfully",
        {"conversations": conversations, "pagination": pagination},
    )


@router.get("/stats")
async def get_stats(
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    stats = await service.get_stats(identity.user_id)
    return success_response("Conversation statistics retrieved successfully", stats)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation = await service.get_conversation(identity.user_id, conversation_id)
    return success_response("Conversation retrieved successfully", conversation)


@router.get("/{conversation_id}/messages")
async def get_messages(
    conversation_id: str,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    before: Optional[str] = Query(None),
    after: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    """Messages newest first, optionally bounded by ``before`` and ``after``."""
    ensure_valid(validate_message_query(page, limit))
    messages, pagination = await service.get_messages(
        identity.user_id,
        conversation_id,
        page=page or 1,
        limit=limit or 50,
        before=_parse_instant(before, "Before"),
        after=_parse_instant(after, "After"),
    )
    return success_response(
        "Messages retrieved successfully",
        {"messages": messages, "pagination": pagination},
    )


@router.post("/{conversation_id}/send")
async def send_message(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    ensure_valid(validate_send_message(payload))
    message = await service.send_message(
        identity.user_id, conversation_id, parse_as(SendMessageRequest, payload)
    )
    return created_response("Message sent successfully", message)


@router.post("/{conversation_id}/reply")
async def reply_to_message(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    ensure_valid(validate_reply(payload))
    message = await service.reply_to_message(identity.user_id, conversation_id, parse_as(ReplyRequest, payload))
    return created_response("Reply sent successfully", message)


@router.patch("/{conversation_id}/status")
async def update_status(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    ensure_valid(validate_update_status(payload))
    conversation = await service.update_status(
        identity.user_id, conversation_id, ConversationStatus(payload["status"].upper())
    )
    return success_response("Conversation status updated successfully", conversation)


@router.post("/{conversation_id}/tags")
async def add_tags(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ConversationService = Depends(get_conversation_service),
):
    ensure_valid(validate_add_tags(payload))
    conversation = await service.add_tags(identity.user_id, conversation_id, payload["tags"])
    return success_response("Tags added successfully", conversation)
