"""
AI assistant API endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.ai import (
    AIConversationCreate,
    AIConversationUpdate,
    AIMessageCreate,
    GenerateRequest,
    TrainingDataCreate,
)
from neuraslide.services.ai_service import AIService, get_ai_service
from neuraslide.validators.ai import (
    validate_add_message,
    validate_create_conversation,
    validate_generate,
    validate_search_conversations,
    validate_training_data,
    validate_update_conversation,
)
from neuraslide.validators.base import ensure_valid, parse_as

router = APIRouter()


@router.post("/generate")
async def generate(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    """Generate a reply, falling back to canned text when the model is unavailable."""
    ensure_valid(validate_generate(payload))
    result = await service.generate_response(identity.user_id, parse_as(GenerateRequest, payload))
    return success_response("AI response generated successfully", result)


# ============================================================================
# Conversations
# ============================================================================

@router.post("/conversations")
async def create_conversation(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    ensure_valid(validate_create_conversation(payload))
    conversation = await service.create_conversation(identity.user_id, parse_as(AIConversationCreate, payload))
    return created_response("AI conversation created successfully", conversation)


@router.get("/conversations")
async def list_conversations(
    query: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    ensure_valid(validate_search_conversations(query, limit, offset))
    conversations = await service.list_conversations(
        identity.user_id,
        query=query,
        tags=[t.strip() for t in tags.split(",") if t.strip()] if tags else None,
        is_active=is_active,
        limit=limit or 10,
        offset=offset or 0,
    )
    return success_response("AI conversations retrieved successfully", {"conversations": conversations})


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    conversation = await service.get_conversation(identity.user_id, conversation_id)
    return success_response("AI conversation retrieved successfully", conversation)


@router.put("/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    ensure_valid(validate_update_conversation(payload))
    conversation = await service.update_conversation(
        identity.user_id, conversation_id, parse_as(AIConversationUpdate, payload)
    )
    return success_response("AI conversation updated successfully", conversation)


@router.post("/conversations/{conversation_id}/messages")
async def add_conversation_message(
    conversation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    body = {**payload, "conversationId": conversation_id} if isinstance(payload, dict) else payload
    ensure_valid(validate_add_message(body))
    message = await service.add_message(identity.user_id, conversation_id, parse_as(AIMessageCreate, body))
    return created_response("Message added successfully", message)


@router.post("/messages")
async def add_message(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    """Same as the nested route, with the conversation id in the body."""
    ensure_valid(validate_add_message(payload))
    message = await service.add_message(
        identity.user_id, payload["conversationId"], parse_as(AIMessageCreate, payload)
    )
    return created_response("Message added successfully", message)


# ============================================================================
# Training data and analytics
# ============================================================================

@router.post("/training")
async def add_training_data(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    ensure_valid(validate_training_data(payload))
    entry = await service.add_training_data(identity.user_id, parse_as(TrainingDataCreate, payload))
    return created_response("Training data added successfully", entry)


@router.get("/training")
async def list_training_data(
    category: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    entries = await service.list_training_data(identity.user_id, category)
    return success_response("Training data retrieved successfully", {"trainingData": entries})


@router.get("/performance")
async def get_performance(
    identity: Identity = Depends(require_auth),
    service: AIService = Depends(get_ai_service),
):
    performance = await service.get_performance(identity.user_id)
    return success_response("Performance metrics retrieved successfully", performance)
