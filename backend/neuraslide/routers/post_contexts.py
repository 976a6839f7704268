"""
Post context API endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.post_context import PostContextCreate, PostContextUpdate
from neuraslide.services.post_context_service import PostContextService, get_post_context_service
from neuraslide.validators.base import ensure_valid, parse_as
from neuraslide.validators.post_context import (
    validate_create_post_context,
    validate_list_query,
    validate_update_post_context,
)

router = APIRouter()


@router.post("")
async def create_post_context(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: PostContextService = Depends(get_post_context_service),
):
    ensure_valid(validate_create_post_context(payload))
    context = await service.create_context(identity.user_id, parse_as(PostContextCreate, payload))
    return created_response("Post context created successfully", context)


@router.get("")
async def list_post_contexts(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    instagram_account_id: Optional[str] = Query(None, alias="instagramAccountId"),
    media_id: Optional[str] = Query(None, alias="mediaId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    identity: Identity = Depends(require_auth),
    service: PostContextService = Depends(get_post_context_service),
):
    ensure_valid(validate_list_query(page, limit))
    contexts, pagination = await service.list_contexts(
        identity.user_id,
        page=page or 1,
        limit=limit or 20,
        instagram_account_id=instagram_account_id,
        media_id=media_id,
        is_active=is_active,
    )
    return success_response(
        "Post contexts retrieved successfully",
        {"postContexts": contexts, "pagination": pagination},
    )


@router.get("/{context_id}")
async def get_post_context(
    context_id: str,
    identity: Identity = Depends(require_auth),
    service: PostContextService = Depends(get_post_context_service),
):
    context = await service.get_context(identity.user_id, context_id)
    return success_response("Post context retrieved successfully", context)


@router.put("/{context_id}")
async def update_post_context(
    context_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: PostContextService = Depends(get_post_context_service),
):
    ensure_valid(validate_update_post_context(payload))
    context = await service.update_context(identity.user_id, context_id, parse_as(PostContextUpdate, payload))
    return success_response("Post context updated successfully", context)


@router.delete("/{context_id}")
async def delete_post_context(
    context_id: str,
    identity: Identity = Depends(require_auth),
    service: PostContextService = Depends(get_post_context_service),
):
    await service.delete_context(identity.user_id, context_id)
    return success_response("Post context deleted successfully")
