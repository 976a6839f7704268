"""
Automation API endpoints.

Fixed paths (``stats``, ``test``) are declared before ``/{automation_id}``
so they are not captured as ids.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.automation import AutomationCreate, AutomationTestRequest, AutomationUpdate
from neuraslide.services.automation_service import AutomationService, get_automation_service
from neuraslide.validators.automation import (
    validate_create_automation,
    validate_list_query,
    validate_test_automation,
    validate_test_message,
    validate_update_automation,
)
from neuraslide.validators.base import ensure_valid, parse_as

router = APIRouter()


@router.post("")
async def create_automation(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    ensure_valid(validate_create_automation(payload))
    automation = await service.create_automation(identity.user_id, parse_as(AutomationCreate, payload))
    return created_response("Automation created successfully", automation)


@router.get("")
async def list_automations(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    """List the caller's automations, newest first."""
    ensure_valid(validate_list_query(page, limit, status, priority))
    automations, pagination = await service.list_automations(
        identity.user_id,
        page=page or 1,
        limit=limit or 10,
        search=search,
        status=status,
        priority=priority,
        is_active=is_active,
    )
    return success_response(
        "Automations retrieved successfully",
        {"automations": automations, "pagination": pagination},
    )


@router.get("/stats")
async def get_stats(
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    stats = await service.get_stats(identity.user_id)
    return success_response("Automation statistics retrieved successfully", stats)


@router.post("/test")
async def test_unsaved_automation(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    """Try a trigger/response pair without saving it."""
    ensure_valid(validate_test_automation(payload))
    result = await service.test_adhoc(parse_as(AutomationTestRequest, payload))
    return success_response("Automation test completed", result)


@router.get("/{automation_id}")
async def get_automation(
    automation_id: str,
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    automation = await service.get_automation(identity.user_id, automation_id)
    return success_response("Automation retrieved successfully", automation)


@router.put("/{automation_id}")
async def update_automation(
    automation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    ensure_valid(validate_update_automation(payload))
    automation = await service.update_automation(
        identity.user_id, automation_id, parse_as(AutomationUpdate, payload)
    )
    return success_response("Automation updated successfully", automation)


@router.delete("/{automation_id}")
async def delete_automation(
    automation_id: str,
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    await service.delete_automation(identity.user_id, automation_id)
    return success_response("Automation deleted successfully")


@router.post("/{automation_id}/toggle")
async def toggle_automation(
    automation_id: str,
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    automation = await service.toggle_automation(identity.user_id, automation_id)
    return success_response("Automation updated successfully", automation)


@router.post("/{automation_id}/test")
async def test_automation(
    automation_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    """Run a sample message through a saved automation. Nothing is recorded."""
    ensure_valid(validate_test_message(payload))
    result = await service.test_automation(
        identity.user_id, automation_id, payload["message"], payload.get("context")
    )
    return success_response("Automation test completed", result)


@router.get("/{automation_id}/performance")
async def get_performance(
    automation_id: str,
    identity: Identity = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    performance = await service.get_performance(identity.user_id, automation_id)
    return success_response("Automation performance retrieved successfully", performance)
