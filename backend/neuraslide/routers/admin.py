"""
Admin console API endpoints.

Every route requires a platform admin identity.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_admin
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.admin import AdminActionCreate, AdminUserUpdate, BulkOperationRequest, SettingUpdate
from neuraslide.services.admin_service import AdminService, get_admin_service
from neuraslide.validators.admin import (
    validate_action_list_query,
    validate_admin_action,
    validate_bulk_operation,
    validate_metrics_period,
    validate_settings_query,
    validate_settings_update,
    validate_user_list_query,
    validate_user_update,
)
from neuraslide.validators.base import ensure_valid, parse_as

router = APIRouter()


# ============================================================================
# Users
# ============================================================================

@router.get("/users")
async def list_users(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_user_list_query(page, limit, role, status))
    users, pagination = await service.list_users(
        page=page or 1, limit=limit or 20, role=role, status=status, search=search
    )
    return success_response("Users retrieved successfully", {"users": users, "pagination": pagination})


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    user = await service.get_user(user_id)
    return success_response("User retrieved successfully", user)


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    payload: Any = Body(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_user_update(payload))
    user = await service.update_user(admin.user_id, user_id, parse_as(AdminUserUpdate, payload))
    return success_response("User updated successfully", user)


# ============================================================================
# System
# ============================================================================

@router.get("/metrics")
async def get_metrics(
    period: Optional[str] = Query(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_metrics_period(period))
    metrics = await service.get_metrics(period or "month")
    return success_response("System metrics retrieved successfully", metrics)


@router.get("/health")
async def get_health(
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    health = await service.get_health()
    return success_response("System health retrieved successfully", health)


# ============================================================================
# Actions and bulk operations
# ============================================================================

@router.get("/actions")
async def list_actions(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    admin_id: Optional[str] = Query(None, alias="adminId"),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_action_list_query(page, limit, action))
    actions, pagination = await service.list_actions(
        page=page or 1, limit=limit or 20, action=action, admin_id=admin_id
    )
    return success_response("Admin actions retrieved successfully", {"actions": actions, "pagination": pagination})


@router.post("/actions")
async def perform_action(
    payload: Any = Body(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_admin_action(payload))
    action = await service.perform_action(admin.user_id, parse_as(AdminActionCreate, payload))
    return created_response("Admin action performed successfully", action)


@router.post("/bulk-operations")
async def run_bulk_operation(
    payload: Any = Body(None),
    admin: Identity = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_bulk_operation(payload, settings.max_bulk_admin_targets))
    result = await service.run_bulk_operation(admin.user_id, parse_as(BulkOperationRequest, payload))
    return success_response("Bulk operation initiated successfully", result)


@router.get("/bulk-operations/{operation_id}")
async def get_bulk_operation(
    operation_id: str,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    result = await service.get_bulk_operation(operation_id)
    return success_response("Bulk operation status retrieved successfully", result)


# ============================================================================
# Platform settings
# ============================================================================

@router.get("/settings")
async def get_settings_list(
    category: Optional[str] = Query(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_settings_query(category))
    entries = await service.get_platform_settings(category)
    return success_response("Settings retrieved successfully", {"settings": entries})


@router.put("/settings")
async def update_settings(
    payload: Any = Body(None),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    ensure_valid(validate_settings_update(payload))
    updates: List[SettingUpdate] = [parse_as(SettingUpdate, entry) for entry in payload["settings"]]
    entries = await service.update_platform_settings(admin.user_id, updates)
    return success_response("Settings updated successfully", {"settings": entries})
