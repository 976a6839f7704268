"""
Dashboard API endpoints.

``start`` and ``end`` (ISO-8601, both or neither, at most 90 days apart) set
the window for the overview's recent counts; ``module`` narrows the recent
activity feed to one area.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.responses import success_response
from neuraslide.models.dashboard import DashboardModule
from neuraslide.services.dashboard_service import DashboardService, default_window, get_dashboard_service
from neuraslide.validators.base import ensure_valid
from neuraslide.validators.dashboard import parse_instant, validate_dashboard_query

router = APIRouter()


@router.get("")
async def get_dashboard(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    module: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Every dashboard section in one response."""
    ensure_valid(validate_dashboard_query(start, end, module))
    data = await service.get_dashboard(
        identity.user_id,
        window=default_window(parse_instant(start), parse_instant(end)),
        module=DashboardModule(module) if module else None,
    )
    return success_response("Dashboard data retrieved successfully", data)


@router.get("/overview")
async def get_overview(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    ensure_valid(validate_dashboard_query(start, end, None))
    overview = await service.get_overview(
        identity.user_id, default_window(parse_instant(start), parse_instant(end))
    )
    return success_response("Dashboard overview retrieved successfully", overview)


@router.get("/recent-activity")
async def get_recent_activity(
    module: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    ensure_valid(validate_dashboard_query(None, None, module))
    activity = await service.get_recent_activity(identity.user_id, DashboardModule(module) if module else None)
    return success_response("Recent activity retrieved successfully", activity)


@router.get("/performance")
async def get_performance(
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    performance = await service.get_performance(identity.user_id)
    return success_response("Performance metrics retrieved successfully", performance)


@router.get("/system-health")
async def get_system_health(
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    health = await service.get_system_health(identity.user_id)
    return success_response("System health retrieved successfully", health)


@router.get("/quick-actions")
async def get_quick_actions(
    identity: Identity = Depends(require_auth),
    service: DashboardService = Depends(get_dashboard_service),
):
    actions = await service.get_quick_actions(identity.user_id)
    return success_response("Quick actions retrieved successfully", actions)
