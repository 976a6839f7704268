"""
Admin console service.

User management, platform metrics and health, bulk operations and platform
settings. Every state-changing action is written to the append-only
``admin_actions`` audit log in the same transaction as the change itself.
"""

import time
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import (
    AdminActionModel,
    AutomationExecutionModel,
    AutomationModel,
    ConversationModel,
    MessageModel,
    PlatformSettingModel,
    ProductModel,
    UserModel,
    utcnow,
)
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import BadRequestError, NotFoundError
from neuraslide.infrastructure.openai_client import OpenAIClient, get_openai_client
from neuraslide.models.admin import (
    AdminAction,
    AdminActionCreate,
    AdminActionType,
    AdminUser,
    AdminUserUpdate,
    AutomationMetrics,
    BulkOperationRequest,
    BulkOperationResult,
    BulkOperationType,
    ConversationMetrics,
    PlatformSetting,
    RevenueMetrics,
    ServiceHealth,
    SettingUpdate,
    SystemHealth,
    SystemMetrics,
    UserAccountStatus,
    UserMetrics,
)
from neuraslide.models.common import Pagination

logger = structlog.get_logger()

_actions = BaseRepository(AdminActionModel)

PERIOD_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}
ACTIVE_CONVERSATION_DAYS = 7

# Database latency thresholds (ms)
DB_HEALTHY_MS = 1000
DB_WARNING_MS = 3000

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "maintenance_mode": {
        "value": False,
        "category": "general",
        "description": "Reject non-admin traffic while maintenance is in progress",
    },
    "max_login_attempts": {
        "value": 5,
        "category": "security",
        "description": "Failed logins allowed before an account is locked",
    },
}

_STARTED_AT = time.monotonic()


def _action_to_pydantic(row: AdminActionModel) -> AdminAction:
    return AdminAction(
        id=row.id,
        admin_id=row.admin_id,
        action=row.action,
        target_id=row.target_id,
        details=dict(row.details or {}),
        created_at=row.created_at,
    )


def _overall_status(services: List[ServiceHealth]) -> str:
    statuses = {s.status for s in services}
    if "error" in statuses:
        return "error"
    if "warning" in statuses:
        return "warning"
    return "healthy"


class AdminService:
    """Platform-wide administration. Callers are already checked for the admin role."""

    def __init__(self, db: Database, settings: Settings, openai: OpenAIClient):
        self.db = db
        self.settings = settings
        self.openai = openai

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    async def _usage_counts(self, session: AsyncSession, model, user_ids: List[str]) -> Dict[str, int]:
        if not user_ids:
            return {}
        rows = (await session.execute(
            select(model.user_id, func.count()).where(model.user_id.in_(user_ids)).group_by(model.user_id)
        )).all()
        return {user_id: count for user_id, count in rows}

    async def _to_admin_users(self, session: AsyncSession, rows: List[UserModel]) -> List[AdminUser]:
        ids = [r.id for r in rows]
        automations = await self._usage_counts(session, AutomationModel, ids)
        conversations = await self._usage_counts(session, ConversationModel, ids)
        products = await self._usage_counts(session, ProductModel, ids)
        return [
            AdminUser(
                id=r.id,
                email=r.email,
                name=r.name,
                role=r.role,
                status=UserAccountStatus.ACTIVE if r.is_active else UserAccountStatus.SUSPENDED,
                email_verified=r.email_verified,
                team_id=r.team_id,
                automation_count=automations.get(r.id, 0),
                conversation_count=conversations.get(r.id, 0),
                product_count=products.get(r.id, 0),
                last_login_at=r.last_login_at,
                created_at=r.created_at,
            )
            for r in rows
        ]

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[AdminUser], Pagination]:
        stmt = select(UserModel)
        if role:
            stmt = stmt.where(UserModel.role == role)
        if status:
            stmt = stmt.where(UserModel.is_active.is_(status.upper() == UserAccountStatus.ACTIVE.value))
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(UserModel.email.ilike(pattern), UserModel.name.ilike(pattern)))

        async with self.db.session() as session:
            total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
            rows = (await session.execute(
                stmt.order_by(UserModel.created_at.desc()).offset((page - 1) * limit).limit(limit)
            )).scalars().all()
            users = await self._to_admin_users(session, list(rows))

        return users, Pagination.build(page, limit, total)

    async def get_user(self, user_id: str) -> AdminUser:
        async with self.db.session() as session:
            row = await session.get(UserModel, user_id)
            if row is None:
                raise NotFoundError("User not found")
            return (await self._to_admin_users(session, [row]))[0]

    async def update_user(self, admin_id: str, user_id: str, data: AdminUserUpdate) -> AdminUser:
        async with self.db.session() as session:
            row = await session.get(UserModel, user_id)
            if row is None:
                raise NotFoundError("User not found")

            if data.name is not None:
                row.name = data.name.strip()
            if data.role is not None:
                row.role = data.role
            if data.email_verified is not None:
                row.email_verified = data.email_verified
            if data.status is not None:
                suspend = data.status == UserAccountStatus.SUSPENDED
                if suspend and user_id == admin_id:
                    raise BadRequestError("You cannot perform this action on your own account")
                if row.is_active == suspend:
                    row.is_active = not suspend
                    session.add(AdminActionModel(
                        admin_id=admin_id,
                        action=(AdminActionType.USER_SUSPENDED if suspend else AdminActionType.USER_ACTIVATED).value,
                        target_id=user_id,
                        details={"source": "user_update"},
                    ))
            await session.flush()
            await session.refresh(row)

            logger.info("admin_user_updated", admin_id=admin_id, user_id=user_id)
            return (await self._to_admin_users(session, [row]))[0]

    # -----------------------------------------------------------------------
    # Metrics & health
    # -----------------------------------------------------------------------

    async def get_metrics(self, period: str = "month") -> SystemMetrics:
        now = utcnow()
        since = now - timedelta(days=PERIOD_DAYS[period])
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        async def count(session: AsyncSession, model, *conditions) -> int:
            return (await session.execute(select(func.count()).select_from(model).where(*conditions))).scalar_one()

        async with self.db.session() as session:
            users = UserMetrics(
                total=await count(session, UserModel),
                active=await count(session, UserModel, UserModel.is_active.is_(True)),
                new=await count(session, UserModel, UserModel.created_at >= since),
            )
            automations = AutomationMetrics(
                total=await count(session, AutomationModel),
                active=await count(
                    session,
                    AutomationModel,
                    AutomationModel.is_active.is_(True),
                    AutomationModel.status == "ACTIVE",
                ),
                executions_today=await count(
                    session, AutomationExecutionModel, AutomationExecutionModel.created_at >= start_of_day
                ),
            )
            conversations = ConversationMetrics(
                total=await count(session, ConversationModel),
                active=await count(
                    session,
                    ConversationModel,
                    ConversationModel.last_message_at >= now - timedelta(days=ACTIVE_CONVERSATION_DAYS),
                ),
                messages_today=await count(session, MessageModel, MessageModel.created_at >= start_of_day),
            )

        # Billing is handled outside this service
        return SystemMetrics(
            period=period,
            users=users,
            automations=automations,
            conversations=conversations,
            revenue=RevenueMetrics(),
            generated_at=now,
        )

    async def get_health(self) -> SystemHealth:
        services: List[ServiceHealth] = []

        started = time.perf_counter()
        try:
            await self.db.ping()
            elapsed = round((time.perf_counter() - started) * 1000, 2)
            if elapsed < DB_HEALTHY_MS:
                db_status = "healthy"
            elif elapsed < DB_WARNING_MS:
                db_status = "warning"
            else:
                db_status = "error"
            services.append(ServiceHealth(name="database", status=db_status, response_time=elapsed))
        except Exception as e:
            logger.error("health_check_database_failed", error=str(e))
            services.append(ServiceHealth(name="database", status="error", details="Database unreachable"))

        services.append(ServiceHealth(name="api", status="healthy"))

        database_ok = services[0].status != "error"
        if database_ok:
            async with self.db.session() as session:
                active = (await session.execute(
                    select(func.count()).select_from(AutomationModel).where(AutomationModel.is_active.is_(True))
                )).scalar_one()
            services.append(ServiceHealth(name="automation", status="healthy", details=f"{active} active automations"))
        else:
            services.append(ServiceHealth(name="automation", status="error", details="Depends on database"))

        if self.openai.configured:
            services.append(ServiceHealth(name="ai", status="healthy", details=self.openai.default_model))
        else:
            services.append(ServiceHealth(name="ai", status="warning", details="Using fallback responses"))

        logger.debug("health_checked", database_ok=database_ok)
        return SystemHealth(
            status=_overall_status(services),
            services=services,
            uptime=round(time.monotonic() - _STARTED_AT, 1),
            version=self.settings.app_version,
            checked_at=utcnow(),
        )

    # -----------------------------------------------------------------------
    # Admin actions
    # -----------------------------------------------------------------------

    async def list_actions(
        self,
        page: int = 1,
        limit: int = 20,
        action: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> Tuple[List[AdminAction], Pagination]:
        filters = {"action": action, "admin_id": admin_id}
        async with self.db.session() as session:
            total = await _actions.count(session, filters)
            rows = await _actions.list(
                session, filters=filters, order_by="-created_at", limit=limit, offset=(page - 1) * limit
            )
        return [_action_to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def _apply(self, session: AsyncSession, admin_id: str, action: AdminActionType, target_id: str) -> bool:
        """Carry out one action against one target. False when the target does not exist."""
        if action in (AdminActionType.USER_SUSPENDED, AdminActionType.USER_DELETED) and target_id == admin_id:
            raise BadRequestError("You cannot perform this action on your own account")

        if action == AdminActionType.AUTOMATION_DISABLED:
            result = await session.execute(
                update(AutomationModel)
                .where(AutomationModel.id == target_id)
                .values(is_active=False, status="INACTIVE", updated_at=utcnow())
            )
        elif action == AdminActionType.USER_DELETED:
            result = await session.execute(delete(UserModel).where(UserModel.id == target_id))
        else:
            result = await session.execute(
                update(UserModel)
                .where(UserModel.id == target_id)
                .values(is_active=action == AdminActionType.USER_ACTIVATED, updated_at=utcnow())
            )
        return result.rowcount > 0

    async def perform_action(self, admin_id: str, data: AdminActionCreate) -> AdminAction:
        """Execute an admin action and record it in the audit log."""
        async with self.db.session() as session:
            if data.action in (
                AdminActionType.USER_SUSPENDED,
                AdminActionType.USER_ACTIVATED,
                AdminActionType.USER_DELETED,
                AdminActionType.AUTOMATION_DISABLED,
            ):
                if not await self._apply(session, admin_id, data.action, data.target_id):
                    raise NotFoundError("Target not found")

            row = await _actions.create(
                session,
                admin_id=admin_id,
                action=data.action.value,
                target_id=data.target_id,
                details={"note": data.details} if data.details else {},
            )
            logger.info("admin_action_performed", admin_id=admin_id, action=data.action.value, target_id=data.target_id)
            return _action_to_pydantic(row)

    # -----------------------------------------------------------------------
    # Bulk operations
    # -----------------------------------------------------------------------

    async def run_bulk_operation(self, admin_id: str, request: BulkOperationRequest) -> BulkOperationResult:
        """Apply one operation to every target; runs to completion before returning."""
        action = {
            BulkOperationType.SUSPEND_USERS: AdminActionType.USER_SUSPENDED,
            BulkOperationType.ACTIVATE_USERS: AdminActionType.USER_ACTIVATED,
            BulkOperationType.DELETE_USERS: AdminActionType.USER_DELETED,
            BulkOperationType.DISABLE_AUTOMATIONS: AdminActionType.AUTOMATION_DISABLED,
        }[request.operation]

        target_ids = list(dict.fromkeys(request.target_ids))
        if action != AdminActionType.USER_ACTIVATED and admin_id in target_ids:
            raise BadRequestError("You cannot perform this action on your own account")

        async with self.db.session() as session:
            failed_ids = [t for t in target_ids if not await self._apply(session, admin_id, action, t)]
            row = await _actions.create(
                session,
                admin_id=admin_id,
                action=AdminActionType.BULK_OPERATION.value,
                details={
                    "operation": request.operation.value,
                    "targetIds": target_ids,
                    "processed": len(target_ids) - len(failed_ids),
                    "failedIds": failed_ids,
                    "reason": request.reason,
                    "status": "completed",
                },
            )

        logger.info(
            "admin_bulk_operation",
            admin_id=admin_id,
            operation=request.operation.value,
            total=len(target_ids),
            failed=len(failed_ids),
        )
        return self._bulk_result(row)

    def _bulk_result(self, row: AdminActionModel) -> BulkOperationResult:
        details = row.details or {}
        failed_ids = list(details.get("failedIds", []))
        return BulkOperationResult(
            id=row.id,
            operation=details["operation"],
            status=details.get("status", "completed"),
            total=len(details.get("targetIds", [])),
            processed=details.get("processed", 0),
            failed=len(failed_ids),
            failed_ids=failed_ids,
            created_at=row.created_at,
        )

    async def get_bulk_operation(self, operation_id: str) -> BulkOperationResult:
        async with self.db.session() as session:
            row = await _actions.get_by_id(session, operation_id)
        if row is None or row.action != AdminActionType.BULK_OPERATION.value:
            raise NotFoundError("Bulk operation not found")
        return self._bulk_result(row)

    # -----------------------------------------------------------------------
    # Platform settings
    # -----------------------------------------------------------------------

    async def get_platform_settings(self, category: Optional[str] = None) -> List[PlatformSetting]:
        """Stored settings overlaid on the built-in defaults. Reading never writes."""
        async with self.db.session() as session:
            stmt = select(PlatformSettingModel)
            if category:
                stmt = stmt.where(PlatformSettingModel.category == category)
            rows = (await session.execute(stmt)).scalars().all()

        merged: Dict[str, PlatformSetting] = {
            key: PlatformSetting(key=key, **spec)
            for key, spec in DEFAULT_SETTINGS.items()
            if category is None or spec["category"] == category
        }
        for row in rows:
            merged[row.key] = PlatformSetting(
                key=row.key,
                value=row.value,
                category=row.category,
                description=row.description,
                updated_by=row.updated_by,
                updated_at=row.updated_at,
            )
        return sorted(merged.values(), key=lambda s: (s.category, s.key))

    async def update_platform_settings(self, admin_id: str, entries: List[SettingUpdate]) -> List[PlatformSetting]:
        async with self.db.session() as session:
            for entry in entries:
                row = await session.get(PlatformSettingModel, entry.key)
                default = DEFAULT_SETTINGS.get(entry.key, {})
                if row is None:
                    row = PlatformSettingModel(
                        key=entry.key,
                        category=entry.category or default.get("category", "general"),
                        description=entry.description or default.get("description"),
                    )
                    session.add(row)
                elif entry.category:
                    row.category = entry.category
                if entry.description is not None:
                    row.description = entry.description
                row.value = entry.value
                row.updated_by = admin_id
                row.updated_at = utcnow()

            session.add(AdminActionModel(
                admin_id=admin_id,
                action=AdminActionType.SETTINGS_UPDATED.value,
                details={"keys": [e.key for e in entries]},
            ))

        logger.info("platform_settings_updated", admin_id=admin_id, keys=[e.key for e in entries])
        return await self.get_platform_settings()


def get_admin_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    openai: OpenAIClient = Depends(get_openai_client),
) -> AdminService:
    return AdminService(db, settings, openai)
