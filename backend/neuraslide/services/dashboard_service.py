"""
Dashboard service.

Read-only roll-up of one user's conversations, automations, products and AI
usage for the home screen. Windowed counts default to the last seven days.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import (
    AIConversationModel,
    AIResponseModel,
    AutomationExecutionModel,
    AutomationModel,
    ConversationModel,
    InstagramAccountModel,
    MessageModel,
    ProductModel,
    utcnow,
)
from neuraslide.infrastructure.circuit_breaker import CircuitState, all_circuit_breakers
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.openai_client import OpenAIClient, get_openai_client
from neuraslide.models.dashboard import (
    AIPerformanceSummary,
    ApiStatus,
    AutomationPerformance,
    ConversationPerformance,
    DashboardData,
    DashboardHealth,
    DashboardModule,
    DashboardOverview,
    DashboardWindow,
    InstagramConnections,
    PerformanceMetrics,
    ProductPerformance,
    QuickAction,
    QuickActions,
    RecentAIResponse,
    RecentActivity,
    RecentAutomation,
    RecentConversation,
    RecentProduct,
    TopProduct,
)

logger = structlog.get_logger()

DEFAULT_WINDOW_DAYS = 7
RECENT_LIMIT = 5
PREVIEW_LENGTH = 100

BREAKER_STATUS = {
    CircuitState.CLOSED: "healthy",
    CircuitState.HALF_OPEN: "recovering",
    CircuitState.OPEN: "down",
}


def default_window(start: Optional[datetime] = None, end: Optional[datetime] = None) -> DashboardWindow:
    if start and end:
        return DashboardWindow(start=start, end=end)
    now = utcnow()
    return DashboardWindow(start=now - timedelta(days=DEFAULT_WINDOW_DAYS), end=now)


def _preview(text: str) -> str:
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


def _breaker_status(name: str) -> str:
    breaker = all_circuit_breakers().get(name)
    if breaker is None:
        return "healthy"
    return BREAKER_STATUS[breaker.state]


async def _count(session: AsyncSession, stmt) -> int:
    return (await session.execute(stmt)).scalar_one() or 0


class DashboardService:

    def __init__(self, db: Database, openai: OpenAIClient):
        self.db = db
        self.openai = openai

    # -----------------------------------------------------------------------
    # Sections
    # -----------------------------------------------------------------------

    async def _overview(self, session: AsyncSession, user_id: str, window: DashboardWindow) -> DashboardOverview:
        def count(model, *conditions):
            return select(func.count()).select_from(model).where(*conditions)

        return DashboardOverview(
            total_conversations=await _count(session, count(ConversationModel, ConversationModel.user_id == user_id)),
            active_automations=await _count(session, count(
                AutomationModel,
                AutomationModel.user_id == user_id,
                AutomationModel.status == "ACTIVE",
                AutomationModel.is_active.is_(True),
            )),
            total_products=await _count(session, count(ProductModel, ProductModel.user_id == user_id)),
            ai_conversations=await _count(session, count(AIConversationModel, AIConversationModel.user_id == user_id)),
            recent_messages=await _count(session, (
                select(func.count())
                .select_from(MessageModel)
                .join(ConversationModel, ConversationModel.id == MessageModel.conversation_id)
                .where(
                    ConversationModel.user_id == user_id,
                    MessageModel.created_at >= window.start,
                    MessageModel.created_at <= window.end,
                )
            )),
            automation_triggers=await _count(session, (
                select(func.count())
                .select_from(AutomationExecutionModel)
                .join(AutomationModel, AutomationModel.id == AutomationExecutionModel.automation_id)
                .where(
                    AutomationModel.user_id == user_id,
                    AutomationExecutionModel.created_at >= window.start,
                    AutomationExecutionModel.created_at <= window.end,
                )
            )),
            ai_responses=await _count(session, count(
                AIResponseModel,
                AIResponseModel.user_id == user_id,
                AIResponseModel.created_at >= window.start,
                AIResponseModel.created_at <= window.end,
            )),
        )

    async def _recent_activity(
        self, session: AsyncSession, user_id: str, module: Optional[DashboardModule] = None
    ) -> RecentActivity:
        activity = RecentActivity()

        if module in (None, DashboardModule.CONVERSATIONS):
            rows = (await session.execute(
                select(ConversationModel)
                .where(ConversationModel.user_id == user_id)
                .order_by(func.coalesce(ConversationModel.updated_at, ConversationModel.created_at).desc())
                .limit(RECENT_LIMIT)
            )).scalars().all()
            activity.conversations = [
                RecentConversation(
                    id=r.id,
                    title=r.participant_username or "Untitled Conversation",
                    last_message=r.last_message_text or "No messages",
                    status=r.status,
                    updated_at=r.updated_at or r.created_at,
                )
                for r in rows
            ]

        if module in (None, DashboardModule.AUTOMATIONS):
            rows = (await session.execute(
                select(AutomationModel)
                .where(AutomationModel.user_id == user_id)
                .order_by(func.coalesce(AutomationModel.updated_at, AutomationModel.created_at).desc())
                .limit(RECENT_LIMIT)
            )).scalars().all()
            activity.automations = [
                RecentAutomation(
                    id=r.id,
                    name=r.name,
                    trigger=(r.trigger or {}).get("type"),
                    status=r.status,
                    last_triggered=r.last_triggered_at,
                )
                for r in rows
            ]

        if module in (None, DashboardModule.PRODUCTS):
            rows = (await session.execute(
                select(ProductModel)
                .where(ProductModel.user_id == user_id)
                .order_by(ProductModel.search_count.desc(), ProductModel.created_at.desc())
                .limit(RECENT_LIMIT)
            )).scalars().all()
            activity.products = [
                RecentProduct(
                    id=r.id,
                    name=r.name,
                    category=r.category,
                    search_count=r.search_count or 0,
                    updated_at=r.updated_at or r.created_at,
                )
                for r in rows
            ]

        if module in (None, DashboardModule.AI):
            rows = (await session.execute(
                select(AIResponseModel)
                .where(AIResponseModel.user_id == user_id)
                .order_by(AIResponseModel.created_at.desc())
                .limit(RECENT_LIMIT)
            )).scalars().all()
            activity.ai_responses = [
                RecentAIResponse(
                    id=r.id,
                    conversation_id=r.conversation_id,
                    response=_preview(r.response),
                    confidence=r.confidence or 0.0,
                    created_at=r.created_at,
                )
                for r in rows
            ]

        return activity

    async def _performance(self, session: AsyncSession, user_id: str) -> PerformanceMetrics:
        total, succeeded, avg_time = (await session.execute(
            select(
                func.count(),
                func.sum(case((AutomationExecutionModel.success.is_(True), 1), else_=0)),
                func.avg(AutomationExecutionModel.response_time),
            )
            .select_from(AutomationExecutionModel)
            .join(AutomationModel, AutomationModel.id == AutomationExecutionModel.automation_id)
            .where(AutomationModel.user_id == user_id)
        )).one()
        succeeded = succeeded or 0
        automations = AutomationPerformance(
            total_triggers=total,
            successful_responses=succeeded,
            success_rate=round(succeeded * 100.0 / total, 2) if total else 0.0,
            average_response_time=round(avg_time or 0.0, 2),
        )

        responses, confidence = (await session.execute(
            select(func.count(), func.avg(AIResponseModel.confidence)).where(AIResponseModel.user_id == user_id)
        )).one()
        ai = AIPerformanceSummary(total_responses=responses, average_confidence=round(confidence or 0.0, 3))

        searches = await _count(
            session, select(func.sum(ProductModel.search_count)).where(ProductModel.user_id == user_id)
        )
        top = (await session.execute(
            select(ProductModel)
            .where(ProductModel.user_id == user_id, ProductModel.search_count > 0)
            .order_by(ProductModel.search_count.desc())
            .limit(RECENT_LIMIT)
        )).scalars().all()
        products = ProductPerformance(
            total_searches=searches,
            top_searched_products=[TopProduct(id=p.id, name=p.name, search_count=p.search_count) for p in top],
        )

        conversations = ConversationPerformance(
            total_messages=await _count(session, (
                select(func.count())
                .select_from(MessageModel)
                .join(ConversationModel, ConversationModel.id == MessageModel.conversation_id)
                .where(ConversationModel.user_id == user_id)
            )),
            active_conversations=await _count(session, (
                select(func.count())
                .select_from(ConversationModel)
                .where(ConversationModel.user_id == user_id, ConversationModel.status == "ACTIVE")
            )),
        )

        return PerformanceMetrics(
            automation_performance=automations,
            ai_performance=ai,
            product_performance=products,
            conversation_performance=conversations,
        )

    async def _connections(self, session: AsyncSession, user_id: str) -> InstagramConnections:
        total, active, last_sync = (await session.execute(
            select(
                func.count(),
                func.sum(case((InstagramAccountModel.is_active.is_(True), 1), else_=0)),
                func.max(func.coalesce(InstagramAccountModel.updated_at, InstagramAccountModel.created_at)),
            ).where(InstagramAccountModel.user_id == user_id)
        )).one()
        return InstagramConnections(total=total, active=active or 0, last_sync=last_sync)

    async def _system_health(self, session: AsyncSession, user_id: str) -> DashboardHealth:
        return DashboardHealth(
            instagram_connections=await self._connections(session, user_id),
            api_status=ApiStatus(
                instagram=_breaker_status("instagram_graph"),
                ai=_breaker_status("openai") if self.openai.configured else "fallback",
                automation="healthy",
            ),
            database_status="healthy",
            checked_at=utcnow(),
        )

    async def _quick_actions(self, session: AsyncSession, user_id: str) -> QuickActions:
        connected = (await self._connections(session, user_id)).active > 0
        return QuickActions(
            create_automation=QuickAction(
                available=connected,
                message="Create new automation rule" if connected else "Connect Instagram account first",
            ),
            add_product=QuickAction(available=True, message="Add new product to catalog"),
            test_ai=QuickAction(available=True, message="Test AI response generation"),
            connect_instagram=QuickAction(
                available=not connected,
                message="Instagram already connected" if connected else "Connect your Instagram account",
            ),
        )

    # -----------------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------------

    async def get_dashboard(
        self,
        user_id: str,
        window: Optional[DashboardWindow] = None,
        module: Optional[DashboardModule] = None,
    ) -> DashboardData:
        window = window or default_window()
        async with self.db.session() as session:
            data = DashboardData(
                window=window,
                overview=await self._overview(session, user_id, window),
                recent_activity=await self._recent_activity(session, user_id, module),
                performance=await self._performance(session, user_id),
                system_health=await self._system_health(session, user_id),
                quick_actions=await self._quick_actions(session, user_id),
            )
        logger.debug("dashboard_built", user_id=user_id, module=module.value if module else None)
        return data

    async def get_overview(self, user_id: str, window: Optional[DashboardWindow] = None) -> DashboardOverview:
        async with self.db.session() as session:
            return await self._overview(session, user_id, window or default_window())

    async def get_recent_activity(self, user_id: str, module: Optional[DashboardModule] = None) -> RecentActivity:
        async with self.db.session() as session:
            return await self._recent_activity(session, user_id, module)

    async def get_performance(self, user_id: str) -> PerformanceMetrics:
        async with self.db.session() as session:
            return await self._performance(session, user_id)

    async def get_system_health(self, user_id: str) -> DashboardHealth:
        async with self.db.session() as session:
            return await self._system_health(session, user_id)

    async def get_quick_actions(self, user_id: str) -> QuickActions:
        async with self.db.session() as session:
            return await self._quick_actions(session, user_id)


def get_dashboard_service(
    db: Database = Depends(get_database),
    openai: OpenAIClient = Depends(get_openai_client),
) -> DashboardService:
    return DashboardService(db, openai)
