"""
Automation service.

CRUD for reply automations plus the evaluation engine: matching a trigger
against an inbound message, rendering the configured response, and
recording performance counters with atomic column updates.
"""

import random
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import (
    AutomationExecutionModel,
    AutomationModel,
    MessageModel,
    utcnow,
)
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
)
from neuraslide.infrastructure.openai_client import OpenAIClient, get_openai_client
from neuraslide.models.automation import (
    AIGeneratedResponse,
    Automation,
    AutomationCreate,
    AutomationExecution,
    AutomationPerformance,
    AutomationStats,
    AutomationStatus,
    AutomationTestRequest,
    AutomationTestResult,
    AutomationUpdate,
    CustomResponse,
    DelayResponse,
    IntentTrigger,
    KeywordTrigger,
    MessageCountTrigger,
    TemplateResponse,
    TimeTrigger,
    Trigger,
    UserTypeTrigger,
)
from neuraslide.models.common import Pagination

logger = structlog.get_logger()

THANK_YOU_REPLIES = [
    "Thank you! 😊",
    "Thanks! 🙏",
    "Appreciate it! ✨",
    "Thank you for the comment! 💙",
    "Thanks for the support! 🎉",
]

DELAYED_RESPONSE_NOTICE = "Delayed response would be queued"

PRIORITY_RANK = {"URGENT": 0, "HIGH": 1, "MEDIUM": 2, "LOW": 3}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

_automations = BaseRepository(AutomationModel)


# ============================================
# TRIGGER MATCHING
# ============================================

def _match_keyword(trigger: KeywordTrigger, message: str) -> bool:
    text = message if trigger.case_sensitive else message.lower()
    for keyword in trigger.keywords:
        needle = keyword if trigger.case_sensitive else keyword.lower()
        if trigger.match_type == "exact":
            if text.strip() == needle.strip():
                return True
        elif trigger.match_type == "starts_with":
            if text.startswith(needle):
                return True
        elif trigger.match_type == "ends_with":
            if text.endswith(needle):
                return True
        elif needle in text:
            return True
    return False


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _as_count(value: Any) -> int:
    """Whole-number count from client context; anything else counts as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def _match_time(trigger: TimeTrigger, now: datetime) -> bool:
    try:
        local = now.astimezone(ZoneInfo(trigger.timezone))
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("automation_unknown_timezone", timezone=trigger.timezone)
        local = now.astimezone(timezone.utc)

    if local.isoweekday() not in trigger.days_of_week:
        return False

    current = local.hour * 60 + local.minute
    start = _minutes(trigger.time_range.start)
    end = _minutes(trigger.time_range.end)
    if start <= end:
        return start <= current <= end
    # Window wraps past midnight
    return current >= start or current <= end


def trigger_matches(
    trigger: Trigger,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Decide whether ``trigger`` fires for ``message``.

    ``context`` may carry ``intent``, ``userType`` and ``recentMessageCount``
    for the trigger kinds that need more than the text.
    """
    context = context or {}
    message = message or ""

    if isinstance(trigger, KeywordTrigger):
        return _match_keyword(trigger, message)
    if isinstance(trigger, IntentTrigger):
        intents = [i.lower() for i in trigger.intents]
        detected = context.get("intent")
        if isinstance(detected, str) and detected.lower() in intents:
            return True
        lowered = message.lower()
        return any(intent in lowered for intent in intents)
    if isinstance(trigger, TimeTrigger):
        return _match_time(trigger, now or datetime.now(timezone.utc))
    if isinstance(trigger, UserTypeTrigger):
        return context.get("userType") in trigger.user_types
    if isinstance(trigger, MessageCountTrigger):
        return _as_count(context.get("recentMessageCount")) >= trigger.count
    return False


def fill_placeholders(text: str, values: Dict[str, Any]) -> str:
    """Replace ``{name}`` with ``values[name]``; unknown names are left as-is."""
    return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), text)


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


class AutomationService:
    """Reply automations owned by a single user."""

    def __init__(self, db: Database, settings: Settings, openai: OpenAIClient):
        self.db = db
        self.settings = settings
        self.openai = openai

    # -----------------------------------------------------------------------
    # Conversion
    # -----------------------------------------------------------------------

    def _to_pydantic(self, row: AutomationModel) -> Automation:
        return Automation(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            description=row.description,
            trigger=row.trigger,
            response=row.response,
            status=row.status,
            priority=row.priority,
            is_active=row.is_active,
            tags=list(row.tags or []),
            performance=AutomationPerformance(
                total_triggers=row.total_triggers or 0,
                successful_responses=row.successful_responses or 0,
                failed_responses=row.failed_responses or 0,
                success_rate=row.success_rate or 0.0,
                average_response_time=row.average_response_time or 0.0,
                last_triggered_at=row.last_triggered_at,
            ),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def _get_owned(self, session: AsyncSession, user_id: str, automation_id: str) -> AutomationModel:
        row = await _automations.get_owned(session, automation_id, user_id)
        if row is None:
            raise NotFoundError("Automation not found")
        return row

    # -----------------------------------------------------------------------
    # CRUD
    # -----------------------------------------------------------------------

    async def create_automation(self, user_id: str, data: AutomationCreate) -> Automation:
        async with self.db.session() as session:
            existing = await _automations.count(session, {"user_id": user_id})
            if existing >= self.settings.max_automations_per_user:
                raise AuthorizationError(
                    "You have reached your automation limit. Upgrade your plan to create more automations."
                )

            row = await _automations.create(
                session,
                user_id=user_id,
                name=data.name.strip(),
                description=data.description,
                trigger=data.trigger.model_dump(mode="json", by_alias=True),
                response=data.response.model_dump(mode="json", by_alias=True),
                status=data.status.value,
                priority=data.priority.value,
                is_active=data.is_active,
                tags=list(dict.fromkeys(data.tags)),
            )
            logger.info("automation_created", automation_id=row.id, user_id=user_id)
            return self._to_pydantic(row)

    async def list_automations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[Automation], Pagination]:
        conditions = [AutomationModel.user_id == user_id]
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(AutomationModel.name.ilike(pattern), AutomationModel.description.ilike(pattern)))
        if status:
            conditions.append(AutomationModel.status == status.upper())
        if priority:
            conditions.append(AutomationModel.priority == priority.upper())
        if is_active is not None:
            conditions.append(AutomationModel.is_active == is_active)

        async with self.db.session() as session:
            total = (await session.execute(
                select(func.count()).select_from(AutomationModel).where(*conditions)
            )).scalar_one()
            rows = (await session.execute(
                select(AutomationModel)
                .where(*conditions)
                .order_by(AutomationModel.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )).scalars().all()

        return [self._to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def get_automation(self, user_id: str, automation_id: str) -> Automation:
        async with self.db.session() as session:
            return self._to_pydantic(await self._get_owned(session, user_id, automation_id))

    async def update_automation(self, user_id: str, automation_id: str, data: AutomationUpdate) -> Automation:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, automation_id)

            changes: Dict[str, Any] = {}
            if data.name is not None:
                changes["name"] = data.name.strip()
            if data.description is not None:
                changes["description"] = data.description
            if data.trigger is not None:
                changes["trigger"] = data.trigger.model_dump(mode="json", by_alias=True)
            if data.response is not None:
                changes["response"] = data.response.model_dump(mode="json", by_alias=True)
            if data.status is not None:
                changes["status"] = data.status.value
            if data.priority is not None:
                changes["priority"] = data.priority.value
            if data.is_active is not None:
                changes["is_active"] = data.is_active
            if data.tags is not None:
                changes["tags"] = list(dict.fromkeys(data.tags))

            row = await _automations.update(session, row, **changes)
            logger.info("automation_updated", automation_id=automation_id, fields=sorted(changes))
            return self._to_pydantic(row)

    async def delete_automation(self, user_id: str, automation_id: str) -> None:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, automation_id)
            await _automations.delete(session, row)
        logger.info("automation_deleted", automation_id=automation_id, user_id=user_id)

    async def toggle_automation(self, user_id: str, automation_id: str) -> Automation:
        """Flip ACTIVE <-> INACTIVE; a DRAFT becomes ACTIVE."""
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, automation_id)
            new_status = AutomationStatus.INACTIVE if row.status == AutomationStatus.ACTIVE.value else AutomationStatus.ACTIVE
            row = await _automations.update(
                session,
                row,
                status=new_status.value,
                is_active=new_status == AutomationStatus.ACTIVE,
            )
            logger.info("automation_toggled", automation_id=automation_id, status=new_status.value)
            return self._to_pydantic(row)

    # -----------------------------------------------------------------------
    # Testing
    # -----------------------------------------------------------------------

    async def test_automation(
        self,
        user_id: str,
        automation_id: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> AutomationTestResult:
        """Evaluate a stored automation against a sample message. Records nothing."""
        automation = await self.get_automation(user_id, automation_id)
        result = await self._evaluate(automation.trigger, automation.response, message, context or {})
        result.automation_id = automation.id
        return result

    async def test_adhoc(self, data: AutomationTestRequest) -> AutomationTestResult:
        """Evaluate an unsaved trigger/response pair."""
        return await self._evaluate(data.trigger, data.response, data.test_message, data.context)

    async def _evaluate(self, trigger, response, message: str, context: Dict[str, Any]) -> AutomationTestResult:
        if not trigger_matches(trigger, message, context):
            return AutomationTestResult(triggered=False)
        if isinstance(response, DelayResponse):
            return AutomationTestResult(triggered=True, response=DELAYED_RESPONSE_NOTICE, delayed=True)
        text = await self.render_response(response, message, context)
        return AutomationTestResult(triggered=True, response=text)

    # -----------------------------------------------------------------------
    # Response rendering
    # -----------------------------------------------------------------------

    async def render_response(self, response, message: str, context: Dict[str, Any]) -> str:
        """Produce the reply text for an immediate (non-delayed) response."""
        values = {"message": message, **{k: v for k, v in context.items() if isinstance(v, (str, int, float))}}

        if isinstance(response, CustomResponse):
            return fill_placeholders(response.message, values)
        if isinstance(response, TemplateResponse):
            return fill_placeholders(response.template, {**response.variables, **values})
        if isinstance(response, AIGeneratedResponse):
            return await self._generate_ai_reply(response, message, context)
        if isinstance(response, DelayResponse):
            return fill_placeholders(response.fallback_response.message, values)
        raise ValueError(f"Unsupported response type: {type(response).__name__}")

    async def _generate_ai_reply(self, response: AIGeneratedResponse, message: str, context: Dict[str, Any]) -> str:
        prompt = response.prompt
        if response.include_context and context:
            prompt += "\n\nContext: " + ", ".join(f"{k}={v}" for k, v in context.items())

        if self.openai.configured:
            try:
                completion = await self.openai.chat(
                    [
                        {"role": "system", "content": prompt},
                        {"role": "user", "content": message},
                    ],
                    temperature=response.temperature,
                    max_tokens=max(response.max_length // 2, 16),
                )
                if completion.content.strip():
                    return truncate(completion.content.strip(), response.max_length)
            except ExternalServiceError:
                logger.warning("automation_ai_reply_fallback")

        return truncate(random.choice(THANK_YOU_REPLIES), response.max_length)

    # -----------------------------------------------------------------------
    # Stats & performance
    # -----------------------------------------------------------------------

    async def get_stats(self, user_id: str) -> AutomationStats:
        async with self.db.session() as session:
            rows = await _automations.list(session, filters={"user_id": user_id}, order_by="-created_at")

        automations = [self._to_pydantic(r) for r in rows]
        active = [a for a in automations if a.is_active and a.status == AutomationStatus.ACTIVE]
        rates = [a.performance.success_rate for a in automations if a.performance.total_triggers]
        top = sorted(automations, key=lambda a: a.performance.success_rate, reverse=True)[:5]

        return AutomationStats(
            total_automations=len(automations),
            active_automations=len(active),
            total_triggers=sum(a.performance.total_triggers for a in automations),
            average_success_rate=round(sum(rates) / len(rates), 2) if rates else 0.0,
            top_performing_automations=top,
        )

    async def get_performance(self, user_id: str, automation_id: str) -> Dict[str, Any]:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, automation_id)
            automation = self._to_pydantic(row)

            conversation_count = (await session.execute(
                select(func.count(func.distinct(AutomationExecutionModel.conversation_id)))
                .where(AutomationExecutionModel.automation_id == automation_id)
            )).scalar_one()
            recent = (await session.execute(
                select(AutomationExecutionModel)
                .where(AutomationExecutionModel.automation_id == automation_id)
                .order_by(AutomationExecutionModel.created_at.desc())
                .limit(10)
            )).scalars().all()

        return {
            "automationId": automation.id,
            "name": automation.name,
            "status": automation.status,
            "performance": {
                **automation.performance.model_dump(by_alias=True),
                "conversationCount": conversation_count,
                "recentExecutions": [
                    AutomationExecution(
                        automation_id=e.automation_id,
                        conversation_id=e.conversation_id,
                        success=e.success,
                        response=e.response,
                        response_time=e.response_time,
                        error=e.error,
                    ).model_dump(by_alias=True)
                    for e in recent
                ],
            },
            "lastExecuted": automation.performance.last_triggered_at,
        }

    # -----------------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------------

    async def record_execution(
        self,
        session: AsyncSession,
        automation_id: str,
        success: bool,
        response_time: float,
        conversation_id: Optional[str] = None,
        response: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Update performance counters atomically and log the execution."""
        succeeded = 1 if success else 0
        # Right-hand sides see the pre-update column values
        await session.execute(
            update(AutomationModel)
            .where(AutomationModel.id == automation_id)
            .values(
                total_triggers=AutomationModel.total_triggers + 1,
                successful_responses=AutomationModel.successful_responses + succeeded,
                failed_responses=AutomationModel.failed_responses + (1 - succeeded),
                success_rate=(AutomationModel.successful_responses + succeeded) * 100.0
                / (AutomationModel.total_triggers + 1),
                average_response_time=(
                    AutomationModel.average_response_time * AutomationModel.total_triggers + response_time
                ) / (AutomationModel.total_triggers + 1),
                last_triggered_at=utcnow(),
            )
        )
        session.add(AutomationExecutionModel(
            automation_id=automation_id,
            conversation_id=conversation_id,
            success=success,
            response=response,
            response_time=response_time,
            error=error,
        ))
        await session.flush()

    async def _recent_message_count(self, session: AsyncSession, conversation_id: str, minutes: int) -> int:
        cutoff = utcnow() - timedelta(minutes=minutes)
        return (await session.execute(
            select(func.count()).select_from(MessageModel).where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.created_at >= cutoff,
            )
        )).scalar_one()

    async def run_automations(
        self,
        session: AsyncSession,
        user_id: str,
        message: str,
        conversation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[AutomationExecution]:
        """
        Run the user's active automations against an inbound message.

        Automations are tried by priority, then age. The first one whose
        trigger fires produces the reply; its counters are updated in the
        caller's transaction. Returns None when nothing fired.
        """
        rows: Sequence[AutomationModel] = (await session.execute(
            select(AutomationModel)
            .where(
                AutomationModel.user_id == user_id,
                AutomationModel.is_active.is_(True),
                AutomationModel.status == AutomationStatus.ACTIVE.value,
            )
            .order_by(AutomationModel.created_at)
        )).scalars().all()
        rows = sorted(rows, key=lambda r: PRIORITY_RANK.get(r.priority, len(PRIORITY_RANK)))

        context = dict(context or {})
        for row in rows:
            automation = self._to_pydantic(row)
            trigger = automation.trigger
            if isinstance(trigger, MessageCountTrigger) and conversation_id:
                context["recentMessageCount"] = await self._recent_message_count(
                    session, conversation_id, trigger.time_window
                )
            if not trigger_matches(trigger, message, context):
                continue

            started = time.perf_counter()
            try:
                reply = await self.render_response(automation.response, message, context)
            except Exception as e:
                elapsed = (time.perf_counter() - started) * 1000
                logger.error("automation_execution_failed", automation_id=row.id, error=str(e))
                await self.record_execution(
                    session, row.id, False, elapsed, conversation_id=conversation_id, error=type(e).__name__
                )
                return AutomationExecution(
                    automation_id=row.id,
                    conversation_id=conversation_id,
                    success=False,
                    response_time=elapsed,
                    error=type(e).__name__,
                )

            elapsed = (time.perf_counter() - started) * 1000
            await self.record_execution(
                session, row.id, True, elapsed, conversation_id=conversation_id, response=reply
            )
            logger.info("automation_triggered", automation_id=row.id, conversation_id=conversation_id)
            return AutomationExecution(
                automation_id=row.id,
                conversation_id=conversation_id,
                success=True,
                response=reply,
                response_time=elapsed,
            )
        return None


def get_automation_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    openai: OpenAIClient = Depends(get_openai_client),
) -> AutomationService:
    return AutomationService(db, settings, openai)
