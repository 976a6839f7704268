"""
AI assistant service.

Generates replies through the OpenAI client and falls back to canned
replies when the API is not configured or fails. Every generation is logged
as an ``AIResponse`` row, which feeds the performance analytics.
"""

import json
import math
import random
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import (
    AIConversationModel,
    AIMessageModel,
    AIResponseModel,
    AITrainingDataModel,
    utcnow,
)
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import ExternalServiceError, NotFoundError
from neuraslide.infrastructure.openai_client import OpenAIClient, get_openai_client
from neuraslide.models.ai import (
    AIConversation,
    AIConversationCreate,
    AIConversationUpdate,
    AIMessage,
    AIMessageCreate,
    AIPerformance,
    GeneratedResponse,
    GenerateRequest,
    MessageRole,
    TokenUsage,
    TrainingData,
    TrainingDataCreate,
)
from neuraslide.services.post_context_service import find_active_context, prompt_context

logger = structlog.get_logger()

_conversations = BaseRepository(AIConversationModel)
_training = BaseRepository(AITrainingDataModel)

SYSTEM_PROMPT = (
    "You are a helpful assistant that responds to Instagram comments in a friendly, engaging way. "
    "Keep responses under 200 characters and use emojis when appropriate."
)

FALLBACK_REPLIES = [
    "I understand your message. Let me help you with that.",
    "Thank you for reaching out. I'd be happy to assist you.",
    "I see what you're asking about. Here's what I can tell you.",
    "Thanks for your message! I'm here to help with your inquiry.",
    "I appreciate you contacting me. Let me provide you with some information.",
]

FALLBACK_MODEL = "fallback"
MODEL_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.7
PERFORMANCE_WINDOW_DAYS = 30
HISTORY_LIMIT = 10


def build_system_prompt(context: Dict[str, Any]) -> str:
    prompt = SYSTEM_PROMPT
    if context.get("businessContext"):
        prompt += f"\n\nBusiness Context: {json.dumps(context['businessContext'])}"
    if context.get("postContext"):
        prompt += f"\n\nPost Context: {json.dumps(context['postContext'])}"
    return prompt


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def fallback_reply(message: str) -> GeneratedResponse:
    content = f"{random.choice(FALLBACK_REPLIES)} [Context: {message}]"
    return GeneratedResponse(
        response=content,
        tokens_used=estimate_tokens(content),
        response_time=0.0,
        confidence=FALLBACK_CONFIDENCE,
        metadata={"model": FALLBACK_MODEL, "intent": "general", "sentiment": "neutral"},
    )


def _message_to_pydantic(row: AIMessageModel) -> AIMessage:
    return AIMessage(
        id=row.id,
        conversation_id=row.conversation_id,
        role=row.role,
        content=row.content,
        metadata=dict(row.meta or {}),
        created_at=row.created_at,
    )


def _conversation_to_pydantic(
    row: AIConversationModel, messages: Optional[List[AIMessageModel]] = None
) -> AIConversation:
    return AIConversation(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        summary=row.summary,
        tags=list(row.tags or []),
        is_active=row.is_active,
        message_count=row.message_count or 0,
        messages=[_message_to_pydantic(m) for m in messages] if messages is not None else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _training_to_pydantic(row: AITrainingDataModel) -> TrainingData:
    return TrainingData(
        id=row.id,
        user_id=row.user_id,
        input=row.input,
        expected_output=row.expected_output,
        category=row.category,
        tags=list(row.tags or []),
        is_active=row.is_active,
        created_at=row.created_at,
    )


class AIService:
    """AI reply generation plus the assistant conversation store."""

    def __init__(self, db: Database, settings: Settings, openai: OpenAIClient):
        self.db = db
        self.settings = settings
        self.openai = openai

    async def _get_owned(self, session: AsyncSession, user_id: str, conversation_id: str) -> AIConversationModel:
        row = await _conversations.get_owned(session, conversation_id, user_id)
        if row is None:
            raise NotFoundError("Conversation not found")
        return row

    async def _append(
        self,
        session: AsyncSession,
        conversation_id: str,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AIMessageModel:
        now = utcnow()
        row = AIMessageModel(
            conversation_id=conversation_id,
            role=role.value,
            content=content,
            meta=dict(metadata or {}),
            created_at=now,
        )
        session.add(row)
        await session.execute(
            update(AIConversationModel)
            .where(AIConversationModel.id == conversation_id)
            .values(message_count=AIConversationModel.message_count + 1, updated_at=now)
        )
        await session.flush()
        return row

    async def _history(self, session: AsyncSession, conversation_id: str) -> List[Dict[str, str]]:
        rows = (await session.execute(
            select(AIMessageModel)
            .where(AIMessageModel.conversation_id == conversation_id)
            .order_by(AIMessageModel.created_at.desc())
            .limit(HISTORY_LIMIT)
        )).scalars().all()
        return [{"role": r.role, "content": r.content} for r in reversed(rows)]

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------

    async def _call_model(
        self,
        messages: List[Dict[str, str]],
        request: GenerateRequest,
    ) -> Optional[GeneratedResponse]:
        if not self.openai.configured:
            return None
        try:
            completion = await self.openai.chat(
                messages,
                model=request.model,
                temperature=request.temperature if request.temperature is not None else self.settings.openai_temperature,
                max_tokens=request.max_tokens or self.settings.openai_max_tokens,
            )
        except ExternalServiceError:
            logger.warning("ai_generation_fallback", reason="openai_unavailable")
            return None
        if not completion.content.strip():
            return None
        return GeneratedResponse(
            response=completion.content.strip(),
            tokens_used=completion.tokens_used,
            response_time=0.0,
            confidence=MODEL_CONFIDENCE,
            metadata={"model": completion.model, "finishReason": completion.finish_reason},
        )

    async def generate_response(self, user_id: str, request: GenerateRequest) -> GeneratedResponse:
        """
        Generate a reply to ``request.message``.

        With a ``conversation_id`` the recent history of that assistant
        conversation is sent along, and both sides of the exchange are
        appended to it. With a ``media_id`` the stored post context for that
        post joins the system prompt unless the caller supplied one.
        """
        started = time.perf_counter()

        history: List[Dict[str, str]] = []
        context = dict(request.context)
        post_context_id: Optional[str] = None
        if request.conversation_id or request.media_id:
            async with self.db.session() as session:
                if request.conversation_id:
                    await self._get_owned(session, user_id, request.conversation_id)
                    history = await self._history(session, request.conversation_id)
                if request.media_id and not context.get("postContext"):
                    stored = await find_active_context(session, user_id, request.media_id)
                    if stored is not None:
                        context["postContext"] = prompt_context(stored)
                        post_context_id = stored.id

        messages = [
            {"role": "system", "content": build_system_prompt(context)},
            *history,
            {"role": "user", "content": request.message},
        ]
        result = await self._call_model(messages, request) or fallback_reply(request.message)
        result.response_time = round((time.perf_counter() - started) * 1000, 2)
        if post_context_id:
            result.metadata["postContextId"] = post_context_id

        async with self.db.session() as session:
            session.add(AIResponseModel(
                user_id=user_id,
                conversation_id=request.conversation_id,
                message=request.message,
                response=result.response,
                model=result.metadata.get("model", FALLBACK_MODEL),
                tokens_used=result.tokens_used,
                response_time=result.response_time,
                confidence=result.confidence,
                meta=result.metadata,
            ))

            if request.conversation_id:
                await self._append(session, request.conversation_id, MessageRole.USER, request.message)
                await self._append(
                    session, request.conversation_id, MessageRole.ASSISTANT, result.response, result.metadata
                )

        logger.info(
            "ai_response_generated",
            user_id=user_id,
            model=result.metadata.get("model"),
            tokens=result.tokens_used,
            response_time_ms=result.response_time,
        )
        return result

    # -----------------------------------------------------------------------
    # Conversations
    # -----------------------------------------------------------------------

    async def create_conversation(self, user_id: str, data: AIConversationCreate) -> AIConversation:
        async with self.db.session() as session:
            row = await _conversations.create(
                session,
                user_id=user_id,
                title=data.title.strip(),
                tags=list(dict.fromkeys(data.tags)),
            )
            messages: List[AIMessageModel] = []
            if data.initial_message:
                messages.append(await self._append(session, row.id, MessageRole.USER, data.initial_message))
                await session.refresh(row)
            logger.info("ai_conversation_created", conversation_id=row.id, user_id=user_id)
            return _conversation_to_pydantic(row, messages)

    async def list_conversations(
        self,
        user_id: str,
        query: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_active: Optional[bool] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[AIConversation]:
        stmt = select(AIConversationModel).where(AIConversationModel.user_id == user_id)
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(or_(AIConversationModel.title.ilike(pattern), AIConversationModel.summary.ilike(pattern)))
        if is_active is not None:
            stmt = stmt.where(AIConversationModel.is_active == is_active)
        stmt = stmt.order_by(AIConversationModel.updated_at.desc())

        async with self.db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()

        if tags:
            wanted = set(tags)
            rows = [r for r in rows if wanted & set(r.tags or [])]
        return [_conversation_to_pydantic(r) for r in rows[offset: offset + limit]]

    async def get_conversation(self, user_id: str, conversation_id: str) -> AIConversation:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, conversation_id)
            messages = (await session.execute(
                select(AIMessageModel)
                .where(AIMessageModel.conversation_id == conversation_id)
                .order_by(AIMessageModel.created_at)
            )).scalars().all()
            return _conversation_to_pydantic(row, list(messages))

    async def update_conversation(
        self, user_id: str, conversation_id: str, data: AIConversationUpdate
    ) -> AIConversation:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, conversation_id)
            changes = data.model_dump(exclude_none=True)
            if "tags" in changes:
                changes["tags"] = list(dict.fromkeys(changes["tags"]))
            row = await _conversations.update(session, row, **changes)
            logger.info("ai_conversation_updated", conversation_id=conversation_id, fields=sorted(changes))
            return _conversation_to_pydantic(row)

    async def add_message(self, user_id: str, conversation_id: str, data: AIMessageCreate) -> AIMessage:
        async with self.db.session() as session:
            await self._get_owned(session, user_id, conversation_id)
            row = await self._append(session, conversation_id, data.role, data.content, data.metadata)
            return _message_to_pydantic(row)

    # -----------------------------------------------------------------------
    # Training data
    # -----------------------------------------------------------------------

    async def add_training_data(self, user_id: str, data: TrainingDataCreate) -> TrainingData:
        async with self.db.session() as session:
            row = await _training.create(
                session,
                user_id=user_id,
                input=data.input,
                expected_output=data.expected_output,
                category=data.category.strip(),
                tags=list(dict.fromkeys(data.tags)),
            )
            logger.info("ai_training_data_added", training_id=row.id, category=row.category)
            return _training_to_pydantic(row)

    async def list_training_data(self, user_id: str, category: Optional[str] = None) -> List[TrainingData]:
        async with self.db.session() as session:
            rows = await _training.list(
                session,
                filters={"user_id": user_id, "category": category, "is_active": True},
                order_by="-created_at",
            )
            return [_training_to_pydantic(r) for r in rows]

    # -----------------------------------------------------------------------
    # Analytics
    # -----------------------------------------------------------------------

    async def get_performance(self, user_id: str) -> AIPerformance:
        """Aggregate the user's generations over the last 30 days."""
        since = utcnow() - timedelta(days=PERFORMANCE_WINDOW_DAYS)
        async with self.db.session() as session:
            rows = (await session.execute(
                select(AIResponseModel).where(
                    AIResponseModel.user_id == user_id,
                    AIResponseModel.created_at >= since,
                )
            )).scalars().all()

        total = len(rows)
        if not total:
            return AIPerformance(
                total_requests=0,
                average_response_time=0.0,
                success_rate=0.0,
                error_rate=0.0,
                token_usage=TokenUsage(),
                last_updated=utcnow(),
            )

        by_model: Dict[str, int] = {}
        intents: Dict[str, int] = {}
        for row in rows:
            by_model[row.model] = by_model.get(row.model, 0) + (row.tokens_used or 0)
            intent = (row.meta or {}).get("intent")
            if intent:
                intents[intent] = intents.get(intent, 0) + 1

        tokens = sum(r.tokens_used or 0 for r in rows)
        succeeded = sum(1 for r in rows if r.model != FALLBACK_MODEL)
        success_rate = round(succeeded * 100.0 / total, 2)

        return AIPerformance(
            total_requests=total,
            average_response_time=round(sum(r.response_time or 0 for r in rows) / total, 2),
            success_rate=success_rate,
            error_rate=round(100.0 - success_rate, 2),
            token_usage=TokenUsage(total=tokens, average=round(tokens / total, 2), by_model=by_model),
            average_confidence=round(sum(r.confidence or 0 for r in rows) / total, 3),
            popular_intents=[
                {"intent": name, "count": count}
                for name, count in sorted(intents.items(), key=lambda kv: -kv[1])[:5]
            ],
            last_updated=utcnow(),
        )


def get_ai_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    openai: OpenAIClient = Depends(get_openai_client),
) -> AIService:
    return AIService(db, settings, openai)
