"""
Conversation service.

Instagram DM threads and their messages. ``message_count`` and the
last-message cache on a conversation are denormalized; every insert goes
through ``append_message`` which bumps them with an atomic update in the
same transaction.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import ConversationModel, MessageModel, utcnow
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import BadRequestError, NotFoundError
from neuraslide.models.common import Pagination
from neuraslide.models.conversation import (
    Conversation,
    ConversationStats,
    ConversationStatus,
    Message,
    MessageStatus,
    MessageType,
    Participant,
    ReplyRequest,
    SendMessageRequest,
    SenderType,
)

logger = structlog.get_logger()

_conversations = BaseRepository(ConversationModel)

SORT_COLUMNS = {
    "createdAt": ConversationModel.created_at,
    "updatedAt": ConversationModel.updated_at,
    "lastMessageAt": ConversationModel.last_message_at,
    "messageCount": ConversationModel.message_count,
}

PREVIEW_LENGTH = 500


def conversation_to_pydantic(row: ConversationModel) -> Conversation:
    return Conversation(
        id=row.id,
        user_id=row.user_id,
        instagram_account_id=row.instagram_account_id,
        external_conversation_id=row.external_conversation_id,
        participant=Participant(
            id=row.participant_id,
            username=row.participant_username,
            full_name=row.participant_full_name,
            profile_pic=row.participant_profile_pic,
        ),
        status=row.status,
        last_message_at=row.last_message_at,
        last_message_text=row.last_message_text,
        message_count=row.message_count or 0,
        is_automated=row.is_automated,
        tags=list(row.tags or []),
        priority=row.priority,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def message_to_pydantic(row: MessageModel) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        external_message_id=row.external_message_id,
        sender_type=row.sender_type,
        text=row.text,
        media_urls=list(row.media_urls or []),
        type=row.type,
        status=row.status,
        metadata=dict(row.meta or {}),
        created_at=row.created_at,
    )


async def append_message(
    session: AsyncSession,
    conversation_id: str,
    sender_type: SenderType,
    text: Optional[str],
    *,
    media_urls: Optional[List[str]] = None,
    message_type: MessageType = MessageType.TEXT,
    status: MessageStatus = MessageStatus.SENT,
    metadata: Optional[Dict[str, Any]] = None,
    external_message_id: Optional[str] = None,
    automated: bool = False,
) -> MessageModel:
    """Insert a message and bump the conversation caches in one transaction."""
    sent_at = utcnow()
    message = MessageModel(
        conversation_id=conversation_id,
        external_message_id=external_message_id,
        sender_type=sender_type.value,
        text=text,
        media_urls=list(media_urls or []),
        type=message_type.value,
        status=status.value,
        meta=dict(metadata or {}),
        created_at=sent_at,
    )
    session.add(message)

    values: Dict[str, Any] = {
        "message_count": ConversationModel.message_count + 1,
        "last_message_at": sent_at,
        "last_message_text": (text or "")[:PREVIEW_LENGTH] or None,
        "updated_at": sent_at,
    }
    if automated:
        values["is_automated"] = True
    await session.execute(
        update(ConversationModel).where(ConversationModel.id == conversation_id).values(**values)
    )
    await session.flush()
    return message


class ConversationService:
    """Conversations and messages owned by a single user."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    async def _get_owned(self, session: AsyncSession, user_id: str, conversation_id: str) -> ConversationModel:
        row = await _conversations.get_owned(session, conversation_id, user_id)
        if row is None:
            raise NotFoundError("Conversation not found")
        return row

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    async def list_conversations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        is_automated: Optional[bool] = None,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        sort_by: str = "lastMessageAt",
        sort_order: str = "desc",
    ) -> Tuple[List[Conversation], Pagination]:
        stmt = select(ConversationModel).where(ConversationModel.user_id == user_id)
        if status:
            stmt = stmt.where(ConversationModel.status == status.upper())
        if is_automated is not None:
            stmt = stmt.where(ConversationModel.is_automated == is_automated)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(
                ConversationModel.participant_username.ilike(pattern),
                ConversationModel.participant_full_name.ilike(pattern),
                ConversationModel.last_message_text.ilike(pattern),
            ))

        column = SORT_COLUMNS.get(sort_by, ConversationModel.last_message_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        stmt = stmt.order_by(ordering, ConversationModel.created_at.desc())

        async with self.db.session() as session:
            if tags:
                # Tags live in a JSON column; filter portably after fetching
                wanted = set(tags)
                rows = [r for r in (await session.execute(stmt)).scalars().all() if wanted & set(r.tags or [])]
                total = len(rows)
                rows = rows[(page - 1) * limit: page * limit]
            else:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.order_by(None).subquery())
                )).scalar_one()
                rows = (await session.execute(stmt.offset((page - 1) * limit).limit(limit))).scalars().all()

        return [conversation_to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        async with self.db.session() as session:
            return conversation_to_pydantic(await self._get_owned(session, user_id, conversation_id))

    async def get_messages(
        self,
        user_id: str,
        conversation_id: str,
        page: int = 1,
        limit: int = 50,
        before: Optional[datetime] = None,
        after: Optional[datetime] = None,
    ) -> Tuple[List[Message], Pagination]:
        """Messages newest first, optionally bounded by ``before``/``after``."""
        async with self.db.session() as session:
            await self._get_owned(session, user_id, conversation_id)

            conditions = [MessageModel.conversation_id == conversation_id]
            if before is not None:
                conditions.append(MessageModel.created_at < before)
            if after is not None:
                conditions.append(MessageModel.created_at > after)

            total = (await session.execute(
                select(func.count()).select_from(MessageModel).where(*conditions)
            )).scalar_one()
            rows = (await session.execute(
                select(MessageModel)
                .where(*conditions)
                .order_by(MessageModel.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )).scalars().all()

        return [message_to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def get_stats(self, user_id: str) -> ConversationStats:
        now = utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        owned = select(ConversationModel.id).where(ConversationModel.user_id == user_id)

        async def count_messages(session: AsyncSession, *conditions) -> int:
            return (await session.execute(
                select(func.count()).select_from(MessageModel).where(
                    MessageModel.conversation_id.in_(owned), *conditions
                )
            )).scalar_one()

        async with self.db.session() as session:
            breakdown_rows = (await session.execute(
                select(ConversationModel.status, func.count())
                .where(ConversationModel.user_id == user_id)
                .group_by(ConversationModel.status)
            )).all()
            automated = (await session.execute(
                select(func.count()).select_from(ConversationModel).where(
                    ConversationModel.user_id == user_id,
                    ConversationModel.is_automated.is_(True),
                )
            )).scalar_one()

            unread = await count_messages(
                session,
                MessageModel.sender_type == SenderType.EXTERNAL.value,
                MessageModel.status != MessageStatus.READ.value,
            )
            today = await count_messages(session, MessageModel.created_at >= start_of_day)
            week = await count_messages(session, MessageModel.created_at >= now - timedelta(days=7))
            month = await count_messages(session, MessageModel.created_at >= now - timedelta(days=30))

        breakdown = {status: count for status, count in breakdown_rows}
        total = sum(breakdown.values())
        return ConversationStats(
            total_conversations=total,
            active_conversations=breakdown.get(ConversationStatus.ACTIVE.value, 0),
            automated_conversations=automated,
            manual_conversations=total - automated,
            unread_messages=unread,
            messages_today=today,
            messages_this_week=week,
            messages_this_month=month,
            status_breakdown=breakdown,
        )

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def send_message(self, user_id: str, conversation_id: str, data: SendMessageRequest) -> Message:
        """Queue an outbound message from the account owner."""
        async with self.db.session() as session:
            conversation = await self._get_owned(session, user_id, conversation_id)
            if conversation.status == ConversationStatus.BLOCKED.value:
                raise BadRequestError("Cannot send messages to a blocked conversation")

            row = await append_message(
                session,
                conversation_id,
                SenderType.USER,
                data.text,
                media_urls=data.media_urls,
                message_type=data.message_type,
                status=MessageStatus.PENDING,
                metadata=data.metadata,
            )
            logger.info("message_sent", conversation_id=conversation_id, message_id=row.id)
            return message_to_pydantic(row)

    async def reply_to_message(self, user_id: str, conversation_id: str, data: ReplyRequest) -> Message:
        async with self.db.session() as session:
            conversation = await self._get_owned(session, user_id, conversation_id)
            if conversation.status == ConversationStatus.BLOCKED.value:
                raise BadRequestError("Cannot send messages to a blocked conversation")

            original = (await session.execute(
                select(MessageModel).where(
                    MessageModel.id == data.message_id,
                    MessageModel.conversation_id == conversation_id,
                )
            )).scalar_one_or_none()
            if original is None:
                raise NotFoundError("Message not found")

            row = await append_message(
                session,
                conversation_id,
                SenderType.USER,
                data.text,
                media_urls=data.media_urls,
                status=MessageStatus.PENDING,
                metadata={"replyTo": original.id, "originalMessage": original.text},
            )
            logger.info("message_replied", conversation_id=conversation_id, reply_to=original.id)
            return message_to_pydantic(row)

    async def update_status(self, user_id: str, conversation_id: str, status: ConversationStatus) -> Conversation:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, conversation_id)
            row = await _conversations.update(session, row, status=status.value)
            logger.info("conversation_status_updated", conversation_id=conversation_id, status=status.value)
            return conversation_to_pydantic(row)

    async def add_tags(self, user_id: str, conversation_id: str, tags: List[str]) -> Conversation:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, conversation_id)
            merged = list(dict.fromkeys([*(row.tags or []), *(t.strip() for t in tags)]))
            row = await _conversations.update(session, row, tags=merged)
            return conversation_to_pydantic(row)


def get_conversation_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> ConversationService:
    return ConversationService(db, settings)
