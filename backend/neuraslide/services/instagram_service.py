"""
Instagram account and direct-message service.

Outbound DMs go through the Graph API client; each sent DM is also stored
on the matching conversation so the inbox stays complete.
"""

from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import httpx
import structlog

from neuraslide.db.models import ConversationModel, InstagramAccountModel
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.circuit_breaker import CircuitBreakerError
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import (
    BadRequestError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
)
from neuraslide.infrastructure.instagram_client import (
    GraphAPIError,
    InstagramGraphClient,
    get_instagram_client,
)
from neuraslide.models.conversation import MessageStatus, SenderType
from neuraslide.models.instagram import (
    DMResult,
    DMThreads,
    InstagramAccount,
    InstagramAccountConnect,
    SendDMRequest,
)
from neuraslide.services.conversation_service import append_message

logger = structlog.get_logger()

_accounts = BaseRepository(InstagramAccountModel)

GRAPH_ERRORS = (GraphAPIError, httpx.HTTPError, CircuitBreakerError)


def format_dm(message: str, link: Optional[str] = None) -> str:
    """Message text with the link appended on its own paragraph."""
    return f"{message}\n\n🔗 {link}" if link else message


async def find_or_create_conversation(
    session: AsyncSession,
    account: InstagramAccountModel,
    participant_id: str,
    participant_username: Optional[str] = None,
) -> ConversationModel:
    """The conversation between ``account`` and one participant, keyed by the participant id."""
    row = (await session.execute(
        select(ConversationModel).where(
            ConversationModel.instagram_account_id == account.id,
            ConversationModel.external_conversation_id == participant_id,
        )
    )).scalar_one_or_none()
    if row is not None:
        return row

    row = ConversationModel(
        user_id=account.user_id,
        instagram_account_id=account.id,
        external_conversation_id=participant_id,
        participant_id=participant_id,
        participant_username=participant_username,
        message_count=0,
        tags=[],
    )
    session.add(row)
    await session.flush()
    logger.info("conversation_opened", conversation_id=row.id, account_id=account.id)
    return row


def _account_to_pydantic(row: InstagramAccountModel) -> InstagramAccount:
    return InstagramAccount(
        id=row.id,
        user_id=row.user_id,
        instagram_user_id=row.instagram_user_id,
        username=row.username,
        is_active=row.is_active,
        created_at=row.created_at,
    )


class InstagramService:
    """Connected Instagram accounts and their direct messages."""

    def __init__(self, db: Database, settings: Settings, client: InstagramGraphClient):
        self.db = db
        self.settings = settings
        self.client = client

    async def _get_active_account(self, session: AsyncSession, user_id: str, account_id: str) -> InstagramAccountModel:
        account = await _accounts.get_owned(session, account_id, user_id)
        if account is None:
            raise NotFoundError("Instagram account not found")
        if not account.is_active:
            raise BadRequestError("Instagram account is not active")
        return account

    async def _find_by_instagram_id(self, session: AsyncSession, instagram_user_id: str) -> Optional[InstagramAccountModel]:
        result = await session.execute(
            select(InstagramAccountModel).where(InstagramAccountModel.instagram_user_id == instagram_user_id)
        )
        return result.scalar_one_or_none()

    # -----------------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------------

    async def connect_account(self, user_id: str, data: InstagramAccountConnect) -> InstagramAccount:
        """Link an Instagram account, refreshing the token when it is already linked to this user."""
        async with self.db.session() as session:
            row = await self._find_by_instagram_id(session, data.instagram_user_id)

            if row is not None and row.user_id != user_id:
                raise ConflictError("Instagram account is already connected")
            if row is None:
                try:
                    row = await _accounts.create(
                        session,
                        user_id=user_id,
                        instagram_user_id=data.instagram_user_id,
                        username=data.username,
                        access_token=data.access_token,
                    )
                except IntegrityError:
                    raise ConflictError("Instagram account is already connected")
            else:
                row = await _accounts.update(
                    session, row, username=data.username, access_token=data.access_token, is_active=True
                )

            logger.info("instagram_account_connected", account_id=row.id, user_id=user_id)
            return _account_to_pydantic(row)

    async def list_accounts(self, user_id: str) -> List[InstagramAccount]:
        async with self.db.session() as session:
            rows = await _accounts.list(session, filters={"user_id": user_id}, order_by="-created_at")
            return [_account_to_pydantic(r) for r in rows]

    # -----------------------------------------------------------------------
    # Direct messages
    # -----------------------------------------------------------------------

    async def send_dm(self, user_id: str, request: SendDMRequest) -> DMResult:
        async with self.db.session() as session:
            account = await self._get_active_account(session, user_id, request.account_id)
            access_token = account.access_token

        text = format_dm(request.message, request.link)
        try:
            result = await self.client.send_message(access_token, request.recipient_id, text)
        except GRAPH_ERRORS as e:
            logger.error(
                "instagram_dm_failed",
                account_id=request.account_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise ExternalServiceError("Instagram", "Unable to send DM") from e

        async with self.db.session() as session:
            account = await _accounts.get_owned(session, request.account_id, user_id)
            if account is None:
                raise NotFoundError("Instagram account not found")
            conversation = await find_or_create_conversation(session, account, request.recipient_id)
            message = await append_message(
                session,
                conversation.id,
                SenderType.USER,
                text,
                status=MessageStatus.SENT,
                external_message_id=result.get("message_id"),
                metadata={"link": request.link} if request.link else None,
            )

        logger.info("instagram_dm_sent", account_id=request.account_id, message_id=message.id)
        return DMResult(
            recipient_id=request.recipient_id,
            message=text,
            link=request.link,
            message_id=result.get("message_id"),
            conversation_id=conversation.id,
            result=result,
        )

    async def get_dm_threads(self, user_id: str, account_id: str, participant_id: Optional[str] = None) -> DMThreads:
        async with self.db.session() as session:
            account = await self._get_active_account(session, user_id, account_id)
            access_token = account.access_token

        try:
            body = await self.client.get_conversations(access_token, participant_id)
        except GRAPH_ERRORS as e:
            logger.error("instagram_threads_failed", account_id=account_id, error_type=type(e).__name__)
            raise ExternalServiceError("Instagram", "Unable to fetch conversations") from e

        return DMThreads(account_id=account_id, conversations=body.get("data", []))


def get_instagram_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    client: InstagramGraphClient = Depends(get_instagram_client),
) -> InstagramService:
    return InstagramService(db, settings, client)
