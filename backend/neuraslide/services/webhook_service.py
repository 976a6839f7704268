"""
Instagram messaging webhook.

Inbound DMs are stored on their conversation, then the account owner's
active automations are run against the text. An automated reply is stored
as a BOT message, delivered through the Graph API after the transaction
commits, and marked SENT or FAILED accordingly.
"""

import hashlib
import hmac
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import select, update
import structlog

from neuraslide.db.models import InstagramAccountModel, MessageModel
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import AuthenticationError, AuthorizationError
from neuraslide.infrastructure.instagram_client import InstagramGraphClient, get_instagram_client
from neuraslide.models.conversation import IncomingMessage, MessageStatus, MessageType, SenderType
from neuraslide.services.automation_service import AutomationService, get_automation_service
from neuraslide.services.conversation_service import append_message
from neuraslide.services.instagram_service import GRAPH_ERRORS, find_or_create_conversation

logger = structlog.get_logger()

ATTACHMENT_TYPES = {
    "image": MessageType.IMAGE,
    "video": MessageType.VIDEO,
    "audio": MessageType.AUDIO,
    "file": MessageType.FILE,
    "story_mention": MessageType.STORY_MENTION,
}


def parse_messaging_events(payload: Dict[str, Any]) -> List[IncomingMessage]:
    """Flatten a Graph API webhook body into inbound messages, skipping echoes and malformed events."""
    messages: List[IncomingMessage] = []
    entries = payload.get("entry")
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict):
            continue
        events = entry.get("messaging")
        for event in events if isinstance(events, list) else []:
            if not isinstance(event, dict):
                continue
            message = event.get("message") or {}
            if not isinstance(message, dict) or not message or message.get("is_echo"):
                continue
            sender = (event.get("sender") or {}).get("id")
            recipient = (event.get("recipient") or {}).get("id") or entry.get("id")
            if not sender or not recipient:
                continue

            attachments = [a for a in message.get("attachments") or [] if isinstance(a, dict)]
            media_urls = [(a.get("payload") or {}).get("url") for a in attachments]
            media_urls = [url for url in media_urls if url]
            if (message.get("reply_to") or {}).get("story"):
                kind = MessageType.STORY_REPLY
            elif message.get("quick_reply"):
                kind = MessageType.QUICK_REPLY
            elif attachments:
                kind = ATTACHMENT_TYPES.get(attachments[0].get("type"), MessageType.FILE)
            else:
                kind = MessageType.TEXT

            messages.append(IncomingMessage(
                instagram_account_id=str(recipient),
                sender_id=str(sender),
                external_message_id=message.get("mid"),
                text=message.get("text"),
                media_urls=media_urls,
                type=kind,
            ))
    return messages


def verify_signature(secret: str, body: bytes, signature_header: Optional[str]) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header.split("=", 1)[1])


class WebhookService:
    def __init__(
        self,
        db: Database,
        settings: Settings,
        client: InstagramGraphClient,
        automations: AutomationService,
    ):
        self.db = db
        self.settings = settings
        self.client = client
        self.automations = automations

    def verify_subscription(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> str:
        if mode == "subscribe" and token == self.settings.instagram_webhook_verify_token and challenge:
            logger.info("instagram_webhook_verified")
            return challenge
        logger.warning("instagram_webhook_verification_failed", mode=mode)
        raise AuthorizationError("Webhook verification failed")

    def check_signature(self, body: bytes, signature_header: Optional[str]) -> None:
        secret = self.settings.instagram_app_secret
        if secret and not verify_signature(secret, body, signature_header):
            logger.warning("instagram_webhook_bad_signature")
            raise AuthenticationError("Invalid webhook signature")

    async def handle_event(self, payload: Dict[str, Any]) -> Dict[str, int]:
        """Store inbound messages, run automations, deliver automated replies."""
        processed = skipped = automated = 0
        # (message id, access token, recipient, text)
        outbox: List[Tuple[str, str, str, str]] = []

        async with self.db.session() as session:
            for incoming in parse_messaging_events(payload):
                account = (await session.execute(
                    select(InstagramAccountModel).where(
                        InstagramAccountModel.instagram_user_id == incoming.instagram_account_id,
                        InstagramAccountModel.is_active.is_(True),
                    )
                )).scalar_one_or_none()
                if account is None:
                    logger.info("instagram_webhook_unknown_account", instagram_user_id=incoming.instagram_account_id)
                    skipped += 1
                    continue

                if incoming.external_message_id and (await session.execute(
                    select(MessageModel.id).where(MessageModel.external_message_id == incoming.external_message_id)
                )).first():
                    skipped += 1
                    continue

                conversation = await find_or_create_conversation(session, account, incoming.sender_id)
                await append_message(
                    session,
                    conversation.id,
                    SenderType.EXTERNAL,
                    incoming.text,
                    media_urls=incoming.media_urls,
                    message_type=incoming.type,
                    status=MessageStatus.DELIVERED,
                    external_message_id=incoming.external_message_id,
                )
                processed += 1

                if not incoming.text:
                    continue
                execution = await self.automations.run_automations(
                    session,
                    account.user_id,
                    incoming.text,
                    conversation_id=conversation.id,
                )
                if execution is None or not execution.success or not execution.response:
                    continue

                reply = await append_message(
                    session,
                    conversation.id,
                    SenderType.BOT,
                    execution.response,
                    status=MessageStatus.PENDING,
                    metadata={"automationId": execution.automation_id},
                    automated=True,
                )
                outbox.append((reply.id, account.access_token, incoming.sender_id, execution.response))
                automated += 1

        for message_id, access_token, recipient_id, text in outbox:
            await self._deliver(message_id, access_token, recipient_id, text)

        logger.info("instagram_webhook_processed", processed=processed, automated=automated, skipped=skipped)
        return {"processed": processed, "automated": automated, "skipped": skipped}

    async def _deliver(self, message_id: str, access_token: str, recipient_id: str, text: str) -> None:
        values: Dict[str, Any]
        try:
            result = await self.client.send_message(access_token, recipient_id, text)
            values = {"status": MessageStatus.SENT.value, "external_message_id": result.get("message_id")}
        except GRAPH_ERRORS as e:
            logger.error("automated_reply_failed", message_id=message_id, error_type=type(e).__name__)
            values = {"status": MessageStatus.FAILED.value}

        async with self.db.session() as session:
            await session.execute(update(MessageModel).where(MessageModel.id == message_id).values(**values))


def get_webhook_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    client: InstagramGraphClient = Depends(get_instagram_client),
    automations: AutomationService = Depends(get_automation_service),
) -> WebhookService:
    return WebhookService(db, settings, client, automations)
