"""
Instagram conversation and message schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from neuraslide.models.common import CamelModel


class ConversationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    BLOCKED = "BLOCKED"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"


class SenderType(str, Enum):
    USER = "USER"
    BOT = "BOT"
    EXTERNAL = "EXTERNAL"


class MessageType(str, Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    FILE = "FILE"
    STORY_REPLY = "STORY_REPLY"
    STORY_MENTION = "STORY_MENTION"
    QUICK_REPLY = "QUICK_REPLY"


class MessageStatus(str, Enum):
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"
    PENDING = "PENDING"


class Participant(CamelModel):
    id: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None


class Message(CamelModel):
    id: str
    conversation_id: str
    external_message_id: Optional[str] = None
    sender_type: SenderType
    text: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)
    type: MessageType = MessageType.TEXT
    status: MessageStatus = MessageStatus.SENT
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class Conversation(CamelModel):
    id: str
    user_id: str
    instagram_account_id: Optional[str] = None
    external_conversation_id: Optional[str] = None
    participant: Participant
    status: ConversationStatus
    last_message_at: Optional[datetime] = None
    last_message_text: Optional[str] = None
    message_count: int = 0
    is_automated: bool = False
    tags: List[str] = Field(default_factory=list)
    priority: str = "MEDIUM"
    created_at: datetime
    updated_at: Optional[datetime] = None


class ConversationStats(CamelModel):
    total_conversations: int
    active_conversations: int
    automated_conversations: int
    manual_conversations: int
    unread_messages: int
    messages_today: int
    messages_this_week: int
    messages_this_month: int
    status_breakdown: Dict[str, int] = Field(default_factory=dict)


class SendMessageRequest(CamelModel):
    text: str
    media_urls: List[str] = Field(default_factory=list)
    message_type: MessageType = MessageType.TEXT
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("message_type", mode="before")
    @classmethod
    def upper_type(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ReplyRequest(CamelModel):
    message_id: str
    text: str
    media_urls: List[str] = Field(default_factory=list)


class IncomingMessage(CamelModel):
    """A message delivered by the Instagram webhook."""
    instagram_account_id: str
    sender_id: str
    external_message_id: Optional[str] = None
    text: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)
    type: MessageType = MessageType.TEXT
    sent_at: Optional[datetime] = None
