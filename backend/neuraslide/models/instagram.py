"""
Instagram account and direct-message schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from neuraslide.models.common import CamelModel


class InstagramAccount(CamelModel):
    """Connected account. The access token is never exposed."""
    id: str
    user_id: str
    instagram_user_id: str
    username: str
    is_active: bool = True
    created_at: datetime


class InstagramAccountConnect(CamelModel):
    instagram_user_id: str
    username: str
    access_token: str


class SendDMRequest(CamelModel):
    account_id: str
    recipient_id: str
    message: str
    link: Optional[str] = None


class DMResult(CamelModel):
    recipient_id: str
    message: str
    link: Optional[str] = None
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    result: Dict[str, Any] = Field(default_factory=dict)


class DMThreads(CamelModel):
    account_id: str
    conversations: List[Dict[str, Any]] = Field(default_factory=list)
