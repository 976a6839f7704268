"""
Post context schemas: per-post notes that ground AI replies.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from neuraslide.models.common import CamelModel


class ContextType(str, Enum):
    MANUAL = "MANUAL"
    AUTO_GENERATED = "AUTO_GENERATED"
    HYBRID = "HYBRID"


class PostContext(CamelModel):
    id: str
    user_id: str
    instagram_account_id: str
    media_id: str
    caption: Optional[str] = None
    context_type: ContextType = ContextType.MANUAL
    title: Optional[str] = None
    description: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)
    pricing: Optional[Dict[str, Any]] = None
    promotions: Optional[Dict[str, Any]] = None
    faqs: Optional[List[Dict[str, Any]]] = None
    response_tone: str = "friendly"
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None


class PostContextCreate(CamelModel):
    instagram_account_id: str
    media_id: str
    caption: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)
    pricing: Optional[Dict[str, Any]] = None
    promotions: Optional[Dict[str, Any]] = None
    faqs: Optional[List[Dict[str, Any]]] = None
    response_tone: Optional[str] = None


class PostContextUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    key_points: Optional[List[str]] = None
    products: Optional[List[str]] = None
    pricing: Optional[Dict[str, Any]] = None
    promotions: Optional[Dict[str, Any]] = None
    faqs: Optional[List[Dict[str, Any]]] = None
    response_tone: Optional[str] = None
    is_active: Optional[bool] = None
