"""
AI assistant schemas: generation, assistant conversations, training data
and performance analytics.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from neuraslide.models.common import CamelModel


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class GenerateRequest(CamelModel):
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
    conversation_id: Optional[str] = None
    # Instagram post the message is about; its stored post context joins the prompt
    media_id: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class GeneratedResponse(CamelModel):
    response: str
    tokens_used: int
    response_time: float
    confidence: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AIMessage(CamelModel):
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AIConversation(CamelModel):
    id: str
    user_id: str
    title: str
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    message_count: int = 0
    messages: Optional[List[AIMessage]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class AIConversationCreate(CamelModel):
    title: str
    initial_message: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class AIConversationUpdate(CamelModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None


class AIMessageCreate(CamelModel):
    role: MessageRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TrainingData(CamelModel):
    id: str
    user_id: str
    input: str
    expected_output: str
    category: str
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime


class TrainingDataCreate(CamelModel):
    input: str
    expected_output: str
    category: str
    tags: List[str] = Field(default_factory=list)


class TokenUsage(CamelModel):
    total: int = 0
    average: float = 0.0
    by_model: Dict[str, int] = Field(default_factory=dict)


class AIPerformance(CamelModel):
    total_requests: int
    average_response_time: float
    success_rate: float
    error_rate: float
    token_usage: TokenUsage
    average_confidence: float = 0.0
    popular_intents: List[Dict[str, Any]] = Field(default_factory=list)
    last_updated: datetime
