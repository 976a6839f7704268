"""
Automation data models.

Triggers and responses are tagged unions discriminated by ``type``. A plain
string trigger is shorthand for a case-insensitive "contains" keyword
trigger, and a plain string response for a custom message.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, field_validator

from neuraslide.models.common import CamelModel


class AutomationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DRAFT = "DRAFT"


class AutomationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# ============================================
# TRIGGERS
# ============================================

class KeywordTrigger(CamelModel):
    type: Literal["keyword"] = "keyword"
    keywords: List[str]
    match_type: Literal["exact", "contains", "starts_with", "ends_with"] = "contains"
    case_sensitive: bool = False


class IntentTrigger(CamelModel):
    type: Literal["intent"] = "intent"
    intents: List[str]
    confidence: float = 0.5


class TimeRange(CamelModel):
    start: str
    end: str


class TimeTrigger(CamelModel):
    type: Literal["time"] = "time"
    time_range: TimeRange
    # ISO weekdays, 1 = Monday
    days_of_week: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])
    timezone: str = "UTC"


class UserTypeTrigger(CamelModel):
    type: Literal["user_type"] = "user_type"
    user_types: List[str]


class MessageCountTrigger(CamelModel):
    type: Literal["message_count"] = "message_count"
    count: int
    time_window: int


Trigger = Annotated[
    Union[KeywordTrigger, IntentTrigger, TimeTrigger, UserTypeTrigger, MessageCountTrigger],
    Field(discriminator="type"),
]


# ============================================
# RESPONSES
# ============================================

class AIGeneratedResponse(CamelModel):
    type: Literal["ai_generated"] = "ai_generated"
    prompt: str
    max_length: int = 200
    temperature: float = 0.7
    include_context: bool = True


class TemplateResponse(CamelModel):
    type: Literal["template"] = "template"
    template: str
    variables: Dict[str, str] = Field(default_factory=dict)


class CustomResponse(CamelModel):
    type: Literal["custom"] = "custom"
    message: str
    variables: List[str] = Field(default_factory=list)


class DelayResponse(CamelModel):
    type: Literal["delay"] = "delay"
    delay_minutes: int
    fallback_response: CustomResponse


AutomationResponse = Annotated[
    Union[AIGeneratedResponse, TemplateResponse, CustomResponse, DelayResponse],
    Field(discriminator="type"),
]


class _ShorthandInput(CamelModel):
    """Expands string shorthands before the tagged unions are parsed."""

    @field_validator("trigger", mode="before", check_fields=False)
    @classmethod
    def expand_trigger(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"type": "keyword", "keywords": [value.strip()], "matchType": "contains", "caseSensitive": False}
        return value

    @field_validator("response", mode="before", check_fields=False)
    @classmethod
    def expand_response(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"type": "custom", "message": value}
        return value

    @field_validator("status", "priority", mode="before", check_fields=False)
    @classmethod
    def upper_enums(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


# ============================================
# REQUESTS
# ============================================

class AutomationCreate(_ShorthandInput):
    name: str
    description: Optional[str] = None
    trigger: Trigger
    response: AutomationResponse
    status: AutomationStatus = AutomationStatus.DRAFT
    priority: AutomationPriority = AutomationPriority.MEDIUM
    is_active: bool = False
    tags: List[str] = Field(default_factory=list)


class AutomationUpdate(_ShorthandInput):
    name: Optional[str] = None
    description: Optional[str] = None
    trigger: Optional[Trigger] = None
    response: Optional[AutomationResponse] = None
    status: Optional[AutomationStatus] = None
    priority: Optional[AutomationPriority] = None
    is_active: Optional[bool] = None
    tags: Optional[List[str]] = None


class AutomationTestRequest(_ShorthandInput):
    """Ad-hoc trigger/response pair evaluated against a sample message."""
    trigger: Trigger
    response: AutomationResponse
    test_message: str
    context: Dict[str, Any] = Field(default_factory=dict)


# ============================================
# VIEWS
# ============================================

class AutomationPerformance(CamelModel):
    total_triggers: int = 0
    successful_responses: int = 0
    failed_responses: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0
    last_triggered_at: Optional[datetime] = None


class Automation(CamelModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    trigger: Trigger
    response: AutomationResponse
    status: AutomationStatus
    priority: AutomationPriority
    is_active: bool
    tags: List[str] = Field(default_factory=list)
    performance: AutomationPerformance
    created_at: datetime
    updated_at: Optional[datetime] = None


class AutomationTestResult(CamelModel):
    triggered: bool
    response: Optional[str] = None
    automation_id: Optional[str] = None
    delayed: bool = False


class AutomationExecution(CamelModel):
    automation_id: str
    conversation_id: Optional[str] = None
    success: bool
    response: Optional[str] = None
    response_time: float = 0.0
    error: Optional[str] = None


class AutomationStats(CamelModel):
    total_automations: int
    active_automations: int
    total_triggers: int
    average_success_rate: float
    top_performing_automations: List[Automation]
