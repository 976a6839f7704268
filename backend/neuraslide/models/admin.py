"""
Admin console schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from neuraslide.models.common import CamelModel


class AdminActionType(str, Enum):
    USER_SUSPENDED = "USER_SUSPENDED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DELETED = "USER_DELETED"
    AUTOMATION_DISABLED = "AUTOMATION_DISABLED"
    SYSTEM_MAINTENANCE = "SYSTEM_MAINTENANCE"
    BULK_OPERATION = "BULK_OPERATION"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"


class UserAccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class BulkOperationType(str, Enum):
    SUSPEND_USERS = "suspend_users"
    ACTIVATE_USERS = "activate_users"
    DELETE_USERS = "delete_users"
    DISABLE_AUTOMATIONS = "disable_automations"


class AdminUser(CamelModel):
    """User projection for the admin console, with usage counts."""
    id: str
    email: str
    name: str
    role: str
    status: UserAccountStatus
    email_verified: bool
    team_id: Optional[str] = None
    automation_count: int = 0
    conversation_count: int = 0
    product_count: int = 0
    last_login_at: Optional[datetime] = None
    created_at: datetime


class AdminUserUpdate(CamelModel):
    name: Optional[str] = None
    role: Optional[str] = None
    status: Optional[UserAccountStatus] = None
    email_verified: Optional[bool] = None

    @field_validator("status", mode="before")
    @classmethod
    def upper_status(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class UserMetrics(CamelModel):
    total: int
    active: int
    new: int


class AutomationMetrics(CamelModel):
    total: int
    active: int
    executions_today: int


class ConversationMetrics(CamelModel):
    total: int
    active: int
    messages_today: int


class RevenueMetrics(CamelModel):
    monthly: float = 0.0
    total: float = 0.0
    top_plans: List[Dict[str, Any]] = Field(default_factory=list)


class SystemMetrics(CamelModel):
    period: str
    users: UserMetrics
    automations: AutomationMetrics
    conversations: ConversationMetrics
    revenue: RevenueMetrics
    generated_at: datetime


class ServiceHealth(CamelModel):
    name: str
    status: str
    response_time: Optional[float] = None
    details: Optional[str] = None


class SystemHealth(CamelModel):
    status: str
    services: List[ServiceHealth]
    uptime: float
    version: str
    checked_at: datetime


class AdminAction(CamelModel):
    id: str
    admin_id: str
    action: AdminActionType
    target_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AdminActionCreate(CamelModel):
    action: AdminActionType
    target_id: Optional[str] = None
    details: Optional[str] = None


class BulkOperationRequest(CamelModel):
    operation: BulkOperationType
    target_ids: List[str]
    reason: Optional[str] = None


class BulkOperationResult(CamelModel):
    id: str
    operation: BulkOperationType
    status: str
    total: int
    processed: int
    failed: int
    failed_ids: List[str] = Field(default_factory=list)
    created_at: datetime


class PlatformSetting(CamelModel):
    key: str
    value: Any = None
    category: str = "general"
    description: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class SettingUpdate(CamelModel):
    key: str
    value: Any = None
    category: Optional[str] = None
    description: Optional[str] = None
