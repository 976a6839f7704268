# Data models
from neuraslide.models.common import CamelModel, Pagination
from neuraslide.models.auth import User, Team, UserRole, AuthResult
from neuraslide.models.automation import (
    Automation, AutomationCreate, AutomationUpdate, AutomationStatus, AutomationPriority,
    AutomationStats, AutomationTestResult
)
from neuraslide.models.conversation import (
    Conversation, Message, ConversationStats, ConversationStatus, SenderType, MessageStatus
)
from neuraslide.models.product import (
    Product, ProductCreate, ProductUpdate, Availability, SearchResponse, ProductAnalytics
)

__all__ = [
    "CamelModel", "Pagination",
    "User", "Team", "UserRole", "AuthResult",
    "Automation", "AutomationCreate", "AutomationUpdate", "AutomationStatus", "AutomationPriority",
    "AutomationStats", "AutomationTestResult",
    "Conversation", "Message", "ConversationStats", "ConversationStatus", "SenderType", "MessageStatus",
    "Product", "ProductCreate", "ProductUpdate", "Availability", "SearchResponse", "ProductAnalytics",
]
