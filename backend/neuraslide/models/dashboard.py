"""
Dashboard schemas: the per-user home screen summary.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from neuraslide.models.common import CamelModel


class DashboardModule(str, Enum):
    CONVERSATIONS = "conversations"
    AUTOMATIONS = "automations"
    PRODUCTS = "products"
    AI = "ai"


class DashboardWindow(CamelModel):
    start: datetime
    end: datetime


class DashboardOverview(CamelModel):
    total_conversations: int
    active_automations: int
    total_products: int
    ai_conversations: int
    # Counted inside the dashboard window
    recent_messages: int
    automation_triggers: int
    ai_responses: int


class RecentConversation(CamelModel):
    id: str
    title: str
    last_message: str
    status: str
    updated_at: datetime


class RecentAutomation(CamelModel):
    id: str
    name: str
    trigger: Optional[str] = None
    status: str
    last_triggered: Optional[datetime] = None


class RecentProduct(CamelModel):
    id: str
    name: str
    category: str
    search_count: int
    updated_at: datetime


class RecentAIResponse(CamelModel):
    id: str
    conversation_id: Optional[str] = None
    response: str
    confidence: float
    created_at: datetime


class RecentActivity(CamelModel):
    conversations: List[RecentConversation] = Field(default_factory=list)
    automations: List[RecentAutomation] = Field(default_factory=list)
    products: List[RecentProduct] = Field(default_factory=list)
    ai_responses: List[RecentAIResponse] = Field(default_factory=list)


class AutomationPerformance(CamelModel):
    total_triggers: int = 0
    successful_responses: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0


class AIPerformanceSummary(CamelModel):
    total_responses: int = 0
    average_confidence: float = 0.0


class TopProduct(CamelModel):
    id: str
    name: str
    search_count: int


class ProductPerformance(CamelModel):
    total_searches: int = 0
    top_searched_products: List[TopProduct] = Field(default_factory=list)


class ConversationPerformance(CamelModel):
    total_messages: int = 0
    active_conversations: int = 0


class PerformanceMetrics(CamelModel):
    automation_performance: AutomationPerformance
    ai_performance: AIPerformanceSummary
    product_performance: ProductPerformance
    conversation_performance: ConversationPerformance


class InstagramConnections(CamelModel):
    total: int = 0
    active: int = 0
    last_sync: Optional[datetime] = None


class ApiStatus(CamelModel):
    instagram: str
    ai: str
    automation: str


class DashboardHealth(CamelModel):
    instagram_connections: InstagramConnections
    api_status: ApiStatus
    database_status: str
    checked_at: datetime


class QuickAction(CamelModel):
    available: bool
    message: str


class QuickActions(CamelModel):
    create_automation: QuickAction
    add_product: QuickAction
    test_ai: QuickAction
    connect_instagram: QuickAction


class DashboardData(CamelModel):
    window: DashboardWindow
    overview: DashboardOverview
    recent_activity: RecentActivity
    performance: PerformanceMetrics
    system_health: DashboardHealth
    quick_actions: QuickActions
