# Services
from neuraslide.services.auth_service import AuthService, get_auth_service
from neuraslide.services.automation_service import AutomationService, get_automation_service
from neuraslide.services.conversation_service import ConversationService, get_conversation_service
from neuraslide.services.product_service import ProductService, get_product_service
from neuraslide.services.ai_service import AIService, get_ai_service
from neuraslide.services.admin_service import AdminService, get_admin_service
from neuraslide.services.instagram_service import InstagramService, get_instagram_service
from neuraslide.services.webhook_service import WebhookService, get_webhook_service

__all__ = [
    "AuthService", "get_auth_service",
    "AutomationService", "get_automation_service",
    "ConversationService", "get_conversation_service",
    "ProductService", "get_product_service",
    "AIService", "get_ai_service",
    "AdminService", "get_admin_service",
    "InstagramService", "get_instagram_service",
    "WebhookService", "get_webhook_service",
]
