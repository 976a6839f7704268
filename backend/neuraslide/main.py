"""
NeuraSlide API - FastAPI Backend

Instagram DM automation SaaS: automated reply workflows, AI response
generation grounded in per-post context, a conversation inbox, a product
catalog with keyword search, a per-user dashboard and an admin console.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
import structlog

from neuraslide.infrastructure.config import get_settings
from neuraslide.infrastructure.database import Database
from neuraslide.infrastructure.exceptions import register_exception_handlers
from neuraslide.infrastructure.instagram_client import get_instagram_client
from neuraslide.infrastructure.openai_client import get_openai_client
from neuraslide.infrastructure.responses import success_response
from neuraslide.routers import (
    admin,
    ai,
    auth,
    automations,
    conversations,
    dashboard,
    instagram,
    post_contexts,
    products,
    webhooks,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("neuraslide_starting", environment=settings.environment, version=settings.app_version)

    # Tests install their own database before startup
    if getattr(app.state, "db", None) is None:
        app.state.db = Database(settings.database_url, echo=settings.database_echo)
    if settings.create_tables_on_startup:
        await app.state.db.create_tables()

    yield

    await get_openai_client().close()
    await get_instagram_client().close()
    await app.state.db.dispose()
    logger.info("neuraslide_stopped")


settings = get_settings()

app = FastAPI(
    title="NeuraSlide API",
    description="Instagram DM automation, AI replies, conversations, product catalog and admin console",
    version=settings.app_version,
    lifespan=lifespan,
)

# Register global exception handlers
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/crystal/auth", tags=["Auth"])
app.include_router(automations.router, prefix="/crystal/automations", tags=["Automations"])
app.include_router(conversations.router, prefix="/crystal/conversations", tags=["Conversations"])
app.include_router(ai.router, prefix="/crystal/ai", tags=["AI"])
app.include_router(products.router, prefix="/crystal/products", tags=["Products"])
app.include_router(instagram.router, prefix="/crystal/instagram", tags=["Instagram"])
app.include_router(post_contexts.router, prefix="/crystal/post-contexts", tags=["Post Contexts"])
app.include_router(dashboard.router, prefix="/crystal/dashboard", tags=["Dashboard"])
app.include_router(webhooks.router, prefix="/webhooks/instagram", tags=["Webhooks"])
app.include_router(admin.router, prefix="/nexus/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return success_response(
        "Welcome to NeuraSlide API",
        {"status": "ok", "service": "NeuraSlide API", "version": settings.app_version},
    )


@app.get("/health")
async def health(request: Request):
    """Detailed health check."""
    try:
        database = "ok" if await request.app.state.db.ping() else "unavailable"
    except (SQLAlchemyError, OSError) as e:
        logger.warning("health_database_unreachable", error_type=type(e).__name__)
        database = "unavailable"

    return success_response(
        "NeuraSlide backend is running",
        {
            "status": "healthy" if database == "ok" else "degraded",
            "components": {
                "api": "ok",
                "database": database,
                "openai": "configured" if get_openai_client().configured else "fallback",
            },
        },
    )


@app.get("/health/live")
async def health_live():
    """Liveness check: process is running."""
    return {"alive": True}
