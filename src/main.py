"""Main FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.routes.health import router as health_router
from api.v1 import router as v1_router
from api.v1.dependencies import get_http_client, get_notification_engine
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler

logger = structlog.get_logger()

# Initialize structured logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Restore engine state and run the scheduler for the app's lifetime."""
    engine = get_notification_engine()
    if settings.scheduler_enabled:
        await engine.start(settings.tick_interval_seconds)
    else:
        await engine.hydrate()
        logger.info("scheduler_disabled")

    yield

    await engine.stop()
    await get_http_client().aclose()
    # the engine holds the closed client; both are rebuilt on next startup
    get_notification_engine.cache_clear()
    get_http_client.cache_clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=(
            "## Lawyer and Client Notification Engine\n\n"
            "Docket Notify watches deadlines, court dates and follow-ups, "
            "resolves client events against trigger rules and delivers "
            "notifications over email, push, chat, SMS, in-app and the client "
            "portal.\n\n"
            "### Features\n"
            "- **Reminders**: threshold-based deadline and court date reminders\n"
            "- **Quiet hours & digests**: non-urgent messages wait or batch up\n"
            "- **Retries**: exponential backoff with an audit trail\n\n"
            "### Rate Limits\n"
            "- Reads: 60 requests/minute\n"
            "- Writes: 30 requests/minute\n"
            "- Engine control: 6 requests/minute"
        ),
        version="1.0.0",
        debug=settings.debug,
        contact={
            "name": "Docket Notify Support",
        },
        license_info={
            "name": "MIT",
        },
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "notifications", "description": "Notification records and receipts"},
            {"name": "events", "description": "Event intake"},
            {"name": "rules", "description": "Trigger rule management"},
            {"name": "preferences", "description": "Recipient preferences and reminder settings"},
            {"name": "digests", "description": "Batched non-urgent notifications"},
            {"name": "audit", "description": "Audit trail"},
            {"name": "engine", "description": "Scheduler status and manual control"},
        ],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Tracking middleware (LIFO order - last added = outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # GZip compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
