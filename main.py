import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.infrastructure.messaging.redis_pubsub import (RealtimePublisher,
                                                             get_realtime_publisher,
                                                             set_realtime_publisher)
from shopfloor.infrastructure.persistence.database import (engine, get_db,
                                                           get_session_factory)
from shopfloor.infrastructure.scheduling.scheduler import (NotificationScheduler,
                                                           get_scheduler, set_scheduler)
from shopfloor.presentation.api.dependencies import get_cache_service, set_cache_service
from shopfloor.presentation.api.errors import register_exception_handlers
from shopfloor.presentation.api.v1.routes import (audit_logs, auth, chat, notifications,
                                                  permissions, roles, time_tracking, users,
                                                  websocket)
from shopfloor.presentation.api.websocket.dispatcher import RealtimeDispatcher
from shopfloor.presentation.api.websocket.manager import get_connection_manager
from shopfloor.presentation.middleware.correlation import CorrelationIDMiddleware
from shopfloor.presentation.middleware.rate_limit import limiter
from shopfloor.presentation.middleware.security import (RequestSizeLimitMiddleware,
                                                        SecurityHeadersMiddleware)
from shopfloor.shared.telemetry.logging import setup_logging
from shopfloor.shared.telemetry.telemetry import Tracing, get_tracing, set_tracing

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for application initialization and cleanup"""
    setup_logging()

    # Database schema is managed by migrations; seed roles with scripts/seed_rbac.py

    if settings.telemetry_enabled:
        try:
            tracing = Tracing(settings)
            tracing.start(app, engine)
            set_tracing(tracing)
        except Exception as e:
            logger.warning(f"Telemetry initialization failed: {e}. Continuing without tracing.")
    else:
        logger.info("Distributed tracing disabled in configuration")

    if settings.redis_enabled:
        try:
            cache_service = CacheService()
            await cache_service.connect()
            set_cache_service(cache_service)
            logger.info("Redis cache initialized successfully")
        except Exception as e:
            logger.warning(f"Redis cache initialization failed: {e}. Continuing without cache.")

        # Fan-out between workers; without it events go to this process's sockets only
        publisher = RealtimePublisher()
        await publisher.connect()
        set_realtime_publisher(publisher)
    else:
        logger.info("Redis disabled in configuration, real-time delivery is process-local")

    if settings.scheduler_enabled:
        scheduler = NotificationScheduler(
            get_session_factory(),
            RealtimeDispatcher(),
            interval_seconds=settings.scheduler_interval_seconds,
        )
        scheduler.start()
        set_scheduler(scheduler)

    yield

    scheduler = get_scheduler()
    if scheduler:
        scheduler.shutdown()
        set_scheduler(None)

    await get_connection_manager().close_all()

    if settings.telemetry_enabled:
        try:
            tracing = get_tracing()
            if tracing:
                tracing.shutdown()
                set_tracing(None)
        except Exception as e:
            logger.warning(f"Error during telemetry shutdown: {e}")

    if settings.redis_enabled:
        try:
            publisher = get_realtime_publisher()
            if publisher:
                await publisher.disconnect()
                set_realtime_publisher(None)
            cache = await get_cache_service()
            await cache.disconnect()
            logger.info("Redis connections closed")
        except Exception as e:
            logger.warning(f"Error during Redis shutdown: {e}")

    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

# Middleware is applied in reverse order of registration
app.add_middleware(RequestSizeLimitMiddleware, max_request_size=settings.max_request_size)
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
# allow_credentials=True requires specific origins (not wildcard)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router, prefix="/auth", tags=["authentication"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(roles.router, prefix="/roles", tags=["roles"])
app.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
app.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit-logs"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(chat.router, prefix="/chat", tags=["chat"])
app.include_router(time_tracking.router, prefix="/time-tracking", tags=["time-tracking"])
app.include_router(websocket.router, tags=["websocket"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint for load balancers and monitoring.

    Validates:
    - API is responsive
    - Database connectivity
    - Redis cache availability (optional)

    Returns:
    - 200 OK if healthy
    - 503 Service Unavailable if unhealthy
    """
    checks: dict[str, Any] = {
        "api": True,
        "database": False,
        "cache": None,  # None = not configured, True = healthy, False = unhealthy
        "websocket_connections": get_connection_manager().get_total_connections(),
    }

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True

        if settings.redis_enabled:
            cache = await get_cache_service()
            checks["cache"] = cache.is_available()

        if checks["api"] and checks["database"]:
            return {"status": "healthy", "checks": checks}
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
    except Exception as e:
        checks["error"] = str(e)
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
