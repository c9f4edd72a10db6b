"""FastAPI Application Entry Point"""

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from lynxa.api.v1 import health, keys, chat, usage
from lynxa.api.exception_handlers import register_exception_handlers
from lynxa.api.middleware import (
    UsageStatisticsMiddleware,
    BackgroundTaskManager,
    RequestIDMiddleware,
    LoggingMiddleware,
    ErrorHandlingMiddleware
)
from lynxa.core.config import settings
from lynxa.core.database import (
    init_database, close_database,
    init_redis, close_redis
)
from lynxa.core.logging_config import get_logger


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""
    await init_database()
    if settings.RATE_LIMIT_BACKEND == "redis":
        await init_redis()
    logger.info(
        "application_started",
        key_strategy=settings.API_KEY_STRATEGY,
        rate_limit_backend=settings.RATE_LIMIT_BACKEND
    )
    yield
    # Let pending usage writes finish before the engine goes away
    await app.state.background_tasks.drain(timeout=settings.STORE_TIMEOUT_SECONDS)
    await close_redis()
    await close_database()
    logger.info("application_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

app.state.background_tasks = BackgroundTaskManager()

register_exception_handlers(app)

# Middleware runs in reverse order of registration (last added is outermost):
# Error Handler -> Request ID -> Logging -> Usage Stats -> CORS -> routes

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)
app.add_middleware(UsageStatisticsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

app.include_router(health.router)
app.include_router(keys.router, prefix="/api/v1")
app.include_router(chat.router, prefix="/api/v1")
app.include_router(usage.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "info": "/api/info"
    }
