from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from chat_core.api.deps import get_verifier
from chat_core.api.middleware.correlation_id import CorrelationIdMiddleware
from chat_core.api.v1.routers import conversations, health, messages, users, ws
from chat_core.application.exceptions import (
    AuthenticationError,
    ForbiddenError,
    MediaIngestError,
    NotFoundError,
    RateLimitedError,
    StoreUnavailableError,
    ValidationError,
)
from chat_core.application.ports.media import MediaIngest
from chat_core.application.ports.rate_limit import RateLimiter
from chat_core.application.uow import UoWFactory
from chat_core.config import settings
from chat_core.infrastructure.db.uow import open_uow
from chat_core.infrastructure.media.http_ingest import HttpMediaIngest
from chat_core.infrastructure.rate_limit.memory import InMemoryRateLimiter
from chat_core.infrastructure.rate_limit.redis_limiter import RedisRateLimiter
from chat_core.infrastructure.ws.gateway import RealtimeGateway
from chat_core.infrastructure.ws.presence import PresenceTracker
from chat_core.infrastructure.ws.registry import SessionRegistry

logger = logging.getLogger(__name__)


def _build_rate_limiter(redis: aioredis.Redis) -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimiter(
            redis,
            settings.RATE_LIMIT_MAX_ATTEMPTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    return InMemoryRateLimiter(
        settings.RATE_LIMIT_MAX_ATTEMPTS,
        settings.RATE_LIMIT_WINDOW_SECONDS,
        max_keys=settings.RATE_LIMIT_MAX_KEYS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")
    app.state.rate_limiter = _build_rate_limiter(app.state.redis)

    registry = SessionRegistry()
    presence = PresenceTracker(registry, app.state.uow_factory)
    app.state.gateway = RealtimeGateway(
        registry=registry,
        presence=presence,
        uow_factory=app.state.uow_factory,
        verifier=get_verifier(),
    )
    try:
        await presence.reset()
    except StoreUnavailableError:
        logger.warning("Could not reset stale presence at startup", exc_info=True)

    yield

    await app.state.gateway.shutdown()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app(
    *,
    uow_factory: UoWFactory | None = None,
    media_ingest: MediaIngest | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Chat Core",
        version="0.1.0",
        lifespan=lifespan,
    )

    if uow_factory is None:
        uow_factory = open_uow
    if media_ingest is None:
        media_ingest = HttpMediaIngest(
            settings.MEDIA_INGEST_URL,
            token=settings.MEDIA_INGEST_TOKEN,
            timeout=settings.MEDIA_TIMEOUT_SECONDS,
        )
    app.state.uow_factory = uow_factory
    app.state.media_ingest = media_ingest

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(users.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(AuthenticationError)
    async def _unauthorized(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(MediaIngestError)
    async def _media(_req: Request, exc: MediaIngestError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(RateLimitedError)
    async def _rate_limited(_req: Request, exc: RateLimitedError) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": exc.detail},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StoreUnavailableError)
    async def _unavailable(_req: Request, exc: StoreUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def _db_unavailable(_req: Request, exc: Exception) -> JSONResponse:
        logger.error("Database unavailable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": StoreUnavailableError.default_detail},
        )
