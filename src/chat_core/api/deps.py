"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError
from chat_core.application.ports.auth import TokenVerifier
from chat_core.application.ports.media import MediaIngest
from chat_core.application.uow import UnitOfWork
from chat_core.config import settings
from chat_core.infrastructure.auth.hs256_verifier import HS256Verifier
from chat_core.infrastructure.auth.jwks_verifier import JWKSVerifier
from chat_core.infrastructure.ws.gateway import RealtimeGateway

_bearer_scheme = HTTPBearer()


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    async with request.app.state.uow_factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, leeway=settings.JWT_LEEWAY_SECONDS)
    return HS256Verifier(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        leeway=settings.JWT_LEEWAY_SECONDS,
    )


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_gateway(request: Request) -> RealtimeGateway:
    return request.app.state.gateway


GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]


def get_media_ingest(request: Request) -> MediaIngest:
    return request.app.state.media_ingest


MediaIngestDep = Annotated[MediaIngest, Depends(get_media_ingest)]
