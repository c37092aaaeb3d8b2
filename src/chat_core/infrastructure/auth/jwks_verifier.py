from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError
from chat_core.infrastructure.auth.claims import REQUIRED_CLAIMS, principal_from_claims

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify JWTs using a remote JWKS endpoint."""

    def __init__(self, jwks_url: str, leeway: int = 0) -> None:
        self._jwks_url = jwks_url
        self._jwk_client = PyJWKClient(jwks_url)
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        if not token:
            raise AuthenticationError("Missing token")
        try:
            # key fetch is blocking I/O on a cache miss
            signing_key = await asyncio.to_thread(
                self._jwk_client.get_signing_key_from_jwt, token,
            )
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                leeway=self._leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except (jwt.InvalidTokenError, jwt.PyJWKClientError) as exc:
            logger.debug("JWKS verification failed: %s", exc)
            raise AuthenticationError("Invalid token") from exc
        return principal_from_claims(payload)
