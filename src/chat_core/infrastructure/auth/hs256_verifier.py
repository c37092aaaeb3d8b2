from __future__ import annotations

import jwt

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError
from chat_core.infrastructure.auth.claims import REQUIRED_CLAIMS, principal_from_claims


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", leeway: int = 0) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        if not token:
            raise AuthenticationError("Missing token")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                leeway=self._leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc
        return principal_from_claims(payload)
