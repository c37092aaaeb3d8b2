from __future__ import annotations

from typing import Any

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError

REQUIRED_CLAIMS = ["sub", "exp"]


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token subject is not a user id") from exc
    return Principal(user_id=user_id)
