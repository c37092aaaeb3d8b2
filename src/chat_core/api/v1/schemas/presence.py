from __future__ import annotations

from datetime import datetime

from chat_core.api.v1.schemas.common import CamelModel


class PresenceResponse(CamelModel):
    user_id: int
    is_online: bool
    last_seen_at: datetime | None


class OnlineUserResponse(CamelModel):
    user_id: int
    display_name: str
    avatar_url: str | None
