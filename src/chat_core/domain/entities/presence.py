from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Presence:
    user_id: int
    is_online: bool
    last_seen_at: datetime | None
