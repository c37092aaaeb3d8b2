from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class User:
    """Identity mirrored from the auth collaborator."""

    id: int
    display_name: str
    avatar_url: str | None
    email: str | None
    external_id: str | None
    mobile: str | None
    created_at: datetime
