from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExternalIdentity:
    """Verified identity handed over by the OAuth collaborator."""

    external_id: str
    email: str | None
    name: str
    avatar_url: str | None = None
