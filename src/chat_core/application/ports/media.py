from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class StoredMedia:
    url: str


class MediaIngest(Protocol):
    async def upload(
        self, file_name: str, content_type: str, data: bytes,
    ) -> StoredMedia:
        """Store the bytes and return a durable URL or raise ``MediaIngestError``."""
        ...
