from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Attachment:
    url: str
    file_name: str
    size_bytes: int


@dataclass(frozen=True, slots=True)
class ReadReceipt:
    user_id: int
    read_at: datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: int
    content: str
    type: str
    attachment: Attachment | None
    created_at: datetime
    read_by: tuple[ReadReceipt, ...] = ()
    seq: int | None = None  # assigned by the store on insert
