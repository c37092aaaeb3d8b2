from __future__ import annotations

import logging

from chat_core.application.dto.message import UploadedFile
from chat_core.application.exceptions import MediaIngestError, ValidationError
from chat_core.application.ports.media import MediaIngest
from chat_core.config import settings
from chat_core.domain.entities.message import Attachment
from chat_core.domain.value_objects.enums import MessageType

logger = logging.getLogger(__name__)


def message_type_for(content_type: str) -> MessageType:
    if content_type.startswith("image/"):
        return MessageType.IMAGE
    if content_type.startswith("video/"):
        return MessageType.VIDEO
    if content_type.startswith("audio/"):
        return MessageType.AUDIO
    return MessageType.FILE


def validate_upload(upload: UploadedFile) -> None:
    if not upload.data:
        raise ValidationError("No file provided or file is empty")
    if upload.size_bytes > settings.MEDIA_MAX_BYTES:
        limit_mb = settings.MEDIA_MAX_BYTES / (1024 * 1024)
        raise ValidationError(f"File size exceeds maximum limit of {limit_mb:g}MB")
    if upload.content_type not in settings.MEDIA_ALLOWED_TYPES:
        raise ValidationError(f"File type {upload.content_type} is not allowed")


async def ingest(upload: UploadedFile, media: MediaIngest) -> Attachment:
    """Validate and hand the bytes to the media collaborator.

    Any collaborator failure surfaces as MediaIngestError so the caller never
    persists a message whose attachment is missing.
    """
    validate_upload(upload)
    try:
        stored = await media.upload(upload.file_name, upload.content_type, upload.data)
    except MediaIngestError:
        raise
    except Exception as exc:
        logger.exception("Media ingest failed for %s", upload.file_name)
        raise MediaIngestError() from exc

    return Attachment(
        url=stored.url,
        file_name=upload.file_name,
        size_bytes=upload.size_bytes,
    )
