"""HTTP client for the external media ingest service."""
from __future__ import annotations

import logging

import httpx

from chat_core.application.exceptions import MediaIngestError
from chat_core.application.ports.media import StoredMedia

logger = logging.getLogger(__name__)


class HttpMediaIngest:
    """Posts the file as multipart and expects ``{"url": ...}`` back."""

    def __init__(
        self,
        endpoint: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._token = token
        self._timeout = timeout
        self._transport = transport

    async def upload(self, file_name: str, content_type: str, data: bytes) -> StoredMedia:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        files = {"file": (file_name, data, content_type)}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._endpoint, files=files, headers=headers)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Media ingest rejected %s (%s): %s",
                file_name, exc.response.status_code, exc.response.text,
            )
            raise MediaIngestError() from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Media ingest unreachable for %s: %s", file_name, exc)
            raise MediaIngestError() from exc

        url = (body.get("url") or body.get("secure_url")) if isinstance(body, dict) else None
        if not url:
            logger.error("Media ingest returned no URL for %s: %s", file_name, body)
            raise MediaIngestError()
        return StoredMedia(url=url)
