"""HTTP client for the relay event stream."""

from __future__ import annotations

import logging
import mimetypes
from typing import AsyncIterator, Optional

import aiohttp

from parley.errors import TransportError
from parley.types import Mode

logger = logging.getLogger(__name__)


class RelayClient:
    """POST audio chunks to a relay server and yield the raw response body."""

    def __init__(self, base_url: str, *, timeout_seconds: int = 60) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = max(1, int(timeout_seconds))

    @property
    def transcribe_url(self) -> str:
        return f"{self.base_url}/api/transcribe"

    def _build_form(self, audio: bytes, *, filename: str, mode: Mode, language: str, prompt: str) -> aiohttp.FormData:
        content_type = mimetypes.guess_type(filename)[0] or "audio/webm"
        form = aiohttp.FormData()
        form.add_field("file", audio, filename=filename, content_type=content_type)
        form.add_field("mode", mode.value)
        form.add_field("language", language)
        if prompt:
            form.add_field("prompt", prompt)
        return form

    async def stream(
        self,
        audio: bytes,
        *,
        filename: str = "chunk.webm",
        mode: Mode = Mode.TRANSLATE,
        language: str = "English",
        prompt: str = "",
    ) -> AsyncIterator[bytes]:
        """Yield body chunks exactly as the transport delivers them."""
        form = self._build_form(audio, filename=filename, mode=mode, language=language, prompt=prompt)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.transcribe_url, data=form) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise TransportError(f"Relay request failed with HTTP {response.status}", detail=body)
                    async for chunk in response.content.iter_any():
                        yield chunk
        except aiohttp.ClientError as exc:
            logger.error("Relay request to %s failed: %s", self.transcribe_url, exc)
            raise TransportError(f"Relay request failed: {exc}") from exc
