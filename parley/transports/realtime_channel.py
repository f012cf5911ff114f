"""OpenAI Realtime session channel over WebSocket."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedError, WebSocketException

from parley.cloud.openai_client import session_instructions, turn_detection
from parley.config import RealtimeConfig
from parley.errors import TransportError
from parley.types import Mode, Session

logger = logging.getLogger(__name__)


class RealtimeChannel:
    """Session channel speaking the Realtime event protocol.

    Opening the channel connects and sends a ``session.update`` describing the
    transcription model, server VAD and mode-specific instructions. Inbound
    messages are decoded to dicts; frames that are not JSON objects are
    skipped.
    """

    def __init__(
        self,
        *,
        api_key: str,
        mode: Mode,
        language: str = "",
        config: Optional[RealtimeConfig] = None,
        connect_fn: Callable[..., Any] = connect,
    ) -> None:
        self.api_key = api_key
        self.mode = mode
        self.language = language
        self.config = config or RealtimeConfig()
        self._connect = connect_fn
        self._ws = None
        self._closed = False

    @classmethod
    def factory(
        cls,
        *,
        api_key: str,
        config: Optional[RealtimeConfig] = None,
        connect_fn: Callable[..., Any] = connect,
    ) -> Callable[[Session], "RealtimeChannel"]:
        """Channel factory for ``SessionLifecycle(channel_factory=...)``."""

        def _build(session: Session) -> RealtimeChannel:
            return cls(
                api_key=api_key,
                mode=session.mode,
                language=session.target_language,
                config=config,
                connect_fn=connect_fn,
            )

        return _build

    @property
    def url(self) -> str:
        return f"{self.config.realtime_url}?model={self.config.realtime_model}"

    def session_update(self) -> Dict[str, object]:
        return {
            "type": "session.update",
            "session": {
                "modalities": ["text"],
                "instructions": session_instructions(self.mode, self.language),
                "input_audio_transcription": {"model": self.config.realtime_transcription_model},
                "turn_detection": turn_detection(self.config),
            },
        }

    async def open(self) -> None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        try:
            ws = await self._connect(self.url, additional_headers=headers)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Realtime connection failed: {exc}") from exc

        if self._closed:
            # close() ran while the handshake was in flight.
            await ws.close()
            logger.info("Realtime channel closed before open completed")
            return

        self._ws = ws
        try:
            await ws.send(json.dumps(self.session_update()))
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Realtime connection failed: {exc}") from exc
        logger.info("Realtime channel open model=%s mode=%s", self.config.realtime_model, self.mode.value)

    async def messages(self) -> AsyncIterator[Dict[str, Any]]:
        ws = self._ws
        if ws is None:
            raise TransportError("Realtime channel is not open")
        try:
            async for raw in ws:
                try:
                    record = json.loads(raw)
                except ValueError as exc:
                    logger.debug("Dropping undecodable realtime message: %s", exc)
                    continue
                if not isinstance(record, dict):
                    continue
                yield record
        except ConnectionClosedError as exc:
            raise TransportError(f"Realtime connection lost: {exc}") from exc

    async def send_audio(self, pcm: bytes) -> None:
        """Append raw PCM16 audio to the remote input buffer."""
        ws = self._ws
        if ws is None:
            raise TransportError("Realtime channel is not open")
        payload = {"type": "input_audio_buffer.append", "audio": base64.b64encode(pcm).decode("ascii")}
        try:
            await ws.send(json.dumps(payload))
        except WebSocketException as exc:
            raise TransportError(f"Realtime send failed: {exc}") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
