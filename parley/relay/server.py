"""HTTP relay server: audio chunk in, transcript/translation event stream out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from parley.cloud.credentials import CredentialStore
from parley.cloud.openai_client import OpenAIClient
from parley.config import Config
from parley.errors import ConfigError, TransportError
from parley.protocol.frames import EVENT_STREAM_CONTENT_TYPE
from parley.relay.producer import generate_relay_frames
from parley.types import Mode

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Any]


class RelayServer:
    """aiohttp handlers for the relay endpoints."""

    def __init__(self, config: Config, *, client_factory: Optional[ClientFactory] = None) -> None:
        self.config = config
        self.credentials = CredentialStore()
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> OpenAIClient:
        return OpenAIClient(
            self.credentials.require_api_key(),
            relay=self.config.relay,
            realtime=self.config.realtime,
        )

    async def handle_transcribe(self, request: web.Request) -> web.StreamResponse:
        try:
            client = self._client_factory()
        except ConfigError as exc:
            return web.json_response({"error": str(exc)}, status=500)

        form = await request.post()
        upload = form.get("file")
        language = str(form.get("language") or "English")
        prompt = str(form.get("prompt") or "")

        if not isinstance(upload, web.FileField):
            return web.json_response({"error": "No audio file provided"}, status=400)

        try:
            mode = Mode.from_value(str(form.get("mode") or Mode.TRANSLATE.value))
        except ValueError as exc:
            return web.json_response({"error": str(exc)}, status=400)

        audio = await asyncio.to_thread(upload.file.read)
        try:
            transcript = await client.transcribe(audio, filename="chunk.webm", language=language, prompt=prompt)
        except TransportError as exc:
            return web.json_response({"error": str(exc), "detail": exc.detail}, status=500)

        if not transcript.strip():
            return web.json_response({"transcript": "", "translation": ""})

        response = web.StreamResponse(
            status=200,
            headers={"Content-Type": EVENT_STREAM_CONTENT_TYPE, "Cache-Control": "no-cache"},
        )
        await response.prepare(request)
        try:
            async for frame in generate_relay_frames(client, transcript=transcript, mode=mode, language=language):
                await response.write(frame)
        except ConnectionResetError:
            logger.info("Relay client disconnected mid-stream")
            return response
        await response.write_eof()
        return response

    async def handle_session(self, request: web.Request) -> web.Response:
        try:
            client = self._client_factory()
        except ConfigError as exc:
            return web.json_response({"error": str(exc)}, status=500)

        params: Dict[str, Any] = {}
        if request.can_read_body:
            try:
                loaded = await request.json()
            except ValueError:
                loaded = {}
            if isinstance(loaded, dict):
                params = loaded

        try:
            mode = Mode.from_value(str(params.get("mode") or Mode.TRANSCRIBE.value))
        except ValueError as exc:
            return web.json_response({"error": str(exc)}, status=400)

        try:
            data = await client.create_realtime_session(mode=mode, language=str(params.get("language") or ""))
        except TransportError as exc:
            return web.json_response({"error": str(exc), "detail": exc.detail}, status=500)
        return web.json_response(data)

    async def handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy", "service": "parley-relay"})


def create_app(config: Config, *, client_factory: Optional[ClientFactory] = None) -> web.Application:
    server = RelayServer(config, client_factory=client_factory)
    app = web.Application()
    app.router.add_post("/api/transcribe", server.handle_transcribe)
    app.router.add_post("/api/session", server.handle_session)
    app.router.add_get("/health", server.handle_health)
    return app


async def serve(config: Config, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the relay server until cancelled."""
    bind_host = host or config.relay.relay_host
    bind_port = port or config.relay.relay_port

    runner = web.AppRunner(create_app(config))
    await runner.setup()
    site = web.TCPSite(runner, bind_host, bind_port)
    await site.start()
    logger.info("Relay server listening on http://%s:%s", bind_host, bind_port)
    try:
        await asyncio.Future()
    finally:
        await runner.cleanup()
