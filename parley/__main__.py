"""Main entry point for parley."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional

from rich.console import Console

from parley.app.lifecycle import SessionLifecycle
from parley.cloud.credentials import CredentialStore
from parley.config import Config
from parley.errors import ConfigError, TransportError
from parley.logging_config import configure_logging
from parley.relay.server import serve
from parley.transports.realtime_channel import RealtimeChannel
from parley.transports.relay_client import RelayClient
from parley.types import Mode, SessionConfig
from parley.ui.transcript_view import render_view

logger = logging.getLogger(__name__)

REPLAY_CHUNK_BYTES = 512
STREAM_CHUNK_BYTES = 4800


async def _chunked(data: bytes, size: int = REPLAY_CHUNK_BYTES) -> AsyncIterator[bytes]:
    for offset in range(0, len(data), size):
        yield data[offset : offset + size]


def _read_session_log(path: Path) -> Iterable[dict]:
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        raw = line.strip()
        if not raw:
            continue
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.debug("Skipping malformed session log line %d: %s", number, exc)
            continue
        if isinstance(record, dict):
            yield record


def _session_config(args: argparse.Namespace, config: Config, *, use_session_channel: bool = False) -> SessionConfig:
    return SessionConfig(
        mode=args.mode or config.session.default_mode,
        target_language=args.language or config.session.default_language,
        use_session_channel=use_session_channel,
    )


async def _run_replay(args: argparse.Namespace, config: Config, console: Console) -> None:
    path = Path(args.file).expanduser()
    lifecycle = SessionLifecycle(stop_on_protocol_error=config.session.stop_on_protocol_error)
    async with lifecycle:
        await lifecycle.start(_session_config(args, config))
        if args.source == "relay":
            await lifecycle.run_relay(_chunked(path.read_bytes()))
        else:
            for record in _read_session_log(path):
                lifecycle.deliver(record)
            await lifecycle.drain()
        render_view(console, lifecycle.view)


async def _run_listen(args: argparse.Namespace, config: Config, console: Console) -> None:
    relay_url = args.relay_url or f"http://{config.relay.relay_host}:{config.relay.relay_port}"
    client = RelayClient(relay_url, timeout_seconds=config.relay.relay_request_timeout_seconds)
    lifecycle = SessionLifecycle(stop_on_protocol_error=config.session.stop_on_protocol_error)
    async with lifecycle:
        session = await lifecycle.start(_session_config(args, config))
        for audio_path in args.audio:
            path = Path(audio_path).expanduser()
            chunks = client.stream(
                path.read_bytes(),
                filename=path.name,
                mode=session.mode,
                language=session.target_language or config.session.default_language,
                prompt=args.prompt or "",
            )
            await lifecycle.run_relay(chunks)
        render_view(console, lifecycle.view)


async def _run_stream(args: argparse.Namespace, config: Config, console: Console) -> None:
    api_key = CredentialStore().require_api_key()
    build = RealtimeChannel.factory(api_key=api_key, config=config.realtime)
    opened: List[RealtimeChannel] = []

    def _channel(session):
        channel = build(session)
        opened.append(channel)
        return channel

    lifecycle = SessionLifecycle(
        channel_factory=_channel,
        on_error=lambda message: console.print(f"[red]✗[/red] {message}"),
        stop_on_protocol_error=config.session.stop_on_protocol_error,
    )
    async with lifecycle:
        await lifecycle.start(_session_config(args, config, use_session_channel=True))
        channel = opened[-1]
        for audio_path in args.audio:
            pcm = Path(audio_path).expanduser().read_bytes()
            for offset in range(0, len(pcm), STREAM_CHUNK_BYTES):
                if not lifecycle.session.is_active:
                    break
                await channel.send_audio(pcm[offset : offset + STREAM_CHUNK_BYTES])
        # Server VAD commits the last turn after trailing silence.
        await asyncio.sleep(args.linger)
        await lifecycle.drain()
        render_view(console, lifecycle.view)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="parley")
    parser.add_argument("--config", default=None, help="Path to config YAML (default: ~/.parley/config.yaml).")
    parser.add_argument("--verbose", action="store_true", help="Also log to stderr.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser("serve", help="Run the relay server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    modes = [mode.value for mode in Mode]

    listen_parser = commands.add_parser("listen", help="Send audio files to a relay server and print the transcript.")
    listen_parser.add_argument("audio", nargs="+", help="Audio chunk files, sent in order.")
    listen_parser.add_argument("--relay-url", default=None)
    listen_parser.add_argument("--mode", choices=modes, default=None)
    listen_parser.add_argument("--language", default=None)
    listen_parser.add_argument("--prompt", default=None)

    stream_parser = commands.add_parser("stream", help="Stream raw PCM16 files over a Realtime session channel.")
    stream_parser.add_argument("audio", nargs="+", help="24 kHz mono PCM16 files, sent in order.")
    stream_parser.add_argument("--mode", choices=modes, default=None)
    stream_parser.add_argument("--language", default=None)
    stream_parser.add_argument("--linger", type=float, default=2.0, help="Seconds to wait for final events.")

    replay_parser = commands.add_parser("replay", help="Replay a captured session log or relay body.")
    replay_parser.add_argument("file")
    replay_parser.add_argument("--source", choices=["session", "relay"], default="session")
    replay_parser.add_argument("--mode", choices=modes, default=None)
    replay_parser.add_argument("--language", default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    console = Console()

    try:
        config = Config(config_path=args.config)
        configure_logging(config, verbose=args.verbose)

        if args.command == "serve":
            asyncio.run(serve(config, host=args.host, port=args.port))
        elif args.command == "listen":
            asyncio.run(_run_listen(args, config, console))
        elif args.command == "stream":
            asyncio.run(_run_stream(args, config, console))
        else:
            asyncio.run(_run_replay(args, config, console))
    except KeyboardInterrupt:
        raise SystemExit(130)
    except ConfigError as exc:
        console.print(f"[red]✗ Configuration error:[/red] {exc}")
        raise SystemExit(2)
    except TransportError as exc:
        console.print(f"[red]✗ Transport error:[/red] {exc}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
