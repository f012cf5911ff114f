import asyncio
import base64
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from parley.config import RealtimeConfig
from parley.errors import TransportError
from parley.transports.realtime_channel import RealtimeChannel
from parley.types import Mode, Session, SessionStatus


class _FakeSocket:
    def __init__(self, incoming=(), error=None):
        self.incoming = list(incoming)
        self.error = error
        self.sent = []
        self.close_calls = 0

    async def send(self, message):
        self.sent.append(json.loads(message))

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.incoming:
            yield message
        if self.error is not None:
            raise self.error

    async def close(self):
        self.close_calls += 1


class _FakeConnect:
    def __init__(self, socket=None, error=None):
        self.socket = socket or _FakeSocket()
        self.error = error
        self.calls = []

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.socket


def test_open_connects_with_auth_and_sends_session_update():
    connect = _FakeConnect()
    channel = RealtimeChannel(api_key="sk-test", mode=Mode.TRANSLATE, language="French", connect_fn=connect)

    asyncio.run(channel.open())

    url, kwargs = connect.calls[0]
    assert url == "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview-2024-12-17"
    assert kwargs["additional_headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["additional_headers"]["OpenAI-Beta"] == "realtime=v1"

    update = connect.socket.sent[0]
    assert update["type"] == "session.update"
    assert "French" in update["session"]["instructions"]
    assert update["session"]["input_audio_transcription"] == {"model": "whisper-1"}
    assert update["session"]["turn_detection"] == {
        "type": "server_vad",
        "threshold": 0.5,
        "prefix_padding_ms": 300,
        "silence_duration_ms": 500,
    }


def test_open_failure_raises_transport_error():
    connect = _FakeConnect(error=OSError("unreachable"))
    channel = RealtimeChannel(api_key="sk-test", mode=Mode.TRANSCRIBE, connect_fn=connect)

    with pytest.raises(TransportError):
        asyncio.run(channel.open())


def test_messages_skip_undecodable_and_non_object_frames():
    socket = _FakeSocket(incoming=['{"type":"session.created"}', "not json", "[1,2]", '{"type":"error"}'])
    channel = RealtimeChannel(api_key="sk-test", mode=Mode.TRANSCRIBE, connect_fn=_FakeConnect(socket))

    async def run():
        await channel.open()
        return [record async for record in channel.messages()]

    assert asyncio.run(run()) == [{"type": "session.created"}, {"type": "error"}]


def test_abnormal_close_raises_transport_error():
    socket = _FakeSocket(incoming=['{"type":"session.created"}'], error=ConnectionClosedError(None, None))
    channel = RealtimeChannel(api_key="sk-test", mode=Mode.TRANSCRIBE, connect_fn=_FakeConnect(socket))

    async def run():
        await channel.open()
        return [record async for record in channel.messages()]

    with pytest.raises(TransportError):
        asyncio.run(run())


def test_send_audio_base64_encodes_pcm_and_close_is_idempotent():
    socket = _FakeSocket()
    channel = RealtimeChannel(api_key="sk-test", mode=Mode.TRANSCRIBE, connect_fn=_FakeConnect(socket))

    async def run():
        await channel.open()
        await channel.send_audio(b"\x00\x01\x02")
        await channel.close()
        await channel.close()

    asyncio.run(run())

    assert socket.sent[-1] == {
        "type": "input_audio_buffer.append",
        "audio": base64.b64encode(b"\x00\x01\x02").decode("ascii"),
    }
    assert socket.close_calls == 1


def test_factory_builds_channel_from_session():
    build = RealtimeChannel.factory(api_key="sk-test", config=RealtimeConfig(realtime_model="gpt-test"))
    session = Session(session_id="s1", mode=Mode.TRANSLATE, target_language="German", status=SessionStatus.CONNECTING)

    channel = build(session)

    assert channel.mode is Mode.TRANSLATE
    assert channel.language == "German"
    assert channel.url.endswith("?model=gpt-test")
