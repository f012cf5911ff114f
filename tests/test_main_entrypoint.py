from __future__ import annotations

import asyncio
import json
import subprocess
import sys
from pathlib import Path

import pytest

from parley import __main__ as cli
from parley.protocol.frames import DONE_FRAME, PartialTranslationFrame, TranscriptFrame, TranslationFrame, encode_frame
from parley.transports.realtime_channel import RealtimeChannel


def _config_file(tmp_path: Path) -> Path:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"log_file: {tmp_path / 'parley.log'}\n", encoding="utf-8")
    return config_file


def test_replay_session_log_prints_committed_transcript(tmp_path: Path, capsys) -> None:
    log = tmp_path / "session.jsonl"
    records = [
        {"type": "session.created"},
        {"type": "conversation.item.input_audio_transcription.completed", "item_id": "i1", "transcript": "hello"},
        {"type": "conversation.item.input_audio_transcription.completed", "item_id": "i1", "transcript": "hello"},
        {"type": "conversation.item.input_audio_transcription.completed", "item_id": "i2", "transcript": "world"},
    ]
    log.write_text("\n".join(json.dumps(record) for record in records) + "\nnot json\n", encoding="utf-8")

    cli.main(["--config", str(_config_file(tmp_path)), "replay", str(log)])

    output = capsys.readouterr().out
    assert "hello world" in output
    assert "hello hello" not in output


def test_replay_relay_body_in_translate_mode(tmp_path: Path, capsys) -> None:
    body = tmp_path / "relay.txt"
    body.write_bytes(
        encode_frame(TranscriptFrame(transcript="good morning"))
        + encode_frame(PartialTranslationFrame(partial_translation="Bonjour"))
        + encode_frame(TranslationFrame(translation="Bonjour", done=True))
        + DONE_FRAME
    )

    cli.main(
        [
            "--config",
            str(_config_file(tmp_path)),
            "replay",
            str(body),
            "--source",
            "relay",
            "--mode",
            "translate",
            "--language",
            "French",
        ]
    )

    output = capsys.readouterr().out
    assert "Bonjour" in output
    assert "good morning" not in output


def test_invalid_config_exits_with_code_2(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- not\n- a mapping\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(config_file), "replay", str(tmp_path / "none.jsonl")])

    assert excinfo.value.code == 2


def test_main_exits_130_on_keyboard_interrupt_without_traceback(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    script = (
        "from parley import __main__ as cli\n"
        "def _raise_interrupt(*_args, **_kwargs):\n"
        "    raise KeyboardInterrupt()\n"
        "cli.serve = _raise_interrupt\n"
        f"cli.main(['--config', {str(_config_file(tmp_path))!r}, 'serve'])\n"
    )

    process = subprocess.run(
        [sys.executable, "-c", script],
        cwd=repo_root,
        capture_output=True,
        text=True,
    )
    assert process.returncode == 130
    assert "Traceback" not in process.stderr


class _ScriptedSocket:
    def __init__(self, messages):
        self.sent = []
        self.close_calls = 0
        self._messages = list(messages)
        self._closed = None

    async def send(self, payload):
        self.sent.append(json.loads(payload))

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        self._closed = self._closed or asyncio.Event()
        for message in self._messages:
            yield json.dumps(message)
        await self._closed.wait()

    async def close(self):
        self.close_calls += 1
        self._closed = self._closed or asyncio.Event()
        self._closed.set()


def test_stream_sends_pcm_over_realtime_channel(tmp_path: Path, capsys, monkeypatch) -> None:
    socket = _ScriptedSocket(
        [
            {"type": "session.updated"},
            {"type": "conversation.item.input_audio_transcription.completed", "item_id": "i1", "transcript": "hello there"},
        ]
    )
    connect_calls = []

    async def _connect(url, **kwargs):
        connect_calls.append(kwargs["additional_headers"]["Authorization"])
        return socket

    class _ScriptedChannel(RealtimeChannel):
        @classmethod
        def factory(cls, *, api_key, config=None, connect_fn=None):
            return super().factory(api_key=api_key, config=config, connect_fn=_connect)

    monkeypatch.setattr(cli, "RealtimeChannel", _ScriptedChannel)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    pcm = tmp_path / "speech.pcm"
    pcm.write_bytes(b"\x00\x01" * 3000)

    cli.main(["--config", str(_config_file(tmp_path)), "stream", str(pcm), "--linger", "0.05"])

    output = capsys.readouterr().out
    assert "hello there" in output
    assert connect_calls == ["Bearer sk-test"]
    assert socket.sent[0]["type"] == "session.update"
    assert [event["type"] for event in socket.sent[1:]] == ["input_audio_buffer.append"] * 2
    assert socket.close_calls == 1


def test_stream_without_api_key_exits_with_code_2(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli.CredentialStore, "get_keychain_api_key", lambda self: None)
    pcm = tmp_path / "speech.pcm"
    pcm.write_bytes(b"\x00\x00")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(_config_file(tmp_path)), "stream", str(pcm)])

    assert excinfo.value.code == 2
