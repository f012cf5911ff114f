"""OpenAI speech, translation and realtime-session wrapper."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from parley.config import RealtimeConfig, RelayConfig
from parley.errors import ConfigError, TransportError
from parley.types import Mode

logger = logging.getLogger(__name__)

LANGUAGE_CODES: Dict[str, str] = {
    "Arabic": "ar",
    "English": "en",
    "French": "fr",
    "Spanish": "es",
    "German": "de",
}

TRANSLATOR_SYSTEM_PROMPT = "You are a helpful translator. Respond with only the translated text, no commentary."

TRANSCRIBE_INSTRUCTIONS = (
    "You are a real-time transcription assistant. Please focus on accurate transcription of Arabic and "
    "English speech. Return the transcript as clearly as possible. If the user speaks in Arabic, provide "
    "the Arabic text. If they speak in English, provide English."
)


def language_code(language: str) -> str:
    """Map a language name to the ISO code the transcription model expects."""
    name = str(language or "").strip()
    if not name:
        return ""
    return LANGUAGE_CODES.get(name) or name.lower()[:2]


def session_instructions(mode: Mode, language: str) -> str:
    if mode is Mode.TRANSLATE:
        return (
            f"You are a real-time interpreter. Translate everything the user says into {language}. "
            "Keep meaning and tone. Respond with only the translated text, no commentary."
        )
    return TRANSCRIBE_INSTRUCTIONS


def turn_detection(realtime: RealtimeConfig) -> Dict[str, object]:
    """Server-side voice activity detection settings."""
    return {
        "type": "server_vad",
        "threshold": realtime.vad_threshold,
        "prefix_padding_ms": realtime.vad_prefix_padding_ms,
        "silence_duration_ms": realtime.vad_silence_duration_ms,
    }


def _item_get(item: object, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


class OpenAIClient:
    """Async OpenAI wrapper used by the relay server."""

    def __init__(
        self,
        api_key: str,
        *,
        relay: Optional[RelayConfig] = None,
        realtime: Optional[RealtimeConfig] = None,
        timeout_seconds: Optional[int] = None,
    ):
        try:
            from openai import AsyncOpenAI  # type: ignore
        except Exception as exc:
            raise ConfigError("OpenAI runtime dependency is missing. Install parley with its default dependencies.") from exc

        self.relay = relay or RelayConfig()
        self.realtime = realtime or RealtimeConfig()
        timeout = timeout_seconds or self.relay.relay_request_timeout_seconds
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "chunk.webm",
        language: str = "",
        prompt: str = "",
    ) -> str:
        """Transcribe one audio chunk; empty string when nothing was heard."""
        kwargs: Dict[str, object] = {
            "model": self.relay.transcription_model,
            "file": (filename, audio),
        }
        code = language_code(language)
        if code:
            kwargs["language"] = code
        if prompt:
            kwargs["prompt"] = prompt

        try:
            result = await self.client.audio.transcriptions.create(**kwargs)  # type: ignore[call-overload]
        except Exception as exc:
            logger.error("OpenAI transcription failed: %s", exc)
            raise TransportError("transcription error", detail=str(exc)) from exc

        text = _item_get(result, "text", "")
        return text if isinstance(text, str) else ""

    def _translation_messages(self, transcript: str, language: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": TRANSLATOR_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Translate the following text into {language}. Keep meaning and tone.\n\n{transcript}",
            },
        ]

    async def stream_translation(self, transcript: str, language: str) -> AsyncIterator[str]:
        """Yield translation text deltas as the model produces them."""
        try:
            stream = await self.client.chat.completions.create(
                model=self.relay.translation_model,
                messages=self._translation_messages(transcript, language),  # type: ignore[arg-type]
                temperature=self.relay.translation_temperature,
                max_tokens=self.relay.translation_max_tokens,
                stream=True,
            )
        except Exception as exc:
            logger.error("OpenAI translation request failed: %s", exc)
            raise TransportError("translation error", detail=str(exc)) from exc

        async for chunk in stream:
            try:
                delta = chunk.choices[0].delta.content
            except Exception:
                delta = None
            if delta:
                yield str(delta)

    async def create_realtime_session(self, *, mode: Mode = Mode.TRANSCRIBE, language: str = "") -> Dict[str, object]:
        """Create an ephemeral Realtime session for a browser or device client."""
        try:
            session = await self.client.beta.realtime.sessions.create(
                model=self.realtime.realtime_model,  # type: ignore[arg-type]
                modalities=["text", "audio"],
                instructions=session_instructions(mode, language),
                voice=self.realtime.realtime_voice,  # type: ignore[arg-type]
                input_audio_transcription={"model": self.realtime.realtime_transcription_model},
                turn_detection=turn_detection(self.realtime),  # type: ignore[arg-type]
            )
        except Exception as exc:
            logger.error("OpenAI session error: %s", exc)
            raise TransportError("Failed to create session", detail=str(exc)) from exc

        if hasattr(session, "model_dump"):
            return session.model_dump()
        return dict(session)
