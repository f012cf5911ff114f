"""Relay stream frame generation."""

from __future__ import annotations

import logging
from typing import AsyncIterator, List, Protocol

from parley.errors import TransportError
from parley.protocol.frames import (
    DONE_FRAME,
    ErrorFrame,
    PartialTranslationFrame,
    TranscriptFrame,
    TranslationFrame,
    encode_frame,
)
from parley.types import Mode

logger = logging.getLogger(__name__)


class TranslationSource(Protocol):
    def stream_translation(self, transcript: str, language: str) -> AsyncIterator[str]: ...


async def generate_relay_frames(
    client: TranslationSource,
    *,
    transcript: str,
    mode: Mode,
    language: str,
) -> AsyncIterator[bytes]:
    """Yield the encoded relay frames for one transcribed audio chunk.

    The transcript frame always comes first. In transcribe mode it is echoed
    back as a non-final translation; in translate mode each model delta is
    forwarded as it arrives, followed by the full translation marked done.
    """
    yield encode_frame(TranscriptFrame(transcript=transcript))

    if mode is Mode.TRANSCRIBE:
        yield encode_frame(TranslationFrame(translation=transcript))
        yield DONE_FRAME
        return

    collected: List[str] = []
    try:
        async for delta in client.stream_translation(transcript, language):
            collected.append(delta)
            yield encode_frame(PartialTranslationFrame(partial_translation=delta))
        yield encode_frame(TranslationFrame(translation="".join(collected), done=True))
    except TransportError as exc:
        yield encode_frame(ErrorFrame(error=str(exc), detail=exc.detail))
    except Exception as exc:
        logger.error("Translation stream failed: %s", exc)
        yield encode_frame(ErrorFrame(error=str(exc)))
    yield DONE_FRAME
