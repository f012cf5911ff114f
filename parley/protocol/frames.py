"""Relay stream frame models."""

from __future__ import annotations

import json
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from parley.protocol.reassembler import DATA_PREFIX, DONE_SENTINEL

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

DONE_FRAME = f"{DONE_SENTINEL}\n\n".encode("utf-8")


class TranscriptFrame(BaseModel):
    """Finalized source-language transcript."""

    model_config = ConfigDict(extra="forbid")

    transcript: str


class PartialTranslationFrame(BaseModel):
    """One incremental translation fragment."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    partial_translation: str = Field(alias="partialTranslation")


class TranslationFrame(BaseModel):
    """Full translation; ``done`` marks it final."""

    model_config = ConfigDict(extra="forbid")

    translation: str
    done: Optional[bool] = None


class ErrorFrame(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    detail: Optional[str] = None


RelayFrame = Union[TranscriptFrame, PartialTranslationFrame, TranslationFrame, ErrorFrame]


def encode_frame(frame: RelayFrame) -> bytes:
    """Render one frame as ``data: <json>\\n\\n``."""
    payload = frame.model_dump(by_alias=True, exclude_none=True)
    body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"{DATA_PREFIX}{body}\n\n".encode("utf-8")
