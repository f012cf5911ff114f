"""Relay stream wire protocol."""

from parley.protocol.frames import (
    DONE_FRAME,
    EVENT_STREAM_CONTENT_TYPE,
    ErrorFrame,
    PartialTranslationFrame,
    TranscriptFrame,
    TranslationFrame,
    encode_frame,
)
from parley.protocol.reassembler import RawChunkReassembler, aiter_lines, iter_lines, parse_data_line

__all__ = [
    "DONE_FRAME",
    "EVENT_STREAM_CONTENT_TYPE",
    "ErrorFrame",
    "PartialTranslationFrame",
    "RawChunkReassembler",
    "TranscriptFrame",
    "TranslationFrame",
    "aiter_lines",
    "encode_frame",
    "iter_lines",
    "parse_data_line",
]
