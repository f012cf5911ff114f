"""Event normalization, deduplication and assembly."""

from parley.engine.assembler import ReconciliationState, StreamAssembler, TranscriptBuffer
from parley.engine.dedup import Deduplicator
from parley.engine.normalizer import normalize, normalize_relay_frame, normalize_session_message

__all__ = [
    "Deduplicator",
    "ReconciliationState",
    "StreamAssembler",
    "TranscriptBuffer",
    "normalize",
    "normalize_relay_frame",
    "normalize_session_message",
]
