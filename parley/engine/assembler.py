"""Commit policy state machine for canonical transcript events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from parley.engine.dedup import Deduplicator
from parley.types import (
    AssemblerState,
    CanonicalEvent,
    ErrorEvent,
    InputFinalEvent,
    Mode,
    OutputDeltaEvent,
    OutputFinalEvent,
)

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str], None]


class TranscriptBuffer:
    """Append-only list of committed transcript segments."""

    def __init__(self) -> None:
        self._segments: List[str] = []

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self._segments)

    @property
    def text(self) -> str:
        return " ".join(self._segments)

    def append(self, text: str) -> None:
        self._segments.append(text)

    def clear(self) -> None:
        """Explicit user clear; the engine never calls this."""
        self._segments.clear()

    def __len__(self) -> int:
        return len(self._segments)


@dataclass
class ReconciliationState:
    """Everything the assembler mutates while a session runs."""

    transcript: TranscriptBuffer = field(default_factory=TranscriptBuffer)
    seen: Deduplicator = field(default_factory=Deduplicator)
    pending: List[str] = field(default_factory=list)
    phase: AssemblerState = AssemblerState.LISTENING


class StreamAssembler:
    """Decide when canonical events are committed to the transcript.

    In ``transcribe`` mode only finalized input speech is committed. In
    ``translate`` mode output deltas accumulate into a pending response that
    is replaced by the finalized output once it arrives. Finalization events
    pass through the deduplicator so a replayed final commits at most once.
    """

    def __init__(
        self,
        *,
        mode: Mode,
        state: Optional[ReconciliationState] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.mode = Mode.from_value(mode)
        self.state = state or ReconciliationState()
        self._on_error = on_error

    @property
    def transcript(self) -> TranscriptBuffer:
        return self.state.transcript

    @property
    def phase(self) -> AssemblerState:
        return self.state.phase

    @property
    def current_partial(self) -> str:
        return "".join(self.state.pending)

    def reset(self) -> None:
        """Drop any pending response and return to listening."""
        self.state.pending.clear()
        self.state.phase = AssemblerState.LISTENING

    def _commit(self, text: str) -> bool:
        cleaned = text.strip()
        if not cleaned:
            return False
        self.state.transcript.append(cleaned)
        return True

    def apply(self, event: CanonicalEvent) -> bool:
        """Apply one event; return whether the transcript grew."""
        if isinstance(event, ErrorEvent):
            logger.warning("Remote error event: %s", event.message)
            if self._on_error is not None:
                self._on_error(event.message)
            return False

        if self.mode is Mode.TRANSCRIBE:
            if not isinstance(event, InputFinalEvent):
                return False
            if not self.state.seen.admit(event.item_id):
                logger.debug("Skipping duplicate input final item_id=%s", event.item_id)
                return False
            return self._commit(event.text)

        if isinstance(event, InputFinalEvent):
            # Source-language speech is not displayed while translating.
            self.state.seen.admit(event.item_id)
            logger.debug("Source transcript item_id=%s chars=%d", event.item_id, len(event.text))
            return False

        if isinstance(event, OutputDeltaEvent):
            if event.delta:
                self.state.pending.append(event.delta)
                self.state.phase = AssemblerState.STREAMING
            return False

        if isinstance(event, OutputFinalEvent):
            committed = False
            if self.state.seen.admit(event.item_id):
                committed = self._commit(event.text)
            else:
                logger.debug("Skipping duplicate output final item_id=%s", event.item_id)
            self.reset()
            return committed

        return False
