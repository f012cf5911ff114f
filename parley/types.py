"""Core reconciliation types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional, Tuple, Union


class Mode(str, Enum):
    """Operating mode of a session."""

    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"

    @classmethod
    def from_value(cls, value: Union[str, "Mode"]) -> "Mode":
        """Convert a raw value to a mode enum."""
        if isinstance(value, cls):
            return value

        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(f"Unsupported session mode: {value}")


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    STOPPED = "stopped"
    ERRORED = "errored"


class AssemblerState(str, Enum):
    """Stream assembler state."""

    LISTENING = "listening"
    STREAMING = "streaming"


EventSource = Literal["session", "relay"]


@dataclass(frozen=True)
class InputFinalEvent:
    type: Literal["input_final"] = "input_final"
    item_id: str = ""
    text: str = ""


@dataclass(frozen=True)
class OutputDeltaEvent:
    type: Literal["output_delta"] = "output_delta"
    delta: str = ""


@dataclass(frozen=True)
class OutputFinalEvent:
    type: Literal["output_final"] = "output_final"
    item_id: str = ""
    text: str = ""


@dataclass(frozen=True)
class ErrorEvent:
    type: Literal["error"] = "error"
    message: str = ""


CanonicalEvent = Union[
    InputFinalEvent,
    OutputDeltaEvent,
    OutputFinalEvent,
    ErrorEvent,
]


@dataclass(frozen=True)
class SessionConfig:
    """Startup parameters for one reconciliation session."""

    mode: Union[Mode, str] = Mode.TRANSCRIBE
    target_language: str = ""
    use_session_channel: bool = False


@dataclass
class Session:
    """One active reconciliation context."""

    session_id: str
    mode: Mode
    target_language: str = ""
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE


@dataclass(frozen=True)
class TranscriptView:
    """Read-only egress snapshot consumed by renderers."""

    segments: Tuple[str, ...] = field(default_factory=tuple)
    current_partial: str = ""
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[str] = None

    @property
    def text(self) -> str:
        return " ".join(self.segments)
