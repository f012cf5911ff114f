"""Map raw transport records onto the canonical event vocabulary."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

from parley.types import (
    CanonicalEvent,
    ErrorEvent,
    EventSource,
    InputFinalEvent,
    Mode,
    OutputDeltaEvent,
    OutputFinalEvent,
)

INPUT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
OUTPUT_DELTA_TYPES = frozenset(
    {
        "response.text.delta",
        "response.output_text.delta",
        "response.audio_transcript.delta",
        "response.output_audio_transcript.delta",
    }
)
OUTPUT_ITEM_DONE = "response.output_item.done"
RESPONSE_DONE = "response.done"
ERROR_TYPE = "error"

DEFAULT_SESSION_ERROR = "An error occurred with the Realtime API"


def _item_get(item: object, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def _first_part_text(content: object) -> str:
    """Return the first non-empty ``text`` or ``transcript`` of a content list."""
    if not isinstance(content, list):
        return ""
    for part in content:
        for key in ("text", "transcript"):
            value = _item_get(part, key, None)
            if isinstance(value, str) and value.strip():
                return value
    return ""


def _first_item_text(items: Iterable[object]) -> Tuple[str, str]:
    for item in items:
        text = _first_part_text(_item_get(item, "content", None))
        if text:
            return str(_item_get(item, "id", "") or ""), text
    return "", ""


def normalize_session_message(record: Dict[str, Any], *, mode: Mode) -> Optional[CanonicalEvent]:
    """Normalize one session-channel message."""
    event_type = str(record.get("type", ""))

    if event_type == INPUT_TRANSCRIPTION_COMPLETED:
        item_id = record.get("item_id") or record.get("event_id") or ""
        return InputFinalEvent(item_id=str(item_id), text=str(record.get("transcript") or ""))

    if event_type in OUTPUT_DELTA_TYPES:
        # The response channel only carries authoritative text when translating.
        if mode is not Mode.TRANSLATE:
            return None
        delta = record.get("delta") or ""
        if not delta:
            return None
        return OutputDeltaEvent(delta=str(delta))

    if event_type == OUTPUT_ITEM_DONE:
        item = record.get("item") or {}
        text = _first_part_text(_item_get(item, "content", None))
        if not text:
            return None
        return OutputFinalEvent(item_id=str(_item_get(item, "id", "") or ""), text=text)

    if event_type == RESPONSE_DONE:
        response = record.get("response") or {}
        output = _item_get(response, "output", None)
        if not isinstance(output, list):
            return None
        item_id, text = _first_item_text(output)
        if not text:
            return None
        return OutputFinalEvent(item_id=item_id or str(_item_get(response, "id", "") or ""), text=text)

    if event_type == ERROR_TYPE:
        error = record.get("error")
        message = _item_get(error, "message", None) if error is not None else None
        return ErrorEvent(message=str(message or DEFAULT_SESSION_ERROR))

    return None


def normalize_relay_frame(
    record: Dict[str, Any],
    *,
    mode: Mode,
    request_id: str,
) -> Optional[CanonicalEvent]:
    """Normalize one decoded relay-stream frame body."""
    if "error" in record:
        message = str(record.get("error") or "relay error")
        detail = record.get("detail")
        if detail:
            message = f"{message}: {detail}"
        return ErrorEvent(message=message)

    if record.get("done") is True and "translation" in record:
        return OutputFinalEvent(
            item_id=f"{request_id}:translation",
            text=str(record.get("translation") or ""),
        )

    if "partialTranslation" in record:
        if mode is not Mode.TRANSLATE:
            return None
        delta = record.get("partialTranslation") or ""
        if not delta:
            return None
        return OutputDeltaEvent(delta=str(delta))

    if "transcript" in record:
        return InputFinalEvent(
            item_id=f"{request_id}:transcript",
            text=str(record.get("transcript") or ""),
        )

    return None


def normalize(
    record: Dict[str, Any],
    *,
    source: EventSource,
    mode: Mode,
    request_id: Optional[str] = None,
) -> Optional[CanonicalEvent]:
    """Dispatch a record to the normalizer for its transport."""
    if source == "relay":
        return normalize_relay_frame(record, mode=mode, request_id=request_id or "relay")
    return normalize_session_message(record, mode=mode)
