"""Byte-chunk to protocol-line reassembly for relay streams."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, Iterator, List

from parley.errors import ParseError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


def parse_data_line(line: str) -> Dict[str, Any]:
    """Decode the JSON body of one ``data:`` line."""
    if not line.startswith(DATA_PREFIX):
        raise ParseError(f"Missing data marker: {line[:40]!r}")
    body = line[len(DATA_PREFIX) :].strip()
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid frame body: {exc}") from exc
    if not isinstance(payload, dict):
        raise ParseError("Frame body is not a JSON object")
    return payload


class RawChunkReassembler:
    """Turn arbitrarily split byte chunks into complete ``data:`` lines.

    Bytes are buffered until a newline arrives, so lines are only decoded
    once complete and a multi-byte character split across chunks decodes
    correctly. The ``data: [DONE]`` sentinel ends the stream; anything fed
    afterwards is ignored.
    """

    def __init__(self) -> None:
        self._carry = b""
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, chunk: bytes) -> List[str]:
        if self._done or not chunk:
            return []

        self._carry += chunk
        *complete, self._carry = self._carry.split(b"\n")
        return self._emit(complete)

    def finish(self) -> List[str]:
        """Flush a trailing line that was never newline-terminated."""
        if self._done or not self._carry:
            return []
        tail, self._carry = self._carry, b""
        return self._emit([tail])

    def _emit(self, raw_lines: List[bytes]) -> List[str]:
        lines: List[str] = []
        for raw in raw_lines:
            if self._done:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if not line or line.startswith(":"):
                continue
            if line.strip() == DONE_SENTINEL:
                self._done = True
                self._carry = b""
                break
            if not line.startswith(DATA_PREFIX):
                continue
            try:
                parse_data_line(line)
            except ParseError as exc:
                logger.debug("Dropping malformed relay line: %s", exc)
                continue
            lines.append(line)
        return lines


def iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield complete protocol lines from a synchronous chunk sequence."""
    reassembler = RawChunkReassembler()
    for chunk in chunks:
        yield from reassembler.feed(chunk)
        if reassembler.done:
            return
    yield from reassembler.finish()


async def aiter_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield complete protocol lines from an async chunk source."""
    reassembler = RawChunkReassembler()
    async for chunk in chunks:
        for line in reassembler.feed(chunk):
            yield line
        if reassembler.done:
            return
    for line in reassembler.finish():
        yield line
