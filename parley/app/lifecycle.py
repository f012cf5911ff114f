"""Session lifecycle for the reconciliation pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Optional, Protocol, Set, Tuple

from parley.engine.assembler import ReconciliationState, StreamAssembler, TranscriptBuffer
from parley.engine.normalizer import normalize
from parley.errors import ConfigError, ParleyError, ParseError, ProtocolError, TransportError
from parley.protocol.reassembler import aiter_lines, parse_data_line
from parley.types import (
    AssemblerState,
    EventSource,
    Mode,
    Session,
    SessionConfig,
    SessionStatus,
    TranscriptView,
)

logger = logging.getLogger(__name__)


class SessionChannel(Protocol):
    """Bidirectional low-latency event channel.

    ``close()`` must be idempotent, and a close that lands while ``open()`` is
    still connecting must also release the connection that open then obtains.
    """

    async def open(self) -> None: ...

    def messages(self) -> AsyncIterator[Dict[str, Any]]: ...

    async def close(self) -> None: ...


ChannelFactory = Callable[[Session], SessionChannel]
UpdateCallback = Callable[[TranscriptView], None]
ErrorCallback = Callable[[str], None]


@dataclass(frozen=True)
class _Inbound:
    source: EventSource
    record: Dict[str, Any]
    request_id: Optional[str] = None


class SessionLifecycle:
    """Own start/stop of one reconciliation session at a time.

    Every inbound record, from either transport, goes through a single queue
    drained by one consumer task, so events are applied strictly in arrival
    order. ``stop()`` flips the session status before releasing anything, and
    the consumer checks that status before touching each event.
    """

    def __init__(
        self,
        *,
        channel_factory: Optional[ChannelFactory] = None,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        stop_on_protocol_error: bool = False,
    ) -> None:
        self._channel_factory = channel_factory
        self._on_update = on_update
        self._on_error = on_error
        self._stop_on_protocol_error = stop_on_protocol_error

        self._state = ReconciliationState()
        self._session: Optional[Session] = None
        self._queue: Optional[asyncio.Queue[_Inbound]] = None
        self._consumer: Optional[asyncio.Task[None]] = None
        self._pump: Optional[asyncio.Task[None]] = None
        self._channel: Optional[SessionChannel] = None
        self._teardown_tasks: Set[asyncio.Task[None]] = set()
        self._last_error: Optional[ParleyError] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status if self._session is not None else SessionStatus.IDLE

    @property
    def last_error(self) -> Optional[ParleyError]:
        """Most recent protocol or transport error, across sessions."""
        return self._last_error

    @property
    def transcript(self) -> TranscriptBuffer:
        return self._state.transcript

    @property
    def view(self) -> TranscriptView:
        session = self._session
        return TranscriptView(
            segments=self._state.transcript.segments,
            current_partial="".join(self._state.pending),
            status=self.status,
            error=session.error if session is not None else None,
        )

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self.view)

    def _validate(self, config: SessionConfig) -> Tuple[Mode, str]:
        try:
            mode = Mode.from_value(config.mode)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        language = (config.target_language or "").strip()
        if mode is Mode.TRANSLATE and not language:
            raise ConfigError("Translate mode requires a target language")
        if config.use_session_channel and self._channel_factory is None:
            raise ConfigError("Session channel requested but no channel factory is configured")
        return mode, language

    async def start(self, config: SessionConfig) -> Session:
        """Start a new session and wire its event sources."""
        mode, language = self._validate(config)

        if self._session is not None and self._session.status in (SessionStatus.CONNECTING, SessionStatus.ACTIVE):
            await self.stop()

        session = Session(
            session_id=uuid.uuid4().hex,
            mode=mode,
            target_language=language,
            status=SessionStatus.CONNECTING,
        )
        self._session = session
        self._state.seen.reset()
        self._state.pending.clear()
        self._state.phase = AssemblerState.LISTENING

        assembler = StreamAssembler(
            mode=mode,
            state=self._state,
            on_error=lambda message: self._handle_protocol_error(session, message),
        )
        queue: asyncio.Queue[_Inbound] = asyncio.Queue()
        self._queue = queue
        self._consumer = asyncio.create_task(
            self._consume(session, assembler, queue),
            name=f"parley-consumer-{session.session_id[:8]}",
        )
        self._notify()

        channel: Optional[SessionChannel] = None
        try:
            if config.use_session_channel and self._channel_factory is not None:
                channel = self._channel_factory(session)
                self._channel = channel
                await channel.open()

            if session.status is not SessionStatus.CONNECTING:
                # Stopped while the channel was opening; stop() may have closed it too early.
                await self._release_channel(channel)
                return session

            session.status = SessionStatus.ACTIVE
            if channel is not None:
                self._pump = asyncio.create_task(
                    self._pump_channel(session, channel, queue),
                    name=f"parley-channel-{session.session_id[:8]}",
                )
        except asyncio.CancelledError:
            await self.stop()
            raise
        except Exception as exc:
            if session.status is not SessionStatus.CONNECTING:
                logger.debug("Session %s open failed after stop: %s", session.session_id, exc)
                await self._release_channel(channel)
                return session
            logger.warning("Session %s failed to start: %s", session.session_id, exc)
            error = exc if isinstance(exc, TransportError) else TransportError(f"Session start failed: {exc}")
            session.status = SessionStatus.ERRORED
            session.error = str(error)
            self._last_error = error
            await self.stop()
            if error is exc:
                raise
            raise error from exc

        logger.info(
            "Session %s active mode=%s language=%s channel=%s",
            session.session_id,
            mode.value,
            language or "-",
            bool(config.use_session_channel),
        )
        self._notify()
        return session

    async def stop(self) -> None:
        """Tear the current session down; safe to call any number of times."""
        session = self._session
        if session is None:
            return

        pump, consumer, channel, queue = self._pump, self._consumer, self._channel, self._queue
        if session.status in (SessionStatus.STOPPED, SessionStatus.ERRORED) and not any(
            resource is not None for resource in (pump, consumer, channel, queue)
        ):
            return

        # Flip status before releasing resources so late events are discarded.
        if session.status is not SessionStatus.ERRORED:
            session.status = SessionStatus.STOPPED
        self._pump = None
        self._consumer = None
        self._channel = None
        self._queue = None

        current = asyncio.current_task()
        tasks = [task for task in (pump, consumer) if task is not None and task is not current]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._release_channel(channel)

        if queue is not None:
            while True:
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                queue.task_done()

        self._state.pending.clear()
        self._state.phase = AssemblerState.LISTENING
        logger.info("Session %s %s", session.session_id, session.status.value)
        self._notify()

    async def __aenter__(self) -> "SessionLifecycle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def clear_transcript(self) -> None:
        """Explicit user clear of the committed transcript."""
        self._state.transcript.clear()
        self._notify()

    def deliver(
        self,
        record: Dict[str, Any],
        *,
        source: EventSource = "session",
        request_id: Optional[str] = None,
    ) -> bool:
        """Queue one decoded inbound record; return False when it was dropped."""
        session = self._session
        queue = self._queue
        if session is None or queue is None or not session.is_active:
            logger.debug("Dropping %s record; no active session", source)
            return False
        queue.put_nowait(_Inbound(source=source, record=record, request_id=request_id))
        return True

    async def drain(self) -> None:
        """Wait until every queued record has been applied."""
        queue = self._queue
        if queue is not None:
            await queue.join()

    async def run_relay(self, chunks: AsyncIterable[bytes], *, request_id: Optional[str] = None) -> None:
        """Pump one relay stream through the pipeline and wait until it is applied."""
        session = self._session
        queue = self._queue
        if session is None or queue is None or not session.is_active:
            logger.debug("Ignoring relay stream; no active session")
            return

        request_id = request_id or uuid.uuid4().hex
        try:
            async for line in aiter_lines(chunks):
                if not session.is_active:
                    break
                try:
                    record = parse_data_line(line)
                except ParseError as exc:
                    logger.debug("Dropping relay line: %s", exc)
                    continue
                queue.put_nowait(_Inbound(source="relay", record=record, request_id=request_id))
        except asyncio.CancelledError:
            raise
        except TransportError as exc:
            await queue.join()
            await self._fail(session, exc)
            raise
        except Exception as exc:
            error = TransportError(f"Relay stream failed: {exc}")
            await queue.join()
            await self._fail(session, error)
            raise error from exc

        await queue.join()

    async def _pump_channel(
        self,
        session: Session,
        channel: SessionChannel,
        queue: asyncio.Queue[_Inbound],
    ) -> None:
        try:
            async for record in channel.messages():
                if not session.is_active:
                    break
                queue.put_nowait(_Inbound(source="session", record=record))
        except Exception as exc:
            error = exc if isinstance(exc, TransportError) else TransportError(f"Session channel failed: {exc}")
            await queue.join()
            await self._fail(session, error)
            return

        if session.is_active:
            logger.info("Session channel closed by remote")
            await queue.join()
            await self.stop()

    async def _consume(
        self,
        session: Session,
        assembler: StreamAssembler,
        queue: asyncio.Queue[_Inbound],
    ) -> None:
        while True:
            item = await queue.get()
            try:
                self._handle(session, assembler, item)
            except Exception:
                logger.exception("Failed to apply %s record", item.source)
            finally:
                queue.task_done()

    def _handle(self, session: Session, assembler: StreamAssembler, item: _Inbound) -> None:
        if session.status is not SessionStatus.ACTIVE:
            logger.debug("Discarding %s record after teardown", item.source)
            return

        event = normalize(item.record, source=item.source, mode=session.mode, request_id=item.request_id)
        if event is None:
            return
        assembler.apply(event)
        self._notify()

    def _handle_protocol_error(self, session: Session, message: str) -> None:
        self._last_error = ProtocolError(message)
        session.error = message
        if self._on_error is not None:
            self._on_error(message)
        if self._stop_on_protocol_error and session.is_active:
            session.status = SessionStatus.STOPPED
            task = asyncio.get_running_loop().create_task(self._stop_if_current(session))
            self._teardown_tasks.add(task)
            task.add_done_callback(self._teardown_tasks.discard)

    async def _fail(self, session: Session, error: TransportError) -> None:
        if session.status in (SessionStatus.STOPPED, SessionStatus.ERRORED):
            return
        logger.error("Session %s transport failure: %s", session.session_id, error)
        session.status = SessionStatus.ERRORED
        session.error = str(error)
        self._last_error = error
        if self._on_error is not None:
            self._on_error(str(error))
        if session is self._session:
            await self.stop()

    async def _stop_if_current(self, session: Session) -> None:
        if session is self._session:
            await self.stop()

    async def _release_channel(self, channel: Optional[SessionChannel]) -> None:
        if channel is None:
            return
        try:
            await channel.close()
        except Exception as exc:
            logger.warning("Failed to close session channel: %s", exc)
