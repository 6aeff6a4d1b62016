"""Streaming bridge.

Bridges push-style event production into an ordered, cancellable async
sequence. A consumer opens a session and iterates the returned
``StreamSequence``; a producer, possibly running on a thread the consumer
does not control, pushes text events by session token and finally ends or
fails the session.

- ``push`` appends under the session lock, so concurrent producers on one
  session are serialized and events are delivered in the order their
  ``push`` calls completed.
- The consumer is woken through ``loop.call_soon_threadsafe``; the producer
  call is a plain enqueue and never blocks on the consumer.
- ``end`` lets the consumer drain what is already queued, then stops.
- ``fail`` lets the consumer drain what is already queued, then raises
  ``StreamFailedError`` once.
- When the consumer stops early (``aclose``, leaving ``async with``, task
  cancellation, or dropping the sequence), the session is cancelled and any
  later ``push``/``end``/``fail`` is a silent no-op.

Only the session map and each session's own queue are locked; unrelated
sessions never wait on each other.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
import weakref
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from ..core.logging_config import get_logger
from ..errors import StreamFailedError
from ..schemas.domain import SessionState

logger = get_logger(__name__)

_TERMINAL_STATES = frozenset({SessionState.ended, SessionState.errored, SessionState.cancelled})


class StreamSession:
    """Ordered delivery queue and state for one streaming session."""

    def __init__(self, token: str) -> None:
        self.token = token
        self._lock = threading.Lock()
        self._events: Deque[str] = deque()
        self._state = SessionState.open
        self._reason: Optional[str] = None
        self._failure_surfaced = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def pending(self) -> int:
        with self._lock:
            return len(self._events)

    # Producer side

    def push(self, event_text: str) -> bool:
        with self._lock:
            if self._state is not SessionState.open:
                return False
            self._events.append(event_text)
            self._notify_locked()
        return True

    def end(self) -> bool:
        return self._transition(SessionState.ended)

    def fail(self, reason: str) -> bool:
        return self._transition(SessionState.errored, reason)

    def cancel(self) -> bool:
        with self._lock:
            if self._state is not SessionState.open:
                return False
            self._state = SessionState.cancelled
            self._events.clear()
            self._notify_locked()
        return True

    def _transition(self, state: SessionState, reason: Optional[str] = None) -> bool:
        with self._lock:
            if self._state is not SessionState.open:
                return False
            self._state = state
            self._reason = reason
            self._notify_locked()
        return True

    def _notify_locked(self) -> None:
        if self._loop is None or self._wakeup is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError:
            # consumer loop already closed; nobody is left to wake
            logger.debug(f"Stream session {self.token}: consumer loop closed, wakeup skipped")

    # Consumer side

    def _bind_loop(self) -> asyncio.Event:
        with self._lock:
            if self._wakeup is None:
                self._loop = asyncio.get_running_loop()
                self._wakeup = asyncio.Event()
            return self._wakeup

    async def next_event(self) -> Optional[str]:
        """Wait for the next event.

        Returns:
            The next event text, or ``None`` once the session is finished.

        Raises:
            StreamFailedError: Once, after queued events, when the session failed.
        """
        wakeup = self._bind_loop()
        while True:
            with self._lock:
                if self._events:
                    return self._events.popleft()
                if self._state is SessionState.errored and not self._failure_surfaced:
                    self._failure_surfaced = True
                    raise StreamFailedError(self.token, self._reason or "stream failed")
                if self._state in _TERMINAL_STATES:
                    return None
                wakeup.clear()
            await wakeup.wait()


class StreamSequence:
    """Lazy, finite, non-restartable async sequence of one session's events.

    Usable with ``async for`` directly or as an async context manager that
    cancels the session on early exit.
    """

    def __init__(self, bridge: StreamingBridge, session: StreamSession) -> None:
        self._bridge = bridge
        self._session = session
        self._finished = False
        self._finalizer = weakref.finalize(self, bridge._release, session.token, True)

    @property
    def token(self) -> str:
        return self._session.token

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> StreamSequence:
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        try:
            event = await self._session.next_event()
        except StreamFailedError:
            self._finish(cancel=False)
            raise
        except asyncio.CancelledError:
            self._finish(cancel=True)
            raise
        if event is None:
            self._finish(cancel=False)
            raise StopAsyncIteration
        return event

    async def aclose(self) -> None:
        """Stop consuming; cancels the session if the producer has not finished it."""
        self._finish(cancel=True)

    async def __aenter__(self) -> StreamSequence:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _finish(self, *, cancel: bool) -> None:
        if self._finished:
            return
        self._finished = True
        self._finalizer.detach()
        self._bridge._release(self._session.token, cancel)


class StreamingBridge:
    """Correlates session tokens with ordered delivery queues."""

    def __init__(self) -> None:
        self._sessions: Dict[str, StreamSession] = {}
        self._lock = threading.Lock()

    def open_session(self) -> Tuple[str, StreamSequence]:
        """
        Create a session.

        Returns:
            The opaque session token and the consumer's sequence.
        """
        token = uuid.uuid4().hex
        session = StreamSession(token)
        with self._lock:
            self._sessions[token] = session
        logger.debug(f"Stream session opened: {token}")
        return token, StreamSequence(self, session)

    def _session(self, token: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(token)

    def push(self, token: str, event_text: str) -> None:
        """Append an event; a no-op when the session is unknown or no longer open."""
        if not isinstance(event_text, str):
            raise TypeError(f"event_text must be str, got {type(event_text).__name__}")
        session = self._session(token)
        if session is None or not session.push(event_text):
            logger.debug(f"Stream push ignored for inactive session {token}")

    def end(self, token: str) -> None:
        """Mark the session ended once already-queued events are delivered."""
        session = self._session(token)
        if session is not None and session.end():
            logger.debug(f"Stream session ended: {token}")

    def fail(self, token: str, reason: str) -> None:
        """Mark the session errored; the consumer sees ``reason`` after queued events."""
        session = self._session(token)
        if session is not None and session.fail(reason):
            logger.info(f"Stream session failed: {token} ({reason})")

    def callback(self, token: str) -> Callable[[Optional[str]], None]:
        """Producer callable: text pushes an event, ``None`` ends the stream."""

        def on_event(event_text: Optional[str]) -> None:
            if event_text is None:
                self.end(token)
            else:
                self.push(token, event_text)

        return on_event

    def state(self, token: str) -> Optional[SessionState]:
        session = self._session(token)
        return session.state if session is not None else None

    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self) -> None:
        """Cancel every live session; used at teardown."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.cancel()
        logger.debug(f"Streaming bridge closed ({len(sessions)} sessions cancelled)")

    def _release(self, token: str, cancel: bool) -> None:
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None and cancel and session.cancel():
            logger.debug(f"Stream session cancelled by consumer: {token}")
