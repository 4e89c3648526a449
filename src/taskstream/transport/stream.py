"""
Streaming transport — one POST, one read loop, typed events out.

Lifecycle per session:

    IDLE -> OPENING -> OPEN -> CLOSING -> CLOSED
                 \\        \\
                  +--------+-> FAILED -> CLOSED

`on_open` fires when a successful response starts, `on_error` fires once on a
non-success status or a connection error (no retry), `on_close` fires once on
end-of-stream or cancellation. Hook and handler exceptions are logged, never
raised into the caller.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from taskstream.errors import TransportError
from taskstream.transport.dispatch import Diagnostic, EventDispatcher, HandlerMap
from taskstream.transport.frames import FrameDecoder
from taskstream.transport.http import HttpClient

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({"failed", "closed"})


class StreamState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    FAILED = "failed"
    CLOSED = "closed"


class CancellationToken:
    """Checked by the read loop after every suspension point and before every dispatch."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class SessionHandle:
    def __init__(
        self,
        dispatcher: EventDispatcher,
        on_open: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.state = StreamState.IDLE
        self.events_dispatched = 0
        self.error: Optional[TransportError] = None
        self.token = CancellationToken()
        self._dispatcher = dispatcher
        self._on_open = on_open
        self._on_error = on_error
        self._on_close = on_close
        self._close_fired = False
        self._task: Optional[asyncio.Task[None]] = None

    def __repr__(self) -> str:
        return f"SessionHandle(id={self.id!r}, state={self.state.value!r})"

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self._dispatcher.diagnostics

    @property
    def active(self) -> bool:
        return self.state.value not in TERMINAL_STATES and not self.token.cancelled

    def cancel(self) -> None:
        """Stop delivering events. Idempotent, safe after completion, never raises."""
        if self.token.cancelled:
            return
        self.token.cancel()
        if self.state.value in TERMINAL_STATES:
            return
        self.state = StreamState.CLOSING
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A handler cancelling its own session just lets the loop see the token.
        if task is not current:
            task.cancel()

    async def wait(self) -> None:
        """Wait for the read loop to finish. Never raises."""
        if self._task is not None:
            await asyncio.wait([self._task])

    def _fire(self, hook: Optional[Callable[..., None]], *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Stream hook %r failed", getattr(hook, "__name__", hook))

    def _mark_open(self) -> bool:
        if self.token.cancelled:
            return False
        self.state = StreamState.OPEN
        self._fire(self._on_open)
        return True

    def _fail(self, error: TransportError) -> None:
        if self.state is StreamState.FAILED or self.token.cancelled:
            return
        logger.warning("Stream session %s failed: %s", self.id, error)
        self.state = StreamState.FAILED
        self.error = error
        self._fire(self._on_error, error)

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            logger.error("Stream session %s crashed: %r", self.id, exc)
            self._fail(TransportError(f"Stream read loop crashed: {exc}"))
        if self.state is StreamState.FAILED:
            self.state = StreamState.CLOSED
            return
        self.state = StreamState.CLOSED
        if not self._close_fired:
            self._close_fired = True
            self._fire(self._on_close)


class StreamTransport:
    def __init__(self, http: HttpClient):
        self._http = http

    def open(
        self,
        path: str,
        body: dict[str, Any],
        handlers: Optional[HandlerMap] = None,
        *,
        on_open: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> SessionHandle:
        """Issue the request and start the read loop. Must run inside an event loop."""
        handle = SessionHandle(EventDispatcher(handlers), on_open=on_open, on_error=on_error, on_close=on_close)
        handle.state = StreamState.OPENING
        task = asyncio.get_running_loop().create_task(self._read_loop(handle, path, body))
        handle._task = task
        task.add_done_callback(handle._on_done)
        logger.debug("Opened stream session %s for %s", handle.id, path)
        return handle

    @staticmethod
    def cancel(handle: Optional[SessionHandle]) -> None:
        if handle is not None:
            handle.cancel()

    async def _read_loop(self, handle: SessionHandle, path: str, body: dict[str, Any]) -> None:
        token = handle.token
        decoder = FrameDecoder()
        try:
            async with self._http.stream(path, body) as resp:
                if token.cancelled:
                    return
                if resp.status_code >= 400:
                    detail = (await resp.aread()).decode("utf-8", errors="replace")[:200]
                    handle._fail(TransportError(f"HTTP {resp.status_code}: {detail}", status_code=resp.status_code))
                    return
                if not handle._mark_open():
                    return
                async for text in resp.aiter_text():
                    if token.cancelled:
                        break
                    for raw in decoder.feed(text):
                        if token.cancelled:
                            break
                        if handle._dispatcher.dispatch(raw):
                            handle.events_dispatched += 1
                    if token.cancelled:
                        break
                if decoder.pending.strip() and not token.cancelled:
                    logger.debug("Dropping unterminated frame at end of stream %s", handle.id)
        except httpx.HTTPError as e:
            handle._fail(TransportError(str(e) or "connection failed or timed out"))
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
