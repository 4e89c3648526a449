"""
Event dispatcher — routes decoded frames to typed handlers.

Nothing raised while decoding or handling a frame leaves `dispatch`; problems
are kept as `Diagnostic` records and logged instead.
"""

import json
import logging
from typing import Any, Callable, Mapping, NamedTuple, Optional, Union

from taskstream.models.events import EventKind
from taskstream.transport.frames import RawEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
HandlerMap = Mapping[Union[EventKind, str], Handler]

MALFORMED_FRAME = "malformed_frame"
PAYLOAD_DECODE = "payload_decode"
HANDLER_ERROR = "handler_error"


class Diagnostic(NamedTuple):
    kind: str
    event: str
    detail: str


class EventDispatcher:
    def __init__(self, handlers: Optional[HandlerMap] = None):
        self._handlers: dict[EventKind, Handler] = {}
        self.diagnostics: list[Diagnostic] = []
        for name, handler in (handlers or {}).items():
            self.register(name, handler)

    def register(self, name: Union[EventKind, str], handler: Handler) -> None:
        kind = name if isinstance(name, EventKind) else EventKind.parse(name)
        if kind is None:
            raise ValueError(f"Unknown event kind: {name!r}")
        self._handlers[kind] = handler

    def _diagnose(self, kind: str, event: str, detail: str) -> None:
        self.diagnostics.append(Diagnostic(kind, event, detail))

    def dispatch(self, raw: RawEvent) -> bool:
        """Deliver one frame. Returns True when a handler was invoked."""
        if raw.malformed:
            logger.warning("Skipping malformed frame for event %r", raw.name)
            self._diagnose(MALFORMED_FRAME, raw.name, raw.payload[:200])
            return False

        kind = EventKind.parse(raw.name)
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            logger.debug("No handler for event %r, dropped", raw.name)
            return False

        try:
            parsed = json.loads(raw.payload)
        except ValueError as e:
            logger.warning("Failed to parse payload for event %r: %s", raw.name, e)
            self._diagnose(PAYLOAD_DECODE, raw.name, str(e))
            argument: Any = raw.payload
        else:
            if isinstance(parsed, dict) and raw.name in parsed:
                argument = parsed[raw.name]
            else:
                argument = parsed

        try:
            handler(argument)
        except Exception as e:
            logger.exception("Handler for event %r failed", raw.name)
            self._diagnose(HANDLER_ERROR, raw.name, str(e))
        return True
