from taskstream.transport.dispatch import Diagnostic, EventDispatcher
from taskstream.transport.frames import FrameDecoder, RawEvent
from taskstream.transport.http import DEFAULT_BASE_URL, HttpClient
from taskstream.transport.stream import CancellationToken, SessionHandle, StreamState, StreamTransport

__all__ = [
    "CancellationToken",
    "DEFAULT_BASE_URL",
    "Diagnostic",
    "EventDispatcher",
    "FrameDecoder",
    "HttpClient",
    "RawEvent",
    "SessionHandle",
    "StreamState",
    "StreamTransport",
]
