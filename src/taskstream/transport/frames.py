"""
Frame decoder for the task event stream.

Wire format: an `event:` line, one or more `data:` lines, and a blank line
terminating the frame. Partial frames are buffered across chunk boundaries
and a frame that is never terminated is never emitted.
"""

import codecs
import logging
from typing import NamedTuple, Union

logger = logging.getLogger(__name__)

FRAME_TERMINATOR = "\n\n"
COMMENT_MARKER = ":"
EVENT_MARKER = "event:"
DATA_MARKER = "data:"
DEFAULT_EVENT_NAME = "message"


class RawEvent(NamedTuple):
    name: str
    payload: str
    malformed: bool = False


class FrameDecoder:
    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Unterminated text still held in the buffer."""
        return self._buffer

    def feed(self, chunk: Union[str, bytes]) -> list[RawEvent]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        events: list[RawEvent] = []
        boundary = self._buffer.find(FRAME_TERMINATOR)
        while boundary != -1:
            frame = self._buffer[:boundary].strip()
            self._buffer = self._buffer[boundary + len(FRAME_TERMINATOR):]
            if frame and not frame.startswith(COMMENT_MARKER):
                events.append(self._parse_frame(frame))
            boundary = self._buffer.find(FRAME_TERMINATOR)
        return events

    @staticmethod
    def _parse_frame(frame: str) -> RawEvent:
        name = DEFAULT_EVENT_NAME
        payload = ""
        malformed = False
        for line in frame.split("\n"):
            if line.startswith(EVENT_MARKER):
                name = line[len(EVENT_MARKER):].strip()
            elif line.startswith(DATA_MARKER):
                payload += line[len(DATA_MARKER):].strip()
            elif line.strip():
                logger.warning("Non-standard line in stream frame: %r", line)
                malformed = True
        return RawEvent(name=name, payload=payload, malformed=malformed)
