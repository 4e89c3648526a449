"""
Transcript engine — ordered message list with typed updates to the last agent entry.

Only the most recent message can change, and only when it is an agent
message. Every write goes through the transcript's lock so a stream read loop
and a polling fetch never interleave on the same entry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from taskstream.models.message import ImagePart, Message, StructuredPart
from taskstream.models.task import TaskStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class AddImage:
    image: ImagePart


@dataclass(frozen=True)
class AddPart:
    part: StructuredPart


@dataclass(frozen=True)
class MetadataPatch:
    metadata: dict[str, Any]


@dataclass(frozen=True)
class FinalPatch:
    """Terminal update: replaces content, merges metadata, sets follow-ups."""
    answer: str
    metadata: Optional[dict[str, Any]] = None
    suggested_follow_ups: Optional[list[str]] = field(default=None)


Update = Union[TextDelta, AddImage, AddPart, MetadataPatch, FinalPatch]


class Transcript:
    def __init__(self, messages: Optional[list[Message]] = None):
        self._messages: list[Message] = list(messages or [])
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the entries, oldest first."""
        with self._lock:
            return list(self._messages)

    @property
    def last(self) -> Optional[Message]:
        with self._lock:
            return self._messages[-1] if self._messages else None

    @property
    def last_agent(self) -> Optional[Message]:
        with self._lock:
            for message in reversed(self._messages):
                if message.is_agent:
                    return message
        return None

    def append(self, message: Message) -> Message:
        with self._lock:
            self._messages.append(message)
        return message

    def replace(self, messages: list[Message]) -> None:
        """Swap in a freshly fetched transcript."""
        with self._lock:
            self._messages = list(messages)

    def clear(self) -> None:
        self.replace([])

    def pop_last(self) -> Optional[Message]:
        with self._lock:
            return self._messages.pop() if self._messages else None

    def update_last(self, update: Update) -> bool:
        """Apply `update` to the last entry. Returns False for stale updates."""
        with self._lock:
            if not self._messages:
                logger.warning("Dropping %s: transcript is empty", type(update).__name__)
                return False
            message = self._messages[-1]
            if not message.is_agent:
                logger.warning("Dropping %s: last message is not an agent message", type(update).__name__)
                return False
            if message.finalized and not isinstance(update, MetadataPatch):
                logger.warning("Dropping %s: message %s is already finalized", type(update).__name__, message.id)
                return False
            _apply(message, update)
            return True

    def infer_status(self) -> TaskStatus:
        """Derive the task status from the last agent entry."""
        message = self.last_agent
        if message is None:
            return TaskStatus.PENDING
        if message.in_progress or not message.finalized:
            if message.metadata.get("queue_position"):
                return TaskStatus.QUEUED
            return TaskStatus.PROCESSING
        if message.metadata.get("error"):
            return TaskStatus.FAILED
        return TaskStatus.DONE


def _apply(message: Message, update: Update) -> None:
    if isinstance(update, TextDelta):
        message.content += update.text
    elif isinstance(update, AddImage):
        message.parts.append(update.image)
    elif isinstance(update, AddPart):
        message.parts.append(update.part)
    elif isinstance(update, MetadataPatch):
        message.metadata.update(update.metadata)
    elif isinstance(update, FinalPatch):
        message.content = update.answer
        if update.metadata:
            message.metadata.update(update.metadata)
        if update.suggested_follow_ups is not None:
            message.suggested_follow_ups = list(update.suggested_follow_ups)
        message.finalized = True
        message.status = None
    else:
        raise TypeError(f"Unsupported transcript update: {update!r}")
