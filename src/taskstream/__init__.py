"""
taskstream — streaming task client.

Opens a task as one streamed HTTP request, decodes its event frames and folds
them into an in-memory transcript, with a polling fallback and a heuristic
classifier for presentation.
"""

from taskstream.client import AsyncTaskStream, TaskStream
from taskstream.classifier import classify
from taskstream.context import ClientContext
from taskstream.errors import TaskStreamError, TransportError, LifecycleError, ConnectionError
from taskstream.models import Category, EventKind, Message, Role, TaskStatus, TaskType
from taskstream.transcript import AddImage, AddPart, FinalPatch, MetadataPatch, TextDelta, Transcript

__version__ = "0.1.0"
__all__ = [
    "AsyncTaskStream",
    "TaskStream",
    "ClientContext",
    "classify",
    "TaskStreamError",
    "TransportError",
    "LifecycleError",
    "ConnectionError",
    "Category",
    "EventKind",
    "Message",
    "Role",
    "TaskStatus",
    "TaskType",
    "Transcript",
    "TextDelta",
    "AddImage",
    "AddPart",
    "MetadataPatch",
    "FinalPatch",
]
