from taskstream.models.message import Category, ImagePart, Message, Part, Role, StructuredPart, IN_PROGRESS
from taskstream.models.task import Conversation, QueueStatus, Task, TaskStatus, TaskType
from taskstream.models.events import EventKind

__all__ = [
    "Category",
    "Conversation",
    "EventKind",
    "ImagePart",
    "IN_PROGRESS",
    "Message",
    "Part",
    "QueueStatus",
    "Role",
    "StructuredPart",
    "Task",
    "TaskStatus",
    "TaskType",
]
