"""
Task and conversation models.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class TaskType(str, Enum):
    GEOMETRY = "geometry"
    OPTIMIZE = "optimize"
    RETRIEVAL = "retrieval"


class TaskStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class Task(BaseModel):
    task_id: str
    conversation_id: Optional[str] = None
    type: Optional[TaskType] = Field(default=None, alias="task_type")
    status: TaskStatus = TaskStatus.PENDING
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True, "coerce_numbers_to_str": True}

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, value: Any) -> Any:
        if value in {s.value for s in TaskStatus}:
            return value
        return TaskStatus.PENDING


class Conversation(BaseModel):
    conversation_id: str
    title: str = ""
    created_at: Optional[str] = None

    model_config = {"coerce_numbers_to_str": True}


class QueueStatus(BaseModel):
    """GET /tasks/optimize/queue_length"""
    length: int = 0
    running: int = 0

    @property
    def busy(self) -> bool:
        return self.length > 0 or self.running > 0
