"""
Stream event kinds and their payload shapes.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventKind(str, Enum):
    MESSAGE = "message"
    CONVERSATION_INFO = "conversation_info"
    TEXT_CHUNK = "text_chunk"
    IMAGE_CHUNK = "image_chunk"
    PART_CHUNK = "part_chunk"
    MESSAGE_END = "message_end"

    @classmethod
    def parse(cls, name: str) -> Optional["EventKind"]:
        """Resolve a wire event name, None for names this client does not know."""
        try:
            return cls(name)
        except ValueError:
            return None


class ConversationInfoData(BaseModel):
    conversation_id: Optional[str] = None
    task_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class MessageEndData(BaseModel):
    answer: str = ""
    metadata: Optional[dict[str, Any]] = None
    suggested_follow_ups: Optional[list[str]] = Field(default=None, alias="suggested_questions")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_answer(cls, value: Any) -> Any:
        return "" if value is None else value
