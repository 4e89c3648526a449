"""
Transcript message models.
"""

from __future__ import annotations

import itertools
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

IN_PROGRESS = "in_progress"

_message_ids = itertools.count(1)


def _next_message_id() -> str:
    return f"msg-{next(_message_ids)}"


class Role(str, Enum):
    USER = "user"
    AGENT = "assistant"

    @classmethod
    def _missing_(cls, value: object) -> Optional["Role"]:
        if value == "agent":
            return cls.AGENT
        return None


class Category(str, Enum):
    GEOMETRY = "geometry"
    OPTIMIZE = "optimize"
    GENERAL = "general"


class ImagePart(BaseModel):
    """image_chunk payload as stored in `Message.parts`."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Literal["image"] = "image"
    url: str = ""
    alt_text: Optional[str] = Field(default=None, alias="altText")


class StructuredPart(BaseModel):
    """Opaque structured attachment (part_chunk). Unknown fields are kept."""
    model_config = ConfigDict(extra="allow")

    type: Literal["part"] = "part"


Part = Annotated[Union[ImagePart, StructuredPart], Field(discriminator="type")]


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_next_message_id)
    role: Role
    content: str = ""
    parts: list[Part] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    task_type: Optional[str] = None
    suggested_follow_ups: Optional[list[str]] = Field(default=None, alias="suggested_questions")
    status: Optional[str] = None
    finalized: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None:
            return _next_message_id()
        return str(value)

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("parts", mode="before")
    @classmethod
    def _coerce_parts(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def placeholder(cls, task_type: Optional[str] = None) -> "Message":
        """Empty agent entry appended before the stream starts."""
        return cls(role=Role.AGENT, task_type=task_type)

    @property
    def is_agent(self) -> bool:
        return self.role is Role.AGENT

    @property
    def in_progress(self) -> bool:
        return self.status == IN_PROGRESS

    @property
    def images(self) -> list[ImagePart]:
        return [p for p in self.parts if isinstance(p, ImagePart)]
