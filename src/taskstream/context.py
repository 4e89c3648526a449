"""
Client context — the per-client state the lifecycle orchestrator and
transport share: who is calling and which conversation/task is active.
"""

from typing import Optional

from taskstream.transport.http import DEFAULT_BASE_URL


class ClientContext:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        access_token: Optional[str] = None,
        user: Optional[str] = None,
    ):
        self.base_url = base_url
        self.access_token = access_token
        self.user = user
        self.conversation_id: Optional[str] = None
        self.task_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"ClientContext(conversation_id={self.conversation_id!r}, task_id={self.task_id!r})"

    def activate_conversation(self, conversation_id: Optional[str]) -> None:
        """Switching conversations always clears the active task."""
        self.conversation_id = conversation_id
        self.task_id = None

    def activate_task(self, task_id: Optional[str], conversation_id: Optional[str] = None) -> None:
        if conversation_id is not None:
            self.conversation_id = conversation_id
        self.task_id = task_id

    def reset(self) -> None:
        self.conversation_id = None
        self.task_id = None
