"""
Tasks REST API and the stream request body.
"""

from __future__ import annotations

from typing import Any, Optional

from taskstream.models.message import Message
from taskstream.models.task import QueueStatus, Task, TaskType
from taskstream.transport.http import HttpClient

EXECUTE_PATH = "/tasks/execute"


def build_execute_body(
    task_type: str,
    query: str,
    conversation_id: str,
    task_id: str,
    *,
    file_url: Optional[str] = None,
    user: Optional[str] = None,
    files: Optional[list[dict[str, Any]]] = None,
) -> dict[str, Any]:
    """JSON body of the streaming execute request."""
    body: dict[str, Any] = {
        "task_type": task_type,
        "query": query,
        "conversation_id": conversation_id,
        "task_id": task_id,
        "user": user or "anonymous",
        "files": files or [],
        "response_mode": "streaming",
    }
    if file_url:
        body["file_url"] = file_url
    return body


class TasksAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def create(self, conversation_id: str, task_type: TaskType, details: Optional[dict[str, Any]] = None) -> Task:
        data = await self._http.post("/tasks", {
            "conversation_id": conversation_id,
            "task_type": TaskType(task_type).value,
            "details": details or {},
        })
        return Task.model_validate({"conversation_id": conversation_id, "task_type": task_type, **data})

    async def history(self, task_id: str) -> list[Message]:
        """Fetch the full transcript of a task.

        Entries that are not `in_progress` are already final on the server.
        """
        data = await self._http.get("/chat/task", params={"task_id": task_id})
        if isinstance(data, dict):
            raw_messages = data.get("message") or []
        else:
            raw_messages = data or []
        messages = []
        for raw in raw_messages:
            message = Message.model_validate(raw)
            message.finalized = not message.in_progress
            messages.append(message)
        return messages

    async def delete(self, task_id: str) -> Any:
        """Delete a task and all its messages."""
        return await self._http.delete(f"/chat/message/{task_id}")

    async def delete_history(self, task_id: str) -> Any:
        """Delete only the message history of a task."""
        return await self._http.delete(f"/chat/history/{task_id}")

    async def queue_length(self) -> QueueStatus:
        """Optimization queue: waiting and running task counts."""
        data = await self._http.get("/tasks/optimize/queue_length")
        return QueueStatus.model_validate(data or {})

    async def submit_optimization_params(
        self, conversation_id: str, task_id: str, params: dict[str, Any],
    ) -> Any:
        """Submit parameter ranges for the second optimization round."""
        return await self._http.post("/tasks/optimize/params", {
            "conversation_id": conversation_id,
            "task_id": task_id,
            "params": params,
        })
