"""
Conversations REST API.
"""

from __future__ import annotations

from typing import Any, Optional

from taskstream.models.task import Conversation
from taskstream.transport.http import HttpClient


class ConversationsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def create(self, title: str, correlation_id: Optional[str] = None) -> Conversation:
        """Create a conversation. The server assigns the id."""
        headers = {"X-Correlation-ID": correlation_id} if correlation_id else None
        data = await self._http.post("/geometry/conversation", {"title": title}, headers=headers)
        return Conversation.model_validate(data)

    async def get(self, conversation_id: str) -> dict[str, Any]:
        """Conversation details including its tasks."""
        return await self._http.post(f"/conversation/{conversation_id}")

    async def history(self, user_id: str) -> list[dict[str, Any]]:
        """All task histories for a user."""
        data = await self._http.get("/chat/history", params={"user_id": user_id})
        if isinstance(data, dict):
            return data.get("history") or []
        return data or []

    async def delete(self, conversation_id: str) -> Any:
        return await self._http.delete(f"/conversation/{conversation_id}")
