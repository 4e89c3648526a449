"""
Task/conversation lifecycle — make sure the ids a stream needs exist.

Both `ensure_*` calls are idempotent while an id is active and return None
when creation fails; callers abort the operation in that case.
"""

import asyncio
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from taskstream.context import ClientContext
from taskstream.conversations import ConversationsAPI
from taskstream.errors import LifecycleError, TaskStreamError
from taskstream.models.task import TaskType
from taskstream.tasks import TasksAPI

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New conversation"
CREATE_ERRORS = (TaskStreamError, httpx.HTTPError, ValidationError)


class LifecycleOrchestrator:
    def __init__(self, context: ClientContext, conversations: ConversationsAPI, tasks: TasksAPI):
        self.context = context
        self._conversations = conversations
        self._tasks = tasks
        self._conversation_lock = asyncio.Lock()
        self._task_lock = asyncio.Lock()

    async def ensure_conversation(self, title_hint: str = DEFAULT_TITLE) -> Optional[str]:
        if self.context.conversation_id:
            return self.context.conversation_id
        async with self._conversation_lock:
            if self.context.conversation_id:
                return self.context.conversation_id
            correlation_id = f"temp-{int(time.time() * 1000)}"
            try:
                conversation = await self._conversations.create(title_hint or DEFAULT_TITLE, correlation_id)
            except CREATE_ERRORS as e:
                logger.error("Failed to ensure conversation (%s): %s", correlation_id, e)
                return None
            self.context.activate_conversation(conversation.conversation_id)
            logger.info("Created conversation %s", conversation.conversation_id)
            return conversation.conversation_id

    async def require_conversation(self, title_hint: str = DEFAULT_TITLE) -> str:
        """Like `ensure_conversation`, but raises LifecycleError instead of returning None."""
        conversation_id = await self.ensure_conversation(title_hint)
        if conversation_id is None:
            raise LifecycleError("Conversation could not be created", code="conversation_create_failed")
        return conversation_id

    async def ensure_task(
        self,
        conversation_id: str,
        task_type: TaskType,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        if self.context.task_id:
            return self.context.task_id
        async with self._task_lock:
            if self.context.task_id:
                return self.context.task_id
            try:
                task = await self._tasks.create(conversation_id, task_type, details)
            except CREATE_ERRORS as e:
                logger.error("Failed to create %s task in conversation %s: %s", task_type, conversation_id, e)
                return None
            self.context.activate_task(task.task_id, conversation_id)
            logger.info("Created task %s in conversation %s", task.task_id, conversation_id)
            return task.task_id

    def start_new_conversation(self) -> None:
        self.context.reset()
