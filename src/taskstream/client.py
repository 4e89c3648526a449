"""
AsyncTaskStream / TaskStream — main clients.
"""

import asyncio
from typing import Any, Callable, Optional

import httpx

from taskstream.chat import ChatEngine
from taskstream.classifier import classify
from taskstream.context import ClientContext
from taskstream.conversations import ConversationsAPI
from taskstream.errors import ConnectionError, TransportError
from taskstream.lifecycle import DEFAULT_TITLE, LifecycleOrchestrator
from taskstream.models.message import Category, Message
from taskstream.models.task import TaskStatus, TaskType
from taskstream.polling import DEFAULT_POLL_INTERVAL_S, DEGRADED_POLL_INTERVAL_S, Poller
from taskstream.tasks import TasksAPI
from taskstream.transcript import Transcript
from taskstream.transport.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, HttpClient
from taskstream.transport.stream import SessionHandle, StreamTransport


class AsyncTaskStream:
    """Async client (primary). Holds one active transcript."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        user: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        degraded_poll_interval_s: float = DEGRADED_POLL_INTERVAL_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.context = ClientContext(base_url=base_url, access_token=access_token, user=user)
        self.http = HttpClient(base_url=base_url, token=access_token, timeout=timeout, transport=transport)
        self.conversations = ConversationsAPI(self.http)
        self.tasks = TasksAPI(self.http)
        self.transcript = Transcript()
        self.lifecycle = LifecycleOrchestrator(self.context, self.conversations, self.tasks)
        self.stream = StreamTransport(self.http)
        self.poller = Poller(
            self.tasks, self.transcript, self.context,
            is_streaming=lambda _task_id: self._chat.is_streaming(),
            interval_s=poll_interval_s,
            degraded_interval_s=degraded_poll_interval_s,
        )
        self._chat = ChatEngine(self.stream, self.lifecycle, self.transcript, self.poller, self.context)
        self._closed = False

    @property
    def messages(self) -> list[Message]:
        return self.transcript.messages

    def set_token(self, access_token: Optional[str]) -> None:
        self.context.access_token = access_token
        self.http.set_token(access_token)

    def is_streaming(self, task_id: Optional[str] = None) -> bool:
        return self._chat.is_streaming(task_id)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionError("Client is closed")

    async def ensure_conversation(self, title_hint: str = DEFAULT_TITLE) -> Optional[str]:
        self._ensure_open()
        return await self.lifecycle.ensure_conversation(title_hint)

    async def require_conversation(self, title_hint: str = DEFAULT_TITLE) -> str:
        self._ensure_open()
        return await self.lifecycle.require_conversation(title_hint)

    async def run_task(
        self,
        query: str,
        task_type: TaskType = TaskType.GEOMETRY,
        *,
        file_url: Optional[str] = None,
        title: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        on_open: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> Optional[SessionHandle]:
        """Append the user turn and stream the agent answer into the transcript."""
        self._ensure_open()
        return await self._chat.run_task(
            query, task_type,
            file_url=file_url, title=title, details=details,
            on_open=on_open, on_error=on_error, on_close=on_close,
        )

    async def run_task_and_wait(self, query: str, task_type: TaskType = TaskType.GEOMETRY, **kwargs: Any) -> Optional[Message]:
        """Convenience: stream a task to completion and return the agent message."""
        handle = await self.run_task(query, task_type, **kwargs)
        if handle is not None:
            await handle.wait()
        return self.transcript.last_agent

    async def load_task(self, task_id: str, conversation_id: Optional[str] = None) -> bool:
        """Replace the transcript with a task's history. True when polling started."""
        self._ensure_open()
        return await self._chat.load_task(task_id, conversation_id)

    async def wait_for_task(self, task_id: str) -> None:
        """Wait until neither a stream nor a poll loop is running for the task."""
        handle = self._chat.session(task_id)
        if handle is not None:
            await handle.wait()
        await self.poller.wait(task_id)

    def cancel(self, task_id: Optional[str] = None) -> None:
        """Cancel the stream for a task (default: the active task)."""
        task_id = task_id or self.context.task_id
        if task_id:
            self._chat.cancel(task_id)

    def stop_polling(self, task_id: Optional[str] = None) -> None:
        if task_id is None:
            self.poller.stop_all()
        else:
            self.poller.stop(task_id)

    def start_new_conversation(self) -> None:
        """Forget the active conversation/task and clear the transcript."""
        self._chat.cancel_all()
        self.poller.stop_all()
        self.lifecycle.start_new_conversation()
        self.transcript.clear()

    def categories(self) -> list[tuple[Message, Category]]:
        return [(message, classify(message)) for message in self.transcript.messages]

    def task_status(self) -> TaskStatus:
        return self.transcript.infer_status()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._chat.cancel_all()
        self.poller.stop_all()
        await self.http.close()


class TaskStream:
    """Sync wrapper around AsyncTaskStream. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncTaskStream(**kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def context(self) -> ClientContext:
        return self._async.context

    @property
    def conversations(self) -> ConversationsAPI:
        return self._async.conversations

    @property
    def tasks(self) -> TasksAPI:
        return self._async.tasks

    @property
    def transcript(self) -> Transcript:
        return self._async.transcript

    @property
    def messages(self) -> list[Message]:
        return self._async.messages

    def ensure_conversation(self, title_hint: str = DEFAULT_TITLE) -> Optional[str]:
        return self._run(self._async.ensure_conversation(title_hint))

    def run_task(self, query: str, task_type: TaskType = TaskType.GEOMETRY, **kwargs: Any) -> Optional[Message]:
        """Stream a task to completion (blocking) and return the agent message."""
        return self._run(self._async.run_task_and_wait(query, task_type, **kwargs))

    def load_task(self, task_id: str, conversation_id: Optional[str] = None, wait: bool = True) -> list[Message]:
        """Load a task's history; with wait=True keep polling until it is final."""
        async def _load() -> list[Message]:
            polling = await self._async.load_task(task_id, conversation_id)
            if polling and wait:
                await self._async.wait_for_task(task_id)
            return self._async.messages
        return self._run(_load())

    def start_new_conversation(self) -> None:
        self._async.start_new_conversation()

    def categories(self) -> list[tuple[Message, Category]]:
        return self._async.categories()

    def task_status(self) -> TaskStatus:
        return self._async.task_status()

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
