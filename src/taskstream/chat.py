"""
Chat engine — runs one task end to end.

Flow for `run_task`:
- optimistic append: user message + empty agent placeholder
- ensure conversation and task ids (failure -> failure notice, no stream)
- stop every poll loop (the transcript is shared), open the stream
- map each stream event onto a transcript update of the placeholder
"""

import logging
from typing import Any, Callable, Optional

from taskstream.context import ClientContext
from taskstream.errors import TransportError
from taskstream.lifecycle import LifecycleOrchestrator
from taskstream.models.events import ConversationInfoData, EventKind, MessageEndData
from taskstream.models.message import ImagePart, Message, StructuredPart
from taskstream.models.task import TaskType
from taskstream.optimization import queue_position
from taskstream.polling import Poller
from taskstream.tasks import EXECUTE_PATH, build_execute_body
from taskstream.transcript import AddImage, AddPart, FinalPatch, MetadataPatch, TextDelta, Transcript
from taskstream.transport.dispatch import Handler
from taskstream.transport.stream import SessionHandle, StreamTransport

logger = logging.getLogger(__name__)

REQUEST_FAILED_NOTICE = "Sorry, the request failed. Please try again later."
CONVERSATION_FAILED_NOTICE = "Sorry, the conversation could not be created. The task was not started."
TASK_FAILED_NOTICE = "Sorry, the task could not be created. The task was not started."

TITLE_HINT_LENGTH = 20
QUERY_DETAIL_LENGTH = 50


class ChatEngine:
    def __init__(
        self,
        transport: StreamTransport,
        lifecycle: LifecycleOrchestrator,
        transcript: Transcript,
        poller: Poller,
        context: ClientContext,
    ):
        self._transport = transport
        self._lifecycle = lifecycle
        self._transcript = transcript
        self._poller = poller
        self._context = context
        self._sessions: dict[str, SessionHandle] = {}

    def is_streaming(self, task_id: Optional[str] = None) -> bool:
        """Whether a stream is live for the task, or for any task when None."""
        if task_id is None:
            return any(handle.active for handle in self._sessions.values())
        handle = self._sessions.get(task_id)
        return handle is not None and handle.active

    def session(self, task_id: str) -> Optional[SessionHandle]:
        return self._sessions.get(task_id)

    def handlers(self) -> dict[EventKind, Handler]:
        """One handler per event kind; unknown wire names never reach here."""
        return {
            EventKind.MESSAGE: self._on_message,
            EventKind.CONVERSATION_INFO: self._on_conversation_info,
            EventKind.TEXT_CHUNK: self._on_text_chunk,
            EventKind.IMAGE_CHUNK: self._on_image_chunk,
            EventKind.PART_CHUNK: self._on_part_chunk,
            EventKind.MESSAGE_END: self._on_message_end,
        }

    async def run_task(
        self,
        query: str,
        task_type: TaskType = TaskType.GEOMETRY,
        *,
        file_url: Optional[str] = None,
        title: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        user_content: Optional[str] = None,
        on_open: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> Optional[SessionHandle]:
        """Start a task stream. Returns None when the ids could not be created."""
        task_type = TaskType(task_type)
        # The placeholder lives in the shared transcript; no poll may replace it.
        self._poller.stop_all()
        self._transcript.append(Message.user(user_content or query))
        self._transcript.append(Message.placeholder(task_type.value))

        conversation_id = await self._lifecycle.ensure_conversation((title or query)[:TITLE_HINT_LENGTH])
        if conversation_id is None:
            logger.error("No conversation id, %s task aborted", task_type.value)
            self._fail(CONVERSATION_FAILED_NOTICE, "conversation_create_failed")
            return None

        if details is None:
            details = {"query": query[:QUERY_DETAIL_LENGTH]}
        task_id = await self._lifecycle.ensure_task(conversation_id, task_type, details)
        if task_id is None:
            logger.error("No task id, %s task aborted", task_type.value)
            self._fail(TASK_FAILED_NOTICE, "task_create_failed")
            return None

        self.cancel(task_id)
        self._poller.stop_all()
        body = build_execute_body(
            task_type.value, query, conversation_id, task_id,
            file_url=file_url, user=self._context.user,
        )

        def handle_error(error: TransportError) -> None:
            self._fail(REQUEST_FAILED_NOTICE, error.code)
            if on_error:
                on_error(error)

        def handle_close() -> None:
            if self._sessions.get(task_id) is handle:
                del self._sessions[task_id]
            if on_close:
                on_close()

        handle = self._transport.open(
            EXECUTE_PATH, body, self.handlers(),
            on_open=on_open, on_error=handle_error, on_close=handle_close,
        )
        self._sessions[task_id] = handle
        logger.info("Streaming %s task %s (session %s)", task_type.value, task_id, handle.id)
        return handle

    async def load_task(self, task_id: str, conversation_id: Optional[str] = None) -> bool:
        """Fetch a task transcript; polls when it is in progress and not streaming.

        The fetched messages replace the shared transcript, so streams for
        other tasks are cancelled first.
        """
        for other in [t for t in self._sessions if t != task_id]:
            self.cancel(other)
        return await self._poller.fetch_messages_for_task(task_id, conversation_id)

    def cancel(self, task_id: str) -> None:
        handle = self._sessions.pop(task_id, None)
        if handle is not None:
            logger.info("Cancelling stream for task %s", task_id)
            handle.cancel()

    def cancel_all(self) -> None:
        for task_id in list(self._sessions):
            self.cancel(task_id)

    def _fail(self, notice: str, code: str) -> None:
        self._transcript.update_last(FinalPatch(answer=notice, metadata={"error": code}))

    def _on_message(self, data: Any) -> None:
        logger.debug("Ignoring untyped stream message: %r", data)

    def _on_conversation_info(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        info = ConversationInfoData.model_validate(data)
        logger.debug("Conversation info: conversation=%s task=%s", info.conversation_id, info.task_id)
        if info.metadata:
            self._transcript.update_last(MetadataPatch(info.metadata))

    def _on_text_chunk(self, data: Any) -> None:
        if isinstance(data, dict):
            text = data.get("text") or ""
        elif isinstance(data, str):
            text = data
        else:
            logger.warning("text_chunk without text: %r", data)
            return
        self._transcript.update_last(TextDelta(text))
        position = queue_position(text)
        if position is not None:
            self._transcript.update_last(MetadataPatch({"queue_position": position}))

    def _on_image_chunk(self, data: Any) -> None:
        if isinstance(data, dict):
            self._transcript.update_last(AddImage(ImagePart.model_validate(data)))

    def _on_part_chunk(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        inner = data.get("part")
        part = inner if isinstance(inner, dict) else data
        self._transcript.update_last(AddPart(StructuredPart.model_validate({**part, "type": "part"})))

    def _on_message_end(self, data: Any) -> None:
        if isinstance(data, str):
            self._transcript.update_last(FinalPatch(answer=data))
            return
        end = MessageEndData.model_validate(data or {})
        self._transcript.update_last(FinalPatch(
            answer=end.answer,
            metadata=end.metadata,
            suggested_follow_ups=end.suggested_follow_ups,
        ))
