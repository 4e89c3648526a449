"""
Polling fallback for transcripts left `in_progress` with no live stream.

One loop per task at most. `is_streaming` answers for the shared transcript,
so a loop never writes while any stream is feeding it, and it stops once the
last agent message is no longer in progress.
"""

import asyncio
import logging
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from taskstream.context import ClientContext
from taskstream.errors import TaskStreamError
from taskstream.tasks import TasksAPI
from taskstream.transcript import Transcript

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 2.0
DEGRADED_POLL_INTERVAL_S = 30.0
DEFAULT_MAX_FAILURES = 5

FETCH_ERRORS = (TaskStreamError, httpx.HTTPError, ValidationError)


class Poller:
    def __init__(
        self,
        tasks: TasksAPI,
        transcript: Transcript,
        context: ClientContext,
        *,
        is_streaming: Optional[Callable[[str], bool]] = None,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        degraded_interval_s: float = DEGRADED_POLL_INTERVAL_S,
        max_failures: int = DEFAULT_MAX_FAILURES,
    ):
        self._tasks = tasks
        self._transcript = transcript
        self._context = context
        self._is_streaming = is_streaming or (lambda _task_id: False)
        self._interval_s = interval_s
        self._degraded_interval_s = degraded_interval_s
        self._max_failures = max_failures
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._fetch_locks: dict[str, asyncio.Lock] = {}

    def is_polling(self, task_id: str) -> bool:
        loop = self._loops.get(task_id)
        return loop is not None and not loop.done()

    @property
    def active_tasks(self) -> list[str]:
        return [task_id for task_id in self._loops if self.is_polling(task_id)]

    def stop(self, task_id: str) -> None:
        loop = self._loops.pop(task_id, None)
        if loop is not None and not loop.done():
            logger.debug("Stopping poll loop for task %s", task_id)
            loop.cancel()

    def stop_all(self) -> None:
        for task_id in list(self._loops):
            self.stop(task_id)

    async def wait(self, task_id: str) -> None:
        """Wait for the task's poll loop to finish, if one is running."""
        loop = self._loops.get(task_id)
        if loop is not None:
            await asyncio.wait([loop])

    async def fetch_messages_for_task(self, task_id: str, conversation_id: Optional[str] = None) -> bool:
        """Load a task's transcript; start polling if it is still in progress.

        Returns True when a poll loop was started.
        """
        # Serialized per task: a later call always stops the earlier call's loop.
        lock = self._fetch_locks.setdefault(task_id, asyncio.Lock())
        async with lock:
            self.stop(task_id)
            if not await self._fetch_and_update(task_id, conversation_id):
                return False
            if self._is_streaming(task_id):
                return False
            loop = asyncio.get_running_loop().create_task(self._poll(task_id, conversation_id))
            self._loops[task_id] = loop
            loop.add_done_callback(lambda done: self._forget(task_id, done))
        logger.info("Task %s is in progress, polling every %.1fs", task_id, self._interval_s)
        return True

    def _forget(self, task_id: str, loop: "asyncio.Task[None]") -> None:
        if self._loops.get(task_id) is loop:
            del self._loops[task_id]

    async def _fetch_and_update(self, task_id: str, conversation_id: Optional[str]) -> bool:
        messages = await self._tasks.history(task_id)
        if self._is_streaming(task_id):
            logger.debug("Stream active for task %s, discarding polled transcript", task_id)
            return False
        self._transcript.replace(messages)
        self._context.activate_task(task_id, conversation_id)
        if not messages:
            return False
        last = messages[-1]
        return last.is_agent and last.in_progress

    async def _poll(self, task_id: str, conversation_id: Optional[str]) -> None:
        delay = self._interval_s
        failures = 0
        while True:
            await asyncio.sleep(delay)
            if self._is_streaming(task_id):
                logger.info("Stream took over task %s, polling stopped", task_id)
                return
            try:
                still_running = await self._fetch_and_update(task_id, conversation_id)
            except FETCH_ERRORS as e:
                failures += 1
                if failures >= self._max_failures:
                    logger.error("Polling task %s failed %d times, giving up: %s", task_id, failures, e)
                    return
                logger.warning("Polling task %s failed, retrying in %.0fs: %s", task_id, self._degraded_interval_s, e)
                delay = self._degraded_interval_s
                continue
            failures = 0
            delay = self._interval_s
            if not still_running:
                logger.info("Task %s finished, polling stopped", task_id)
                return
