"""Background extraction queue with single-flight draining."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cortex.core.logging import get_logger

logger = get_logger("memory.queue")


@dataclass
class ExtractionTask:
    """Raw text waiting for fact/procedure extraction."""

    text: str
    memory_id: str


class ExtractionQueue:
    """FIFO of extraction tasks drained by one worker at a time.

    `enqueue` never blocks the caller. A failing task is logged and dropped;
    the worker moves on to the next one.
    """

    def __init__(self, handler: Callable[[ExtractionTask], Awaitable[None]]):
        self._handler = handler
        self._pending: deque[ExtractionTask] = deque()
        self._draining = False
        self._worker: asyncio.Task | None = None
        self.processed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def enqueue(self, task: ExtractionTask) -> None:
        """Queue a task and make sure a worker is running."""
        self._pending.append(task)
        logger.debug(f"Queued extraction for {task.memory_id} ({len(self._pending)} pending)")
        if not self._draining and (self._worker is None or self._worker.done()):
            self._worker = asyncio.get_running_loop().create_task(self.drain())

    async def drain(self) -> None:
        """Process queued tasks until empty. No-op if a drain is already running."""
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending:
                task = self._pending.popleft()
                try:
                    await self._handler(task)
                    self.processed += 1
                except Exception as e:
                    self.failed += 1
                    logger.error(f"Extraction failed for {task.memory_id}: {e}", exc_info=True)
        finally:
            self._draining = False

    async def join(self) -> None:
        """Wait until every queued task has been processed."""
        while self._pending or self._draining:
            if self._worker is not None and not self._worker.done():
                await self._worker
            elif self._pending:
                await self.drain()
            else:
                await asyncio.sleep(0)

    def clear(self) -> None:
        """Drop tasks that have not started yet."""
        self._pending.clear()
