"""
WriteQueue - serializes writes to the upstream store.

Writes run one at a time in submission order, each through with_retry, with
a short pause between them so bursts do not trip the upstream rate limit.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from salesdash.services.errors import QueueClearedError
from salesdash.services.retry import with_retry


@dataclass
class QueueItem:
    """A write waiting for its turn."""

    operation: Callable[[], Awaitable[Any]]
    name: str
    future: asyncio.Future[Any]
    queued_at: float = field(default_factory=time.monotonic)


@dataclass
class QueueStats:
    """Write queue statistics."""

    total_queued: int = 0
    total_processed: int = 0
    total_failed: int = 0
    total_cleared: int = 0
    queue_length: int = 0
    is_processing: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_queued": self.total_queued,
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "total_cleared": self.total_cleared,
            "queue_length": self.queue_length,
            "is_processing": self.is_processing,
        }


class WriteQueue:
    """
    FIFO queue with a single drain loop.

    Usage:
        queue = WriteQueue()

        result = await queue.queue_write(
            lambda: source.append_sale("alice", record),
            name="Add sale",
        )
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        min_delay: float = 0.1,
    ):
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._min_delay = min_delay

        self._queue: deque[QueueItem] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._stats = QueueStats()

    @property
    def is_processing(self) -> bool:
        return self._drain_task is not None

    def __len__(self) -> int:
        return len(self._queue)

    def queue_write(
        self,
        operation: Callable[[], Awaitable[Any]],
        name: str = "Write",
    ) -> asyncio.Future[Any]:
        """
        Enqueue a write and start draining if idle.

        The item is appended before this returns, so the order of calls is
        the order of execution.

        Returns:
            Future settled with the operation's result or terminal error
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.append(QueueItem(operation=operation, name=name, future=future))
        self._stats.total_queued += 1

        if self._drain_task is None:
            self._drain_task = asyncio.create_task(self._process_queue())
        return future

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                item = self._queue.popleft()
                if item.future.done():
                    # Caller gave up before the write started
                    continue

                waited_ms = (time.monotonic() - item.queued_at) * 1000
                logger.info(
                    f"[WriteQueue] Processing: {item.name} "
                    f"(waited {waited_ms:.0f}ms, {len(self._queue)} remaining)"
                )

                try:
                    result = await with_retry(
                        item.operation,
                        max_retries=self._max_retries,
                        base_delay=self._base_delay,
                        max_delay=self._max_delay,
                        name=item.name,
                    )
                except Exception as e:
                    self._stats.total_failed += 1
                    logger.error(f"[WriteQueue] Failed: {item.name}: {e}")
                    if not item.future.done():
                        item.future.set_exception(e)
                else:
                    self._stats.total_processed += 1
                    if not item.future.done():
                        item.future.set_result(result)

                if self._queue:
                    await asyncio.sleep(self._min_delay)
        finally:
            self._drain_task = None

    def clear_queue(self) -> int:
        """
        Fail every write that has not started yet.

        The write currently executing, if any, is not affected.

        Returns:
            Number of writes dropped
        """
        cleared = len(self._queue)
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(QueueClearedError(item.name))
        self._stats.total_cleared += cleared
        logger.warning(f"[WriteQueue] Cleared {cleared} pending operations")
        return cleared

    async def join(self) -> None:
        """Wait until the queue has drained."""
        while self._drain_task is not None:
            await asyncio.wait({self._drain_task})

    def get_stats(self) -> QueueStats:
        """Get write queue statistics."""
        self._stats.queue_length = len(self._queue)
        self._stats.is_processing = self._drain_task is not None
        return self._stats
