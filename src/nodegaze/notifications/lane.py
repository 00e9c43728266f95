"""Per-endpoint delivery lane.

Each endpoint gets one FIFO queue served by a fixed number of worker
tasks. A slow or hanging endpoint therefore only ever occupies its own
workers, and first attempts for an endpoint start in arrival order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedJob:
    """A reference to one attempt of a delivery job."""

    job_id: int
    attempt_number: int


class EndpointLane:
    """FIFO queue plus worker tasks for a single notification endpoint."""

    def __init__(
        self,
        notification_id: str,
        handler: Callable[[QueuedJob], Awaitable[object]],
        *,
        concurrency: int = 2,
    ) -> None:
        self._notification_id = notification_id
        self._handler = handler
        self._concurrency = concurrency
        self._queue: asyncio.Queue[QueuedJob] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._busy = 0

    @property
    def notification_id(self) -> str:
        return self._notification_id

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def queued(self) -> int:
        """Jobs waiting for a worker."""
        return self._queue.qsize()

    @property
    def busy(self) -> int:
        """Workers currently running an attempt."""
        return self._busy

    @property
    def is_idle(self) -> bool:
        return self._busy == 0 and self._queue.empty()

    def start(self) -> None:
        """Spawn the worker tasks."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"lane:{self._notification_id}:{i}")
            for i in range(self._concurrency)
        ]

    async def stop(self) -> None:
        """Cancel the workers. Queued jobs are left for the retry sweep."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        for task in workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def put(self, item: QueuedJob) -> None:
        self._queue.put_nowait(item)

    async def join(self) -> None:
        """Wait until every queued job has been handled."""
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            item = await self._queue.get()
            self._busy += 1
            try:
                await self._handler(item)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Delivery lane %s failed on job %d attempt %d",
                    self._notification_id,
                    item.job_id,
                    item.attempt_number,
                )
            finally:
                self._busy -= 1
                self._queue.task_done()
