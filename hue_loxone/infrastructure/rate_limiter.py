"""Per-resource-kind request queues for the Hue bridge.

The Hue bridge rejects bursts with HTTP 429. Every write to a light or
grouped_light passes through a FIFO queue for its resource kind. Each queue
runs at most one task at a time and waits a fixed delay after a task
settles before starting the next one. grouped_light writes are spaced much
further apart because the bridge enforces a stricter ceiling for them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from ..constants import RATE_LIMIT_DEFAULTS, ResourceKind

_LOGGER = logging.getLogger(__name__)

Task = Callable[[], Awaitable[object]]
DropCallback = Callable[[], None]

DEFAULT_QUEUE = ResourceKind.LIGHT.value


class RateLimiter:
    """FIFO queues with a minimum spacing per resource kind.

    Attributes:
        delays: Seconds to wait after each task, keyed by queue name.
    """

    def __init__(
        self,
        light_delay: float = RATE_LIMIT_DEFAULTS.LIGHT_DELAY,
        grouped_light_delay: float = RATE_LIMIT_DEFAULTS.GROUPED_LIGHT_DELAY,
    ):
        self.delays: dict[str, float] = {
            ResourceKind.LIGHT.value: light_delay,
            ResourceKind.GROUPED_LIGHT.value: grouped_light_delay,
        }
        self._queues: dict[str, deque[tuple[Task, DropCallback | None]]] = {kind: deque() for kind in self.delays}
        self._drainers: dict[str, asyncio.Task | None] = {kind: None for kind in self.delays}
        self._processing: dict[str, bool] = {kind: False for kind in self.delays}
        self._closed = False

    def _queue_name(self, resource_kind: str | ResourceKind) -> str:
        name = resource_kind.value if isinstance(resource_kind, ResourceKind) else str(resource_kind)
        return name if name in self._queues else DEFAULT_QUEUE

    def enqueue(
        self,
        resource_kind: str | ResourceKind,
        task: Task,
        on_drop: DropCallback | None = None,
    ) -> bool:
        """Append a task to the queue of its resource kind and return at once.

        Unknown kinds fall back to the light queue. Must be called from
        within the running event loop.

        Args:
            resource_kind: Queue to use (light, grouped_light, ...).
            task: Zero-argument coroutine function executed when dequeued.
            on_drop: Called if the task is discarded by clear_all before it ran.

        Returns:
            False when the limiter is closed and the task was dropped.
        """
        if self._closed:
            _LOGGER.debug("Rate limiter closed, dropping task for %s", resource_kind)
            return False

        name = self._queue_name(resource_kind)
        self._queues[name].append((task, on_drop))

        drainer = self._drainers[name]
        if drainer is None or drainer.done():
            self._drainers[name] = asyncio.get_running_loop().create_task(self._drain(name))
        return True

    async def _drain(self, name: str) -> None:
        queue = self._queues[name]
        delay = self.delays[name]
        while queue:
            task, _ = queue.popleft()
            self._processing[name] = True
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                _LOGGER.error("Queue error (%s): %s", name, e)
            finally:
                self._processing[name] = False

            await asyncio.sleep(delay)

        self._drainers[name] = None

    async def join(self) -> None:
        """Wait until every queue is empty and no task is running."""
        while True:
            active = [task for task in self._drainers.values() if task is not None and not task.done()]
            if not active:
                return
            await asyncio.gather(*active, return_exceptions=True)

    def get_stats(self) -> dict[str, dict]:
        """Get pending count, processing flag and delay per queue."""
        return {
            name: {
                "pending": len(queue),
                "processing": self._processing[name],
                "delay": self.delays[name],
            }
            for name, queue in self._queues.items()
        }

    def clear_all(self) -> None:
        """Drop every queued task that has not started yet."""
        dropped = 0
        for queue in self._queues.values():
            while queue:
                _, on_drop = queue.popleft()
                dropped += 1
                if on_drop is not None:
                    on_drop()
        _LOGGER.info("All queues cleared (%d tasks dropped)", dropped)

    async def close(self) -> None:
        """Stop accepting tasks and cancel the drain loops."""
        self._closed = True
        self.clear_all()
        drainers = [task for task in self._drainers.values() if task is not None]
        for task in drainers:
            task.cancel()
        await asyncio.gather(*drainers, return_exceptions=True)
        for name in self._drainers:
            self._drainers[name] = None
