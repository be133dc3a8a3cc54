"""Work queue abstraction for asynchronous webhook dispatch.

A queued dispatch is captured as a DispatchJob and, when a worker runs it,
goes through the same ``WebhookDispatcher.dispatch_to`` entry point as a
direct call, so both paths produce identical results.
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from hookrelay.models import DispatchOptions, generate_id

if TYPE_CHECKING:
    from .dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


class DispatchJob(BaseModel):
    """A unit of work capturing one dispatch call.

    Attributes:
        id: Unique identifier for this job.
        event: Event name.
        payload: Event payload.
        endpoint: Destination URL.
        options: Dispatch options.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("job"))
    event: str
    payload: Any = None
    endpoint: str
    options: DispatchOptions = Field(default_factory=DispatchOptions)

    async def handle(self, dispatcher: WebhookDispatcher) -> bool:
        """Run the dispatch this job captured."""
        return await dispatcher.dispatch_to(self.event, self.payload, self.endpoint, self.options)


@runtime_checkable
class WorkQueue(Protocol):
    """Protocol for queues accepting dispatch jobs."""

    @abstractmethod
    async def push(self, job: DispatchJob, queue_name: str) -> None:
        """Enqueue a job on the named queue."""
        ...


class InProcessQueue:
    """asyncio-backed work queue with a pool of worker tasks per queue name.

    Jobs pushed before ``start`` are buffered and processed once workers
    run. There is no ordering guarantee between jobs once more than one
    worker consumes a queue.

    Example:
        ```python
        queue = InProcessQueue(workers=4)
        dispatcher = WebhookDispatcher(engine, recorder, dlq, queue=queue)
        queue.start(dispatcher)
        await dispatcher.queue("order.completed", {"order_id": 1}, url)
        await queue.drain()
        await queue.stop()
        ```
    """

    def __init__(self, workers: int = 1) -> None:
        self._workers = workers
        self._queues: dict[str, asyncio.Queue[DispatchJob]] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._dispatcher: WebhookDispatcher | None = None

    @property
    def running(self) -> bool:
        return self._dispatcher is not None

    def _queue(self, queue_name: str) -> asyncio.Queue[DispatchJob]:
        if queue_name not in self._queues:
            self._queues[queue_name] = asyncio.Queue()
            if self._dispatcher is not None:
                self._spawn(queue_name)
        return self._queues[queue_name]

    def _spawn(self, queue_name: str) -> None:
        for _ in range(self._workers):
            self._tasks.append(asyncio.create_task(self._worker(queue_name)))

    async def push(self, job: DispatchJob, queue_name: str) -> None:
        await self._queue(queue_name).put(job)
        logger.debug("Queued webhook job %s on %s", job.id, queue_name)

    def size(self, queue_name: str) -> int:
        queue = self._queues.get(queue_name)
        return queue.qsize() if queue is not None else 0

    def start(self, dispatcher: WebhookDispatcher) -> None:
        """Start workers for every known queue, bound to a dispatcher."""
        if self._dispatcher is not None:
            return
        self._dispatcher = dispatcher
        for queue_name in self._queues:
            self._spawn(queue_name)

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def stop(self) -> None:
        """Cancel worker tasks. Unprocessed jobs stay buffered."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._dispatcher = None

    async def _worker(self, queue_name: str) -> None:
        queue = self._queues[queue_name]
        while True:
            job = await queue.get()
            try:
                if self._dispatcher is not None:
                    await job.handle(self._dispatcher)
            except Exception:
                logger.exception("Webhook job %s failed on %s", job.id, queue_name)
            finally:
                queue.task_done()


__all__ = ["DispatchJob", "InProcessQueue", "WorkQueue"]
