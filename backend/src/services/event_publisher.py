"""
Background dispatch of product audit events.

Mutations put events on an in-process queue and return immediately; a single
consumer task writes them to the activity stream. A failed or dropped event
is logged and never reaches the request that produced it.
"""

import asyncio
from typing import Optional

from backend.src.core.config import settings
from backend.src.core.logging import get_logger
from backend.src.core.realtime import ProductLogStream, product_log_stream
from backend.src.models.product_event import ProductEvent

logger = get_logger(__name__)


class EventPublisher:
    """Queue-backed, best-effort publisher for product events."""

    def __init__(self, stream: ProductLogStream, max_queue_size: Optional[int] = None):
        self.stream = stream
        self._queue: asyncio.Queue[ProductEvent] = asyncio.Queue(
            maxsize=max_queue_size if max_queue_size is not None else settings.EVENT_QUEUE_MAX_SIZE
        )
        self._worker: Optional[asyncio.Task] = None
        self.published = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, event: ProductEvent) -> bool:
        """
        Hand an event to the consumer without waiting.

        Returns:
            False if the queue was full and the event was dropped
        """
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Event queue full, dropping product event",
                extra={
                    "action": event.action.value,
                    "product_id": event.product_id,
                    "queue_size": self._queue.maxsize,
                },
            )
            return False
        return True

    async def start(self) -> None:
        """Start the consumer task."""
        if self.running:
            return
        self._queue = self._fresh_queue()
        self._worker = asyncio.create_task(self._run(), name="product-event-publisher")
        self._worker.add_done_callback(self._on_worker_done)
        logger.info("Event publisher started", extra={"path": self.stream.path})

    def _fresh_queue(self) -> "asyncio.Queue[ProductEvent]":
        """New queue for the running loop, holding anything enqueued before start."""
        queue: asyncio.Queue[ProductEvent] = asyncio.Queue(maxsize=self._queue.maxsize)
        while not self._queue.empty():
            queue.put_nowait(self._queue.get_nowait())
        return queue

    @staticmethod
    def _on_worker_done(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error(
            "Event publisher stopped unexpectedly",
            extra={"error": str(task.exception())},
            exc_info=task.exception(),
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Flush pending events, then stop the consumer.

        Args:
            timeout: Seconds to wait for the queue to drain
        """
        if self._worker is None:
            return

        timeout = settings.EVENT_DRAIN_TIMEOUT if timeout is None else timeout
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Event queue not drained before shutdown",
                extra={"pending": self._queue.qsize()},
            )

        if not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

        logger.info(
            "Event publisher stopped",
            extra={
                "published": self.published,
                "failed": self.failed,
                "dropped": self.dropped,
            },
        )

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._publish(event)
            finally:
                self._queue.task_done()

    async def _publish(self, event: ProductEvent) -> None:
        try:
            ok = await self.stream.publish(event)
        except Exception as e:
            ok = False
            logger.error(
                "Unexpected error publishing product event",
                extra={"action": event.action.value, "error": str(e)},
                exc_info=True,
            )

        if ok:
            self.published += 1
        else:
            self.failed += 1
            logger.warning(
                "Product event not recorded",
                extra={"action": event.action.value, "product_id": event.product_id},
            )


# Global publisher instance
event_publisher = EventPublisher(product_log_stream)


def get_event_publisher() -> EventPublisher:
    """Dependency returning the event publisher."""
    return event_publisher
