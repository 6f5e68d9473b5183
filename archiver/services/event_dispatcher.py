"""Async dispatch of archive events with per-message ordering."""

import asyncio
import zlib
from typing import Any, Callable, List, Optional

from archiver.exceptions import ConfigurationError
from archiver.logging_config import logger
from archiver.models.events import ArchiveEvent, MessageEvent


class EventDispatcher:
    """
    Worker pool that archives events off the gateway's event loop.

    Features:
    - One queue per worker, chosen by message id, so events for the same
      message are handled one at a time in arrival order
    - Different messages are handled concurrently
    - The synchronous handler runs in a thread, keeping store I/O off the loop
    - Handler errors are logged and counted, never fatal to a worker
    """

    def __init__(
        self,
        handler: Callable[[MessageEvent], Any],
        expand: Optional[Callable[[ArchiveEvent], List[MessageEvent]]] = None,
        worker_count: int = 8,
        max_queue_size: int = 1000,
    ):
        """
        Initialize the dispatcher.

        Args:
            handler: Synchronous function archiving a single-message event
            expand: Splits an incoming event into single-message events
                (e.g. bulk deletes); defaults to passing events through
            worker_count: Number of workers (and queues)
            max_queue_size: Maximum pending events per worker queue

        Raises:
            ConfigurationError: If there are no workers or no queue room
        """
        if worker_count < 1:
            raise ConfigurationError(
                f"DISPATCH_WORKERS must be at least 1, got {worker_count}"
            )
        if max_queue_size < 1:
            raise ConfigurationError(
                f"DISPATCH_QUEUE_MAX_SIZE must be at least 1, got {max_queue_size}"
            )

        self.handler = handler
        self.expand = expand or (lambda event: [event])
        self.worker_count = worker_count
        self.max_queue_size = max_queue_size

        self.queues: List[asyncio.Queue] = []
        self.worker_tasks: List[asyncio.Task] = []

        # Tracking
        self.processed_count = 0
        self.error_count = 0
        self.dropped_count = 0
        self.is_running = False

    def _queue_index(self, message_id: str) -> int:
        # crc32 is stable across processes, unlike hash() on str
        return zlib.crc32(message_id.encode()) % self.worker_count

    def submit(self, event: ArchiveEvent) -> bool:
        """
        Queue an event for archiving.

        Args:
            event: Decoded event from the gateway

        Returns:
            True if every resulting single-message event was queued
        """
        if not self.is_running:
            logger.error(f"Dispatcher not running, dropping {type(event).__name__}")
            self.dropped_count += 1
            return False

        queued_all = True
        for part in self.expand(event):
            queue = self.queues[self._queue_index(part.id)]
            try:
                queue.put_nowait(part)
                logger.debug(
                    f"Event enqueued: message={part.id}, queue_size={queue.qsize()}"
                )
            except asyncio.QueueFull:
                logger.error(
                    f"Event queue full (max {self.max_queue_size}). "
                    f"Dropping {type(part).__name__} for message {part.id}"
                )
                self.dropped_count += 1
                queued_all = False
        return queued_all

    async def _process_single_event(self, event: MessageEvent) -> bool:
        """
        Run the handler for one event.

        Returns:
            True if the handler returned, False if it raised
        """
        try:
            await asyncio.to_thread(self.handler, event)
            self.processed_count += 1
            return True
        except Exception as e:
            logger.error(
                f"Handler error for message {event.id}: {e}", exc_info=True
            )
            self.error_count += 1
            return False

    async def _worker(self, worker_id: int, queue: asyncio.Queue) -> None:
        """
        Worker coroutine draining one queue.

        Args:
            worker_id: Worker identifier
            queue: The queue this worker owns
        """
        logger.info(f"Worker {worker_id} started")

        while True:
            try:
                event = await queue.get()
            except asyncio.CancelledError:
                logger.info(f"Worker {worker_id} cancelled")
                break

            try:
                await self._process_single_event(event)
            finally:
                queue.task_done()

        logger.info(f"Worker {worker_id} stopped")

    async def start_workers(self) -> None:
        """Create the queues and start one worker task per queue."""
        if self.is_running:
            logger.warning("Workers already running")
            return

        self.queues = [
            asyncio.Queue(maxsize=self.max_queue_size) for _ in range(self.worker_count)
        ]
        self.worker_tasks = [
            asyncio.create_task(self._worker(i, queue))
            for i, queue in enumerate(self.queues)
        ]
        self.is_running = True

        logger.info(f"Started {self.worker_count} event dispatch workers")

    async def stop_workers(self, drain_timeout: Optional[float] = 10) -> None:
        """
        Stop all workers.

        Args:
            drain_timeout: Seconds to wait for queued events before
                cancelling; events still queued after that are abandoned
        """
        if not self.is_running:
            logger.warning("Workers not running")
            return

        logger.info("Stopping workers...")
        self.is_running = False

        if drain_timeout:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(queue.join() for queue in self.queues)),
                    timeout=drain_timeout,
                )
                logger.info("Queues empty, stopping workers")
            except asyncio.TimeoutError:
                logger.warning(
                    f"Abandoning {self.get_queue_size()} queued events after "
                    f"{drain_timeout}s"
                )

        for task in self.worker_tasks:
            task.cancel()
        await asyncio.gather(*self.worker_tasks, return_exceptions=True)
        self.worker_tasks = []

        logger.info("Workers stopped")

    async def join(self) -> None:
        """Block until every queued event has been handled."""
        await asyncio.gather(*(queue.join() for queue in self.queues))

    def get_queue_size(self) -> int:
        """Get the number of events waiting across all queues."""
        return sum(queue.qsize() for queue in self.queues)

    def get_stats(self) -> dict:
        """
        Get dispatcher statistics.

        Returns:
            Dictionary with stats
        """
        return {
            "queue_size": self.get_queue_size(),
            "max_queue_size": self.max_queue_size,
            "worker_count": self.worker_count,
            "processed_count": self.processed_count,
            "error_count": self.error_count,
            "dropped_count": self.dropped_count,
            "is_running": self.is_running,
        }


__all__ = ["EventDispatcher"]
