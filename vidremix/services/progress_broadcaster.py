"""Per-job pub/sub for progress updates.

Each subscriber owns an asyncio.Queue; publishing copies the subscriber set
first, so subscribers may join or leave while a broadcast is being delivered.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProgressBroadcaster(Generic[T]):
    """Manages subscriptions and message publishing per job id."""

    def __init__(self) -> None:
        # Map job_id -> set of asyncio.Queue for each subscriber
        self._subscribers: dict[str, set[asyncio.Queue[T]]] = defaultdict(set)

    def register(self, job_id: str) -> asyncio.Queue[T]:
        queue: asyncio.Queue[T] = asyncio.Queue()
        self._subscribers[job_id].add(queue)
        logger.debug(
            f"New subscriber for job {job_id}. Total: {len(self._subscribers[job_id])}"
        )
        return queue

    def unregister(self, job_id: str, queue: asyncio.Queue[T]) -> None:
        subscribers = self._subscribers.get(job_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        logger.debug(f"Subscriber removed for job {job_id}. Remaining: {len(subscribers)}")
        # Clean up empty subscriber sets
        if not subscribers:
            del self._subscribers[job_id]

    def publish(self, job_id: str, message: T) -> int:
        """Deliver a message to every current subscriber of a job.

        Returns:
            Number of subscribers notified
        """
        subscribers = self._subscribers.get(job_id, set()).copy()
        if not subscribers:
            return 0

        for queue in subscribers:
            queue.put_nowait(message)
        return len(subscribers)

    def get_subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, set()))
