"""Fan-out of newly stored readings to real-time subscribers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadingEvent:
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    owner_id: Optional[str] = None


class Subscription:
    """One subscriber's bounded queue; ``None`` on the queue means closed."""

    def __init__(self, owner_id: Optional[str], max_size: int) -> None:
        self.owner_id = owner_id
        self.queue: asyncio.Queue[Optional[ReadingEvent]] = asyncio.Queue(maxsize=max_size)
        self.dropped = 0

    def wants(self, event: ReadingEvent) -> bool:
        return self.owner_id is None or self.owner_id == event.owner_id

    async def next_event(self, timeout: Optional[float] = None) -> Optional[ReadingEvent]:
        """Wait for the next event; raises ``asyncio.TimeoutError`` when idle."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class ReadingNotifier:
    """Hands events to subscriber queues without ever blocking the caller.

    A subscriber whose queue is full misses the event; delivery problems are
    logged and never raised to the ingestion path.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscriptions: List[Subscription] = []
        self._lock = Lock()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, owner_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(owner_id=owner_id, max_size=self._queue_size)
        with self._lock:
            if self._closed:
                subscription.queue.put_nowait(None)
            else:
                self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def notify(self, event: ReadingEvent) -> int:
        """Queue ``event`` for every interested subscriber; returns deliveries."""
        with self._lock:
            targets = [item for item in self._subscriptions if item.wants(event)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.warning(
                    "Subscriber queue full; dropping event",
                    extra={"owner_id": event.owner_id, "status": "dropped"},
                )
            except Exception:
                logger.warning(
                    "Failed to deliver event to subscriber",
                    exc_info=True,
                    extra={"owner_id": event.owner_id},
                )
            else:
                delivered += 1
        return delivered

    def close(self) -> None:
        with self._lock:
            self._closed = True
            subscriptions, self._subscriptions = self._subscriptions, []

        for subscription in subscriptions:
            try:
                subscription.queue.put_nowait(None)
            except asyncio.QueueFull:
                # Make room for the close marker.
                subscription.queue.get_nowait()
                subscription.queue.put_nowait(None)
        logger.info(
            "Notifier closed", extra={"subscriber_count": len(subscriptions)}
        )
