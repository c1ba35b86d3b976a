"""Change notifications: broadcast an opaque event to every current subscriber.

Delivery is fire-and-forget and at-most-once per subscriber. ``publish``
never blocks the publisher; a subscriber whose buffer is full is dropped
and has to reconnect (and re-sync from page 1).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

Event = dict[str, Any]

# Event types published by the catalog writer
FILE_ADDED = "file_added"
FILE_UPDATED = "file_updated"
FILE_DELETED = "file_deleted"


def change_event(kind: str, *, folder_id: UUID | None, file_id: UUID) -> Event:
    """Build the JSON-serializable event for a catalog change."""
    return {
        "type": kind,
        "folderId": str(folder_id) if folder_id is not None else "",
        "fileId": str(file_id),
    }


class Subscription:
    """One subscriber's buffered view of the broadcast stream."""

    def __init__(self, queue_size: int) -> None:
        self._queue: asyncio.Queue[Event | None] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def _offer(self, event: Event | None) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def _close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake a pending ``get``; make room for the sentinel if needed
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self) -> Event | None:
        """Return the next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class Broadcaster:
    """In-process hub fanning events out to subscribers."""

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._queue_size)
        self._subscribers.add(subscription)
        logger.info("Subscriber registered (%d active)", len(self._subscribers))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            subscription._close()
            logger.info("Subscriber unregistered (%d active)", len(self._subscribers))

    def publish(self, event: Event) -> int:
        """Offer ``event`` to every subscriber; returns how many accepted it."""
        delivered = 0
        for subscription in list(self._subscribers):
            if subscription._offer(event):
                delivered += 1
            else:
                logger.warning("Subscriber buffer full, dropping subscriber")
                self.unsubscribe(subscription)
        logger.debug("Broadcast %s to %d subscriber(s)", event.get("type"), delivered)
        return delivered

    def close(self) -> None:
        for subscription in list(self._subscribers):
            self.unsubscribe(subscription)
