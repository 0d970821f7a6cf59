"""In-memory availability fan-out for the "parking-updates" channel.

Each subscriber owns a bounded asyncio.Queue. publish() never blocks and never
raises: a subscriber whose queue is full misses the event (best effort, no
replay). The registry is process-local and empty after a restart.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from src.ps_common.datetime_utils import utc_now
from src.ps_common.id_generator import generate_id

logger = logging.getLogger(__name__)

SPOT_UPDATED_EVENT = "parking-spot-updated"


class AvailabilityPublisher(Protocol):
    """Capability handed to the ledger; the only way availability events leave it."""

    def publish(self, spot_id: str, available_spots: int) -> None: ...


@dataclass(frozen=True)
class AvailabilityEvent:
    spot_id: str
    available_spots: int
    published_at: datetime = field(default_factory=utc_now)

    def to_message(self, channel: str) -> dict[str, Any]:
        return {
            "event": SPOT_UPDATED_EVENT,
            "channel": channel,
            "data": {"spotId": self.spot_id, "availableSpots": self.available_spots},
            "timestamp": self.published_at.isoformat(),
        }


class Subscription:
    def __init__(self, queue_size: int) -> None:
        self.id = generate_id("sub")
        self._queue: asyncio.Queue[AvailabilityEvent] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def offer(self, event: AvailabilityEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self) -> AvailabilityEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class AvailabilityNotifier:
    """Single-topic publish/subscribe registry."""

    def __init__(self, channel: str = "parking-updates", queue_size: int = 100) -> None:
        self.channel = channel
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self._queue_size)
        self._subscribers[sub.id] = sub
        logger.info("Subscriber %s joined %s", sub.id, self.channel)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if self._subscribers.pop(sub.id, None) is not None:
            logger.info(
                "Subscriber %s left %s (%d events dropped)", sub.id, self.channel, sub.dropped
            )

    def publish(self, spot_id: str, available_spots: int) -> None:
        event = AvailabilityEvent(spot_id=spot_id, available_spots=available_spots)
        # Copy: a subscriber may unsubscribe while we iterate.
        for sub in list(self._subscribers.values()):
            if not sub.offer(event):
                logger.debug("Dropped %s event for slow subscriber %s", spot_id, sub.id)
