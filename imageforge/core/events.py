"""
Progress Event Broadcasting

Fire-and-forget publish/subscribe for ProgressEvents. Each subscriber owns
a bounded queue; publish never waits, and a subscriber whose queue is full
loses the event. Subscribers only see events published after they joined.
"""

import asyncio
from typing import Optional, Set

from imageforge.core.config import settings
from imageforge.core.logging import get_logger
from imageforge.modules.imagery.models import ProgressEvent

logger = get_logger(__name__)


class EventBroadcaster:
    """In-process fan-out of progress events to connected observers."""

    def __init__(self, queue_size: int = 1000):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug("progress_subscriber_added", subscribers=len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)
        logger.debug("progress_subscriber_removed", subscribers=len(self._subscribers))

    def publish(self, event: ProgressEvent):
        payload = event.model_dump()
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning("progress_event_dropped", event_type=event.type, file=event.file)


_broadcaster: Optional[EventBroadcaster] = None


def get_broadcaster() -> EventBroadcaster:
    """Process-wide broadcaster - ready for FastAPI Depends()."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = EventBroadcaster(queue_size=settings.EVENT_QUEUE_SIZE)
    return _broadcaster
