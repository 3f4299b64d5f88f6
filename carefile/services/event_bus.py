"""Per-case push notifications for connected clients.

Subscribers get a bounded queue; a slow client loses its oldest events rather
than holding memory for the whole process.
"""

import asyncio
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


class CaseEventBus:
    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    def subscriber_count(self, case_id: str) -> int:
        return len(self._subscribers.get(case_id, ()))

    def subscribe(self, case_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(case_id, set()).add(queue)
        return queue

    def unsubscribe(self, case_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(case_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[case_id]

    async def publish(self, case_id: str, event: dict) -> None:
        """Deliver ``event`` to every subscriber of ``case_id``.

        Each subscriber receives its own copy stamped with ``case_id`` and ``at``.
        """
        queues = self._subscribers.get(case_id)
        if not queues:
            return

        stamped = {**event, "case_id": case_id, "at": datetime.now(timezone.utc).isoformat()}
        for queue in queues:
            if queue.full():
                queue.get_nowait()
                logger.warning("Dropped oldest event for a slow subscriber of case %s", case_id)
            queue.put_nowait(dict(stamped))
        logger.debug("Published %s to %d subscriber(s) of case %s", event.get("type"), len(queues), case_id)


event_bus = CaseEventBus()
