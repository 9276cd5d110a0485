"""
In-process notification relay: one topic per match id.

- publish() fans an event out to everyone subscribed to the topic *right now*
- nothing is retained; late subscribers never see earlier events
- delivery is best-effort: a subscriber whose queue is full loses the event
  (clients reconcile by re-reading the match)
"""

import asyncio
import logging
import queue
from threading import RLock
from typing import Dict, Iterator, Optional, Set

from .events import MatchEvent

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, relay: "NotificationRelay", topic: str, maxsize: int):
        self.topic = topic
        self._relay = relay
        self._queue: "queue.Queue[MatchEvent]" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def _offer(self, event: MatchEvent) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[MatchEvent]:
        """Next event, or None if nothing arrived within `timeout`."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._relay._unsubscribe(self)

    def __iter__(self) -> Iterator[MatchEvent]:
        # Long-lived stream; ends when the subscription is closed
        while not self.closed:
            event = self.get(timeout=0.5)
            if event is not None:
                yield event

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class AsyncSubscription(Subscription):
    """
    Subscription read from an asyncio event loop (e.g. a WebSocket handler).

    publish() runs in worker threads, so events are handed to the loop with
    call_soon_threadsafe and awaited with next(); no thread is parked waiting.
    """

    def __init__(self, relay: "NotificationRelay", topic: str, maxsize: int,
                 loop: asyncio.AbstractEventLoop):
        super().__init__(relay, topic, maxsize)
        self._loop = loop
        self._events: "asyncio.Queue[MatchEvent]" = asyncio.Queue(maxsize=maxsize)

    def _offer(self, event: MatchEvent) -> bool:
        if self.closed or self._events.full():
            return False
        try:
            self._loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # loop already closed; the handler is gone
            return False
        return True

    def _put(self, event: MatchEvent) -> None:
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("dropped %s event for a slow subscriber on %s", event.kind, self.topic)

    async def next(self) -> MatchEvent:
        return await self._events.get()

    def __iter__(self) -> Iterator[MatchEvent]:
        raise TypeError("AsyncSubscription is read with `await next()`")

    def get(self, timeout: Optional[float] = None) -> Optional[MatchEvent]:
        try:
            return self._events.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def drain(self) -> list:
        events = []
        while not self._events.empty():
            events.append(self._events.get_nowait())
        return events


class NotificationRelay:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._topics: Dict[str, Set[Subscription]] = {}
        self._lock = RLock()

    def subscribe(self, topic: str) -> Subscription:
        sub = Subscription(self, topic, self._queue_size)
        with self._lock:
            self._topics.setdefault(topic, set()).add(sub)
        logger.debug("subscribed to %s", topic)
        return sub

    def subscribe_async(self, topic: str, loop: Optional[asyncio.AbstractEventLoop] = None) -> AsyncSubscription:
        """Must be called from the loop that will await the events."""
        sub = AsyncSubscription(self, topic, self._queue_size, loop or asyncio.get_running_loop())
        with self._lock:
            self._topics.setdefault(topic, set()).add(sub)
        logger.debug("subscribed to %s (async)", topic)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._topics.get(sub.topic)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._topics[sub.topic]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def publish(self, topic: str, event: MatchEvent) -> int:
        """Returns how many subscribers accepted the event."""
        with self._lock:
            # snapshot so subscribe/close during fan-out is safe
            subs = list(self._topics.get(topic, ()))
        delivered = 0
        for sub in subs:
            if sub._offer(event):
                delivered += 1
            else:
                logger.warning("dropped %s event for a slow subscriber on %s", event.kind, topic)
        return delivered
