"""Distribution bridge between the Collector and live subscribers.

A Collector forwards parsed events into a :class:`HandoffQueue`. A
:class:`Relay` thread drains that queue into a :class:`Broadcaster`,
which copies every event into the bounded buffer of each attached
:class:`Subscription`. When a subscriber falls behind, its oldest
unread events are evicted; publication never waits on a subscriber.
"""

import asyncio
import logging
import threading
import weakref
from collections import deque

from auditstream.core.models import AuditEvent
from auditstream.errors import ChannelClosedError

logger = logging.getLogger(__name__)

DEFAULT_FANOUT_CAPACITY = 100


class HandoffQueue:
    """Unbounded FIFO hand-off from one Collector to one Relay.

    Implements EventSinkPort. After close(), put() raises and get()
    returns the remaining events followed by None.
    """

    def __init__(self) -> None:
        self._items: deque[AuditEvent] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def put(self, event: AuditEvent) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosedError("Hand-off queue is closed")
            self._items.append(event)
            self._cond.notify()

    def get(self, timeout: float | None = None) -> AuditEvent | None:
        """Block until an event is available.

        Returns None on timeout, or once the queue is closed and drained.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._closed, timeout)
            if self._items:
                return self._items.popleft()
            return None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


class Subscription:
    """One subscriber's private delivery cursor on a Broadcaster.

    Holds at most ``capacity`` unread events. ``missed`` counts events
    evicted because the subscriber did not keep up.
    """

    def __init__(self, broadcaster: "Broadcaster", capacity: int) -> None:
        self._broadcaster = broadcaster
        self._buffer: deque[AuditEvent] = deque(maxlen=capacity)
        self._cond = threading.Condition()
        self._closed = False
        # (loop, event) pairs of coroutines parked in receive_async()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []
        self.missed = 0

    def _deliver(self, event: AuditEvent) -> bool:
        with self._cond:
            if self._closed:
                return False
            if len(self._buffer) == self._buffer.maxlen:
                self.missed += 1
            self._buffer.append(event)
            self._cond.notify()
            self._wake_waiters()
            return True

    def _wake_waiters(self) -> None:
        """Signal parked coroutines from any thread. Caller holds the lock."""
        for loop, ready in self._waiters:
            try:
                loop.call_soon_threadsafe(ready.set)
            except RuntimeError:
                logger.debug("Subscriber event loop closed before wake-up")
        self._waiters.clear()

    def receive(self, timeout: float | None = None) -> AuditEvent | None:
        """Block until the next event is available.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            The next event, or None on timeout or once closed.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._buffer or self._closed, timeout)
            if self._buffer and not self._closed:
                return self._buffer.popleft()
            return None

    async def receive_async(self, timeout: float | None = None) -> AuditEvent | None:
        """Await the next event without occupying a worker thread.

        Same contract as :meth:`receive`, for use on an asyncio event loop.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            with self._cond:
                if self._closed:
                    return None
                if self._buffer:
                    return self._buffer.popleft()
                ready = asyncio.Event()
                waiter = (loop, ready)
                self._waiters.append(waiter)
            remaining = None if deadline is None else deadline - loop.time()
            try:
                if remaining is not None and remaining <= 0:
                    return None
                await asyncio.wait_for(ready.wait(), remaining)
            except asyncio.TimeoutError:
                return None
            finally:
                with self._cond:
                    if waiter in self._waiters:
                        self._waiters.remove(waiter)

    def close(self) -> None:
        """Detach from the broadcaster and wake any blocked receive()."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._buffer.clear()
            self._cond.notify_all()
            self._wake_waiters()
        self._broadcaster._detach(self)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._buffer)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Broadcaster:
    """Fan-out sink with independent, lossy-when-lagging subscribers.

    Subscribers are held weakly: a Subscription that is garbage
    collected is detached without an explicit close().

    Args:
        capacity: Per-subscriber buffer size.
    """

    def __init__(self, capacity: int = DEFAULT_FANOUT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._subscriptions: weakref.WeakSet[Subscription] = weakref.WeakSet()
        self._lock = threading.Lock()
        self.published = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def subscribe(self) -> Subscription:
        """Attach a new subscriber. It sees only events published from now on."""
        subscription = Subscription(self, self._capacity)
        with self._lock:
            self._subscriptions.add(subscription)
            count = len(self._subscriptions)
        logger.debug("Subscriber attached (%d total)", count)
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
            count = len(self._subscriptions)
        logger.debug("Subscriber detached (%d total)", count)

    def publish(self, event: AuditEvent) -> int:
        """Deliver an event to every attached subscriber.

        Returns:
            Number of subscribers the event was delivered to.
        """
        with self._lock:
            subscriptions = list(self._subscriptions)
            self.published += 1
        return sum(1 for s in subscriptions if s._deliver(event))

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


class Relay:
    """Dedicated thread draining a HandoffQueue into a Broadcaster.

    The thread exits once the queue is closed and empty.
    """

    def __init__(
        self,
        handoff: HandoffQueue,
        broadcaster: Broadcaster,
        name: str = "auditstream-relay",
    ) -> None:
        self._handoff = handoff
        self._broadcaster = broadcaster
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.relayed = 0

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while True:
            event = self._handoff.get()
            if event is None:
                break
            self._broadcaster.publish(event)
            self.relayed += 1
        logger.debug("Relay finished after %d events", self.relayed)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)
