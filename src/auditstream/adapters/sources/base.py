"""Shared queue plumbing for audit source adapters.

Every source variant has a producer (a reader thread, or test code
pushing records) feeding a thread-safe FIFO, and a consumer calling
``receive()`` on the Collector thread. ``receive()`` waits on the queue
in ``poll_interval`` ticks so that a stop request is noticed even when
nothing arrives.
"""

import logging
import queue
import threading

from auditstream.errors import SourceClosedError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.05


class QueuedSource:
    """Base class implementing receive()/stop() over a record queue.

    Subclasses feed records with ``_enqueue`` and report whether their
    producer may still add records via ``_producer_alive``.
    """

    name = "queued"

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._queue: queue.Queue[bytes] = queue.Queue()
        self._stopped = threading.Event()
        self._poll_interval = poll_interval

    def _enqueue(self, record: bytes) -> None:
        self._queue.put(record)

    def _producer_alive(self) -> bool:
        return False

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def receive(self) -> bytes:
        """Block until a record is available.

        Raises:
            SourceClosedError: stop() was called, the producer has
                finished and every queued record has been returned.
        """
        while True:
            try:
                return self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._stopped.is_set() and not self._producer_alive() and self._queue.empty():
                    raise SourceClosedError(f"Source '{self.name}' is stopped") from None

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        logger.debug("Stop requested for source '%s'", self.name)

    def is_alive(self) -> bool:
        return not self._stopped.is_set() and self._producer_alive()
