"""Synthetic audit source replaying a fixed sequence of records."""

from collections.abc import Iterable

from auditstream.adapters.sources.base import DEFAULT_POLL_INTERVAL, QueuedSource


class ReplaySource(QueuedSource):
    """Replays records in order, then blocks until fed more or stopped.

    Suitable for tests and demos: a collector bound to it behaves exactly
    as with a live source that has gone quiet.
    """

    name = "replay"

    def __init__(
        self,
        records: Iterable[bytes] = (),
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(poll_interval)
        for record in records:
            self._enqueue(record)

    def push(self, record: bytes) -> None:
        """Append a record to the end of the replay sequence."""
        self._enqueue(record)

    def is_alive(self) -> bool:
        return not self.stopped
