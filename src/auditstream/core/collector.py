"""Collector: pull raw records from one source, parse, forward."""

import logging
import threading

from auditstream.core.parsing import parse_record
from auditstream.core.ports import AuditSourcePort, EventSinkPort
from auditstream.errors import ChannelClosedError, ParseError, SourceClosedError

logger = logging.getLogger(__name__)


class Collector:
    """Binds one audit source to one forwarding sink.

    ``run()`` blocks the calling thread. It ends when the sink is closed
    by its consumer or when the source reports it is stopped and drained;
    in both cases the sink is closed on exit so downstream relays finish.
    Malformed records are dropped and counted, never raised.
    """

    def __init__(self, source: AuditSourcePort, sink: EventSinkPort) -> None:
        self._source = source
        self._sink = sink
        self._thread: threading.Thread | None = None
        self.processed = 0
        self.dropped = 0

    @property
    def source(self) -> AuditSourcePort:
        return self._source

    def run(self) -> None:
        """Run the receive/parse/forward loop until the stream ends."""
        try:
            while True:
                try:
                    raw = self._source.receive()
                except SourceClosedError:
                    logger.debug("Source '%s' closed, collector stopping", self._source.name)
                    return

                if not raw:
                    continue

                try:
                    event = parse_record(raw)
                except ParseError as e:
                    self.dropped += 1
                    logger.debug("Dropped unparseable record from '%s': %s", self._source.name, e)
                    continue

                try:
                    self._sink.put(event)
                except ChannelClosedError:
                    logger.info("Receiver dropped, stopping collector for '%s'", self._source.name)
                    return
                self.processed += 1
        finally:
            self._sink.close()

    def start(self, name: str = "auditstream-collector") -> threading.Thread:
        """Run the loop on a dedicated daemon thread and return it."""
        self._thread = threading.Thread(target=self._run_logged, name=name, daemon=True)
        self._thread.start()
        return self._thread

    def _run_logged(self) -> None:
        try:
            self.run()
        except Exception:
            logger.exception("Collector for '%s' terminated unexpectedly", self._source.name)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
