"""Reconfiguration supervisor owning the active audit source.

The supervisor is the only writer of the process-wide "active filter
config + active source" slot. Each accepted configuration change tears
down the current source/collector pair, waits a grace interval so the
OS can release the old process or subscription, and builds a new pair
bound to a fresh hand-off queue. The Broadcaster and its subscribers are
never touched by a reconfiguration.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from auditstream.core.bridge import Broadcaster, HandoffQueue, Relay
from auditstream.core.collector import Collector
from auditstream.core.models import FilterConfig
from auditstream.core.ports import AuditSourcePort, SourceFactory
from auditstream.errors import SourceConstructionError

logger = logging.getLogger(__name__)

DEFAULT_GRACE_INTERVAL = 0.1


class SupervisorState(Enum):
    """Steady states of the supervisor."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class _Pipeline:
    source: AuditSourcePort
    collector: Collector
    relay: Relay


class Supervisor:
    """Serializes reconfigurations and owns the active source.

    Args:
        broadcaster: Fan-out sink shared by every pipeline generation.
        source_factory: Builds an audit source from a FilterConfig and
            raises SourceConstructionError on failure.
        grace_interval: Seconds to wait after stopping a source before
            building its replacement.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        source_factory: SourceFactory,
        grace_interval: float = DEFAULT_GRACE_INTERVAL,
    ) -> None:
        self._broadcaster = broadcaster
        self._source_factory = source_factory
        self._grace_interval = grace_interval
        # Held for a whole reconfigure cycle; a second change waits here.
        self._reconfigure_lock = threading.Lock()
        # Guards the config/pipeline slot for consistent snapshots.
        self._slot_lock = threading.Lock()
        self._config = FilterConfig()
        self._pipeline: _Pipeline | None = None
        self._generation = 0

    @property
    def config(self) -> FilterConfig:
        """The configuration of the last successful activation."""
        with self._slot_lock:
            return self._config

    @property
    def state(self) -> SupervisorState:
        with self._slot_lock:
            return SupervisorState.IDLE if self._pipeline is None else SupervisorState.RUNNING

    @property
    def active_source(self) -> AuditSourcePort | None:
        with self._slot_lock:
            return None if self._pipeline is None else self._pipeline.source

    @property
    def generation(self) -> int:
        """Number of successful activations so far."""
        with self._slot_lock:
            return self._generation

    def start(self, config: FilterConfig | None = None) -> None:
        """Initial activation from IDLE, with the default config if none is given."""
        self.reconfigure(config or FilterConfig())

    def reconfigure(self, config: FilterConfig) -> bool:
        """Replace the active configuration and rebuild the source.

        Returns:
            True if a new source was activated, False if ``config``
            equals the configuration already running.

        Raises:
            SourceConstructionError: The new source could not be built.
                The supervisor is left IDLE.
        """
        with self._reconfigure_lock:
            with self._slot_lock:
                current_config = self._config
                pipeline = self._pipeline

            if pipeline is not None and config == current_config:
                logger.debug("Configuration unchanged, keeping source '%s'", pipeline.source.name)
                return False

            if pipeline is not None:
                self._teardown(pipeline)
                time.sleep(self._grace_interval)

            logger.info("Restarting collector with config: %s", config)
            try:
                source = self._source_factory(config)
            except SourceConstructionError as e:
                logger.error("Failed to create source: %s", e)
                raise

            with self._slot_lock:
                self._generation += 1
                generation = self._generation
            handoff = HandoffQueue()
            collector = Collector(source, handoff)
            relay = Relay(handoff, self._broadcaster, name=f"auditstream-relay-{generation}")
            relay.start()
            collector.start(name=f"auditstream-collector-{generation}")

            with self._slot_lock:
                self._config = config
                self._pipeline = _Pipeline(source=source, collector=collector, relay=relay)
            logger.info("Audit source '%s' active (generation %d)", source.name, generation)
            return True

    def _teardown(self, pipeline: _Pipeline) -> None:
        with self._slot_lock:
            self._pipeline = None
        logger.info("Stopping audit source '%s'", pipeline.source.name)
        pipeline.source.stop()

    def shutdown(self, timeout: float = 1.0) -> None:
        """Stop the active source and wait briefly for its threads to finish."""
        with self._reconfigure_lock:
            with self._slot_lock:
                pipeline = self._pipeline
            if pipeline is None:
                return
            self._teardown(pipeline)
            pipeline.collector.join(timeout)
            pipeline.relay.join(timeout)

    def health(self) -> dict[str, Any]:
        """Liveness snapshot of the active pipeline."""
        with self._slot_lock:
            pipeline = self._pipeline
            generation = self._generation
        report: dict[str, Any] = {
            "state": SupervisorState.IDLE.value if pipeline is None else SupervisorState.RUNNING.value,
            "generation": generation,
            "subscribers": self._broadcaster.subscriber_count,
            "published": self._broadcaster.published,
        }
        if pipeline is not None:
            report.update(
                {
                    "source": pipeline.source.name,
                    "source_alive": pipeline.source.is_alive(),
                    "collector_alive": pipeline.collector.is_alive(),
                    "events_processed": pipeline.collector.processed,
                    "records_dropped": pipeline.collector.dropped,
                }
            )
        return report
