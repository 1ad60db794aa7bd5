"""Port interfaces for audit sources and event sinks.

These protocols define the contracts that adapters must implement.
The core services depend only on these interfaces, not on concrete
platform implementations.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from auditstream.core.models import AuditEvent, FilterConfig


@runtime_checkable
class AuditSourcePort(Protocol):
    """Port for one platform audit/log ingestion mechanism.

    Adapters implementing this protocol wrap a long-lived subprocess or
    OS subscription handle.
    Examples: TailFileSource, LogStreamSource, WindowsEventLogSource,
    ReplaySource.
    """

    @property
    def name(self) -> str:
        """Short identifier for this source (e.g. ``"tail"``)."""
        ...

    def receive(self) -> bytes:
        """Block until one raw record is available and return it.

        Raises:
            SourceClosedError: The source was stopped and is drained.
        """
        ...

    def stop(self) -> None:
        """Ask the source to release its process or subscription.

        Best-effort and idempotent. The underlying reader may still be
        running when this returns.
        """
        ...

    def is_alive(self) -> bool:
        """Return True while the underlying process/subscription is live."""
        ...


@runtime_checkable
class EventSinkPort(Protocol):
    """Port for the Collector's forwarding channel."""

    def put(self, event: AuditEvent) -> None:
        """Forward one event.

        Raises:
            ChannelClosedError: The consumer side is gone.
        """
        ...

    def close(self) -> None:
        """Mark the channel closed. Later put() calls fail."""
        ...


SourceFactory = Callable[[FilterConfig], AuditSourcePort]
