"""Audit source adapters implementing AuditSourcePort.

Sources
-------
- ``TailFileSource`` - Linux auditd log via ``tail -f``
- ``LogStreamSource`` - macOS unified log via ``log stream`` with a predicate
- ``WindowsEventLogSource`` - Windows Event Log via ``EvtSubscribe``
- ``ReplaySource`` - fixed record sequence for tests and demos
"""

import logging
import sys

from auditstream.adapters.sources.log_stream import LogStreamSource, build_predicate
from auditstream.adapters.sources.replay import ReplaySource
from auditstream.adapters.sources.tail import TailFileSource
from auditstream.adapters.sources.windows import WindowsEventLogSource
from auditstream.config import Settings
from auditstream.core.models import FilterConfig
from auditstream.core.ports import AuditSourcePort, SourceFactory
from auditstream.errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)

_PLATFORM_SOURCES = {
    "darwin": "log-stream",
    "linux": "tail",
    "win32": "windows",
}


def detect_source_kind(platform: str | None = None) -> str:
    """Return the native source kind for a ``sys.platform`` value.

    Raises:
        UnsupportedPlatformError: No native mechanism is known.
    """
    platform = sys.platform if platform is None else platform
    for prefix, kind in _PLATFORM_SOURCES.items():
        if platform.startswith(prefix):
            return kind
    raise UnsupportedPlatformError(platform)


def create_source(config: FilterConfig, settings: Settings) -> AuditSourcePort:
    """Build the source variant selected by ``settings.source``.

    Raises:
        SourceConstructionError: The source could not be created.
    """
    kind = detect_source_kind() if settings.source == "auto" else settings.source

    if kind == "log-stream":
        return LogStreamSource(config, binary=settings.log_binary, poll_interval=settings.poll_interval)

    if kind in ("tail", "windows") and not config.is_empty():
        logger.info("Source '%s' does not support filtering; ignoring %s", kind, config)
    if kind == "tail":
        return TailFileSource(settings.tail_path, poll_interval=settings.poll_interval)
    if kind == "windows":
        return WindowsEventLogSource(settings.windows_channel, poll_interval=settings.poll_interval)
    return ReplaySource(poll_interval=settings.poll_interval)


def source_factory(settings: Settings) -> SourceFactory:
    """Bind settings into a SourceFactory for the supervisor."""

    def factory(config: FilterConfig) -> AuditSourcePort:
        return create_source(config, settings)

    return factory


__all__ = [
    "LogStreamSource",
    "ReplaySource",
    "TailFileSource",
    "WindowsEventLogSource",
    "build_predicate",
    "create_source",
    "detect_source_kind",
    "source_factory",
]
