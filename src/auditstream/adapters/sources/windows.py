"""Windows Event Log source using a live EvtSubscribe subscription.

A dedicated thread waits on the subscription's signal event with a
bounded timeout so a stop request is observed within one tick. On each
signal it drains the available events, renders them to XML and queues
them inside a small JSON envelope that the structured-record parser
understands.

pywin32 is imported lazily so the module can be imported on any
platform.
"""

import json
import logging
import threading
from typing import Any

from auditstream.adapters.sources.base import DEFAULT_POLL_INTERVAL, QueuedSource
from auditstream.errors import SourceConstructionError

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "Security"
ERROR_NO_MORE_ITEMS = 259


class Win32EventApi:
    """The handful of pywin32 calls used by the subscription loop.

    pywin32 errors are re-raised as OSError so callers need not import
    pywintypes.
    """

    def __init__(self) -> None:
        import pywintypes
        import win32event
        import win32evtlog

        self._pywintypes = pywintypes
        self._win32event = win32event
        self._win32evtlog = win32evtlog

    def _os_error(self, e: Any) -> OSError:
        return OSError(getattr(e, "winerror", None), getattr(e, "strerror", str(e)))

    def create_signal(self) -> Any:
        try:
            return self._win32event.CreateEvent(None, False, False, None)
        except self._pywintypes.error as e:
            raise self._os_error(e) from e

    def subscribe(self, channel: str, signal: Any) -> Any:
        try:
            return self._win32evtlog.EvtSubscribe(
                channel,
                self._win32evtlog.EvtSubscribeToFutureEvents,
                SignalEvent=signal,
            )
        except self._pywintypes.error as e:
            raise self._os_error(e) from e

    def wait(self, signal: Any, timeout_ms: int) -> bool:
        result = self._win32event.WaitForSingleObject(signal, timeout_ms)
        return result == self._win32event.WAIT_OBJECT_0

    def next_batch(self, subscription: Any, count: int) -> list[Any]:
        try:
            return list(self._win32evtlog.EvtNext(subscription, count, 1000))
        except self._pywintypes.error as e:
            if e.winerror == ERROR_NO_MORE_ITEMS:
                return []
            raise self._os_error(e) from e

    def render_xml(self, event: Any) -> str:
        try:
            return self._win32evtlog.EvtRender(event, self._win32evtlog.EvtRenderEventXml)
        except self._pywintypes.error as e:
            raise self._os_error(e) from e

    def close(self, handle: Any) -> None:
        handle.Close()


def wrap_event_xml(xml: str, channel: str) -> bytes:
    """Wrap a rendered event in the envelope read by the structured parser."""
    return json.dumps({"eventMessage": xml, "subsystem": channel}).encode("utf-8")


class WindowsEventLogSource(QueuedSource):
    """Subscribe to future events of one Windows event log channel.

    Args:
        channel: Event log channel to subscribe to.
        poll_interval: Queue wait tick used by receive().
        api: Win32 call wrapper; defaults to a pywin32-backed one.
        wait_timeout_ms: Signal wait timeout, bounding stop latency.
        batch_size: Maximum events fetched per EvtNext call.
    """

    name = "windows"

    def __init__(
        self,
        channel: str = DEFAULT_CHANNEL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        api: Any = None,
        wait_timeout_ms: int = 1000,
        batch_size: int = 10,
    ) -> None:
        super().__init__(poll_interval)
        self.channel = channel
        self._wait_timeout_ms = wait_timeout_ms
        self._batch_size = batch_size
        if api is None:
            try:
                api = Win32EventApi()
            except ImportError as e:
                raise SourceConstructionError("pywin32 is not installed", source_name=self.name, orig_exc=e) from e
        self._api = api

        try:
            self._signal = api.create_signal()
        except OSError as e:
            raise SourceConstructionError(f"cannot create signal event: {e}", source_name=self.name, orig_exc=e) from e
        try:
            self._subscription = api.subscribe(channel, self._signal)
        except OSError as e:
            api.close(self._signal)
            raise SourceConstructionError(
                f"cannot subscribe to channel '{channel}': {e}",
                source_name=self.name,
                orig_exc=e,
            ) from e
        logger.info("Subscribed to Windows event log channel '%s'", channel)

        self._thread = threading.Thread(target=self._run, name="auditstream-windows-reader", daemon=True)
        self._thread.start()

    def _drain(self) -> None:
        while True:
            batch = self._api.next_batch(self._subscription, self._batch_size)
            if not batch:
                return
            for event in batch:
                try:
                    xml = self._api.render_xml(event)
                except OSError as e:
                    logger.debug("Failed to render event from '%s': %s", self.channel, e)
                    continue
                finally:
                    self._api.close(event)
                if xml:
                    self._enqueue(wrap_event_xml(xml, self.channel))

    def _run(self) -> None:
        try:
            while not self._stopped.is_set():
                if self._api.wait(self._signal, self._wait_timeout_ms):
                    self._drain()
        except OSError:
            logger.warning("Windows event subscription on '%s' failed", self.channel, exc_info=True)
        finally:
            self._api.close(self._subscription)
            self._api.close(self._signal)
            logger.info("Unsubscribed from Windows event log channel '%s'", self.channel)

    def _producer_alive(self) -> bool:
        return self._thread.is_alive()
