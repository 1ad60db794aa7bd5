"""Tests for the Windows Event Log source driven by a fake Win32 API."""

import json
import time
from collections import deque

import pytest

from auditstream.adapters.sources.windows import WindowsEventLogSource, wrap_event_xml
from auditstream.core.parsing import parse_record
from auditstream.errors import SourceClosedError, SourceConstructionError

EVENT_XML = "<Event><System><EventID>4624</EventID></System></Event>"


class FakeEventApi:
    """Stand-in for the pywin32 calls used by WindowsEventLogSource.

    Each queued batch is delivered after one signalled wait. Handles are
    plain strings so tests can check what was closed.
    """

    def __init__(self, batches: list[list[str]] | None = None, fail_subscribe: bool = False) -> None:
        self.batches: deque[list[str]] = deque(batches or [])
        self.fail_subscribe = fail_subscribe
        self.unrenderable: set[str] = set()
        self.closed: list[str] = []
        self.subscribed_channel: str | None = None

    def create_signal(self) -> str:
        return "signal"

    def subscribe(self, channel: str, signal: str) -> str:
        if self.fail_subscribe:
            raise OSError(5, "Access is denied")
        self.subscribed_channel = channel
        return "subscription"

    def wait(self, signal: str, timeout_ms: int) -> bool:
        if self.batches:
            return True
        time.sleep(timeout_ms / 1000)
        return False

    def next_batch(self, subscription: str, count: int) -> list[str]:
        if not self.batches:
            return []
        return self.batches.popleft()[:count]

    def render_xml(self, event: str) -> str:
        if event in self.unrenderable:
            raise OSError(13, "The data is invalid")
        return event

    def close(self, handle: str) -> None:
        self.closed.append(handle)


def _source(api: FakeEventApi) -> WindowsEventLogSource:
    return WindowsEventLogSource("Security", poll_interval=0.01, api=api, wait_timeout_ms=10)


class TestWrapEventXml:
    """Tests for the structured envelope."""

    @pytest.mark.sources
    @pytest.mark.tier(0)
    def test_envelope_travels_structured_path(self) -> None:
        """The wrapped XML parses as message plus subsystem."""
        event = parse_record(wrap_event_xml(EVENT_XML, "Security"))

        assert event.fields["message"] == EVENT_XML
        assert event.fields["subsystem"] == "Security"


class TestWindowsEventLogSource:
    """Tests for the subscription loop."""

    @pytest.mark.sources
    @pytest.mark.tier(1)
    def test_rendered_events_are_queued(self) -> None:
        """Each rendered event becomes one JSON envelope record."""
        api = FakeEventApi([[EVENT_XML, EVENT_XML.replace("4624", "4625")]])
        source = _source(api)
        try:
            first = json.loads(source.receive())
            second = json.loads(source.receive())
        finally:
            source.stop()

        assert api.subscribed_channel == "Security"
        assert first == {"eventMessage": EVENT_XML, "subsystem": "Security"}
        assert "4625" in second["eventMessage"]

    @pytest.mark.sources
    @pytest.mark.tier(1)
    def test_event_handles_are_closed(self, wait_until) -> None:
        """Every rendered event handle is released, even when rendering fails."""
        api = FakeEventApi([["<Bad/>", EVENT_XML]])
        api.unrenderable.add("<Bad/>")
        source = _source(api)
        try:
            assert json.loads(source.receive())["eventMessage"] == EVENT_XML
            assert wait_until(lambda: "<Bad/>" in api.closed and EVENT_XML in api.closed)
        finally:
            source.stop()

    @pytest.mark.sources
    @pytest.mark.tier(1)
    def test_stop_releases_subscription(self, wait_until) -> None:
        """After stop() the loop exits and both handles are closed."""
        api = FakeEventApi()
        source = _source(api)

        source.stop()
        source.stop()

        assert wait_until(lambda: "subscription" in api.closed and "signal" in api.closed)
        with pytest.raises(SourceClosedError):
            source.receive()

    @pytest.mark.sources
    @pytest.mark.tier(0)
    def test_subscribe_failure_is_construction_error(self) -> None:
        """A refused subscription fails construction and frees the signal."""
        api = FakeEventApi(fail_subscribe=True)

        with pytest.raises(SourceConstructionError, match="cannot subscribe to channel 'Security'"):
            _source(api)

        assert api.closed == ["signal"]
