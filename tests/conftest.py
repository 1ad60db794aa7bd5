"""Shared test fixtures for all test modules."""

import time
from collections.abc import Callable, Iterator

import httpx
import pytest

from auditstream.adapters.sources.replay import ReplaySource
from auditstream.core.bridge import Broadcaster
from auditstream.core.models import FilterConfig
from auditstream.core.supervisor import Supervisor
from auditstream.errors import SourceConstructionError


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a condition until it holds or a deadline passes.

    Usage:
        assert wait_until(lambda: subscription.pending == 2)
    """

    def _wait(condition: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(interval)
        return condition()

    return _wait


class ReplayFactory:
    """SourceFactory building ReplaySources and remembering each one.

    Records queued with ``preload`` are fed to the next source built.
    ``fail_next`` makes the next construction raise.
    """

    def __init__(self) -> None:
        self.sources: list[ReplaySource] = []
        self.configs: list[FilterConfig] = []
        self.pending: list[bytes] = []
        self.failures = 0

    def preload(self, *records: bytes) -> None:
        self.pending.extend(records)

    def fail_next(self, count: int = 1) -> None:
        self.failures += count

    def __call__(self, config: FilterConfig) -> ReplaySource:
        self.configs.append(config)
        if self.failures:
            self.failures -= 1
            raise SourceConstructionError("replay refused", source_name="replay")
        source = ReplaySource(self.pending, poll_interval=0.01)
        self.pending = []
        self.sources.append(source)
        return source


@pytest.fixture
def replay_factory() -> ReplayFactory:
    """Fixture providing a recording ReplaySource factory."""
    return ReplayFactory()


@pytest.fixture
def broadcaster() -> Broadcaster:
    """Fixture providing a small fan-out sink."""
    return Broadcaster(capacity=16)


@pytest.fixture
def supervisor(broadcaster: Broadcaster, replay_factory: ReplayFactory) -> Iterator[Supervisor]:
    """Fixture providing an idle supervisor with a zero grace interval.

    Shut down after the test so no collector threads outlive it.
    """
    sup = Supervisor(broadcaster, replay_factory, grace_interval=0.0)
    yield sup
    sup.shutdown()


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts.

    Used in tests to create scope dicts with customizable method/path.
    """
    from auditstream.adapters.frameworks.asgi import Scope

    def _scope(method: str = "GET", path: str = "/api/config") -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture.

    Returns a tuple of (send_func, responses_list) for recording ASGI messages.
    """

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(supervisor, broadcaster)
            async with asgi_test_client(app) as client:
                response = await client.get("/api/config")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    return _get_client
