"""Integration tests for the FastAPI adapter."""

import asyncio
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auditstream.adapters.frameworks.fastapi import create_app, create_audit_router
from auditstream.config import Settings
from auditstream.core.bridge import Broadcaster
from auditstream.core.encoding.ndjson import encode_sse
from auditstream.core.models import GENERIC_RECORD_TYPE, AuditEvent, FilterConfig
from auditstream.core.supervisor import Supervisor, SupervisorState


@pytest.fixture
def router_app(supervisor: Supervisor, broadcaster: Broadcaster) -> FastAPI:
    """Fixture providing a bare FastAPI app with the audit router."""
    app = FastAPI()
    app.include_router(create_audit_router(supervisor, broadcaster, keepalive_interval=5.0))
    return app


class TestAuditRouter:
    """Tests for the /api routes served by FastAPI."""

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    async def test_get_and_post_config(self, router_app: FastAPI, supervisor: Supervisor, asgi_test_client) -> None:
        """Config round trip through the router."""
        supervisor.start()

        async with asgi_test_client(router_app) as client:
            posted = await client.post("/api/config", json={"category": "auth"})
            current = await client.get("/api/config")

        assert posted.status_code == 200
        assert posted.json() == "Config updated"
        assert current.json()["category"] == "auth"
        assert supervisor.config == FilterConfig(category="auth")

    @pytest.mark.tier(2)
    @pytest.mark.tra("Adapter.FastAPI.Config.Validation")
    @pytest.mark.asgi
    @pytest.mark.parametrize("body", [b"[1]", b"{oops", b'{"unknown": "x"}', b'{"pid": 42}'])
    async def test_post_invalid_config_is_422(
        self, router_app: FastAPI, supervisor: Supervisor, asgi_test_client, body: bytes
    ) -> None:
        """Bodies failing the request model are rejected by FastAPI validation."""
        async with asgi_test_client(router_app) as client:
            response = await client.post(
                "/api/config", content=body, headers={"content-type": "application/json"}
            )

        assert response.status_code == 422
        assert "detail" in response.json()
        assert supervisor.generation == 0

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    async def test_post_empty_body_selects_default_config(
        self, router_app: FastAPI, supervisor: Supervisor, asgi_test_client
    ) -> None:
        """No body means the unfiltered default configuration."""
        supervisor.start(FilterConfig(process="sshd"))

        async with asgi_test_client(router_app) as client:
            response = await client.post("/api/config")

        assert response.status_code == 200
        assert supervisor.config == FilterConfig()

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    def test_config_body_in_openapi_schema(self, router_app: FastAPI) -> None:
        """The request model is published in the OpenAPI document."""
        schema = router_app.openapi()

        properties = schema["components"]["schemas"]["FilterConfigRequest"]["properties"]
        assert set(properties) == set(FilterConfig.field_names())

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    async def test_post_construction_failure_is_503(
        self, router_app: FastAPI, replay_factory, asgi_test_client
    ) -> None:
        """A source that cannot be built yields 503 with the error."""
        replay_factory.fail_next()

        async with asgi_test_client(router_app) as client:
            response = await client.post("/api/config", json={"process": "sshd"})

        assert response.status_code == 503
        assert "Failed to create audit source" in response.json()["error"]

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    async def test_health(self, router_app: FastAPI, asgi_test_client) -> None:
        """Health is served while idle too."""
        async with asgi_test_client(router_app) as client:
            response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["state"] == "idle"

    @pytest.mark.tier(2)
    @pytest.mark.tra("Adapter.FastAPI.Events.Stream")
    @pytest.mark.asgi
    async def test_event_stream(self, router_app: FastAPI, broadcaster: Broadcaster) -> None:
        """Published events are streamed as SSE until the client leaves."""
        disconnect = asyncio.Event()
        messages: list[dict] = []
        request_sent = False

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await disconnect.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            messages.append(message)

        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/api/events",
            "raw_path": b"/api/events",
            "root_path": "",
            "query_string": b"",
            "headers": [],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        event = AuditEvent.now(GENERIC_RECORD_TYPE, 0, {"message": "via fastapi"})

        task = asyncio.create_task(router_app(scope, receive, send))
        for _ in range(200):
            if broadcaster.subscriber_count == 1:
                break
            await asyncio.sleep(0.01)
        broadcaster.publish(event)
        for _ in range(200):
            if any(m.get("body") for m in messages):
                break
            await asyncio.sleep(0.01)
        disconnect.set()
        await asyncio.wait_for(task, 7.0)

        start = messages[0]
        assert start["status"] == 200
        assert any(k == b"content-type" and v.startswith(b"text/event-stream") for k, v in start["headers"])
        bodies = b"".join(m.get("body", b"") for m in messages[1:])
        assert encode_sse(event).encode() in bodies


class TestCreateApp:
    """Tests for the assembled service application."""

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    def test_lifespan_starts_and_stops_supervisor(
        self, supervisor: Supervisor, broadcaster: Broadcaster, tmp_path: Path
    ) -> None:
        """The supervisor runs for the lifetime of the app."""
        app = create_app(Settings(source="replay", static_dir=str(tmp_path / "none")), supervisor, broadcaster)

        with TestClient(app) as client:
            assert supervisor.state is SupervisorState.RUNNING
            assert client.get("/api/health").json()["state"] == "running"

        assert supervisor.state is SupervisorState.IDLE

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    def test_failed_start_keeps_serving(
        self, supervisor: Supervisor, broadcaster: Broadcaster, replay_factory, tmp_path: Path
    ) -> None:
        """A source failing at startup leaves the API up and idle."""
        replay_factory.fail_next()
        app = create_app(Settings(source="replay", static_dir=str(tmp_path / "none")), supervisor, broadcaster)

        with TestClient(app) as client:
            assert client.get("/api/health").json()["state"] == "idle"
            assert client.post("/api/config", json={}).status_code == 200
            assert supervisor.state is SupervisorState.RUNNING

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    def test_cors_allows_any_origin(self, supervisor: Supervisor, broadcaster: Broadcaster, tmp_path: Path) -> None:
        """Browsers on other origins may call the API."""
        app = create_app(Settings(source="replay", static_dir=str(tmp_path / "none")), supervisor, broadcaster)

        with TestClient(app) as client:
            response = client.get("/api/config", headers={"Origin": "http://localhost:5173"})

        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.tier(2)
    @pytest.mark.asgi
    def test_static_assets_served_when_present(
        self, supervisor: Supervisor, broadcaster: Broadcaster, tmp_path: Path
    ) -> None:
        """An existing static dir is mounted at the root."""
        (tmp_path / "index.html").write_text("<h1>audit</h1>")
        app = create_app(Settings(source="replay", static_dir=str(tmp_path)), supervisor, broadcaster)

        with TestClient(app) as client:
            index = client.get("/")
            config = client.get("/api/config")

        assert index.status_code == 200
        assert "<h1>audit</h1>" in index.text
        assert config.status_code == 200
