"""ASGI generic adapter exposing configuration and the live event stream.

This adapter provides a framework-agnostic ASGI application that can be used
with any ASGI server (uvicorn, hypercorn, daphne) without requiring FastAPI.

Endpoints:
    GET  /api/config  - active filter configuration (JSON)
    POST /api/config  - replace the filter configuration (JSON body)
    GET  /api/events  - live events as Server-Sent Events
    GET  /api/health  - supervisor liveness snapshot (JSON)
"""

import asyncio
import json
import logging
from collections.abc import Callable, Coroutine
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from auditstream.core.bridge import Broadcaster
from auditstream.core.encoding.ndjson import SSE_KEEPALIVE, encode_sse
from auditstream.core.models import FilterConfig
from auditstream.core.supervisor import Supervisor
from auditstream.errors import SourceConstructionError

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

DEFAULT_KEEPALIVE_INTERVAL = 15.0

# Reconfigurations are serialized by the Supervisor; one thread suffices
_reconfigure_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="auditstream-reconfigure")

SSE_HEADERS = [
    (b"content-type", b"text/event-stream"),
    (b"cache-control", b"no-cache"),
    (b"x-accel-buffering", b"no"),
]


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _send_json(send: Send, status: int, payload: Any) -> None:
    await _send_response(send, status, "application/json", json.dumps(payload))


async def _read_body(receive: Receive) -> bytes:
    """Read the full request body from ASGI http.request messages."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def parse_filter_config(body: bytes) -> FilterConfig:
    """Decode a request body into a FilterConfig.

    Raises:
        ValueError: Body is not a JSON object with filter fields.
    """
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg}") from e
    if not isinstance(payload, dict):
        raise ValueError("Filter configuration must be a JSON object")
    return FilterConfig.from_dict(payload)


async def apply_filter_config(supervisor: Supervisor, config: FilterConfig) -> tuple[int, Any]:
    """Run a reconfiguration off the event loop and map the outcome to HTTP.

    The cycle runs on a dedicated single-thread executor, not on the
    loop's default executor.

    Returns:
        (status code, JSON payload)
    """
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(_reconfigure_executor, supervisor.reconfigure, config)
    except SourceConstructionError as e:
        return 503, {"error": str(e)}
    return 200, "Config updated"


async def _handle_config(scope: Scope, receive: Receive, send: Send, supervisor: Supervisor) -> None:
    if scope["method"] == "GET":
        await _send_json(send, 200, supervisor.config.to_dict())
        return
    if scope["method"] != "POST":
        await _send_response(send, 405, "text/plain", "Method Not Allowed")
        return
    try:
        config = parse_filter_config(await _read_body(receive))
    except ValueError as e:
        await _send_json(send, 400, {"error": str(e)})
        return
    status, payload = await apply_filter_config(supervisor, config)
    await _send_json(send, status, payload)


async def _stream_events(
    receive: Receive,
    send: Send,
    broadcaster: Broadcaster,
    keepalive_interval: float,
) -> None:
    """Stream every newly published event until the client disconnects."""
    subscription = broadcaster.subscribe()
    disconnected = asyncio.Event()

    async def watch_disconnect() -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                disconnected.set()
                # Wakes the pending receive_async()
                subscription.close()
                return

    watcher = asyncio.create_task(watch_disconnect())
    try:
        await send({"type": "http.response.start", "status": 200, "headers": SSE_HEADERS})
        while not disconnected.is_set():
            event = await subscription.receive_async(keepalive_interval)
            if disconnected.is_set():
                break
            chunk = SSE_KEEPALIVE if event is None else encode_sse(event)
            await send({"type": "http.response.body", "body": chunk.encode(), "more_body": True})
    finally:
        watcher.cancel()
        subscription.close()


def create_asgi_app(
    supervisor: Supervisor,
    broadcaster: Broadcaster,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
) -> ASGIApp:
    """Create an ASGI app with /api/config, /api/events and /api/health.

    Args:
        supervisor: Owner of the active filter configuration and source.
        broadcaster: Fan-out sink that event subscribers attach to.
        keepalive_interval: Idle seconds before an SSE keep-alive comment.

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]

        if path == "/api/config":
            try:
                await _handle_config(scope, receive, send, supervisor)
            except Exception:
                logger.exception("Error handling configuration request")
                await _send_json(send, 500, {"error": "Internal Server Error"})
        elif path == "/api/events":
            await _stream_events(receive, send, broadcaster, keepalive_interval)
        elif path == "/api/health":
            await _send_json(send, 200, supervisor.health())
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
