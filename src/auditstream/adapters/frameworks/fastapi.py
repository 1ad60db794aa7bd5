"""FastAPI adapter for the configuration and live event endpoints."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict

from auditstream.adapters.frameworks.asgi import DEFAULT_KEEPALIVE_INTERVAL, apply_filter_config
from auditstream.config import Settings
from auditstream.core.bridge import Broadcaster
from auditstream.core.encoding.ndjson import SSE_KEEPALIVE, encode_sse
from auditstream.core.models import FilterConfig
from auditstream.core.supervisor import Supervisor
from auditstream.errors import SourceConstructionError

logger = logging.getLogger(__name__)


class FilterConfigRequest(BaseModel):
    """POST /api/config body. Unknown keys and non-string values are rejected."""

    model_config = ConfigDict(extra="forbid")

    process: str | None = None
    message: str | None = None
    subsystem: str | None = None
    pid: str | None = None
    thread_id: str | None = None
    category: str | None = None
    library: str | None = None


def create_audit_router(
    supervisor: Supervisor,
    broadcaster: Broadcaster,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
) -> APIRouter:
    """Create a FastAPI router with the /api endpoints.

    Args:
        supervisor: Owner of the active filter configuration and source.
        broadcaster: Fan-out sink that event subscribers attach to.
        keepalive_interval: Idle seconds before an SSE keep-alive comment.

    Returns:
        APIRouter with /api/config, /api/events and /api/health configured.
    """
    router = APIRouter(prefix="/api")

    @router.get("/config")
    async def get_config() -> JSONResponse:
        """Return the active filter configuration."""
        return JSONResponse(supervisor.config.to_dict())

    @router.post("/config")
    async def update_config(body: FilterConfigRequest | None = None) -> JSONResponse:
        """Replace the filter configuration and restart the audit source.

        An empty body selects the default (unfiltered) configuration.
        """
        config = FilterConfig() if body is None else FilterConfig(**body.model_dump())
        status, payload = await apply_filter_config(supervisor, config)
        return JSONResponse(payload, status_code=status)

    @router.get("/events")
    async def stream_events(request: Request) -> Response:
        """Stream live audit events as Server-Sent Events."""
        subscription = broadcaster.subscribe()

        async def event_stream() -> AsyncIterator[str]:
            try:
                while not await request.is_disconnected():
                    event = await subscription.receive_async(keepalive_interval)
                    yield SSE_KEEPALIVE if event is None else encode_sse(event)
            finally:
                subscription.close()

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @router.get("/health")
    async def get_health() -> JSONResponse:
        return JSONResponse(supervisor.health())

    return router


def create_app(settings: Settings, supervisor: Supervisor, broadcaster: Broadcaster) -> FastAPI:
    """Assemble the service application.

    The supervisor is started with the default configuration on startup
    and shut down when the application stops. A failed initial start is
    logged and leaves the supervisor idle, so a corrected configuration
    can still be posted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await asyncio.to_thread(supervisor.start)
        except SourceConstructionError as e:
            logger.warning("Audit source not started: %s", e)
        yield
        await asyncio.to_thread(supervisor.shutdown)

    app = FastAPI(title="auditstream", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(create_audit_router(supervisor, broadcaster))

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.info("Static directory '%s' not found, UI assets not served", static_dir)
    return app
