"""Chat Bridge Application.

This is the main entry point for the chat bridge service. The bridge owns
one slow, stateful messaging session and serves many short-lived HTTP and
WebSocket consumers, hiding the session's latency behind caches, batched
contact resolution and cursor-paginated history.

Modules:
    - connection: Session lifecycle, status, QR and pairing code
    - contacts: Batched contact name / avatar resolution
    - messages: Message pages, send and search
    - chats: Chat list, read receipts and media
    - groups: Group detail and administration
    - stats: Cached unread statistics
    - broadcast: WebSocket fan-out of session events
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatbridge import __version__
from chatbridge.broadcast import BroadcastHub
from chatbridge.broadcast.router import router as events_router
from chatbridge.cache import CacheRegistry
from chatbridge.chats.router import router as chats_router
from chatbridge.chats.service import ChatService
from chatbridge.config import BridgeConfig, get_config
from chatbridge.connection.manager import SessionManager
from chatbridge.connection.router import router as connection_router
from chatbridge.connection.state import SessionStateStore
from chatbridge.contacts import ContactResolver
from chatbridge.contacts.router import router as contacts_router
from chatbridge.errors import BridgeError
from chatbridge.groups.router import router as groups_router
from chatbridge.groups.service import GroupService
from chatbridge.messages.pagination import MessagePager
from chatbridge.messages.router import router as messages_router
from chatbridge.session import SessionFactory, load_session_factory
from chatbridge.stats.router import router as stats_router
from chatbridge.stats.service import StatsService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every connection made while fetching media URLs;
# uvicorn.access logs every poll of /api/status and /api/stats.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _build_services(app: FastAPI, config: BridgeConfig, session_factory: SessionFactory) -> SessionManager:
    """Wire every service onto ``app.state`` and return the session manager."""
    store = SessionStateStore()
    caches = CacheRegistry.from_settings(config.cache)
    hub = BroadcastHub(store.snapshot, send_timeout=config.server.ws_send_timeout_seconds)
    resolver = ContactResolver(store, caches, concurrency=config.contacts.concurrency)
    manager = SessionManager(
        store,
        hub,
        caches,
        resolver,
        session_factory,
        settings=config.session,
        message_settings=config.messages,
    )

    app.state.config = config
    app.state.store = store
    app.state.caches = caches
    app.state.hub = hub
    app.state.resolver = resolver
    app.state.manager = manager
    app.state.pager = MessagePager(
        store,
        resolver,
        settings=config.messages,
        contact_concurrency=config.contacts.concurrency,
    )
    app.state.chat_service = ChatService(
        store,
        chat_settings=config.chats,
        search_settings=config.search,
        media_settings=config.media,
    )
    app.state.group_service = GroupService(store, resolver, settings=config.contacts)
    app.state.stats_service = StatsService(store, caches.stats, settings=config.stats)
    return manager


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())[1:])
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(
    config: Optional[BridgeConfig] = None,
    session_factory: Optional[SessionFactory] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to use. Defaults to ``get_config()``.
        session_factory: Callable creating the messaging session. Defaults
            to the dotted path in ``session.factory``.
    """
    config = config or get_config()
    factory = session_factory or load_session_factory(config.session.factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        # Apply configured log level to root logger so that
        # `logging.level: "debug"` in chatbridge.settings.yaml activates DEBUG output.
        configured_level = getattr(logging, config.logging.level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", config.logging.level.upper())

        manager = _build_services(app, config, factory)
        await manager.initialize()
        logger.info(
            f"Chat bridge running on http://{config.server.host}:{config.server.port}"
        )

        yield  # Application runs here

        # Shutdown
        await manager.shutdown()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Chat Bridge API",
        description="HTTP and WebSocket bridge to a single messaging session",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    # Register all routers
    app.include_router(connection_router)
    app.include_router(chats_router)
    app.include_router(messages_router)
    app.include_router(contacts_router)
    app.include_router(groups_router)
    app.include_router(stats_router)
    app.include_router(events_router)

    @app.get("/health")
    @app.get("/api/health", include_in_schema=False)
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve ``app`` with uvicorn."""
    config = get_config()
    uvicorn.run(
        "chatbridge.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level,
    )
