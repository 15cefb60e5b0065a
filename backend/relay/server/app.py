from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route, WebSocketRoute

from relay.messaging.router import MessageRouter
from relay.server.settings import RelayServerSettings
from relay.server.websocket import websocket_endpoint
from relay.session.broadcast import BroadcastGroups
from relay.session.lifecycle import SessionLifecycleManager
from relay.session.projector import GameStateProjector
from relay.session.registry import RoomRegistry
from shared.logging import setup_logging
from shared.network import get_local_ip_address

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

BANNER = "Party relay server running"


async def index(_request: Request) -> PlainTextResponse:
    return PlainTextResponse(BANNER)


async def health(request: Request) -> JSONResponse:
    registry: RoomRegistry = request.app.state.registry
    groups: BroadcastGroups = request.app.state.groups
    return JSONResponse(
        {
            "status": "ok",
            "rooms": registry.room_count,
            "connections": groups.connection_count,
        },
    )


async def local_ip(_request: Request) -> JSONResponse:
    return JSONResponse({"ip": get_local_ip_address()})


def create_app(
    settings: RelayServerSettings | None = None,
    registry: RoomRegistry | None = None,
    groups: BroadcastGroups | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = RelayServerSettings()

    if registry is None:
        registry = RoomRegistry()
    if groups is None:
        groups = BroadcastGroups()

    projector = GameStateProjector(rounds_total=settings.rounds_total)
    lifecycle = SessionLifecycleManager(
        registry,
        groups,
        projector,
        room_ttl_seconds=settings.room_ttl_seconds,
    )
    if message_router is None:
        message_router = MessageRouter(registry, groups, lifecycle, projector)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router, settings)

    routes = [
        Route("/", index, methods=["GET"]),
        Route("/health", health, methods=["GET"]),
        Route("/api/local-ip", local_ip, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        lifecycle.start_room_reaper()
        logger.info("relay server listening", url=f"http://{get_local_ip_address() or settings.host}:{settings.port}")
        yield
        await lifecycle.stop_room_reaper()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.groups = groups
    app.state.lifecycle = lifecycle

    logger.info("relay server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = RelayServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)


def main() -> None:  # pragma: no cover
    settings = RelayServerSettings()
    uvicorn.run("relay.server.app:get_app", factory=True, host=settings.host, port=settings.port)
