from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from relay.server.settings import RelayServerSettings
from relay.server.websocket import websocket_endpoint
from relay.session.coordinator import SessionCoordinator
from relay.session.registry import RoomRegistry
from relay.session.timeout_manager import TimeoutManager, TimeoutPolicy
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(request: Request) -> JSONResponse:
    coordinator: SessionCoordinator = request.app.state.coordinator
    return JSONResponse({"status": "ok", "rooms": coordinator.room_count})


async def create_room(request: Request) -> JSONResponse:
    coordinator: SessionCoordinator = request.app.state.coordinator
    if coordinator.at_capacity:
        return JSONResponse({"error": "Server at capacity"}, status_code=503)

    room_id = coordinator.create_room()
    return JSONResponse({"roomId": room_id, "success": True})


async def room_status(request: Request) -> JSONResponse:
    coordinator: SessionCoordinator = request.app.state.coordinator
    status = coordinator.get_room_status(request.path_params["room_id"])
    if status is None:
        return JSONResponse({"error": "Room not found"}, status_code=404)
    return JSONResponse(status.model_dump(by_alias=True))


def create_app(
    settings: RelayServerSettings | None = None,
    coordinator: SessionCoordinator | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = RelayServerSettings()

    if coordinator is None:
        registry = RoomRegistry()
        timeouts = TimeoutManager(registry, TimeoutPolicy.from_settings(settings))
        coordinator = SessionCoordinator(
            registry,
            timeouts,
            max_rooms=settings.max_rooms,
            best_effort_types=settings.best_effort_types,
        )

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, coordinator)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/api/create-room", create_room, methods=["POST"]),
        Route("/api/room/{room_id}", room_status, methods=["GET"]),
        WebSocketRoute("/", ws_endpoint),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        coordinator.cancel_all_timeouts()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.coordinator = coordinator

    logger.info("relay server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = RelayServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)


def main() -> None:  # pragma: no cover
    settings = RelayServerSettings()
    uvicorn.run(get_app, factory=True, host=settings.host, port=settings.port, log_config=None)
