from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from imposter.messaging.router import MessageRouter
from imposter.server.settings import ServerSettings
from imposter.server.websocket import websocket_endpoint
from imposter.session.manager import SessionManager
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    settings: ServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "rooms": session_manager.room_count,
            "max_rooms": settings.max_rooms,
        },
    )


async def room_detail(request: Request) -> JSONResponse:
    """Public view of one room, for invite links. Never includes round secrets."""
    session_manager: SessionManager = request.app.state.session_manager
    view = session_manager.room_view(request.path_params["code"])
    if view is None:
        return JSONResponse({"error": "Room not found"}, status_code=404)
    return JSONResponse(view.model_dump(mode="json"))


def create_app(
    settings: ServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ServerSettings()

    if session_manager is None:
        session_manager = SessionManager(
            max_rooms=settings.max_rooms,
            role_reveal_seconds=settings.role_reveal_seconds,
            results_seconds=settings.results_seconds,
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/rooms/{code}", room_detail, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        session_manager.cancel_all_timers()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("imposter server ready", max_rooms=settings.max_rooms)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = ServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
