from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.messaging.protocol import ConnectionProtocol
from relay.messaging.types import CLOSE_INTERNAL_ERROR
from relay.session.models import JoinRequest

logger = structlog.get_logger()

if TYPE_CHECKING:
    from relay.session.coordinator import SessionCoordinator


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())
        self._open = True

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def is_open(self) -> bool:
        return self._open

    def mark_closed(self) -> None:
        self._open = False

    async def send_frame(self, data: str | bytes) -> None:
        if not self._open:
            raise ConnectionError("WebSocket already closed")
        try:
            if isinstance(data, bytes):
                await self._websocket.send_bytes(data)
            else:
                await self._websocket.send_text(data)
        except WebSocketDisconnect:
            self._open = False
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_frame(self) -> str | bytes:
        """Wait for the next text or binary frame from the client."""
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            self._open = False
            raise ConnectionError("WebSocket disconnected")
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self._open:
            return
        self._open = False
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, coordinator: SessionCoordinator) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    request = JoinRequest.from_query_params(websocket.query_params)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected", room_id=request.room_id, player_id=request.player_id)

    session = await coordinator.join(connection, request)
    if session is None:
        structlog.contextvars.clear_contextvars()
        return

    try:
        while not session.is_closed:
            frame = await connection.receive_frame()
            await coordinator.relay(session, frame)
    except (WebSocketDisconnect, ConnectionError):
        pass
    except (RuntimeError, OSError) as e:
        logger.warning("websocket transport error", error=str(e))
        await connection.close(code=CLOSE_INTERNAL_ERROR)
    except Exception:
        logger.exception("unexpected error in relay websocket")
        await connection.close(code=CLOSE_INTERNAL_ERROR)
    finally:
        connection.mark_closed()
        logger.info("websocket disconnected", room_id=session.room_id, player_id=session.player_id)
        await coordinator.leave(session)
        structlog.contextvars.clear_contextvars()
