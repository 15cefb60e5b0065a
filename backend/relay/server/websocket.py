from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.messaging.encoder import DecodeError, decode
from relay.messaging.protocol import ConnectionProtocol
from relay.messaging.types import ErrorCode, error_message
from shared.validators import is_valid_room_id

logger = structlog.get_logger()

if TYPE_CHECKING:
    from relay.messaging.router import MessageRouter
    from relay.server.settings import RelayServerSettings

_DEFAULT_QUEUE_SIZE = 256

# Seconds a closing connection gets to flush frames already queued
_FLUSH_TIMEOUT = 2.0

_CLOSE_INVALID_HANDSHAKE = 4000
_CLOSE_TOO_MANY_DECODE_ERRORS = 4004


class WebSocketConnection(ConnectionProtocol):
    """Starlette WebSocket wrapped with a bounded outbound queue.

    send_text only enqueues; a writer task started by start() performs the
    network writes in FIFO order. This keeps handlers that send while
    holding a room lock from waiting on a slow client.
    """

    def __init__(
        self,
        websocket: WebSocket,
        room_id: str,
        connection_id: str | None = None,
        *,
        queue_size: int = _DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._websocket = websocket
        self._room_id = room_id
        self._connection_id = connection_id or str(uuid4())
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._writer_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def room_id(self) -> str:
        return self._room_id

    def start(self) -> None:
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._write_loop())

    async def stop(self) -> None:
        """Stop accepting frames and let the writer flush what is already queued."""
        self._closed = True
        task = self._writer_task
        if task is None:
            return
        self._writer_task = None
        # a full queue gets no sentinel; the timeout below cancels the writer instead
        with contextlib.suppress(asyncio.QueueFull):
            self._outbox.put_nowait(None)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(task, timeout=_FLUSH_TIMEOUT)

    async def _write_loop(self) -> None:
        while True:
            data = await self._outbox.get()
            if data is None:
                return
            try:
                await self._websocket.send_text(data)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("outbound write failed, stopping writer", error=str(e))
                self._closed = True
                return

    async def send_text(self, data: str) -> None:
        if self._closed:
            raise ConnectionError("WebSocket already disconnected")
        try:
            self._outbox.put_nowait(data)
        except asyncio.QueueFull:
            raise ConnectionError("outbound queue full") from None

    async def receive_frame(self) -> str | bytes:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket already disconnected")
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self.stop()
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter, settings: RelayServerSettings) -> None:
    room_id = websocket.query_params.get("roomId")
    if not room_id:
        await websocket.close(code=_CLOSE_INVALID_HANDSHAKE, reason="missing_room_id")
        return
    if not is_valid_room_id(room_id):
        await websocket.close(code=_CLOSE_INVALID_HANDSHAKE, reason="invalid_room_id")
        return
    is_host = websocket.query_params.get("isHost", "").lower() == "true"

    await websocket.accept()

    connection = WebSocketConnection(websocket, room_id=room_id, queue_size=settings.outbound_queue_size)
    connection.start()
    structlog.contextvars.bind_contextvars(room_id=room_id, connection_id=connection.connection_id)
    logger.info("websocket connected", is_host=is_host)

    decode_errors = 0

    try:
        await router.handle_connect(connection, is_host=is_host)
        while True:
            raw = await connection.receive_frame()

            try:
                data = decode(raw, max_bytes=settings.max_message_bytes)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(error_message(ErrorCode.INVALID_MESSAGE, str(e)))
                if decode_errors >= settings.max_decode_errors:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=_CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        await connection.stop()
        structlog.contextvars.clear_contextvars()
