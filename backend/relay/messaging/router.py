from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from relay.messaging.types import (
    ErrorCode,
    GameStartMessage,
    JoinRequestMessage,
    RelayedMessage,
    error_message,
    parse_client_message,
)

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.broadcast import BroadcastGroups
    from relay.session.lifecycle import SessionLifecycleManager
    from relay.session.projector import GameStateProjector
    from relay.session.registry import RoomRegistry

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes connection events and incoming messages to the session layer.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        groups: BroadcastGroups,
        lifecycle: SessionLifecycleManager,
        projector: GameStateProjector,
    ) -> None:
        self._registry = registry
        self._groups = groups
        self._lifecycle = lifecycle
        self._projector = projector

    async def handle_connect(self, connection: ConnectionProtocol, *, is_host: bool) -> None:
        """Tag the connection with its room, then create the room for a host."""
        self._groups.add(connection.room_id, connection)
        await self._lifecycle.open_room(connection, is_host=is_host)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        self._groups.remove(connection.connection_id)
        await self._lifecycle.disconnect(connection)

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await self._groups.send_to(connection, error_message(ErrorCode.INVALID_MESSAGE, str(e)))
            return

        room_id = connection.room_id
        async with self._registry.locked(room_id):
            room = self._registry.get(room_id)
            if room is None:
                logger.info("dropping %s for unknown room %s", message.type, room_id)
                return
            room.touch()

            try:
                if isinstance(message, JoinRequestMessage):
                    await self._lifecycle.join(connection, room, message)
                elif isinstance(message, GameStartMessage):
                    await self._lifecycle.start_game(connection, room, message)
                else:
                    if isinstance(message, RelayedMessage):
                        self._projector.observe(room.game_state, message)
                    # relayed and unknown types go out exactly as received
                    await self._groups.broadcast(room_id, raw_message)
            except Exception:
                logger.exception("error handling %s in room %s", message.type, room_id)
                await self._groups.send_to(
                    connection,
                    error_message(ErrorCode.INTERNAL_ERROR, "internal server error"),
                )
