"""Broadcast groups: which connections are tagged with which room id."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


class BroadcastGroups:
    """Track connections per room id for fan-out.

    Membership is a transport-level tag and is independent of the room
    registry: a connection is tagged from the moment it is accepted, before
    any Room record exists for its id, and until it closes.
    """

    def __init__(self) -> None:
        self._groups: dict[str, dict[str, ConnectionProtocol]] = {}  # room_id -> {conn_id -> conn}
        self._connection_rooms: dict[str, str] = {}  # conn_id -> room_id (reverse index)

    def add(self, room_id: str, connection: ConnectionProtocol) -> None:
        self._groups.setdefault(room_id, {})[connection.connection_id] = connection
        self._connection_rooms[connection.connection_id] = room_id

    def remove(self, connection_id: str) -> str | None:
        """Remove a connection and return the room id it was tagged with, or None."""
        room_id = self._connection_rooms.pop(connection_id, None)
        if room_id is not None and room_id in self._groups:
            self._groups[room_id].pop(connection_id, None)
            if not self._groups[room_id]:
                del self._groups[room_id]
        return room_id

    def members(self, room_id: str) -> list[str]:
        return list(self._groups.get(room_id, {}))

    @property
    def connection_count(self) -> int:
        return len(self._connection_rooms)

    async def broadcast(self, room_id: str, message: dict[str, Any]) -> None:
        """Send a message to every connection tagged with room_id at this moment.

        Best effort: a connection that cannot take the message is skipped.
        The member dict is snapshotted so a concurrent detach cannot break
        the iteration.
        """
        for conn_id, connection in list(self._groups.get(room_id, {}).items()):
            try:
                await connection.send_message(message)
            except (ConnectionError, RuntimeError, OSError) as e:
                logger.warning("broadcast delivery failed", room_id=room_id, connection_id=conn_id, error=str(e))

    async def send_to(self, connection: ConnectionProtocol, message: dict[str, Any]) -> bool:
        """Send a message to one connection. Returns True on success."""
        try:
            await connection.send_message(message)
        except (ConnectionError, RuntimeError, OSError):
            return False
        return True

    async def close_connections(self, connection_ids: list[str], code: int = 1000, reason: str = "") -> None:
        """Detach and close the given connections.

        Takes explicit ids rather than a room id so that connections tagged
        after the caller took its snapshot are left alone.
        """
        for conn_id in connection_ids:
            room_id = self._connection_rooms.get(conn_id)
            if room_id is None:
                continue
            connection = self._groups[room_id][conn_id]
            self.remove(conn_id)
            with contextlib.suppress(ConnectionError, RuntimeError, OSError):
                await connection.close(code=code, reason=reason)
