"""Process-wide room registry with per-room serialization."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from relay.session.models import GameState, Room

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = structlog.get_logger()


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0  # holders + waiters


class RoomRegistry:
    """Owns every Room. Purely state management, no connection I/O.

    Callers wrap each read-modify-broadcast sequence in ``locked(room_id)``
    and call the synchronous accessors inside it. Locks are per room id, so
    a slow handler in one room never delays another room. A lock lives for
    as long as someone holds or waits on it, which guarantees one lock per
    id even when a room is deleted and recreated.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, _KeyLock] = {}

    @contextlib.asynccontextmanager
    async def locked(self, room_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(room_id)
        if entry is None:
            entry = _KeyLock()
            self._locks[room_id] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(room_id) is entry:
                del self._locks[room_id]

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_or_create(
        self,
        room_id: str,
        *,
        host_connection_id: str,
        initial_state: Callable[[], GameState] = GameState,
    ) -> tuple[Room, bool]:
        """Return (room, created). An existing room is returned unchanged."""
        room = self._rooms.get(room_id)
        if room is not None:
            return room, False
        room = Room(room_id=room_id, host_connection_id=host_connection_id, game_state=initial_state())
        self._rooms[room_id] = room
        logger.info("room created", room_id=room_id, host_connection_id=host_connection_id)
        return room, True

    def delete(self, room_id: str) -> Room | None:
        room = self._rooms.pop(room_id, None)
        if room is not None:
            logger.info("room deleted", room_id=room_id)
        return room

    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    @property
    def room_count(self) -> int:
        return len(self._rooms)
