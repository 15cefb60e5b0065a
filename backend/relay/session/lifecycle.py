from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING

from relay.messaging.types import (
    DisconnectNoticePayload,
    ErrorCode,
    GameStartedPayload,
    HostChangePayload,
    JoinConfirmedPayload,
    MessageType,
    PlayerListUpdatePayload,
    error_message,
    server_message,
)
from relay.session.models import Participant

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol
    from relay.messaging.types import GameStartMessage, JoinRequestMessage
    from relay.session.broadcast import BroadcastGroups
    from relay.session.models import Room
    from relay.session.projector import GameStateProjector
    from relay.session.registry import RoomRegistry

logger = logging.getLogger(__name__)

_ROOM_REAPER_INTERVAL = 30  # seconds between reaper checks
ROOM_EXPIRED_CLOSE_CODE = 1000
ROOM_EXPIRED_REASON = "room_expired"


class SessionLifecycleManager:
    """Join, game start, disconnect and host migration for rooms.

    ``join`` and ``start_game`` expect the caller to hold the room lock
    (the router takes it once per message). ``open_room``, ``disconnect``
    and the reaper take the lock themselves.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        groups: BroadcastGroups,
        projector: GameStateProjector,
        room_ttl_seconds: int = 0,
    ) -> None:
        self._registry = registry
        self._groups = groups
        self._projector = projector
        self._room_ttl_seconds = room_ttl_seconds
        self._room_reaper_task: asyncio.Task[None] | None = None

    # --- Connect ---

    async def open_room(self, connection: ConnectionProtocol, *, is_host: bool) -> None:
        """Create the room for a host connection if it does not exist yet.

        Participants are only added later by JOIN_REQUEST.
        """
        if not is_host:
            return
        async with self._registry.locked(connection.room_id):
            self._registry.get_or_create(
                connection.room_id,
                host_connection_id=connection.connection_id,
                initial_state=self._projector.initial_state,
            )

    # --- Join ---

    async def join(self, connection: ConnectionProtocol, room: Room, message: JoinRequestMessage) -> None:
        participant_id = message.sender
        nickname = message.payload.nickname

        # one participant per connection, whether the id is new or known
        existing = room.find_by_connection(connection.connection_id)
        if existing is not None and existing.id != participant_id:
            await self._groups.send_to(
                connection,
                error_message(
                    ErrorCode.ALREADY_JOINED,
                    f"connection already joined as {existing.id}",
                ),
            )
            return

        participant = room.find_participant(participant_id)
        if participant is not None:
            # same logical player on a new connection: keep position, host follows the connection
            logger.info("participant rebound to new connection: %s", participant_id)
            if participant.is_host:
                room.host_connection_id = connection.connection_id
            participant.connection_id = connection.connection_id
            participant.is_host = connection.connection_id == room.host_connection_id
            participant.nickname = nickname
        else:
            participant = Participant(
                id=participant_id,
                connection_id=connection.connection_id,
                nickname=nickname,
                is_host=connection.connection_id == room.host_connection_id,
            )
            room.participants.append(participant)
            logger.info("participant joined: %s (host=%s)", participant_id, participant.is_host)

        await self._groups.send_to(
            connection,
            server_message(
                MessageType.JOIN_CONFIRMED,
                JoinConfirmedPayload(participant=participant.to_view(), game_state=room.game_state.to_view()),
            ),
        )
        await self._broadcast_player_list(room)

    # --- Game start ---

    async def start_game(self, connection: ConnectionProtocol, room: Room, message: GameStartMessage) -> None:
        if connection.connection_id != room.host_connection_id:
            logger.warning("game start rejected, sender is not host: %s", connection.connection_id)
            await self._groups.send_to(
                connection,
                error_message(ErrorCode.NOT_HOST, "only the host can start a game"),
            )
            return

        game_type = message.payload.game_type
        state = self._projector.start_game(room, game_type)
        logger.info("game started: %s, %d participants", game_type, len(room.participants))
        await self._groups.broadcast(
            room.room_id,
            server_message(
                MessageType.GAME_START,
                GameStartedPayload(game_type=game_type, game_state=state.to_view()),
            ),
        )

    # --- Disconnect ---

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        """Run the disconnect flow for a closed connection.

        The connection must already be detached from its broadcast group so
        that no notice produced here is queued to it.
        """
        room_id = connection.room_id
        async with self._registry.locked(room_id):
            room = self._registry.get(room_id)
            if room is None:
                return

            participant = room.find_by_connection(connection.connection_id)
            if participant is None:
                if connection.connection_id == room.host_connection_id:
                    await self._handle_unjoined_host_left(room)
                return

            room.participants.remove(participant)
            logger.info("participant left: %s", participant.id)
            await self._groups.broadcast(
                room_id,
                server_message(
                    MessageType.DISCONNECT_NOTICE,
                    DisconnectNoticePayload(participant_id=participant.id, nickname=participant.nickname),
                ),
            )

            if participant.is_host and room.participants:
                await self._promote_host(room)

            if room.is_empty:
                self._registry.delete(room_id)

    async def _handle_unjoined_host_left(self, room: Room) -> None:
        """The host connection closed before it ever sent JOIN_REQUEST."""
        if room.participants:
            logger.info("host left before joining, promoting earliest participant")
            await self._promote_host(room)
        else:
            self._registry.delete(room.room_id)

    async def _promote_host(self, room: Room) -> None:
        for p in room.participants:
            p.is_host = False
        new_host = room.participants[0]
        new_host.is_host = True
        room.host_connection_id = new_host.connection_id
        logger.info("host migrated to %s", new_host.id)
        await self._groups.broadcast(
            room.room_id,
            server_message(
                MessageType.HOST_CHANGE,
                HostChangePayload(new_host_id=new_host.id, new_host_nickname=new_host.nickname),
            ),
        )

    async def _broadcast_player_list(self, room: Room) -> None:
        await self._groups.broadcast(
            room.room_id,
            server_message(
                MessageType.PLAYER_LIST_UPDATE,
                PlayerListUpdatePayload(participants=room.participant_views()),
            ),
        )

    # --- Room reaper ---

    def start_room_reaper(self) -> None:
        """Start the periodic room reaper task. Idempotent."""
        if self._room_ttl_seconds <= 0:
            return
        if self._room_reaper_task is not None and not self._room_reaper_task.done():
            return
        self._room_reaper_task = asyncio.create_task(self._room_reaper_loop())

    async def stop_room_reaper(self) -> None:
        """Stop the room reaper task."""
        if self._room_reaper_task is not None:
            self._room_reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._room_reaper_task
            self._room_reaper_task = None

    async def _room_reaper_loop(self) -> None:
        """Periodically check for and close idle rooms."""
        while True:
            await asyncio.sleep(_ROOM_REAPER_INTERVAL)
            try:
                await self._reap_expired_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def _reap_expired_rooms(self) -> None:
        """Delete rooms idle longer than the TTL and close their connections.

        Candidates are re-checked under the room lock, since a message may
        have touched the room after the scan. Only connections tagged when
        the room was deleted are closed; anyone arriving afterwards starts a
        fresh room.
        """
        now = time.monotonic()
        expired_candidates = [
            room.room_id for room in self._registry.rooms() if now - room.last_activity > self._room_ttl_seconds
        ]
        for room_id in expired_candidates:
            async with self._registry.locked(room_id):
                room = self._registry.get(room_id)
                if room is None or time.monotonic() - room.last_activity <= self._room_ttl_seconds:
                    continue
                logger.info("room %s expired after %ds idle", room_id, self._room_ttl_seconds)
                self._registry.delete(room_id)
                members = self._groups.members(room_id)
            # closing performs network I/O, keep it outside the lock
            await self._groups.close_connections(
                members,
                code=ROOM_EXPIRED_CLOSE_CODE,
                reason=ROOM_EXPIRED_REASON,
            )
