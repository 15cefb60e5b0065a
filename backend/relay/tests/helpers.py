from typing import Any

from relay.messaging.encoder import decode, encode
from relay.messaging.router import MessageRouter
from relay.session.models import Participant, Room
from relay.tests.mocks import MockConnection


def join_request(sender: str, nickname: str) -> dict[str, Any]:
    return {"type": "JOIN_REQUEST", "sender": sender, "timestamp": 1, "payload": {"nickname": nickname}}


def game_start(sender: str, game_type: str = "chill") -> dict[str, Any]:
    return {"type": "GAME_START", "sender": sender, "timestamp": 1, "payload": {"gameType": game_type}}


def relayed(message_type: str, sender: str, payload: Any = None) -> dict[str, Any]:  # noqa: ANN401
    return {"type": message_type, "sender": sender, "timestamp": 1, "payload": payload}


async def connect(
    router: MessageRouter,
    room_id: str = "room1",
    *,
    is_host: bool = False,
    connection_id: str | None = None,
) -> MockConnection:
    conn = MockConnection(room_id=room_id, connection_id=connection_id)
    await router.handle_connect(conn, is_host=is_host)
    return conn


async def connect_and_join(
    router: MessageRouter,
    participant_id: str,
    nickname: str,
    room_id: str = "room1",
    *,
    is_host: bool = False,
) -> MockConnection:
    conn = await connect(router, room_id, is_host=is_host, connection_id=f"conn-{participant_id}")
    await router.handle_message(conn, join_request(participant_id, nickname))
    return conn


async def create_room_with_players(
    router: MessageRouter,
    participants: list[tuple[str, str]],
    room_id: str = "room1",
) -> list[MockConnection]:
    """Connect the first entry as host, then join everyone in order.

    Message history is cleared on every connection before returning.
    """
    connections = []
    for index, (participant_id, nickname) in enumerate(participants):
        conn = await connect_and_join(router, participant_id, nickname, room_id, is_host=index == 0)
        connections.append(conn)
    for conn in connections:
        conn.clear()
    return connections


def send_ws(ws, data: dict[str, Any]) -> None:  # noqa: ANN001
    """Send a JSON message over a test WebSocket."""
    ws.send_text(encode(data))


def recv_ws(ws) -> dict[str, Any]:  # noqa: ANN001
    """Receive and decode a JSON message from a test WebSocket."""
    return decode(ws.receive_text())


def recv_types(ws, count: int) -> list[str]:  # noqa: ANN001
    return [recv_ws(ws)["type"] for _ in range(count)]


def single_host(room: Room) -> Participant:
    """Return the room's host, asserting there is exactly one and it owns the host connection."""
    hosts = [p for p in room.participants if p.is_host]
    assert len(hosts) == 1, f"expected one host, got {[p.id for p in hosts]}"
    assert hosts[0].connection_id == room.host_connection_id
    return hosts[0]
