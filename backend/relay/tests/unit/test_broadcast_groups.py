from relay.session.broadcast import BroadcastGroups
from relay.tests.mocks import MockConnection


def _message(text="hi"):
    return {"type": "TAP_EVENT", "sender": "p1", "timestamp": 1, "payload": {"text": text}}


class TestBroadcastGroupMembership:
    def test_add_tags_connection_with_room(self):
        groups = BroadcastGroups()
        conn = MockConnection(room_id="room1", connection_id="c1")

        groups.add("room1", conn)

        assert groups.members("room1") == ["c1"]
        assert groups.connection_count == 1

    def test_remove_returns_room_id(self):
        groups = BroadcastGroups()
        groups.add("room1", MockConnection(connection_id="c1"))

        assert groups.remove("c1") == "room1"
        assert groups.members("room1") == []
        assert groups.connection_count == 0

    def test_remove_unknown_connection_returns_none(self):
        assert BroadcastGroups().remove("missing") is None

    def test_empty_group_is_dropped(self):
        groups = BroadcastGroups()
        groups.add("room1", MockConnection(connection_id="c1"))

        groups.remove("c1")

        assert "room1" not in groups._groups


class TestBroadcast:
    async def test_broadcast_reaches_every_member(self):
        groups = BroadcastGroups()
        a = MockConnection(connection_id="a")
        b = MockConnection(connection_id="b")
        groups.add("room1", a)
        groups.add("room1", b)

        await groups.broadcast("room1", _message())

        assert a.sent_messages == [_message()]
        assert b.sent_messages == [_message()]

    async def test_broadcast_is_scoped_to_room(self):
        groups = BroadcastGroups()
        inside = MockConnection(connection_id="inside")
        outside = MockConnection(room_id="room2", connection_id="outside")
        groups.add("room1", inside)
        groups.add("room2", outside)

        await groups.broadcast("room1", _message())

        assert len(inside.sent_messages) == 1
        assert outside.sent_messages == []

    async def test_broadcast_skips_dead_connection(self):
        groups = BroadcastGroups()
        dead = MockConnection(connection_id="dead")
        alive = MockConnection(connection_id="alive")
        groups.add("room1", dead)
        groups.add("room1", alive)
        await dead.close()

        await groups.broadcast("room1", _message())

        assert alive.sent_messages == [_message()]

    async def test_broadcast_to_unknown_room_is_noop(self):
        await BroadcastGroups().broadcast("nope", _message())

    async def test_send_to_reports_failure(self):
        groups = BroadcastGroups()
        conn = MockConnection()
        await conn.close()

        assert await groups.send_to(conn, _message()) is False

    async def test_send_to_delivers(self):
        groups = BroadcastGroups()
        conn = MockConnection()

        assert await groups.send_to(conn, _message()) is True
        assert conn.sent_messages == [_message()]


class TestCloseConnections:
    async def test_closes_all_members_and_drops_group(self):
        groups = BroadcastGroups()
        a = MockConnection(connection_id="a")
        b = MockConnection(connection_id="b")
        groups.add("room1", a)
        groups.add("room1", b)

        await groups.close_connections(groups.members("room1"), code=1000, reason="room_expired")

        assert a.is_closed
        assert b.is_closed
        assert a.close_reason == "room_expired"
        assert groups.members("room1") == []
        assert groups.connection_count == 0
        # a later detach of the same connection is harmless
        assert groups.remove("a") is None

    async def test_only_listed_connections_closed(self):
        groups = BroadcastGroups()
        old = MockConnection(connection_id="old")
        groups.add("room1", old)
        snapshot = groups.members("room1")
        late = MockConnection(connection_id="late")
        groups.add("room1", late)

        await groups.close_connections(snapshot, reason="room_expired")

        assert old.is_closed
        assert not late.is_closed
        assert groups.members("room1") == ["late"]

    async def test_unknown_ids_skipped(self):
        groups = BroadcastGroups()

        await groups.close_connections(["gone"])

        assert groups.connection_count == 0
