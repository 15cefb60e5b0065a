import pytest

from relay.messaging.router import MessageRouter
from relay.session.broadcast import BroadcastGroups
from relay.session.lifecycle import SessionLifecycleManager
from relay.session.projector import GameStateProjector
from relay.session.registry import RoomRegistry


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def groups():
    return BroadcastGroups()


@pytest.fixture
def projector():
    return GameStateProjector(rounds_total=3)


@pytest.fixture
def lifecycle(registry, groups, projector):
    return SessionLifecycleManager(registry, groups, projector, room_ttl_seconds=60)


@pytest.fixture
def router(registry, groups, lifecycle, projector):
    return MessageRouter(registry, groups, lifecycle, projector)
