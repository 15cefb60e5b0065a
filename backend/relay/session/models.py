"""Room, participant and game-state records owned by the room registry."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_ROUNDS_TOTAL = 3


class GameStatus(StrEnum):
    WAITING = "waiting"
    RUNNING = "running"
    FINISHED = "finished"


class WireModel(BaseModel):
    """Base for everything sent to clients: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ParticipantView(WireModel):
    """Participant as clients see it. Connection ids are never exposed."""

    id: str
    nickname: str
    is_host: bool


class GameStateView(WireModel):
    status: GameStatus
    type: str | None
    current_round: int
    rounds_total: int
    scores: dict[str, int | float]
    winner: str | None


@dataclass
class Participant:
    """A logical player identity bound to a live connection."""

    id: str
    connection_id: str
    nickname: str
    is_host: bool = False

    def to_view(self) -> ParticipantView:
        return ParticipantView(id=self.id, nickname=self.nickname, is_host=self.is_host)


@dataclass
class GameState:
    status: GameStatus = GameStatus.WAITING
    type: str | None = None
    current_round: int = 0
    rounds_total: int = DEFAULT_ROUNDS_TOTAL
    scores: dict[str, int | float] = field(default_factory=dict)
    winner: str | None = None

    def to_view(self) -> GameStateView:
        return GameStateView(
            status=self.status,
            type=self.type,
            current_round=self.current_round,
            rounds_total=self.rounds_total,
            scores=dict(self.scores),
            winner=self.winner,
        )


@dataclass
class Room:
    """A single game session.

    participants is kept in join order; the earliest-joined survivor
    inherits host authority when the host disconnects.
    """

    room_id: str
    host_connection_id: str | None = None
    participants: list[Participant] = field(default_factory=list)
    game_state: GameState = field(default_factory=GameState)
    last_activity: float = field(default_factory=time.monotonic)

    @property
    def is_empty(self) -> bool:
        return not self.participants

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def find_participant(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)

    def find_by_connection(self, connection_id: str) -> Participant | None:
        return next((p for p in self.participants if p.connection_id == connection_id), None)

    def participant_views(self) -> list[ParticipantView]:
        return [p.to_view() for p in self.participants]
