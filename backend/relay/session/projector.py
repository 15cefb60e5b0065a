"""Per-room game phase, round counter and scores."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from relay.messaging.types import MessageType
from relay.session.models import DEFAULT_ROUNDS_TOTAL, GameState, GameStatus

if TYPE_CHECKING:
    from relay.messaging.types import RelayedMessage
    from relay.session.models import Room

logger = logging.getLogger(__name__)


class GameStateProjector:
    """Advisory game state kept next to each room.

    Clients compute results; the relay only records the phase and round
    counter they report. Scores are seeded at game start and never changed
    by the server afterwards.
    """

    def __init__(self, rounds_total: int = DEFAULT_ROUNDS_TOTAL) -> None:
        self._rounds_total = rounds_total

    def initial_state(self) -> GameState:
        return GameState(rounds_total=self._rounds_total)

    def start_game(self, room: Room, game_type: str) -> GameState:
        """Reset the room's game state for a new game and return it."""
        room.game_state = GameState(
            status=GameStatus.RUNNING,
            type=game_type,
            current_round=1,
            rounds_total=self._rounds_total,
            scores={p.id: 0 for p in room.participants},
        )
        return room.game_state

    def observe(self, state: GameState, message: RelayedMessage) -> None:
        """Record phase changes reported by relayed game traffic."""
        if state.status != GameStatus.RUNNING:
            return
        if message.type == MessageType.ROUND_RESULT:
            if state.current_round < state.rounds_total:
                state.current_round += 1
        elif message.type == MessageType.GAME_RESULT:
            state.status = GameStatus.FINISHED
            payload = message.payload if isinstance(message.payload, dict) else {}
            winner = payload.get("winner")
            state.winner = winner if isinstance(winner, str) else None
            logger.info("game finished, winner=%s", state.winner)
