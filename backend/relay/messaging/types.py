"""Wire message models for the relay protocol.

Every frame, in both directions, is an envelope of the form
``{type, sender, timestamp, payload}``. Client messages are parsed into a
tagged union: the types the relay acts on get typed payloads, everything
else lands in OpaqueMessage and is forwarded untouched.
"""

import time
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import Discriminator, Field, SerializeAsAny, Tag, TypeAdapter, field_validator

from relay.session.models import GameStateView, ParticipantView, WireModel

SERVER_SENDER = "server"

# ASCII control character boundaries for nickname validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_NICKNAME_LENGTH = 32
MAX_PARTICIPANT_ID_LENGTH = 64
MAX_GAME_TYPE_LENGTH = 32


class MessageType(StrEnum):
    JOIN_REQUEST = "JOIN_REQUEST"
    JOIN_CONFIRMED = "JOIN_CONFIRMED"
    PLAYER_LIST_UPDATE = "PLAYER_LIST_UPDATE"
    GAME_START = "GAME_START"
    GAME_STATE_UPDATE = "GAME_STATE_UPDATE"
    TAP_EVENT = "TAP_EVENT"
    ROUND_RESULT = "ROUND_RESULT"
    GAME_RESULT = "GAME_RESULT"
    DISCONNECT_NOTICE = "DISCONNECT_NOTICE"
    HOST_CHANGE = "HOST_CHANGE"
    ERROR = "ERROR"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    NOT_HOST = "not_host"
    ALREADY_JOINED = "already_joined"
    INTERNAL_ERROR = "internal_error"


def now_ms() -> int:
    return int(time.time() * 1000)


# --- Client -> server ---


class JoinRequestPayload(WireModel):
    nickname: str = Field(min_length=1, max_length=MAX_NICKNAME_LENGTH)

    @field_validator("nickname")
    @classmethod
    def _validate_nickname(cls, v: str) -> str:
        if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
            raise ValueError("nickname must not contain control characters")
        v = v.strip()
        if not v:
            raise ValueError("nickname must not be blank")
        return v


class GameStartPayload(WireModel):
    game_type: str = Field(min_length=1, max_length=MAX_GAME_TYPE_LENGTH)


class _ClientEnvelope(WireModel):
    sender: str = Field(default="", max_length=MAX_PARTICIPANT_ID_LENGTH)
    timestamp: int | float = 0


class JoinRequestMessage(_ClientEnvelope):
    type: Literal["JOIN_REQUEST"] = "JOIN_REQUEST"
    # The sender of a join request becomes the participant id.
    sender: str = Field(min_length=1, max_length=MAX_PARTICIPANT_ID_LENGTH)
    payload: JoinRequestPayload


class GameStartMessage(_ClientEnvelope):
    type: Literal["GAME_START"] = "GAME_START"
    payload: GameStartPayload


class RelayedMessage(_ClientEnvelope):
    """Known game traffic the relay forwards without interpreting."""

    type: Literal[
        "TAP_EVENT",
        "GAME_STATE_UPDATE",
        "ROUND_RESULT",
        "GAME_RESULT",
    ]
    payload: Any = None


class OpaqueMessage(_ClientEnvelope):
    """Any client-defined type the relay does not know about."""

    type: str = Field(min_length=1)
    payload: Any = None


_MESSAGE_TAGS: dict[str, str] = {
    MessageType.JOIN_REQUEST: "join_request",
    MessageType.GAME_START: "game_start",
    MessageType.TAP_EVENT: "relayed",
    MessageType.GAME_STATE_UPDATE: "relayed",
    MessageType.ROUND_RESULT: "relayed",
    MessageType.GAME_RESULT: "relayed",
}


def _message_tag(value: Any) -> str:  # noqa: ANN401
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if not isinstance(kind, str):
        return "opaque"
    return _MESSAGE_TAGS.get(kind, "opaque")


ClientMessage = Annotated[
    Annotated[JoinRequestMessage, Tag("join_request")]
    | Annotated[GameStartMessage, Tag("game_start")]
    | Annotated[RelayedMessage, Tag("relayed")]
    | Annotated[OpaqueMessage, Tag("opaque")],
    Discriminator(_message_tag),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(
    data: dict[str, Any],
) -> JoinRequestMessage | GameStartMessage | RelayedMessage | OpaqueMessage:
    """Validate a decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class JoinConfirmedPayload(WireModel):
    participant: ParticipantView
    game_state: GameStateView


class PlayerListUpdatePayload(WireModel):
    participants: list[ParticipantView]


class GameStartedPayload(WireModel):
    game_type: str
    game_state: GameStateView


class DisconnectNoticePayload(WireModel):
    participant_id: str
    nickname: str


class HostChangePayload(WireModel):
    new_host_id: str
    new_host_nickname: str


class ErrorPayload(WireModel):
    code: ErrorCode
    message: str


class ServerMessage(WireModel):
    type: MessageType
    sender: str = SERVER_SENDER
    timestamp: int = Field(default_factory=now_ms)
    payload: SerializeAsAny[WireModel]


def server_message(message_type: MessageType, payload: WireModel) -> dict[str, Any]:
    """Build a server-originated envelope ready for encoding."""
    return ServerMessage(type=message_type, payload=payload).to_wire()


def error_message(code: ErrorCode, message: str) -> dict[str, Any]:
    return server_message(MessageType.ERROR, ErrorPayload(code=code, message=message))
