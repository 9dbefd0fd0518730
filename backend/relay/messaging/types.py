from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ServerEventType(StrEnum):
    CONNECTED = "connected"
    PLAYER_JOINED = "player-joined"
    OPPONENT_DISCONNECTED = "opponent-disconnected"
    ERROR = "error"


class ClientControlType(StrEnum):
    LEAVE_ROOM = "leave-room"


class SeatRole(StrEnum):
    HOST = "host"
    GUEST = "guest"

    @property
    def opposite(self) -> SeatRole:
        return SeatRole.GUEST if self is SeatRole.HOST else SeatRole.HOST


class RejectReason(StrEnum):
    """Reasons a join is refused. Sent as the close reason and the error code."""

    MISSING_PARAMETERS = "missing_parameters"
    ROOM_NOT_FOUND = "room_not_found"
    SEAT_TAKEN = "seat_taken"
    SERVER_AT_CAPACITY = "server_at_capacity"


class RelayErrorCode(StrEnum):
    PEER_UNAVAILABLE = "peer_unavailable"


# WebSocket close codes (RFC 6455)
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011

CLOSE_REASON_ROOM_EXPIRED = "room_expired"
CLOSE_REASON_LEFT_ROOM = "left_room"

REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.MISSING_PARAMETERS: "Missing room or player ID",
    RejectReason.ROOM_NOT_FOUND: "Room not found",
    RejectReason.SEAT_TAKEN: "Seat already taken",
    RejectReason.SERVER_AT_CAPACITY: "Server at capacity",
}

PEER_UNAVAILABLE_MESSAGE = "Other player is not connected"


class _ServerEvent(BaseModel):
    """Base for outbound events. Serializes field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class ConnectedEvent(_ServerEvent):
    type: ServerEventType = ServerEventType.CONNECTED
    room_id: str
    player_id: str
    role: SeatRole
    is_host: bool


class PlayerJoinedEvent(_ServerEvent):
    type: ServerEventType = ServerEventType.PLAYER_JOINED
    player_id: str


class OpponentDisconnectedEvent(_ServerEvent):
    type: ServerEventType = ServerEventType.OPPONENT_DISCONNECTED
    role: SeatRole
    player_id: str


class ErrorEvent(_ServerEvent):
    type: ServerEventType = ServerEventType.ERROR
    code: str
    message: str
