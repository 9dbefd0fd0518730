from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from relay.messaging.types import SeatRole

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol


class JoinRequest(BaseModel):
    """Join parameters carried by an inbound connection.

    Empty strings stand for missing values; the coordinator rejects them.
    """

    model_config = ConfigDict(frozen=True)

    room_id: str = ""
    player_id: str = ""
    is_host: bool = False

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> JoinRequest:
        """Build from ``?room=...&player=...&host=true`` query parameters."""
        return cls(
            room_id=params.get("room", ""),
            player_id=params.get("player", ""),
            is_host=params.get("host", "").lower() == "true",
        )

    @property
    def role(self) -> SeatRole:
        return SeatRole.HOST if self.is_host else SeatRole.GUEST


class SessionState(StrEnum):
    PENDING_JOIN = "pending_join"
    SEATED = "seated"
    CLOSED = "closed"


@dataclass
class PlayerSession:
    """Per-connection state machine: PENDING_JOIN -> SEATED -> CLOSED.

    Room, player and role are set on the seated transition and kept after
    close so that disconnect handling can still find the seat.
    """

    connection: ConnectionProtocol
    state: SessionState = SessionState.PENDING_JOIN
    room_id: str | None = None
    player_id: str | None = None
    role: SeatRole | None = None

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def is_seated(self) -> bool:
        return self.state is SessionState.SEATED

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def mark_seated(self, room_id: str, player_id: str, role: SeatRole) -> None:
        if self.state is not SessionState.PENDING_JOIN:
            raise ValueError(f"cannot seat a session in state {self.state}")
        self.room_id = room_id
        self.player_id = player_id
        self.role = role
        self.state = SessionState.SEATED

    def mark_closed(self) -> None:
        self.state = SessionState.CLOSED
