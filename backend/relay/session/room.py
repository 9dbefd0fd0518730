"""Room and seat models for host/guest pairing."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from relay.messaging.types import SeatRole

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol


@dataclass
class Seat:
    """One occupied slot in a room, binding a connection to a player id."""

    connection: ConnectionProtocol
    player_id: str

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def is_open(self) -> bool:
        return self.connection.is_open


@dataclass
class Room:
    """Rendezvous point holding at most one host seat and one guest seat.

    The room owns its pending expiry timer (``expiry_task``) and the lock that
    serializes join, relay, leave and expiry for this room. A seat whose
    connection has closed counts as empty everywhere occupancy matters.
    """

    room_id: str
    host: Seat | None = None
    guest: Seat | None = None
    created_at: float = field(default_factory=time.monotonic)
    last_activity_at: float = field(default_factory=time.monotonic)
    expiry_task: asyncio.Task[None] | None = None
    expiry_delay: float | None = None
    expires_at: float | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def seat(self, role: SeatRole) -> Seat | None:
        return self.host if role is SeatRole.HOST else self.guest

    def set_seat(self, role: SeatRole, seat: Seat | None) -> None:
        if role is SeatRole.HOST:
            self.host = seat
        else:
            self.guest = seat

    def open_seat(self, role: SeatRole) -> Seat | None:
        """Return the seat for a role only if its connection is still open."""
        seat = self.seat(role)
        if seat is not None and seat.is_open:
            return seat
        return None

    @property
    def host_connected(self) -> bool:
        return self.open_seat(SeatRole.HOST) is not None

    @property
    def guest_connected(self) -> bool:
        return self.open_seat(SeatRole.GUEST) is not None

    @property
    def player_count(self) -> int:
        return int(self.host_connected) + int(self.guest_connected)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    def touch(self) -> None:
        self.last_activity_at = time.monotonic()

    def open_connections(self) -> list[ConnectionProtocol]:
        return [seat.connection for seat in (self.host, self.guest) if seat is not None and seat.is_open]
