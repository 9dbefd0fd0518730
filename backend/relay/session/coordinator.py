"""Session coordination: join, relay, and leave for host/guest rooms."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from relay.messaging.envelope import EnvelopeError, parse_envelope
from relay.messaging.types import (
    CLOSE_NORMAL,
    CLOSE_POLICY_VIOLATION,
    CLOSE_REASON_LEFT_ROOM,
    PEER_UNAVAILABLE_MESSAGE,
    REJECT_MESSAGES,
    ClientControlType,
    ConnectedEvent,
    ErrorEvent,
    OpponentDisconnectedEvent,
    PlayerJoinedEvent,
    RejectReason,
    RelayErrorCode,
    SeatRole,
)
from relay.session.models import PlayerSession
from relay.session.room import Seat
from relay.session.types import RoomStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.models import JoinRequest
    from relay.session.registry import RoomRegistry
    from relay.session.timeout_manager import TimeoutManager

logger = structlog.get_logger()

DEFAULT_BEST_EFFORT_TYPES = ("cursor", "move-update")

# Errors a send may raise once the peer transport is gone.
_SEND_ERRORS = (RuntimeError, OSError, ConnectionError)


class SessionCoordinator:
    """Drive the per-connection state machine against the room registry.

    Every room mutation happens under that room's lock and is followed by a
    ``TimeoutManager.schedule`` call, so the expiry timer always matches the
    live occupancy. No method raises on protocol or delivery errors; those are
    answered on the offending connection only.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        timeouts: TimeoutManager,
        *,
        max_rooms: int = 1000,
        best_effort_types: Iterable[str] = DEFAULT_BEST_EFFORT_TYPES,
    ) -> None:
        self._registry = registry
        self._timeouts = timeouts
        self._max_rooms = max_rooms
        self._best_effort_types = frozenset(best_effort_types)

    @property
    def room_count(self) -> int:
        return self._registry.room_count

    @property
    def at_capacity(self) -> bool:
        return self._registry.room_count >= self._max_rooms

    # --- Room surface ---

    def create_room(self) -> str:
        """Pre-create an empty room and arm its idle timer. Return the new id."""
        room_id = self._registry.create()
        self._timeouts.schedule(room_id)
        return room_id

    def cancel_all_timeouts(self) -> None:
        self._timeouts.cancel_all()

    def get_room_status(self, room_id: str) -> RoomStatus | None:
        room = self._registry.get(room_id)
        if room is None:
            return None
        return RoomStatus(
            room_id=room.room_id,
            host_connected=room.host_connected,
            guest_connected=room.guest_connected,
            player_count=room.player_count,
        )

    # --- Connection state machine ---

    async def join(self, connection: ConnectionProtocol, request: JoinRequest) -> PlayerSession | None:
        """Seat a new connection as host or guest.

        Returns the seated session, or None if the connection was rejected
        (an error event was sent and the connection closed).
        """
        session = PlayerSession(connection=connection)
        role = request.role
        log = logger.bind(room_id=request.room_id, player_id=request.player_id, role=role)

        if not request.room_id or not request.player_id:
            await self._reject(session, RejectReason.MISSING_PARAMETERS, log)
            return None

        while True:
            room = self._registry.get(request.room_id)
            if room is None:
                if role is SeatRole.GUEST:
                    await self._reject(session, RejectReason.ROOM_NOT_FOUND, log)
                    return None
                if self.at_capacity:
                    await self._reject(session, RejectReason.SERVER_AT_CAPACITY, log)
                    return None
                room = self._registry.get_or_create(request.room_id)
                self._timeouts.schedule(room.room_id)

            async with room.lock:
                # The room may have been reaped while we waited for its lock.
                if self._registry.get(request.room_id) is not room:
                    continue

                if room.open_seat(role) is not None:
                    seat_taken = True
                else:
                    seat_taken = False
                    room.set_seat(role, Seat(connection=connection, player_id=request.player_id))
                    room.touch()
                    session.mark_seated(room.room_id, request.player_id, role)
                    self._timeouts.schedule(room.room_id)

                    if role is SeatRole.GUEST:
                        host = room.open_seat(SeatRole.HOST)
                        if host is not None:
                            await self._notify(host.connection, PlayerJoinedEvent(player_id=request.player_id).to_wire())

                    await self._notify(
                        connection,
                        ConnectedEvent(
                            room_id=room.room_id,
                            player_id=request.player_id,
                            role=role,
                            is_host=request.is_host,
                        ).to_wire(),
                    )
                    player_count = room.player_count
            break

        if seat_taken:
            await self._reject(session, RejectReason.SEAT_TAKEN, log)
            return None

        log.info("player joined room", player_count=player_count)
        return session

    async def relay(self, session: PlayerSession, frame: str | bytes) -> None:
        """Forward a frame verbatim to the opposite seat of the sender's room."""
        if not session.is_seated:
            return
        log = logger.bind(room_id=session.room_id, player_id=session.player_id, role=session.role)

        try:
            envelope = parse_envelope(frame)
        except EnvelopeError as e:
            log.warning("invalid frame ignored", error=str(e))
            return

        if envelope.message_type == ClientControlType.LEAVE_ROOM:
            await self.leave(session)
            with contextlib.suppress(*_SEND_ERRORS):
                await session.connection.close(code=CLOSE_NORMAL, reason=CLOSE_REASON_LEFT_ROOM)
            return

        room = self._registry.get(session.room_id)
        if room is None:
            return

        async with room.lock:
            if self._registry.get(session.room_id) is not room or not self._holds_seat(session):
                return
            room.touch()

            peer = room.open_seat(session.role.opposite)
            if peer is not None:
                try:
                    await peer.connection.send_frame(envelope.raw)
                except _SEND_ERRORS:
                    log.warning("relay to peer failed", message_type=envelope.message_type)
                else:
                    return

            if envelope.message_type in self._best_effort_types:
                log.debug("best-effort message dropped", message_type=envelope.message_type)
                return

            await self._notify(
                session.connection,
                ErrorEvent(code=RelayErrorCode.PEER_UNAVAILABLE, message=PEER_UNAVAILABLE_MESSAGE).to_wire(),
            )

    async def leave(self, session: PlayerSession) -> None:
        """Release the session's seat and tell the opposite seat. Idempotent."""
        was_seated = session.is_seated
        session.mark_closed()
        if not was_seated:
            return

        room = self._registry.get(session.room_id)
        if room is None:
            return

        role = session.role
        async with room.lock:
            if self._registry.get(session.room_id) is not room or not self._holds_seat(session):
                return

            room.set_seat(role, None)
            room.touch()
            self._timeouts.schedule(room.room_id)

            peer = room.open_seat(role.opposite)
            if peer is not None:
                await self._notify(
                    peer.connection,
                    OpponentDisconnectedEvent(role=role, player_id=session.player_id).to_wire(),
                )
            player_count = room.player_count

        logger.info(
            "player left room",
            room_id=session.room_id,
            player_id=session.player_id,
            role=role,
            player_count=player_count,
        )

    # --- Internal helpers ---

    def _holds_seat(self, session: PlayerSession) -> bool:
        """Check the session's seat still belongs to its connection (not taken over)."""
        room = self._registry.get(session.room_id)
        if room is None:
            return False
        seat = room.seat(session.role)
        return seat is not None and seat.connection_id == session.connection_id

    @staticmethod
    async def _reject(session: PlayerSession, reason: RejectReason, log: Any) -> None:  # noqa: ANN401
        log.info("join rejected", reason=reason)
        session.mark_closed()
        connection = session.connection
        with contextlib.suppress(*_SEND_ERRORS):
            await connection.send_message(ErrorEvent(code=reason, message=REJECT_MESSAGES[reason]).to_wire())
        with contextlib.suppress(*_SEND_ERRORS):
            await connection.close(code=CLOSE_POLICY_VIOLATION, reason=reason)

    @staticmethod
    async def _notify(connection: ConnectionProtocol, message: dict[str, Any]) -> None:
        with contextlib.suppress(*_SEND_ERRORS):
            await connection.send_message(message)
