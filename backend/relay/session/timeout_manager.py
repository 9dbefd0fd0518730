"""Occupancy-keyed expiry timers for rooms."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

from relay.messaging.types import CLOSE_NORMAL, CLOSE_REASON_ROOM_EXPIRED

if TYPE_CHECKING:
    from relay.server.settings import RelayServerSettings
    from relay.session.registry import RoomRegistry
    from relay.session.room import Room

logger = structlog.get_logger()


class TimeoutPolicy(BaseModel):
    """Three-tier expiry durations keyed on the number of open seats."""

    idle_seconds: float = Field(default=480, gt=0)
    one_player_seconds: float = Field(default=7200, gt=0)
    two_player_seconds: float = Field(default=43200, gt=0)

    @classmethod
    def from_settings(cls, settings: RelayServerSettings) -> TimeoutPolicy:
        return cls(
            idle_seconds=settings.idle_room_timeout_seconds,
            one_player_seconds=settings.one_player_timeout_seconds,
            two_player_seconds=settings.two_player_timeout_seconds,
        )

    def duration_for(self, occupants: int) -> float:
        if occupants <= 0:
            return self.idle_seconds
        if occupants == 1:
            return self.one_player_seconds
        return self.two_player_seconds


class TimeoutManager:
    """Own the single pending expiry timer of every room.

    Each occupancy change calls ``schedule``, which cancels the room's current
    timer and arms a new one sized for the live occupant count. When a timer
    fires, ``expire`` takes the room lock, so a join that seats itself first
    reschedules (and cancels) the fire before it can reap the room.
    """

    def __init__(self, registry: RoomRegistry, policy: TimeoutPolicy | None = None) -> None:
        self._registry = registry
        self._policy = policy or TimeoutPolicy()

    @property
    def policy(self) -> TimeoutPolicy:
        return self._policy

    @property
    def pending_count(self) -> int:
        return sum(1 for room in self._registry.rooms() if room.expiry_task is not None and not room.expiry_task.done())

    def schedule(self, room_id: str) -> float | None:
        """Re-arm the room's expiry timer for its current occupancy.

        Returns the chosen delay, or None if the room does not exist.
        """
        room = self._registry.get(room_id)
        if room is None:
            return None

        _cancel_timer(room)
        delay = self._policy.duration_for(room.player_count)
        room.expiry_delay = delay
        room.expires_at = time.monotonic() + delay
        room.expiry_task = asyncio.create_task(self._run_timer(room_id, delay))
        logger.debug("room expiry scheduled", room_id=room_id, occupants=room.player_count, delay=delay)
        return delay

    async def expire(self, room_id: str, *, timer: asyncio.Task[None] | None = None) -> bool:
        """Reap a room: clear its seats, drop it from the registry, close open connections.

        A no-op (returns False) when the room is already gone, or when ``timer``
        is given and is no longer the room's current timer.
        """
        room = self._registry.get(room_id)
        if room is None:
            return False

        async with room.lock:
            if self._registry.get(room_id) is not room:
                return False
            if timer is not None and room.expiry_task is not timer:
                return False

            connections = room.open_connections()
            _cancel_timer(room)
            room.host = None
            room.guest = None
            self._registry.remove(room_id)

        logger.info(
            "room expired",
            room_id=room_id,
            age=round(time.monotonic() - room.created_at),
            idle=round(time.monotonic() - room.last_activity_at),
            closed_connections=len(connections),
        )
        for connection in connections:
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await connection.close(code=CLOSE_NORMAL, reason=CLOSE_REASON_ROOM_EXPIRED)
        return True

    def cancel_all(self) -> None:
        """Cancel every pending timer without reaping (server shutdown)."""
        for room in self._registry.rooms():
            _cancel_timer(room)

    async def _run_timer(self, room_id: str, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self.expire(room_id, timer=asyncio.current_task())
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("room expiry failed", room_id=room_id)


def _cancel_timer(room: Room) -> None:
    """Cancel and forget the room's timer. Never cancels the calling task."""
    task = room.expiry_task
    if task is not None and not task.done() and task is not asyncio.current_task():
        task.cancel()
    room.expiry_task = None
    room.expiry_delay = None
    room.expires_at = None
