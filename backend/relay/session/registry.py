"""In-memory room registry."""

from __future__ import annotations

import secrets
import string

import structlog

from relay.session.room import Room

logger = structlog.get_logger()

ROOM_ID_LENGTH = 6
ROOM_ID_ALPHABET = string.digits + string.ascii_uppercase


def generate_room_id() -> str:
    """Return a random 6-character uppercase base-36 room id."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


class RoomRegistry:
    """Map room ids to rooms.

    Purely state management: no timers and no I/O. Rooms are removed only by
    the TimeoutManager so that deletion and timer cancellation stay together.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def create(self) -> str:
        """Insert an empty room under a fresh id and return the id."""
        room_id = generate_room_id()
        while room_id in self._rooms:
            room_id = generate_room_id()
        self._rooms[room_id] = Room(room_id=room_id)
        logger.info("room created", room_id=room_id)
        return room_id

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        """Return the room with this id, inserting an empty one if absent."""
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self._rooms[room_id] = room
            logger.info("room created", room_id=room_id)
        return room

    def remove(self, room_id: str) -> Room | None:
        """Delete a room. Idempotent: returns None if it was already gone."""
        return self._rooms.pop(room_id, None)

    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms
