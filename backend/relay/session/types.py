"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RoomStatus(BaseModel):
    """Read-only room occupancy snapshot for the status endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    room_id: str
    host_connected: bool
    guest_connected: bool
    player_count: int
