"""Abstract connection protocol for JSON text communication."""

import json
from abc import ABC, abstractmethod
from typing import Any


class ConnectionProtocol(ABC):
    """
    Abstract interface for one duplex client connection.

    This abstraction allows seat and relay logic to be tested
    without real WebSocket connections.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """False once the connection was closed by either side."""
        ...

    @abstractmethod
    async def send_frame(self, data: str | bytes) -> None:
        """
        Send one raw frame, text or binary, to the client.
        """
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Close the connection. Must flip is_open before awaiting the transport.
        """
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Send a server event to the client as a JSON text frame.
        """
        await self.send_frame(json.dumps(data))
