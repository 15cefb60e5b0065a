"""Abstract connection protocol for the JSON relay wire format."""

from abc import ABC, abstractmethod
from typing import Any

from relay.messaging.encoder import encode


class ConnectionProtocol(ABC):
    """
    Abstract interface for a client connection.

    Lets the router and lifecycle logic run against in-memory connections
    in tests. Implementations must make send_text non-blocking with respect
    to the network: handlers call it while holding a room lock.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this transport connection."""
        ...

    @property
    @abstractmethod
    def room_id(self) -> str:
        """Room id taken from the handshake query string."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """
        Queue an encoded frame for delivery to the client.

        Raises ConnectionError when the connection can no longer accept frames.
        """
        ...

    @abstractmethod
    async def receive_frame(self) -> str | bytes:
        """
        Wait for the next text or binary frame from the client.

        Raises ConnectionError once the client has disconnected.
        """
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Close the connection.
        """
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_text(encode(data))
