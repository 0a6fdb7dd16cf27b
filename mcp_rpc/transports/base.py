"""
Base Transport for the MCP RPC server.

This module defines the interface the transport loop drives. A transport owns
one input channel of serialized requests and one output channel of serialized
responses.
"""

from abc import ABC, abstractmethod


class Transport(ABC):
    """Base class for MCP message transports."""

    def __init__(self, debug: bool = False):
        """
        Initialize the transport.

        Args:
            debug: Whether to enable debug output
        """
        self.debug = debug
        self.is_closed = False

    @property
    def peer(self):
        """Opaque identity of the connected peer, if the transport knows it."""
        return None

    @abstractmethod
    async def read(self) -> str:
        """
        Wait for the next serialized message.

        Returns:
            The raw message text

        Raises:
            ChannelClosed: If the input channel has been closed
            ParseError: If a message could not be framed
        """
        pass

    @abstractmethod
    async def write(self, text: str) -> None:
        """
        Write one serialized message to the output channel.

        Args:
            text: The message text, without framing
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Flush and close the output channel."""
        pass
