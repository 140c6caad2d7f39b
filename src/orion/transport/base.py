from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self


@dataclass
class TransportMessage:
    """Container for frames with transport-specific metadata.

    Separates the raw frame from transport information like arrival time.
    """

    payload: str | bytes
    metadata: dict[str, Any]


class StreamTransport(ABC):
    """Abstract receive-only stream from the server.

    Handles the mechanics of opening a streaming connection and reading frames
    without knowledge of what the frames mean. Nothing is ever sent on the
    stream; outbound actions use a separate request/response channel.

    When the server closes the stream cleanly, the message iterator ends. When
    the connection fails, the iterator raises TransportError.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True if the stream is open and frames can be read."""

    @property
    def close_reason(self) -> str | None:
        """Human-readable reason the stream closed, once it has."""
        return None

    @abstractmethod
    async def connect(self, url: str) -> None:
        """Open the stream.

        Args:
            url: Address of the stream endpoint

        Raises:
            TransportError: If the connection cannot be established
        """

    @abstractmethod
    def messages(self) -> AsyncIterator[TransportMessage]:
        """Stream of incoming frames with transport-specific metadata.

        Yields frames as they arrive. Iterator ends when the stream closes.

        Yields:
            TransportMessage: Each incoming frame with metadata

        Raises:
            TransportError: When the connection fails
            asyncio.CancelledError: When iteration is cancelled
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the stream. Safe to call on a closed stream."""

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
        return None
