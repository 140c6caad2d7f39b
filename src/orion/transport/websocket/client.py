"""WebSocket implementation of the conversation stream."""

import asyncio
import logging
from typing import AsyncIterator

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from orion.errors import TransportError
from orion.transport.base import StreamTransport, TransportMessage

logger = logging.getLogger(__name__)


class WebSocketTransport(StreamTransport):
    """Receive-only WebSocket stream.

    One instance serves one connection attempt. The relay creates a fresh
    transport for every attempt.
    """

    def __init__(
        self,
        open_timeout: float = 10.0,
        ping_interval: float | None = 20.0,
        ping_timeout: float | None = 20.0,
        max_size: int | None = 2**24,
    ) -> None:
        """Initialize the transport.

        Args:
            open_timeout: Seconds to wait for the opening handshake
            ping_interval: Seconds between keepalive pings, None to disable
            ping_timeout: Seconds to wait for a pong before failing the stream
            max_size: Largest accepted frame in bytes, None for no limit
        """
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.max_size = max_size
        self._ws = None
        self._url: str | None = None
        self._close_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.close_code is None

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    async def connect(self, url: str) -> None:
        if self._ws is not None:
            raise TransportError("Transport is already connected")

        logger.debug(f"Connecting to {url}")
        try:
            self._ws = await websockets.connect(
                url,
                open_timeout=self.open_timeout,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                max_size=self.max_size,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"Failed to connect to {url}: {e}") from e

        self._url = url
        self._close_reason = None
        logger.debug(f"Connected to {url}")

    def messages(self) -> AsyncIterator[TransportMessage]:
        return self._frame_iterator()

    async def _frame_iterator(self) -> AsyncIterator[TransportMessage]:
        if self._ws is None:
            raise TransportError("Transport is not connected")

        ws = self._ws
        try:
            async for frame in ws:
                yield TransportMessage(
                    payload=frame,
                    metadata={
                        "url": self._url,
                        "received_at": asyncio.get_running_loop().time(),
                    },
                )
        except ConnectionClosed as e:
            self._close_reason = _describe_close(e)
            raise TransportError(self._close_reason) from e

        self._close_reason = _format_close(ws.close_code, ws.close_reason)

    async def close(self) -> None:
        if self._ws is None:
            return

        ws, self._ws = self._ws, None
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error while closing WebSocket: {e}")
        logger.debug(f"Closed WebSocket to {self._url}")


def _describe_close(exc: ConnectionClosed) -> str:
    if exc.rcvd is not None:
        return _format_close(exc.rcvd.code, exc.rcvd.reason)
    return f"Connection lost: {exc}"


def _format_close(code: int | None, reason: str | None) -> str:
    return f"Connection closed ({code}): {reason or 'Unknown reason'}"
