"""Lifecycle of the single streaming connection to the server.

Handles opening, reading and tearing down the stream while keeping the relay
focused on who should hear about it.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from orion.config.resolver import Endpoint
from orion.errors import MalformedFrameError, TransportError
from orion.protocol.events import InboundEvent
from orion.shared.message_parser import MessageParser
from orion.transport.base import StreamTransport

OpenHandler = Callable[[], Awaitable[None]]
EventHandler = Callable[[InboundEvent], Awaitable[None]]
LostHandler = Callable[[str, bool], Awaitable[None]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class StreamConnection:
    """Owns at most one live stream transport at a time.

    open() starts a background reader that connects, reports the open, and
    hands each decoded event to the event handler. When the stream fails or
    the server closes it, the lost handler is called exactly once with a
    reason. An explicit close() never triggers the lost handler.

    Malformed frames are logged and skipped without affecting the connection.
    """

    def __init__(
        self,
        transport_factory: Callable[[], StreamTransport],
        on_open: OpenHandler,
        on_event: EventHandler,
        on_lost: LostHandler,
        parser: MessageParser | None = None,
    ) -> None:
        self.transport_factory = transport_factory
        self.parser = parser or MessageParser()
        self._on_open = on_open
        self._on_event = on_event
        self._on_lost = on_lost
        self.state = ConnectionState.DISCONNECTED
        self.endpoint: Endpoint | None = None
        self._transport: StreamTransport | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._attempts = 0
        # Readers cancelled by close() finish on their own; keep them referenced.
        self._retired_tasks: set[asyncio.Task[None]] = set()
        self.logger = logging.getLogger("orion.relay.connection")

    # ================================
    # Lifecycle
    # ================================

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def open(self, endpoint: Endpoint) -> bool:
        """Begin a connection attempt without waiting for it.

        Ignored unless the connection is fully disconnected, so there is never
        more than one live transport.

        Returns:
            True if a new attempt was started
        """
        if self.state is not ConnectionState.DISCONNECTED:
            self.logger.debug(f"Open ignored, connection is {self.state.value}")
            return False

        self._attempts += 1
        self.endpoint = endpoint
        self.state = ConnectionState.CONNECTING
        transport = self.transport_factory()
        self._transport = transport
        self._reader_task = asyncio.create_task(
            self._run(transport, endpoint),
            name=f"orion-stream-{self._attempts}",
        )
        self.logger.debug(f"Connecting to {endpoint.ws_url} (#{self._attempts})")
        return True

    async def close(self) -> None:
        """Tear down the connection without reporting it as lost.

        Safe to call multiple times, and from inside the event handler.
        """
        transport, task = self._transport, self._reader_task
        if transport is None and task is None:
            self.state = ConnectionState.DISCONNECTED
            return

        self.state = ConnectionState.DISCONNECTING
        self._transport = None
        self._reader_task = None

        current = asyncio.current_task()
        if task is not None and task is not current and not task.done():
            task.cancel()
            self._retired_tasks.add(task)
            task.add_done_callback(self._retired_tasks.discard)

        if transport is not None:
            await transport.close()

        self.state = ConnectionState.DISCONNECTED
        self.logger.debug("Connection closed")

    # ================================
    # Reader
    # ================================

    async def _run(self, transport: StreamTransport, endpoint: Endpoint) -> None:
        """Connect, read until the stream ends, then report the loss."""
        try:
            reason, error = await self._read(transport, endpoint)
        except TransportError as e:
            reason, error = str(e), True
        except Exception as e:
            self.logger.error(f"Stream reader failed: {e}", exc_info=True)
            reason, error = f"Stream reader failed: {e}", True

        if self._transport is not transport:
            # Closed explicitly; close() owns the cleanup.
            return

        self._transport = None
        self._reader_task = None
        self.state = ConnectionState.DISCONNECTED
        await transport.close()
        self.logger.info(f"Connection to {endpoint.ws_url} lost: {reason}")
        await self._on_lost(reason, error)

    async def _read(
        self, transport: StreamTransport, endpoint: Endpoint
    ) -> tuple[str, bool]:
        await transport.connect(endpoint.ws_url)
        if self._transport is not transport:
            return "Closed while connecting", False

        self.state = ConnectionState.CONNECTED
        self.logger.info(f"Connected to {endpoint.ws_url}")
        await self._on_open()

        if self._transport is not transport:
            return "Closed", False

        async for message in transport.messages():
            try:
                event = self.parser.parse_frame(message.payload)
            except MalformedFrameError as e:
                self.logger.warning(f"Dropping malformed frame: {e}")
                continue

            await self._on_event(event)
            if self._transport is not transport:
                return "Closed", False

        return transport.close_reason or "Connection closed by server", False
