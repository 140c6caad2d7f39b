"""The relay: one server connection shared by every interested consumer.

Owns all mutable relay state (the consumer registry, the stream connection and
the retry timer) and is the only thing that changes it. The connection exists
exactly while at least one consumer is registered.
"""

import logging
from pathlib import Path
from typing import Callable

from orion.config.resolver import ConfigResolver
from orion.consumers.base import Consumer, ConsumerHandle
from orion.protocol.events import (
    EventReceived,
    InboundEvent,
    RelayMessage,
    StatusChanged,
)
from orion.protocol.requests import OutboundRequest, OutboundResult
from orion.relay.connection import ConnectionState, StreamConnection
from orion.relay.dispatcher import FanOutDispatcher
from orion.relay.reconnect import DEFAULT_RECONNECT_DELAY, ReconnectPolicy
from orion.relay.registry import ConsumerRegistry
from orion.relay.router import RequestRouter
from orion.transport.base import StreamTransport
from orion.transport.http.client import HttpRequestClient
from orion.transport.websocket.client import WebSocketTransport


class Relay:
    """Multiplexes one streaming connection across many consumers.

    - register() adds a consumer; the first one opens the connection.
    - deregister() removes one; the last one closes the connection and
      cancels any pending retry.
    - Inbound events and status changes fan out to every registered consumer.
    - submit() forwards action requests over HTTP regardless of stream state.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        transport_factory: Callable[[], StreamTransport] = WebSocketTransport,
        http_client: HttpRequestClient | None = None,
        download_dir: str | Path | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        backoff_factor: float = 1.0,
        max_reconnect_delay: float = 30.0,
        delivery_timeout: float | None = None,
    ) -> None:
        self.resolver = resolver
        self.registry = ConsumerRegistry()
        self.dispatcher = FanOutDispatcher(self.registry, delivery_timeout)
        self.connection = StreamConnection(
            transport_factory,
            on_open=self._on_open,
            on_event=self._on_event,
            on_lost=self._on_lost,
        )
        self.policy = ReconnectPolicy(
            reconnect=self._connect,
            has_consumers=lambda: len(self.registry) > 0,
            delay=reconnect_delay,
            backoff_factor=backoff_factor,
            max_delay=max_reconnect_delay,
        )
        self.router = RequestRouter(
            resolver, http_client or HttpRequestClient(), download_dir
        )
        self.logger = logging.getLogger("orion.relay")

    # ================================
    # State
    # ================================

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def connected(self) -> bool:
        return self.connection.is_connected

    # ================================
    # Consumers
    # ================================

    async def register(self, consumer: Consumer) -> None:
        """Register interest in live updates. Idempotent per handle.

        Never fails because of the connection: problems are reported to the
        consumer as a disconnected status and retried in the background.
        """
        added = self.registry.register(consumer)
        if added:
            self.logger.debug(
                f"Registered consumer {consumer.handle!r}, {len(self.registry)} total"
            )

        if self.connection.state is ConnectionState.DISCONNECTED:
            # A pending retry will reconnect; otherwise this is the first consumer.
            if not self.policy.armed:
                self._connect()
        elif self.connection.is_connected:
            registered = self.registry.get(consumer.handle)
            if registered is not None:
                await self.notify_current_state(registered)

    async def deregister(self, handle: ConsumerHandle) -> None:
        """Withdraw interest. Idempotent; the last one out closes the stream."""
        if not self.registry.deregister(handle):
            return

        self.logger.debug(
            f"Deregistered consumer {handle!r}, {len(self.registry)} remaining"
        )
        if not self.registry:
            await self._teardown()

    async def notify_current_state(self, consumer: Consumer) -> None:
        """Tell a consumer that the stream is already up.

        Lets a late joiner show "connected" without waiting for the next event.
        """
        if not self.connection.is_connected:
            return
        status = StatusChanged(connected=True)
        if not await self.dispatcher.deliver_to(consumer, status):
            await self._after_prune()

    # ================================
    # Requests
    # ================================

    async def submit(self, request: OutboundRequest) -> OutboundResult:
        """Forward an action request to the server and return its result."""
        return await self.router.submit(request)

    # ================================
    # Shutdown
    # ================================

    async def close(self) -> None:
        """Drop all consumers, close the stream and the HTTP client."""
        self.registry.clear()
        await self._teardown()
        await self.router.close()

    # ================================
    # Connection handling
    # ================================

    def _connect(self) -> None:
        if not self.registry:
            return
        if self.connection.state is not ConnectionState.DISCONNECTED:
            return
        self.connection.open(self.resolver.resolve())

    async def _teardown(self) -> None:
        self.policy.cancel()
        await self.connection.close()
        # Someone may have registered while the close was in progress.
        if self.registry:
            self._connect()

    async def _after_prune(self) -> None:
        if not self.registry:
            self.logger.debug("All consumers gone, closing connection")
            await self._teardown()

    async def _broadcast(self, message: RelayMessage) -> None:
        pruned = await self.dispatcher.dispatch(message)
        if pruned:
            await self._after_prune()

    async def _on_open(self) -> None:
        self.policy.on_connected()
        await self._broadcast(StatusChanged(connected=True))

    async def _on_event(self, event: InboundEvent) -> None:
        self.logger.debug(
            f"Received {event.type} event with {len(event.items)} item(s)"
        )
        await self._broadcast(EventReceived(event))

    async def _on_lost(self, reason: str, error: bool) -> None:
        await self._broadcast(
            StatusChanged(connected=False, reason=reason, error=error)
        )
        self.policy.on_disconnect(reason)

    def __repr__(self) -> str:
        return (
            f"Relay(state={self.state.value}, consumers={len(self.registry)}, "
            f"retry_pending={self.policy.armed})"
        )
