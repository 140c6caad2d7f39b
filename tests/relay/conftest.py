import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from orion.config.resolver import ConfigResolver
from orion.config.settings import SETTINGS_KEY, MemorySettingsStore
from orion.consumers.base import Consumer, ConsumerHandle
from orion.consumers.queue import QueueConsumer
from orion.errors import ConsumerGoneError, TransportError
from orion.protocol.events import RelayMessage
from orion.relay.relay import Relay
from orion.transport.base import StreamTransport, TransportMessage
from orion.transport.http.client import HttpRequestClient

_END = object()


class MockStreamTransport(StreamTransport):
    """Mock stream for testing. Frames are pushed in by the test."""

    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.connect_gate: asyncio.Event | None = None
        self.connected_url: str | None = None
        self.closed = False
        self._frames: asyncio.Queue[Any] = asyncio.Queue()
        self._close_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.connected_url is not None and not self.closed

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    async def connect(self, url: str) -> None:
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.fail_connect:
            raise TransportError(f"Failed to connect to {url}: refused")
        self.connected_url = url

    def push(self, frame: dict[str, Any] | str) -> None:
        """Simulate the server sending a frame."""
        if not isinstance(frame, str):
            frame = json.dumps(frame)
        self._frames.put_nowait(frame)

    def fail(self, reason: str = "Network down") -> None:
        """Simulate the connection dropping with an error."""
        self._frames.put_nowait(TransportError(reason))

    def end(self, reason: str = "Connection closed (1000): bye") -> None:
        """Simulate the server closing the stream cleanly."""
        self._close_reason = reason
        self._frames.put_nowait(_END)

    async def messages(self) -> AsyncIterator[TransportMessage]:
        while not self.closed:
            item = await self._frames.get()
            if item is _END:
                return
            if isinstance(item, TransportError):
                raise item
            yield TransportMessage(payload=item, metadata={"source": "mock"})

    async def close(self) -> None:
        self.closed = True
        self._frames.put_nowait(_END)


class MockTransportFactory:
    """Creates one MockStreamTransport per connection attempt."""

    def __init__(self):
        self.transports: list[MockStreamTransport] = []
        self.fail_connect = False
        self.hold_connect = False

    def __call__(self) -> MockStreamTransport:
        transport = MockStreamTransport(fail_connect=self.fail_connect)
        if self.hold_connect:
            transport.connect_gate = asyncio.Event()
        self.transports.append(transport)
        return transport

    @property
    def latest(self) -> MockStreamTransport:
        return self.transports[-1]

    def live(self) -> list[MockStreamTransport]:
        """Transports opened and not yet closed."""
        return [t for t in self.transports if not t.closed]


class GoneConsumer(Consumer):
    """Consumer whose surface has already disappeared."""

    def __init__(self, handle: ConsumerHandle):
        self._handle = handle
        self.attempts = 0

    @property
    def handle(self) -> ConsumerHandle:
        return self._handle

    async def deliver(self, message: RelayMessage) -> None:
        self.attempts += 1
        raise ConsumerGoneError(f"{self._handle} closed")


class SlowConsumer(QueueConsumer):
    """Consumer that takes a while to accept each message."""

    def __init__(self, handle: ConsumerHandle, delay: float):
        super().__init__(handle)
        self.delay = delay

    async def deliver(self, message: RelayMessage) -> None:
        await asyncio.sleep(self.delay)
        await super().deliver(message)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until predicate is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.001)


def drain(consumer: QueueConsumer) -> list[RelayMessage]:
    """Everything delivered to a consumer so far."""
    messages = []
    while not consumer.queue.empty():
        messages.append(consumer.queue.get_nowait())
    return messages


SERVER_HOST = "orion.local"
SERVER_PORT = 8123


class RelayTest:
    """Base for tests that drive a Relay against mock stream and HTTP servers."""

    @pytest.fixture(autouse=True)
    def setup_fixtures(self, tmp_path):
        self.store = MemorySettingsStore(
            {SETTINGS_KEY: {"serverHost": SERVER_HOST, "serverPort": SERVER_PORT}}
        )
        self.resolver = ConfigResolver(self.store)
        self.factory = MockTransportFactory()
        self.http_requests: list[httpx.Request] = []
        self.http_handler: Callable[[httpx.Request], httpx.Response] = (
            self.default_http_handler
        )
        self.http = HttpRequestClient(
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(self._record_http)
            )
        )
        self.download_dir = tmp_path / "downloads"
        self.relay = Relay(
            self.resolver,
            transport_factory=self.factory,
            http_client=self.http,
            download_dir=self.download_dir,
            reconnect_delay=0.01,
        )

    @pytest.fixture(autouse=True)
    async def teardown_relay(self):
        yield
        if hasattr(self, "relay"):
            await self.relay.close()

    def _record_http(self, request: httpx.Request) -> httpx.Response:
        self.http_requests.append(request)
        return self.http_handler(request)

    def default_http_handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/pc/items":
            return httpx.Response(200, json={"items": [SAMPLE_ITEM]})
        if request.url.path in ("/pc/message", "/pc/file"):
            return httpx.Response(200, json={"status": "success", "id": "abc"})
        if request.url.path == "/pc/youtube-info":
            return httpx.Response(200, json={"status": "success"})
        if request.url.path.startswith("/uploads/"):
            return httpx.Response(200, content=b"file-bytes")
        return httpx.Response(404, text="Not Found")

    async def connect(self, consumer: Consumer) -> MockStreamTransport:
        """Register a consumer and wait until the stream is connected."""
        await self.relay.register(consumer)
        await wait_until(lambda: self.relay.connected)
        return self.factory.latest


SAMPLE_ITEM = {"from": "PC", "type": "text", "content": "hi", "timestamp": 1000}

INITIAL_EVENT = {"type": "initial", "data": {"items": [SAMPLE_ITEM]}}
