"""Consumers reached through a per-tab messaging function."""

from typing import Any, Awaitable, Callable

from orion.consumers.base import Consumer, ConsumerHandle
from orion.errors import ConsumerGoneError
from orion.protocol.events import RelayMessage

SendToTab = Callable[[ConsumerHandle, dict[str, Any]], Awaitable[Any]]


class TabConsumer(Consumer):
    """Sidebar instance living in a browser tab.

    Messages are converted to their wire form and handed to `send`, which
    posts them to the tab. A failing send means the tab is gone.
    """

    def __init__(self, tab_id: ConsumerHandle, send: SendToTab) -> None:
        self.tab_id = tab_id
        self._send = send

    @property
    def handle(self) -> ConsumerHandle:
        return self.tab_id

    async def deliver(self, message: RelayMessage) -> None:
        try:
            await self._send(self.tab_id, message.to_wire())
        except ConsumerGoneError:
            raise
        except Exception as e:
            raise ConsumerGoneError(f"Tab {self.tab_id!r} unreachable: {e}") from e
