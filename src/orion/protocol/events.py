"""Messages flowing from the server to the relay, and from the relay to consumers."""

from dataclasses import dataclass
from typing import Any, Literal

from orion.protocol.base import ProtocolModel
from orion.protocol.items import ConversationItem, Snapshot

EventType = Literal["initial", "update"]


class InboundEvent(ProtocolModel):
    """
    A decoded frame from the server's conversation stream.

    "initial" carries the full conversation and is sent once per connection.
    "update" is sent after every change and, like "initial", carries the
    whole item list.
    """

    type: EventType
    data: Snapshot

    @property
    def items(self) -> list[ConversationItem]:
        return self.data.items


@dataclass(frozen=True)
class StatusChanged:
    """Connection status pushed to consumers."""

    connected: bool
    reason: str | None = None
    error: bool = False
    """
    True when the status follows a transport error rather than a clean close.
    """

    def to_wire(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "type": "websocket-status",
            "connected": self.connected,
        }
        if self.reason is not None:
            message["errorMessage"] = self.reason
        if self.error:
            message["error"] = True
        return message


@dataclass(frozen=True)
class EventReceived:
    """An inbound conversation event pushed to consumers."""

    event: InboundEvent

    def to_wire(self) -> dict[str, Any]:
        return {"type": "websocket-data", "data": self.event.to_protocol()}


RelayMessage = StatusChanged | EventReceived
