"""Parsing of raw stream frames into typed conversation events."""

import json
from typing import Any

from pydantic import ValidationError

from orion.errors import MalformedFrameError
from orion.protocol.events import InboundEvent

EVENT_TYPES = ("initial", "update")


class MessageParser:
    """Parses frames from the conversation stream into InboundEvent objects."""

    def parse_frame(self, frame: str | bytes) -> InboundEvent:
        """Decode one text or binary frame.

        Args:
            frame: Raw frame as received from the stream

        Returns:
            The typed event

        Raises:
            MalformedFrameError: If the frame is not JSON or not a known event
        """
        try:
            payload = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedFrameError(f"Frame is not valid JSON: {e}") from e

        return self.parse_event(payload)

    def parse_event(self, payload: Any) -> InboundEvent:
        """Validate a decoded payload as an InboundEvent.

        Raises:
            MalformedFrameError: If the payload has an unknown type or bad items
        """
        if not self.is_valid_event(payload):
            raise MalformedFrameError(f"Unknown event: {_preview(payload)}")

        try:
            return InboundEvent.from_protocol(payload)
        except ValidationError as e:
            raise MalformedFrameError(
                f"Invalid {payload['type']} event: {e.error_count()} error(s)"
            ) from e

    def is_valid_event(self, payload: Any) -> bool:
        """Check if payload looks like a conversation event."""
        return (
            isinstance(payload, dict)
            and payload.get("type") in EVENT_TYPES
            and isinstance(payload.get("data"), dict)
        )


def _preview(payload: Any, limit: int = 200) -> str:
    text = repr(payload)
    return text if len(text) <= limit else text[:limit] + "..."
