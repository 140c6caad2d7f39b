"""Exception hierarchy for the Orion relay.

Transport and delivery errors are absorbed inside the relay. Request errors
are converted into failure results before they reach a caller.
"""

from __future__ import annotations

from enum import Enum


class OrionError(Exception):
    """Base exception for all relay errors."""

    pass


class TransportError(OrionError):
    """Raised when the streaming connection cannot be opened or fails mid-stream."""

    pass


class MalformedFrameError(TransportError):
    """Raised when an inbound frame is not a valid conversation event.

    Malformed frames are dropped by the connection; they never tear it down.
    """

    pass


class RequestErrorKind(str, Enum):
    """Why a point-to-point request failed."""

    NETWORK = "network"
    STATUS = "status"
    DECODE = "decode"
    STORAGE = "storage"
    """
    A download reached the server but could not be written locally.
    """


class RequestError(OrionError):
    """Raised by the HTTP client when a request to the server fails."""

    def __init__(
        self, kind: RequestErrorKind, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ConsumerGoneError(OrionError):
    """Raised by a consumer whose UI surface no longer exists.

    The relay removes the consumer from the registry when it sees this.
    """

    pass
