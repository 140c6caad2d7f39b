from abc import ABC, abstractmethod
from collections.abc import Hashable

from orion.protocol.events import RelayMessage

ConsumerHandle = Hashable
"""Opaque identifier of one UI surface, such as a browser tab id."""


class Consumer(ABC):
    """A UI surface that wants live conversation updates.

    Delivery is capability-checked: the relay simply attempts it. A consumer
    whose surface has gone away raises ConsumerGoneError (any other exception
    is treated the same way) and is dropped from the registry.
    """

    @property
    @abstractmethod
    def handle(self) -> ConsumerHandle:
        """Stable identifier used for registration and deregistration."""

    @abstractmethod
    async def deliver(self, message: RelayMessage) -> None:
        """Push one status change or event to the surface.

        Raises:
            ConsumerGoneError: If the surface no longer exists
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(handle={self.handle!r})"
