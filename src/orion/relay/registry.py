"""Which consumers currently want live updates from the relay."""

from orion.consumers.base import Consumer, ConsumerHandle


class ConsumerRegistry:
    """Owns the set of consumers that currently want live updates.

    Keyed by handle, so registering the same handle twice is a no-op.
    Insertion order is kept for diagnostics only.
    """

    def __init__(self) -> None:
        self._consumers: dict[ConsumerHandle, Consumer] = {}

    def register(self, consumer: Consumer) -> bool:
        """Add a consumer.

        Returns:
            True if the handle was not registered before
        """
        if consumer.handle in self._consumers:
            return False
        self._consumers[consumer.handle] = consumer
        return True

    def deregister(self, handle: ConsumerHandle) -> bool:
        """Remove a consumer by handle.

        Returns:
            True if the handle was registered
        """
        return self._consumers.pop(handle, None) is not None

    def discard(self, consumer: Consumer) -> bool:
        """Remove this exact consumer object if it is still the registered one.

        Used when pruning after a failed delivery, so a surface that
        re-registered under the same handle in the meantime is kept.
        """
        if self._consumers.get(consumer.handle) is not consumer:
            return False
        del self._consumers[consumer.handle]
        return True

    def get(self, handle: ConsumerHandle) -> Consumer | None:
        return self._consumers.get(handle)

    def handles(self) -> list[ConsumerHandle]:
        return list(self._consumers.keys())

    def snapshot(self) -> list[Consumer]:
        """Consumers registered right now, in registration order."""
        return list(self._consumers.values())

    def clear(self) -> None:
        self._consumers.clear()

    def __len__(self) -> int:
        return len(self._consumers)

    def __contains__(self, handle: object) -> bool:
        return handle in self._consumers

    def __repr__(self) -> str:
        return f"ConsumerRegistry(handles={self.handles()!r})"
