"""Best-effort delivery of relay messages to every registered consumer."""

import asyncio
import logging

from orion.consumers.base import Consumer, ConsumerHandle
from orion.errors import ConsumerGoneError
from orion.protocol.events import RelayMessage
from orion.relay.registry import ConsumerRegistry

logger = logging.getLogger(__name__)


class FanOutDispatcher:
    """Delivers each message to every consumer registered at dispatch time.

    Deliveries for one message run concurrently, so a slow consumer does not
    hold up the others. A consumer whose delivery fails is removed from the
    registry; the remaining deliveries carry on.
    """

    def __init__(
        self, registry: ConsumerRegistry, delivery_timeout: float | None = None
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Registry to read consumers from and prune
            delivery_timeout: Seconds a single delivery may take before the
                consumer is treated as gone, None to wait indefinitely
        """
        self.registry = registry
        self.delivery_timeout = delivery_timeout

    async def dispatch(self, message: RelayMessage) -> list[ConsumerHandle]:
        """Deliver message to all consumers registered right now.

        Consumers registered while the dispatch is in progress do not receive
        this message.

        Returns:
            Handles of consumers pruned because delivery failed
        """
        consumers = self.registry.snapshot()
        if not consumers:
            return []

        delivered = await asyncio.gather(
            *(self.deliver_to(consumer, message) for consumer in consumers)
        )
        return [
            consumer.handle
            for consumer, ok in zip(consumers, delivered)
            if not ok
        ]

    async def deliver_to(self, consumer: Consumer, message: RelayMessage) -> bool:
        """Deliver message to one consumer, pruning it on failure.

        Returns:
            True if the consumer accepted the message
        """
        try:
            if self.delivery_timeout is None:
                await consumer.deliver(message)
            else:
                await asyncio.wait_for(
                    consumer.deliver(message), self.delivery_timeout
                )
            return True
        except ConsumerGoneError as e:
            logger.debug(f"Consumer {consumer.handle!r} is gone: {e}")
        except asyncio.TimeoutError:
            logger.warning(
                f"Consumer {consumer.handle!r} did not accept a message within "
                f"{self.delivery_timeout}s"
            )
        except Exception as e:
            logger.warning(f"Delivery to consumer {consumer.handle!r} failed: {e}")

        if self.registry.discard(consumer):
            logger.info(
                f"Removed consumer {consumer.handle!r}, "
                f"{len(self.registry)} remaining"
            )
        return False
