"""Retry scheduling after the stream is lost."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0


@dataclass
class RetryState:
    """Progress of the current run of reconnection attempts."""

    attempts: int = 0
    deadline: float | None = None
    """
    Event loop time at which the pending retry fires, None when not armed.
    """

    def reset(self) -> None:
        self.attempts = 0
        self.deadline = None


class ReconnectPolicy:
    """Arms at most one retry timer at a time.

    With the default backoff_factor of 1.0 every retry waits `delay` seconds.
    A larger factor gives capped exponential backoff:
    delay * backoff_factor ** attempts, never more than max_delay.
    """

    def __init__(
        self,
        reconnect: Callable[[], None],
        has_consumers: Callable[[], bool],
        delay: float = DEFAULT_RECONNECT_DELAY,
        backoff_factor: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        """Initialize the policy.

        Args:
            reconnect: Starts a new connection attempt; must not block
            has_consumers: Whether anyone still wants the connection
            delay: Seconds before the first retry
            backoff_factor: Multiplier applied per failed attempt
            max_delay: Upper bound for any single delay
        """
        if delay < 0 or max_delay < 0:
            raise ValueError("Reconnect delays must not be negative")
        if backoff_factor < 1.0:
            raise ValueError("backoff_factor must be at least 1.0")

        self._reconnect = reconnect
        self._has_consumers = has_consumers
        self.delay = delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.state = RetryState()
        self._timer: asyncio.Task[None] | None = None

    @property
    def armed(self) -> bool:
        """True while a retry is pending."""
        return self._timer is not None and not self._timer.done()

    def next_delay(self) -> float:
        delay = self.delay * self.backoff_factor**self.state.attempts
        return min(delay, self.max_delay)

    def on_disconnect(self, reason: str) -> bool:
        """Schedule a retry after an unexpected disconnect.

        Does nothing if no consumers remain or a retry is already pending.

        Returns:
            True if a new retry was scheduled
        """
        if not self._has_consumers():
            logger.debug(f"Not reconnecting, no consumers ({reason})")
            return False
        if self.armed:
            logger.debug(f"Retry already pending, ignoring disconnect ({reason})")
            return False

        delay = self.next_delay()
        loop = asyncio.get_running_loop()
        self.state.deadline = loop.time() + delay
        self._timer = asyncio.create_task(
            self._wait_and_reconnect(delay), name="orion-reconnect"
        )
        logger.info(
            f"Reconnecting in {delay:g}s (attempt {self.state.attempts + 1}): {reason}"
        )
        return True

    def on_connected(self) -> None:
        """Cancel any pending retry and start counting attempts from zero."""
        self.cancel()
        self.state.reset()

    def cancel(self) -> None:
        """Cancel the pending retry, if any. Safe to call multiple times."""
        if self._timer is not None:
            if not self._timer.done() and self._timer is not asyncio.current_task():
                self._timer.cancel()
            self._timer = None
        self.state.deadline = None

    async def _wait_and_reconnect(self, delay: float) -> None:
        await asyncio.sleep(delay)

        # Disarm before reconnecting so a failed attempt can arm again.
        self._timer = None
        self.state.deadline = None

        if not self._has_consumers():
            logger.debug("Retry skipped, no consumers left")
            return

        self.state.attempts += 1
        self._reconnect()
