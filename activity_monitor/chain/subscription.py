"""Reconnecting wrapper around a ChainHeadSource subscription."""

from dataclasses import dataclass
from collections.abc import Awaitable, Callable
from typing import TypeAlias

import asyncio

from activity_monitor.chain.source import ChainHeadSource
from activity_monitor.core.errors import SubscriptionError, SubscriptionExhaustedError
from activity_monitor.core.models import Severity
from activity_monitor.engine.reporting import ErrorReporter
from activity_monitor.helpers.constants import (
    SUBSCRIPTION_BASE_DELAY,
    SUBSCRIPTION_MAX_ATTEMPTS,
    SUBSCRIPTION_MAX_DELAY,
)
from activity_monitor.helpers.http import backoff_delay
from activity_monitor.helpers.logging import get_logger


logger = get_logger(__name__)

BlockCallback: TypeAlias = Callable[[int], Awaitable[None]]


@dataclass(frozen=True)
class ReconnectPolicy:
    """Bounded exponential backoff between consecutive failed connections."""

    max_attempts: int = SUBSCRIPTION_MAX_ATTEMPTS
    base_delay: float = SUBSCRIPTION_BASE_DELAY
    max_delay: float = SUBSCRIPTION_MAX_DELAY

    def delay(self, attempt: int) -> float:
        """Delay before reconnect number ``attempt`` (1-based)."""
        return backoff_delay(attempt - 1, self.base_delay, self.max_delay)


class ResilientSubscription:
    """Keeps a newHeads subscription alive across disconnects.

    Connection states: connecting -> connected -> (disconnected ->
    reconnecting -> connecting)* -> stopped | exhausted.
    """

    def __init__(
        self,
        source: ChainHeadSource,
        reporter: ErrorReporter,
        policy: ReconnectPolicy | None = None,
    ) -> None:
        self.source = source
        self.reporter = reporter
        self.policy = policy or ReconnectPolicy()
        self._callbacks: list[BlockCallback] = []

        # Stats
        self.blocks_received = 0
        self.last_block_number: int | None = None
        self.connection_status = "Initializing"
        self.reconnect_count = 0

    def on_new_block(self, callback: BlockCallback) -> None:
        """Register ``callback`` to be awaited for every delivered block number."""
        self._callbacks.append(callback)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Deliver block numbers until ``stop_event`` is set.

        Raises:
            SubscriptionExhaustedError: After ``max_attempts`` consecutive
                connections failed without delivering a head
        """
        failures = 0

        while not stop_event.is_set():
            self.connection_status = "Connecting"
            try:
                async for block_number in self.source.stream_block_numbers():
                    if stop_event.is_set():
                        break
                    if self.connection_status != "Connected":
                        self.connection_status = "Connected"
                        failures = 0
                    await self._deliver(block_number)
                else:
                    error: Exception = SubscriptionError(
                        "Subscription stream closed by the server"
                    )
            except SubscriptionError as e:
                error = e
            except Exception as e:
                logger.exception("Unexpected subscription failure")
                error = SubscriptionError(str(e))

            if stop_event.is_set():
                break

            failures += 1
            self.connection_status = "Disconnected"
            if failures >= self.policy.max_attempts:
                self.connection_status = "Exhausted"
                msg = (
                    f"Gave up after {failures} consecutive failed connection "
                    f"attempts: {error}"
                )
                raise SubscriptionExhaustedError(msg) from error

            delay = self.policy.delay(failures)
            self.reconnect_count += 1
            self.reporter.report(
                error,
                Severity.DEGRADED,
                context=(
                    f"Subscription lost, reconnecting in {delay}s "
                    f"(attempt {failures}/{self.policy.max_attempts})"
                ),
            )
            self.connection_status = f"Reconnecting in {delay}s"
            await self._sleep_unless_stopped(stop_event, delay)

        self.connection_status = "Stopped"
        logger.info("Subscription stopped")

    async def _deliver(self, block_number: int) -> None:
        self.blocks_received += 1
        self.last_block_number = block_number
        logger.info("New block #%s", block_number)
        for callback in self._callbacks:
            await callback(block_number)

    @staticmethod
    async def _sleep_unless_stopped(stop_event: asyncio.Event, delay: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass


__all__ = ["BlockCallback", "ReconnectPolicy", "ResilientSubscription"]
