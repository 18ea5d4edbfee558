"""Backfill-then-tail orchestration for one watched account.

The engine runs the backfiller once up to the chain head observed before
backfilling and replays the most recent blocks up to that head over RPC.
The subscription (producer) and the tailer (consumer) then run
concurrently, connected by a bounded queue.
"""

import asyncio

from activity_monitor.chain.source import ChainHeadSource
from activity_monitor.chain.subscription import ReconnectPolicy, ResilientSubscription
from activity_monitor.core.errors import (
    ChainError,
    HistoryTruncatedError,
    IndexerError,
    SubscriptionExhaustedError,
)
from activity_monitor.core.models import Cursor, EngineState, Severity
from activity_monitor.engine.backfill import HistoryBackfiller
from activity_monitor.engine.dedup import RecentIdentities
from activity_monitor.engine.reporting import ErrorReporter
from activity_monitor.engine.tailer import LiveTailer
from activity_monitor.helpers.config import MonitorConfig
from activity_monitor.helpers.http import log_and_suppress_errors
from activity_monitor.helpers.logging import get_logger
from activity_monitor.indexer.client import IndexingClient
from activity_monitor.sinks.base import EventSink


logger = get_logger(__name__)


class ReconciliationEngine:
    """Stitches history and live blocks into one gap-free, duplicate-free stream."""

    def __init__(
        self,
        config: MonitorConfig,
        client: IndexingClient,
        chain: ChainHeadSource,
        sink: EventSink,
        reporter: ErrorReporter | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.chain = chain
        self.sink = sink
        self.reporter = reporter or ErrorReporter()

        self.cursor = Cursor()
        self.seen = RecentIdentities(config.dedup_window)
        self.state = EngineState.IDLE

        self.backfiller = HistoryBackfiller(
            client,
            config.address,
            sink,
            self.cursor,
            self.seen,
            max_attempts=config.backfill_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )
        self.tailer = LiveTailer(
            chain,
            client,
            config.address,
            sink,
            self.cursor,
            self.seen,
            self.reporter,
            max_catchup_blocks=config.max_catchup_blocks,
            internal_page_size=config.block_page_size,
        )
        self.subscription = ResilientSubscription(
            chain,
            self.reporter,
            ReconnectPolicy(
                max_attempts=config.subscription_max_attempts,
                base_delay=config.subscription_base_delay,
                max_delay=config.subscription_max_delay,
            ),
        )

        # Queue for delivered block numbers
        self.blocks_queue: asyncio.Queue[int] = asyncio.Queue(
            maxsize=config.header_queue_size
        )
        self.subscription.on_new_block(self.blocks_queue.put)

        # Shutdown flag
        self.stop_event = asyncio.Event()

    async def run(self) -> None:
        """Backfill once, then tail until shutdown.

        Raises:
            SubscriptionExhaustedError: If the subscription cannot be kept alive
        """
        try:
            await self._backfill()
            if self.stop_event.is_set():
                return
            await self._tail()
        finally:
            self.state = EngineState.STOPPED
            await self.cleanup()
            logger.info(
                "Engine stopped at %r after %s live block(s) and %s event(s)",
                self.cursor,
                self.tailer.blocks_processed,
                self.tailer.events_emitted,
            )

    async def _backfill(self) -> None:
        self.state = EngineState.BACKFILLING

        head = await self._snapshot_head()
        try:
            history = await self.backfiller.run(end_block=head)
        except IndexerError as e:
            self.reporter.report(
                e,
                Severity.DEGRADED,
                context="Backfill failed, historical context lost; tailing anyway",
            )
        else:
            if history.truncated:
                self.reporter.report(
                    HistoryTruncatedError(
                        f"History stopped at block #{history.max_block_number}"
                    ),
                    Severity.DEGRADED,
                    context="Backfill hit the result limit, newer history incomplete",
                )
        if head is not None:
            await self._replay_to_head(head)

    async def _replay_to_head(self, head: int) -> None:
        """Cover the blocks up to ``head`` the indexer may not have served yet.

        The last ``max_catchup_blocks`` blocks before the head are fetched from
        the node unless the history already reached past them.
        """
        processed = self.cursor.last_processed_block or 0
        first_block = max(processed + 1, head - self.config.max_catchup_blocks + 1)
        if first_block > head:
            return

        self.cursor.advance(first_block - 1)
        logger.info("Replaying blocks #%s..#%s up to the hand-off", first_block, head)
        await self.tailer.replay(first_block, head, self.stop_event)

    async def _snapshot_head(self) -> int | None:
        try:
            head = await self.chain.get_block_number()
        except ChainError as e:
            self.reporter.report(
                e,
                Severity.DEGRADED,
                context="Chain head unknown, backfilling up to latest",
            )
            return None
        logger.info("Hand-off anchored at block #%s", head)
        return head

    async def _tail(self) -> None:
        self.state = EngineState.TAILING
        logger.info("Tailing new blocks after %r", self.cursor)

        producer = asyncio.create_task(self.subscription.run(self.stop_event))
        consumer = asyncio.create_task(
            self.tailer.consume(self.blocks_queue, self.stop_event)
        )

        try:
            # The consumer only returns once shutdown has been requested
            done, _ = await asyncio.wait(
                {producer, consumer}, return_when=asyncio.FIRST_COMPLETED
            )
            if producer in done and (error := producer.exception()) is not None:
                context = (
                    "Reconnect budget exhausted, monitoring stopped"
                    if isinstance(error, SubscriptionExhaustedError)
                    else "Block subscription crashed, monitoring stopped"
                )
                self.reporter.report(error, Severity.TERMINAL, context=context)
                self.shutdown()
                await consumer
                raise error
            if consumer in done and (error := consumer.exception()) is not None:
                self.reporter.report(
                    error, Severity.TERMINAL, context="Block consumer crashed"
                )
                raise error
        finally:
            self.stop_event.set()
            # Stop accepting new blocks; the consumer finishes its current block
            producer.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)

    def shutdown(self) -> None:
        """Request a cooperative stop."""
        if not self.stop_event.is_set():
            logger.info("Shutdown requested, stopping...")
        self.stop_event.set()

    async def cleanup(self) -> None:
        """Clean up resources."""
        async with log_and_suppress_errors("close indexer client"):
            await self.client.aclose()
        async with log_and_suppress_errors("close chain head source"):
            await self.chain.aclose()


__all__ = ["ReconciliationEngine"]
