"""Per-block live processing of a watched account.

Processing flow for every delivered block number ``n``:
1. Skip ``n`` if it is at or below the cursor (stale or redelivered)
2. Catch up on missed blocks between the cursor and ``n``
3. Fetch block ``n`` while the single-block internal lookup runs alongside
4. Drop already-emitted identities, emit the batch, advance the cursor
"""

from contextlib import suppress

import asyncio

from activity_monitor.chain.source import ChainHeadSource
from activity_monitor.core.errors import (
    BlockGapError,
    BlockNotFoundError,
    ChainUnavailableError,
    IndexerError,
)
from activity_monitor.core.models import (
    ActivityBatch,
    BatchSource,
    BlockRange,
    Cursor,
    InternalFetchOutcome,
    Severity,
)
from activity_monitor.engine.dedup import RecentIdentities
from activity_monitor.engine.reporting import ErrorReporter
from activity_monitor.helpers.constants import (
    ETHERSCAN_BLOCK_PAGE_SIZE,
    MAX_CATCHUP_BLOCKS,
    QUEUE_POLL_INTERVAL,
)
from activity_monitor.helpers.logging import get_logger
from activity_monitor.indexer.client import IndexingClient
from activity_monitor.sinks.base import EventSink


logger = get_logger(__name__)

BLOCK_FETCH_ERRORS = (BlockNotFoundError, ChainUnavailableError)


class LiveTailer:
    """Turns delivered block numbers into ordered live batches."""

    def __init__(
        self,
        chain: ChainHeadSource,
        client: IndexingClient,
        address: str,
        sink: EventSink,
        cursor: Cursor,
        seen: RecentIdentities,
        reporter: ErrorReporter,
        *,
        max_catchup_blocks: int = MAX_CATCHUP_BLOCKS,
        internal_page_size: int = ETHERSCAN_BLOCK_PAGE_SIZE,
    ) -> None:
        self.chain = chain
        self.client = client
        self.address = address.lower()
        self.sink = sink
        self.cursor = cursor
        self.seen = seen
        self.reporter = reporter
        self.max_catchup_blocks = max_catchup_blocks
        self.internal_page_size = internal_page_size

        # Stats
        self.blocks_processed = 0
        self.events_emitted = 0

    async def handle_block(
        self, block_number: int, stop_event: asyncio.Event | None = None
    ) -> None:
        """Process a block number delivered by the subscription.

        A block that cannot be fetched is reported and left behind the
        cursor, so the next delivered block retries it during catch-up.
        Once ``stop_event`` is set, catch-up halts between blocks and
        ``block_number`` itself is left for the next run.
        """
        last = self.cursor.last_processed_block
        if last is not None and block_number <= last:
            logger.warning(
                "Skipping stale or duplicate block #%s (cursor at #%s)",
                block_number,
                last,
            )
            return

        if last is not None and block_number > last + 1:
            caught_up = await self._catch_up(last + 1, block_number - 1, stop_event)
            if not caught_up:
                return

        try:
            await self.process_block(block_number)
        except BLOCK_FETCH_ERRORS as e:
            self.reporter.report(
                e,
                Severity.DEGRADED,
                context=(
                    f"Block #{block_number} not processed, retrying with the next block"
                ),
            )

    async def process_block(self, block_number: int) -> ActivityBatch:
        """Fetch, filter and emit one block, then advance the cursor to it.

        Raises:
            BlockNotFoundError: If the node does not have the block
            ChainUnavailableError: If the block fetch exhausted its retries
        """
        internal_task = asyncio.create_task(self._fetch_internal(block_number))
        try:
            block = await self.chain.get_block(block_number)
        except BaseException:
            internal_task.cancel()
            with suppress(asyncio.CancelledError):
                await internal_task
            raise

        normal = block.transactions_touching(self.address)
        outcome = await internal_task
        if not outcome.ok:
            self.reporter.report(
                outcome.error,
                Severity.DEGRADED,
                context=(
                    f"Internal transactions for block #{block_number} unavailable, "
                    "emitting normal transactions only"
                ),
            )

        batch = ActivityBatch(
            source=BatchSource.LIVE,
            events=[*self.seen.filter_new(normal), *self.seen.filter_new(outcome.events)],
            block_number=block_number,
        )

        if batch.is_empty:
            logger.debug("No activity in block #%s", block_number)
        else:
            await self.sink.emit(batch)
            self.seen.add_all(batch.events)
            self.events_emitted += len(batch)
            logger.info(
                "Emitted %s normal and %s internal tx(s) for block #%s",
                len(batch.normal),
                len(batch.internal),
                block_number,
            )

        self.cursor.advance(block_number)
        self.blocks_processed += 1
        return batch

    async def replay(
        self,
        first_block: int,
        last_block: int,
        stop_event: asyncio.Event | None = None,
    ) -> bool:
        """Process ``first_block..last_block`` in order.

        A block that cannot be fetched is reported and skipped. Returns
        False if ``stop_event`` was set before every block was processed.
        """
        for block_number in range(first_block, last_block + 1):
            if stop_event is not None and stop_event.is_set():
                logger.info(
                    "Stop requested, blocks from #%s left unprocessed", block_number
                )
                return False
            try:
                await self.process_block(block_number)
            except BLOCK_FETCH_ERRORS as e:
                self.reporter.report(
                    e,
                    Severity.DEGRADED,
                    context=f"Block #{block_number} skipped during catch-up",
                )
                self.cursor.advance(block_number)
        return True

    async def _catch_up(
        self, first_block: int, last_block: int, stop_event: asyncio.Event | None
    ) -> bool:
        if last_block - first_block + 1 > self.max_catchup_blocks:
            self.reporter.report(
                BlockGapError(first_block, last_block),
                Severity.DEGRADED,
                context="Resuming tailing without catch-up",
            )
            self.cursor.advance(last_block)
            return True

        logger.info("Catching up on blocks #%s..#%s", first_block, last_block)
        return await self.replay(first_block, last_block, stop_event)

    async def _fetch_internal(self, block_number: int) -> InternalFetchOutcome:
        try:
            batch = await self.client.fetch_internal(
                self.address,
                BlockRange.single(block_number),
                page_size=self.internal_page_size,
            )
        except IndexerError as e:
            return InternalFetchOutcome(block_number=block_number, error=e)
        return InternalFetchOutcome(block_number=block_number, events=batch.internal)

    async def consume(self, queue: asyncio.Queue[int], stop_event: asyncio.Event) -> None:
        """Process queued block numbers one at a time until ``stop_event``.

        The block being processed when the event is set is finished first.
        """
        logger.info("Block queue consumer started")

        while not stop_event.is_set():
            # Get block number from queue with timeout to allow shutdown checks
            try:
                block_number = await asyncio.wait_for(
                    queue.get(), timeout=QUEUE_POLL_INTERVAL
                )
            except TimeoutError:
                continue

            try:
                await self.handle_block(block_number, stop_event)
            except Exception as e:
                logger.exception("Error processing block #%s", block_number)
                self.reporter.report(
                    e, Severity.DEGRADED, context=f"Block #{block_number} failed"
                )
            finally:
                queue.task_done()

        logger.info("Block queue consumer stopped")


__all__ = ["LiveTailer"]
