"""One-shot historical backfill of a watched account."""

from activity_monitor.core.errors import (
    IndexerUnavailableError,
    RateLimitedError,
)
from activity_monitor.core.models import ActivityBatch, BatchSource, BlockRange, Cursor
from activity_monitor.engine.dedup import RecentIdentities
from activity_monitor.helpers.constants import (
    BACKFILL_MAX_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from activity_monitor.helpers.http import retry_with_backoff
from activity_monitor.helpers.logging import get_logger
from activity_monitor.indexer.client import IndexingClient
from activity_monitor.sinks.base import EventSink


logger = get_logger(__name__)


class HistoryBackfiller:
    """Fetches all prior normal and internal activity and emits it once.

    Both lookups retry RateLimitedError and IndexerUnavailableError with
    exponential backoff. MalformedResponseError is raised on first sight.
    """

    def __init__(
        self,
        client: IndexingClient,
        address: str,
        sink: EventSink,
        cursor: Cursor,
        seen: RecentIdentities,
        *,
        max_attempts: int = BACKFILL_MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        max_delay: float = RETRY_MAX_DELAY,
    ) -> None:
        self.client = client
        self.address = address.lower()
        self.sink = sink
        self.cursor = cursor
        self.seen = seen
        self._retry = retry_with_backoff(
            max_retries=max_attempts,
            base_delay=base_delay,
            max_delay=max_delay,
            retry_on=(RateLimitedError, IndexerUnavailableError),
        )

    async def run(self, end_block: int | None = None) -> ActivityBatch:
        """Backfill ``[0, end_block]`` (``None`` means latest).

        The cursor is set to the highest block seen, or 0 when there is no
        history, before the batch is emitted. Identities already in the
        dedup window, and repeats within the batch, are left out as on the
        live path.

        Raises:
            IndexerUnavailableError: If either lookup exhausts its retries
            MalformedResponseError: If the provider's answer is unusable
        """
        block_range = BlockRange(end_block=end_block)
        logger.info(
            "Backfilling %s up to %s",
            self.address,
            "latest" if end_block is None else f"block #{end_block}",
        )

        normal = await self._fetch("normal", self.client.fetch_normal, block_range)
        internal = await self._fetch(
            "internal", self.client.fetch_internal, block_range
        )
        merged = ActivityBatch.merge(BatchSource.BACKFILL, normal, internal)
        batch = merged.model_copy(
            update={"events": self.seen.filter_new(merged.events)}
        )

        logger.info(
            "Found %s normal and %s internal tx(s) for %s",
            len(normal),
            len(internal),
            self.address,
        )
        if len(batch) < len(merged):
            logger.debug("Dropped %s duplicate tx(s)", len(merged) - len(batch))

        self.cursor.advance(merged.max_block_number or 0)
        await self.sink.emit(batch)
        self.seen.add_all(batch.events)
        return batch

    async def _fetch(self, label, lookup, block_range: BlockRange) -> ActivityBatch:
        try:
            return await self._retry(lookup)(self.address, block_range)
        except RateLimitedError as e:
            msg = f"{label} history still rate limited after retries: {e}"
            raise IndexerUnavailableError(msg) from e


__all__ = ["HistoryBackfiller"]
