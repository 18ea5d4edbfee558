"""Tests for the reconciliation engine."""

import asyncio
import logging

import pytest

from activity_monitor.core.errors import (
    ChainUnavailableError,
    MalformedResponseError,
    SubscriptionError,
    SubscriptionExhaustedError,
)
from activity_monitor.core.models import (
    ActivityBatch,
    BatchSource,
    BlockRange,
    EngineState,
)
from activity_monitor.engine.reconciler import ReconciliationEngine
from activity_monitor.helpers.config import MonitorConfig
from conftest import (
    OTHER,
    WATCHED,
    FakeChain,
    FakeIndexer,
    RecordingSink,
    make_internal,
    make_normal,
    rpc_block,
    rpc_tx,
)


async def wait_for_cursor(engine: ReconciliationEngine, block_number: int) -> None:
    async def _poll() -> None:
        while engine.cursor.last_processed_block != block_number:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=5)


async def stop(engine: ReconciliationEngine, task: asyncio.Task[None]) -> None:
    engine.shutdown()
    await asyncio.wait_for(task, timeout=5)


class TestHandOff:
    """Tests for the backfill to live-tail boundary."""

    @pytest.mark.asyncio
    async def test_every_event_emitted_exactly_once(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """History, the hand-off block and later blocks each appear once."""
        chain = FakeChain(head=100)
        client = FakeIndexer(
            normal=[make_normal(95, "0x95"), make_normal(100, "0x100")],
            internal=[make_internal(100, "0x100"), make_internal(102, "0x102")],
        )
        # Head moved on while backfilling; 100 is redelivered after connect
        chain.blocks[100] = rpc_block(100, [rpc_tx("0x100", OTHER, WATCHED)])
        chain.blocks[101] = rpc_block(101, [rpc_tx("0x101", WATCHED, OTHER)])
        chain.blocks[102] = rpc_block(102, [rpc_tx("0x102", OTHER, WATCHED)])
        chain.sessions = [[100, 102]]
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 102)
        await stop(engine, task)

        identities = [e.identity for e in sink.events]
        assert len(identities) == len(set(identities))
        assert [(e.block_number, e.kind) for e in sink.events] == [
            (95, "normal"),
            (100, "normal"),
            (100, "internal"),
            (101, "normal"),
            (102, "normal"),
            (102, "internal"),
        ]
        assert 100 not in chain.fetched
        assert [b.source for b in sink.batches] == [
            BatchSource.BACKFILL,
            BatchSource.LIVE,
            BatchSource.LIVE,
        ]

    @pytest.mark.asyncio
    async def test_backfill_anchored_at_head(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Both history lookups stop at the head observed before backfilling."""
        chain = FakeChain(head=250)
        client = FakeIndexer()
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 250)
        await stop(engine, task)

        assert client.calls[:2] == [
            ("normal", BlockRange(end_block=250)),
            ("internal", BlockRange(end_block=250)),
        ]
        assert chain.fetched == [246, 247, 248, 249, 250]

    @pytest.mark.asyncio
    async def test_unknown_head_falls_back_to_history(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Without a head snapshot the cursor is the last block in history."""

        class NoHeadChain(FakeChain):
            async def get_block_number(self) -> int:
                raise ChainUnavailableError("eth_blockNumber failed")

        chain = NoHeadChain(head=500)
        client = FakeIndexer(normal=[make_normal(42)])
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 42)
        await stop(engine, task)

        assert client.calls[0][1].end_block is None
        assert engine.reporter.counts["ChainUnavailableError"] == 1

    @pytest.mark.asyncio
    async def test_blocks_missing_from_history_replayed(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Blocks the indexer had not served yet are read from the node once."""
        chain = FakeChain(head=100)
        client = FakeIndexer(normal=[make_normal(95, "0x95")])
        chain.blocks[99] = rpc_block(99, [rpc_tx("0x99", OTHER, WATCHED)])
        chain.blocks[101] = rpc_block(101, [rpc_tx("0x101", OTHER, WATCHED)])
        chain.sessions = [[100, 101]]
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 101)
        await stop(engine, task)

        assert [e.hash for e in sink.events] == ["0x95", "0x99", "0x101"]
        assert chain.fetched == [96, 97, 98, 99, 100, 101]
        assert [b.source for b in sink.batches] == [
            BatchSource.BACKFILL,
            BatchSource.LIVE,
            BatchSource.LIVE,
        ]

    @pytest.mark.asyncio
    async def test_replay_limited_to_recent_blocks(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Only the last max_catchup_blocks before the head are replayed."""
        chain = FakeChain(head=100)
        client = FakeIndexer(normal=[make_normal(10)])
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 100)
        await stop(engine, task)

        assert chain.fetched == [96, 97, 98, 99, 100]
        assert engine.reporter.status == "running"


class TestDegradedBackfill:
    """Tests for backfill failures."""

    @pytest.mark.asyncio
    async def test_tailing_starts_after_backfill_failure(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """A failed backfill is reported and live blocks are still processed."""
        chain = FakeChain(head=100)
        chain.blocks[101] = rpc_block(101, [rpc_tx("0x101", OTHER, WATCHED)])
        chain.sessions = [[101]]
        client = FakeIndexer()
        client.errors["normal"] = [MalformedResponseError("Invalid API Key")]
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 101)
        await stop(engine, task)

        assert [e.hash for e in sink.events] == ["0x101"]
        assert engine.reporter.status == "degraded"
        assert engine.reporter.counts["MalformedResponseError"] == 1

    @pytest.mark.asyncio
    async def test_truncated_history_reported(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """History cut at the result limit is emitted and reported as degraded."""
        chain = FakeChain(head=100)
        client = FakeIndexer(normal=[make_normal(40, "0x40")])
        client.truncated = True
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 100)
        await stop(engine, task)

        assert [e.hash for e in sink.events] == ["0x40"]
        assert engine.reporter.status == "degraded"
        assert engine.reporter.counts["HistoryTruncatedError"] == 1
        assert "block #40" in str(engine.reporter.last_report.error)


class TestLifecycle:
    """Tests for engine states and shutdown."""

    @pytest.mark.asyncio
    async def test_states(self, config: MonitorConfig) -> None:
        """idle -> backfilling -> tailing -> stopped."""
        states: list[EngineState] = []

        class StateSink(RecordingSink):
            async def emit(self, batch: ActivityBatch) -> None:
                states.append(engine.state)
                await super().emit(batch)

        chain = FakeChain(head=10)
        chain.blocks[11] = rpc_block(11, [rpc_tx("0x11", OTHER, WATCHED)])
        chain.sessions = [[11]]
        engine = ReconciliationEngine(config, FakeIndexer(), chain, StateSink())
        assert engine.state == EngineState.IDLE

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 11)
        await stop(engine, task)

        assert states == [EngineState.BACKFILLING, EngineState.TAILING]
        assert engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_shutdown_finishes_in_flight_block(
        self, config: MonitorConfig, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A block being emitted when shutdown arrives still completes."""

        class ShutdownSink(RecordingSink):
            async def emit(self, batch: ActivityBatch) -> None:
                if batch.source == BatchSource.LIVE:
                    engine.shutdown()
                    await asyncio.sleep(0.05)
                await super().emit(batch)

        chain = FakeChain(head=10)
        chain.blocks[11] = rpc_block(11, [rpc_tx("0x11", OTHER, WATCHED)])
        chain.sessions = [[11, 12, 13]]
        sink = ShutdownSink()
        engine = ReconciliationEngine(config, FakeIndexer(), chain, sink)

        with caplog.at_level(logging.INFO, logger="activity_monitor.engine.reconciler"):
            await asyncio.wait_for(engine.run(), timeout=5)

        assert engine.cursor.last_processed_block == 11
        assert [e.hash for e in sink.events] == ["0x11"]
        assert engine.state == EngineState.STOPPED
        # Replayed blocks #6..#10 plus #11
        assert any(
            "after 6 live block(s) and 1 event(s)" in r.getMessage()
            for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_cleanup_closes_collaborators(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Both network collaborators are closed on stop."""
        chain = FakeChain(head=5)
        client = FakeIndexer()
        engine = ReconciliationEngine(config, client, chain, sink)

        task = asyncio.create_task(engine.run())
        await wait_for_cursor(engine, 5)
        await stop(engine, task)

        assert client.closed
        assert chain.closed

    @pytest.mark.asyncio
    async def test_subscription_exhaustion_is_terminal(
        self, config: MonitorConfig, sink: RecordingSink
    ) -> None:
        """Exhausting the reconnect budget stops the engine with an error."""
        chain = FakeChain(head=5)
        chain.sessions = [[SubscriptionError("refused")] for _ in range(3)]
        engine = ReconciliationEngine(config, FakeIndexer(), chain, sink)

        with pytest.raises(SubscriptionExhaustedError):
            await asyncio.wait_for(engine.run(), timeout=5)

        assert chain.connections == 3
        assert engine.state == EngineState.STOPPED
        assert engine.reporter.status == "stopped"
        assert engine.reporter.last_report.severity == "terminal"
        assert chain.closed
