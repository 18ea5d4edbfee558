"""Shared fakes and fixtures for the activity monitor tests."""

import asyncio

import pytest

from typing import Any

from collections.abc import AsyncIterator

from activity_monitor.chain.source import ChainHeadSource
from activity_monitor.core.errors import BlockNotFoundError
from activity_monitor.core.models import (
    ActivityBatch,
    BatchSource,
    BlockRange,
    InternalTransaction,
    NormalTransaction,
)
from activity_monitor.helpers.config import MonitorConfig
from activity_monitor.helpers.models import RpcBlock
from activity_monitor.indexer.client import IndexingClient
from activity_monitor.sinks.base import EventSink


WATCHED = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
OTHER = "0x1111111111111111111111111111111111111111"


def make_normal(
    block_number: int,
    tx_hash: str = "0xaaa",
    *,
    from_address: str | None = OTHER,
    to_address: str | None = WATCHED,
    value_wei: int = 1,
    timestamp: int = 1_700_000_000,
    input_prefix: str | None = None,
) -> NormalTransaction:
    return NormalTransaction(
        hash=tx_hash,
        block_number=block_number,
        timestamp=timestamp,
        from_address=from_address,
        to_address=to_address,
        value_wei=value_wei,
        input_prefix=input_prefix,
    )


def make_internal(
    block_number: int,
    parent_hash: str = "0xbbb",
    *,
    from_address: str | None = OTHER,
    to_address: str | None = WATCHED,
    value_wei: int = 1,
    timestamp: int = 1_700_000_000,
    call_type: str = "call",
    trace_id: str | None = None,
) -> InternalTransaction:
    return InternalTransaction(
        parent_hash=parent_hash,
        block_number=block_number,
        timestamp=timestamp,
        from_address=from_address,
        to_address=to_address,
        value_wei=value_wei,
        call_type=call_type,
        trace_id=trace_id,
    )


def rpc_tx(
    tx_hash: str,
    from_address: str | None,
    to_address: str | None,
    value_wei: int = 1,
    data: str = "0x",
) -> dict[str, Any]:
    return {
        "hash": tx_hash,
        "from": from_address,
        "to": to_address,
        "value": hex(value_wei),
        "input": data,
    }


def rpc_block(
    block_number: int, transactions: list[dict[str, Any]] | None = None
) -> RpcBlock:
    return RpcBlock.model_validate({
        "number": hex(block_number),
        "hash": f"0x{block_number:064x}",
        "timestamp": hex(1_700_000_000 + block_number * 12),
        "transactions": transactions or [],
    })


class RecordingSink(EventSink):
    """Sink that keeps every emitted batch."""

    def __init__(self) -> None:
        self.batches: list[ActivityBatch] = []

    async def emit(self, batch: ActivityBatch) -> None:
        self.batches.append(batch)

    @property
    def events(self) -> list[NormalTransaction | InternalTransaction]:
        return [event for batch in self.batches for event in batch.events]


class FakeIndexer(IndexingClient):
    """Indexing client answering from in-memory events.

    ``errors`` maps "normal" / "internal" to a list of exceptions raised, in
    order, before the real answer is returned.
    ``truncated`` marks the normal history as cut at the result limit.
    """

    def __init__(
        self,
        normal: list[NormalTransaction] | None = None,
        internal: list[InternalTransaction] | None = None,
    ) -> None:
        self.normal = normal or []
        self.internal = internal or []
        self.errors: dict[str, list[Exception]] = {"normal": [], "internal": []}
        self.internal_failures: dict[int, Exception] = {}
        self.truncated = False
        self.calls: list[tuple[str, BlockRange | None]] = []
        self.closed = False

    async def fetch_normal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        self.calls.append(("normal", block_range))
        if self.errors["normal"]:
            raise self.errors["normal"].pop(0)
        return ActivityBatch(
            source=BatchSource.BACKFILL,
            events=[e for e in self.normal if _in_range(e, block_range)],
            truncated=self.truncated,
        )

    async def fetch_internal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        self.calls.append(("internal", block_range))
        if self.errors["internal"]:
            raise self.errors["internal"].pop(0)
        if block_range is not None and block_range.start_block in self.internal_failures:
            raise self.internal_failures[block_range.start_block]
        return ActivityBatch(
            source=BatchSource.BACKFILL,
            events=[e for e in self.internal if _in_range(e, block_range)],
        )

    async def aclose(self) -> None:
        self.closed = True


def _in_range(
    event: NormalTransaction | InternalTransaction, block_range: BlockRange | None
) -> bool:
    if block_range is None:
        return True
    if event.block_number < block_range.start_block:
        return False
    return block_range.end_block is None or event.block_number <= block_range.end_block


class FakeChain(ChainHeadSource):
    """Chain head source with scripted blocks and subscription sessions.

    Each entry of ``sessions`` is one connection: a list of block numbers to
    deliver, optionally ending with an exception raised after them. Once the
    sessions run out the stream stays open until cancelled.
    """

    def __init__(self, head: int = 0) -> None:
        self.head = head
        self.blocks: dict[int, RpcBlock] = {}
        self.block_failures: dict[int, list[Exception]] = {}
        self.sessions: list[list[Any]] = []
        self.connections = 0
        self.fetched: list[int] = []
        self.closed = False

    async def stream_block_numbers(self) -> AsyncIterator[int]:
        self.connections += 1
        if not self.sessions:
            await asyncio.Event().wait()
        for item in self.sessions.pop(0):
            if isinstance(item, BaseException):
                raise item
            yield item

    async def get_block(self, block_number: int) -> RpcBlock:
        self.fetched.append(block_number)
        failures = self.block_failures.get(block_number)
        if failures:
            raise failures.pop(0)
        if block_number not in self.blocks:
            if block_number <= self.head:
                return rpc_block(block_number)
            raise BlockNotFoundError(block_number)
        return self.blocks[block_number]

    async def get_block_number(self) -> int:
        return self.head

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def watched() -> str:
    return WATCHED


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def config() -> MonitorConfig:
    """Configuration with zero backoff so retry paths run instantly."""
    return MonitorConfig(
        ws_url="wss://node.test/ws",
        http_url="https://node.test/rpc",
        address=WATCHED.upper().replace("0X", "0x"),
        etherscan_api_key="test-key",
        retry_base_delay=0,
        retry_max_delay=0,
        subscription_base_delay=0,
        subscription_max_delay=0,
        subscription_max_attempts=3,
        max_catchup_blocks=5,
    )
