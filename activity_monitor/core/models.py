"""Domain models for watched-account activity."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventKind(StrEnum):
    """Discriminant of a TransactionEvent."""

    NORMAL = "normal"
    INTERNAL = "internal"


class BatchSource(StrEnum):
    """Where an ActivityBatch came from."""

    BACKFILL = "backfill"
    LIVE = "live"


class EngineState(StrEnum):
    """Lifecycle of the reconciliation engine."""

    IDLE = "idle"
    BACKFILLING = "backfilling"
    TAILING = "tailing"
    STOPPED = "stopped"


class Severity(StrEnum):
    """Whether monitoring continues after a reported error."""

    DEGRADED = "degraded"
    TERMINAL = "terminal"


# (block_number, hash or parent hash, kind, value_wei, from, to)
EventIdentity: TypeAlias = tuple[int, str, str, int, str | None, str | None]


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    block_number: int = Field(..., ge=0)
    timestamp: int = Field(..., ge=0, description="Unix seconds")
    from_address: str | None = Field(default=None, description="Lower-cased sender")
    to_address: str | None = Field(
        default=None, description="Lower-cased recipient, None for contract creation"
    )
    value_wei: int = Field(..., ge=0, description="Exact amount in wei")


class NormalTransaction(_EventBase):
    """Top-level, directly signed transaction."""

    kind: Literal["normal"] = "normal"
    hash: str
    input_prefix: str | None = Field(
        default=None, description="First bytes of calldata, None for plain transfers"
    )

    @property
    def identity(self) -> EventIdentity:
        return (
            self.block_number,
            self.hash.lower(),
            self.kind,
            self.value_wei,
            self.from_address,
            self.to_address,
        )


class InternalTransaction(_EventBase):
    """Value transfer triggered by contract execution inside a parent tx."""

    kind: Literal["internal"] = "internal"
    parent_hash: str
    call_type: str = "call"
    trace_id: str | None = None

    @property
    def identity(self) -> EventIdentity:
        return (
            self.block_number,
            self.parent_hash.lower(),
            self.kind,
            self.value_wei,
            self.from_address,
            self.to_address,
        )


TransactionEvent = Annotated[
    NormalTransaction | InternalTransaction, Field(discriminator="kind")
]

_KIND_ORDER = {EventKind.NORMAL: 0, EventKind.INTERNAL: 1}


def chronological_key(event: NormalTransaction | InternalTransaction) -> tuple[int, int]:
    """Sort key: block number, then normal transactions before internal ones.

    Used with a stable sort so provider order inside a block is preserved.
    """
    return (event.block_number, _KIND_ORDER[event.kind])


class ActivityBatch(BaseModel):
    """Ordered events from one backfill pass or one live block."""

    source: BatchSource
    events: list[TransactionEvent] = Field(default_factory=list)
    block_number: int | None = Field(
        default=None, description="Block this batch covers (live batches only)"
    )
    truncated: bool = Field(
        default=False, description="The provider stopped before the range was exhausted"
    )

    def __len__(self) -> int:
        return len(self.events)

    @property
    def is_empty(self) -> bool:
        return not self.events

    @property
    def normal(self) -> list[NormalTransaction]:
        return [e for e in self.events if isinstance(e, NormalTransaction)]

    @property
    def internal(self) -> list[InternalTransaction]:
        return [e for e in self.events if isinstance(e, InternalTransaction)]

    @property
    def max_block_number(self) -> int | None:
        if not self.events:
            return None
        return max(e.block_number for e in self.events)

    @classmethod
    def merge(
        cls,
        source: BatchSource,
        *batches: "ActivityBatch",
        block_number: int | None = None,
    ) -> "ActivityBatch":
        """Combine batches into one chronologically ordered batch."""
        events = [e for batch in batches for e in batch.events]
        events.sort(key=chronological_key)
        return cls(
            source=source,
            events=events,
            block_number=block_number,
            truncated=any(batch.truncated for batch in batches),
        )


class BlockRange(BaseModel):
    """Inclusive block range; ``end_block=None`` means latest."""

    model_config = ConfigDict(frozen=True)

    start_block: int = Field(default=0, ge=0)
    end_block: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "BlockRange":
        if self.end_block is not None and self.end_block < self.start_block:
            msg = f"end_block {self.end_block} is before start_block {self.start_block}"
            raise ValueError(msg)
        return self

    @classmethod
    def single(cls, block_number: int) -> "BlockRange":
        return cls(start_block=block_number, end_block=block_number)


class Cursor:
    """Highest block fully processed. Never moves backwards."""

    def __init__(self, last_processed_block: int | None = None) -> None:
        self._last: int | None = last_processed_block

    @property
    def last_processed_block(self) -> int | None:
        return self._last

    def advance(self, block_number: int) -> None:
        """Move the cursor forward to ``block_number``.

        Raises:
            ValueError: If ``block_number`` is below the current position
        """
        if self._last is not None and block_number < self._last:
            msg = f"Cursor cannot move back from {self._last} to {block_number}"
            raise ValueError(msg)
        self._last = block_number

    def __repr__(self) -> str:
        return f"Cursor(last_processed_block={self._last})"


@dataclass(frozen=True)
class InternalFetchOutcome:
    """Result of the per-block internal lookup: events or an isolated error."""

    block_number: int
    events: list[InternalTransaction] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ErrorReport:
    """One entry on the error-reporting path."""

    error: BaseException
    severity: Severity
    context: str
    reported_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def error_type(self) -> str:
        return type(self.error).__name__


__all__ = [
    "ActivityBatch",
    "BatchSource",
    "BlockRange",
    "Cursor",
    "EngineState",
    "ErrorReport",
    "EventIdentity",
    "EventKind",
    "InternalFetchOutcome",
    "InternalTransaction",
    "NormalTransaction",
    "Severity",
    "TransactionEvent",
    "chronological_key",
]
