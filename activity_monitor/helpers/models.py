"""Common Pydantic models for chain data received over JSON-RPC."""

from pydantic import BaseModel, ConfigDict, Field

from activity_monitor.core.models import NormalTransaction
from activity_monitor.helpers.parsers import input_prefix, lower_or_none, parse_quantity


class BlockHeader(BaseModel):
    """Block header received from newHeads WebSocket subscription."""

    number: str = Field(..., description="Block number as hex string")
    hash: str = Field(..., description="Block hash")
    parent_hash: str | None = Field(
        default=None, description="Parent block hash", alias="parentHash"
    )
    timestamp: str | None = Field(
        default=None, description="Block timestamp as hex string"
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def block_number(self) -> int:
        return parse_quantity(self.number)


class RpcTransaction(BaseModel):
    """Transaction object embedded in eth_getBlockByNumber(..., true)."""

    hash: str
    from_address: str | None = Field(default=None, alias="from")
    to_address: str | None = Field(
        default=None, alias="to", description="None for contract creation"
    )
    value: str | int = Field(default="0x0", description="Wei as hex quantity")
    input: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def value_wei(self) -> int:
        return parse_quantity(self.value)

    def touches(self, address: str) -> bool:
        watched = address.lower()
        return (self.from_address or "").lower() == watched or (
            self.to_address or ""
        ).lower() == watched

    def to_event(self, block_number: int, timestamp: int) -> NormalTransaction:
        return NormalTransaction(
            hash=self.hash,
            block_number=block_number,
            timestamp=timestamp,
            from_address=lower_or_none(self.from_address),
            to_address=lower_or_none(self.to_address),
            value_wei=self.value_wei,
            input_prefix=input_prefix(self.input),
        )


class RpcBlock(BaseModel):
    """Block with full transaction bodies."""

    number: str | int
    hash: str | None = None
    timestamp: str | int = "0x0"
    transactions: list[RpcTransaction] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def block_number(self) -> int:
        return parse_quantity(self.number)

    @property
    def unix_timestamp(self) -> int:
        return parse_quantity(self.timestamp)

    def transactions_touching(self, address: str) -> list[NormalTransaction]:
        """Normal-transaction events for every tx whose from/to is ``address``."""
        number = self.block_number
        ts = self.unix_timestamp
        return [
            tx.to_event(number, ts) for tx in self.transactions if tx.touches(address)
        ]


__all__ = [
    "BlockHeader",
    "RpcBlock",
    "RpcTransaction",
]
