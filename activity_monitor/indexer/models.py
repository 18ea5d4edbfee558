"""Pydantic models for Etherscan-compatible account API responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from activity_monitor.core.models import InternalTransaction, NormalTransaction
from activity_monitor.helpers.parsers import input_prefix, lower_or_none


class EtherscanResponse(BaseModel):
    """Envelope shared by every account endpoint."""

    status: str = Field(..., description='"1" on success, "0" otherwise')
    message: str = ""
    result: Any = None

    model_config = ConfigDict(extra="allow")

    @field_validator("status", "message", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def ok(self) -> bool:
        return self.status == "1"

    @property
    def detail(self) -> str:
        """Human-readable failure reason (message plus string result)."""
        if isinstance(self.result, str) and self.result:
            return f"{self.message}: {self.result}"
        return self.message


class _TxRecord(BaseModel):
    hash: str
    block_number: int = Field(..., alias="blockNumber", ge=0)
    timestamp: int = Field(..., alias="timeStamp", ge=0)
    from_address: str | None = Field(default=None, alias="from")
    to_address: str | None = Field(default=None, alias="to")
    value: int = Field(default=0, ge=0, description="Wei as decimal string")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class NormalTxRecord(_TxRecord):
    """Row of `action=txlist`."""

    input: str | None = None

    def to_event(self) -> NormalTransaction:
        return NormalTransaction(
            hash=self.hash,
            block_number=self.block_number,
            timestamp=self.timestamp,
            from_address=lower_or_none(self.from_address),
            to_address=lower_or_none(self.to_address),
            value_wei=self.value,
            input_prefix=input_prefix(self.input),
        )


class InternalTxRecord(_TxRecord):
    """Row of `action=txlistinternal`; `hash` is the parent transaction."""

    type: str | None = None
    trace_id: str | None = Field(default=None, alias="traceId")

    def to_event(self) -> InternalTransaction:
        return InternalTransaction(
            parent_hash=self.hash,
            block_number=self.block_number,
            timestamp=self.timestamp,
            from_address=lower_or_none(self.from_address),
            to_address=lower_or_none(self.to_address),
            value_wei=self.value,
            call_type=self.type or "call",
            trace_id=self.trace_id or None,
        )


__all__ = ["EtherscanResponse", "InternalTxRecord", "NormalTxRecord"]
