"""Pydantic models for JSON-RPC requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request model."""

    jsonrpc: str = Field(default="2.0", description="JSON-RPC version")
    method: str = Field(..., description="Method name to call")
    params: list[Any] = Field(
        default_factory=list, description="Method parameters"
    )
    id: int | str = Field(..., description="Request ID")


class EthBlockNumberRequest(JsonRpcRequest):
    """JSON-RPC request for eth_blockNumber."""

    method: str = Field(default="eth_blockNumber", frozen=True)
    params: list[Any] = Field(default_factory=list, frozen=True)


class EthGetBlockByNumberRequest(JsonRpcRequest):
    """JSON-RPC request for eth_getBlockByNumber."""

    method: str = Field(default="eth_getBlockByNumber", frozen=True)

    @classmethod
    def for_block(
        cls, block_number: int, *, full_transactions: bool = True, request_id: int = 1
    ) -> "EthGetBlockByNumberRequest":
        return cls(params=[hex(block_number), full_transactions], id=request_id)


class EthSubscribeRequest(JsonRpcRequest):
    """JSON-RPC request opening an eth_subscribe stream (newHeads by default)."""

    method: str = Field(default="eth_subscribe", frozen=True)
    params: list[Any] = Field(default_factory=lambda: ["newHeads"])


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response; exactly one of result / error is meaningful."""

    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: Any = None
    error: dict[str, Any] | None = None


class SubscriptionParams(BaseModel):
    """`params` of an eth_subscription notification."""

    subscription: str
    result: dict[str, Any]


class SubscriptionNotification(BaseModel):
    """Server push for an active eth_subscribe stream."""

    jsonrpc: str = "2.0"
    method: str = "eth_subscription"
    params: SubscriptionParams


__all__ = [
    "EthBlockNumberRequest",
    "EthGetBlockByNumberRequest",
    "EthSubscribeRequest",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "SubscriptionNotification",
    "SubscriptionParams",
]
