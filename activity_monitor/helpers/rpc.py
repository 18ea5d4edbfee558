"""Ethereum JSON-RPC client utilities."""

from typing import Any

import httpx

from activity_monitor.core.errors import ChainUnavailableError
from activity_monitor.helpers.parsers import parse_hex_int
from activity_monitor.helpers.rpc_models import (
    EthBlockNumberRequest,
    EthGetBlockByNumberRequest,
    JsonRpcRequest,
    JsonRpcResponse,
)


class RPCClient:
    """Ethereum JSON-RPC client over HTTP."""

    def __init__(self, rpc_url: str, timeout: float = 30.0) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Ethereum JSON-RPC endpoint URL
            timeout: Default timeout for requests in seconds

        Raises:
            ValueError: If rpc_url is empty or None
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout

    async def send(
        self,
        client: httpx.AsyncClient,
        request: JsonRpcRequest,
    ) -> Any:
        """Send a prepared JSON-RPC request and return its ``result``.

        Raises:
            httpx.HTTPError: If the HTTP request fails
            ChainUnavailableError: If the response carries an RPC error
        """
        response = await client.post(
            self.rpc_url,
            json=request.model_dump(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = JsonRpcResponse.model_validate(response.json())

        if body.error is not None:
            msg = f"RPC error: {body.error}"
            raise ChainUnavailableError(msg)

        return body.result

    async def get_block_number(self, client: httpx.AsyncClient) -> int:
        """Get the latest block number.

        Args:
            client: HTTP client instance

        Returns:
            Latest block number
        """
        result = await self.send(client, EthBlockNumberRequest(id=1))
        return parse_hex_int(result) if result else 0

    async def get_block_by_number(
        self,
        client: httpx.AsyncClient,
        block_number: int,
        *,
        full_transactions: bool = True,
    ) -> dict[str, Any] | None:
        """Fetch a block, with transaction bodies when ``full_transactions``.

        Returns:
            The raw block object, or None if the node does not have it yet
        """
        request = EthGetBlockByNumberRequest.for_block(
            block_number, full_transactions=full_transactions
        )
        return await self.send(client, request)


__all__ = ["RPCClient"]
