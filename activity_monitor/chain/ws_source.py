"""newHeads WebSocket subscription plus JSON-RPC block fetches."""

import json

from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError
from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from activity_monitor.chain.source import ChainHeadSource
from activity_monitor.core.errors import (
    BlockNotFoundError,
    ChainUnavailableError,
    SubscriptionError,
)
from activity_monitor.helpers.constants import (
    DEFAULT_TIMEOUT,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RPC_MAX_RETRIES,
    WS_PING_INTERVAL,
    WS_PING_TIMEOUT,
)
from activity_monitor.helpers.http import create_http_client, retry_with_backoff
from activity_monitor.helpers.logging import get_logger
from activity_monitor.helpers.models import BlockHeader, RpcBlock
from activity_monitor.helpers.rpc import RPCClient
from activity_monitor.helpers.rpc_models import (
    EthSubscribeRequest,
    SubscriptionNotification,
)


logger = get_logger(__name__)


class WebSocketHeadSource(ChainHeadSource):
    """Chain head source backed by a node's WebSocket and HTTP endpoints."""

    def __init__(
        self,
        ws_url: str,
        rpc_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        rpc_max_retries: int = RPC_MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        retry_max_delay: float = RETRY_MAX_DELAY,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            ws_url: WebSocket endpoint serving eth_subscribe
            rpc_url: HTTP JSON-RPC endpoint serving block bodies
            timeout: Per-request timeout for RPC calls in seconds
            rpc_max_retries: Attempts per block fetch on transport failure
            retry_base_delay: Initial backoff between block fetch attempts
            retry_max_delay: Backoff cap between block fetch attempts
            http_client: Shared client; one is created (and owned) if omitted

        Raises:
            ValueError: If either URL is empty
        """
        if not ws_url:
            msg = "WebSocket URL cannot be empty"
            raise ValueError(msg)

        self.ws_url = ws_url
        self.rpc_client = RPCClient(rpc_url, timeout=timeout)
        self._owns_client = http_client is None
        self.http_client = http_client or create_http_client(timeout=timeout)
        self._retry = retry_with_backoff(
            max_retries=rpc_max_retries,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
            retry_on=(ChainUnavailableError,),
        )

    async def stream_block_numbers(self) -> AsyncIterator[int]:
        try:
            async with connect(
                self.ws_url,
                ping_interval=WS_PING_INTERVAL,
                ping_timeout=WS_PING_TIMEOUT,
            ) as websocket:
                logger.info("Connected to %s", self.ws_url)
                await websocket.send(EthSubscribeRequest(id=1).model_dump_json())

                # Wait for subscription confirmation
                response_data = json.loads(await websocket.recv())
                subscription_id = response_data.get("result")
                if not subscription_id:
                    msg = f"Subscription failed: {response_data}"
                    raise SubscriptionError(msg)
                logger.info("Subscribed to newHeads: %s", subscription_id)

                async for message in websocket:
                    block_number = self._parse_notification(message)
                    if block_number is not None:
                        yield block_number
        except (OSError, TimeoutError, WebSocketException, json.JSONDecodeError) as e:
            msg = f"WebSocket connection lost: {e}"
            raise SubscriptionError(msg) from e

    @staticmethod
    def _parse_notification(message: str | bytes) -> int | None:
        try:
            notification = SubscriptionNotification.model_validate_json(message)
            header = BlockHeader.model_validate(notification.params.result)
            return header.block_number
        except (ValidationError, ValueError):
            logger.warning("Ignoring unexpected WebSocket message: %.200s", message)
            return None

    async def get_block(self, block_number: int) -> RpcBlock:
        return await self._retry(self._fetch_block)(block_number)

    async def get_block_number(self) -> int:
        return await self._retry(self._fetch_block_number)()

    async def _fetch_block(self, block_number: int) -> RpcBlock:
        logger.debug("Fetching block #%s from RPC...", block_number)
        try:
            raw = await self.rpc_client.get_block_by_number(
                self.http_client, block_number, full_transactions=True
            )
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Block #{block_number} fetch failed: {e}"
            raise ChainUnavailableError(msg) from e

        if raw is None:
            raise BlockNotFoundError(block_number)

        try:
            return RpcBlock.model_validate(raw)
        except ValidationError as e:
            msg = f"Block #{block_number} has an unexpected shape: {e}"
            raise ChainUnavailableError(msg) from e

    async def _fetch_block_number(self) -> int:
        try:
            return await self.rpc_client.get_block_number(self.http_client)
        except (httpx.HTTPError, ValueError) as e:
            msg = f"eth_blockNumber failed: {e}"
            raise ChainUnavailableError(msg) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()


__all__ = ["WebSocketHeadSource"]
