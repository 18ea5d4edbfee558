"""Paginated Etherscan-compatible client for account activity."""

from abc import ABC, abstractmethod

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from activity_monitor.core.errors import (
    IndexerUnavailableError,
    MalformedResponseError,
    RateLimitedError,
)
from activity_monitor.core.models import ActivityBatch, BatchSource, BlockRange
from activity_monitor.helpers.constants import (
    ETHERSCAN_MAX_RESULTS,
    ETHERSCAN_PAGE_SIZE,
    ETHERSCAN_RESULT_WINDOW,
    ETHERSCAN_TIMEOUT,
    LATEST_BLOCK_SENTINEL,
    NO_TRANSACTIONS_MESSAGE,
    SEPOLIA_ETHERSCAN_URL,
)
from activity_monitor.helpers.http import create_http_client
from activity_monitor.helpers.logging import get_logger
from activity_monitor.indexer.models import (
    EtherscanResponse,
    InternalTxRecord,
    NormalTxRecord,
)


logger = get_logger(__name__)

R = TypeVar("R", bound=BaseModel)

_RATE_LIMIT_MARKERS = ("rate limit", "too many requests")
_INVALID_REQUEST_MARKERS = ("invalid", "missing")


class IndexingClient(ABC):
    """Historical activity lookups for a single address."""

    @abstractmethod
    async def fetch_normal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        raise NotImplementedError

    @abstractmethod
    async def fetch_internal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        raise NotImplementedError

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources. Default: nothing to release."""


class EtherscanClient(IndexingClient):
    """Etherscan `module=account` client.

    Pages through `txlist` / `txlistinternal` in ascending order until a
    short page or ``max_results`` rows, restarting the query at the last
    block whenever the provider result window is full. Failures are
    classified into RateLimitedError, IndexerUnavailableError and
    MalformedResponseError; "No transactions found" is an empty batch. No
    retries happen here.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = SEPOLIA_ETHERSCAN_URL,
        *,
        chain_id: int | None = None,
        page_size: int = ETHERSCAN_PAGE_SIZE,
        max_results: int = ETHERSCAN_MAX_RESULTS,
        result_window: int = ETHERSCAN_RESULT_WINDOW,
        timeout: float = ETHERSCAN_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Indexing API key
            base_url: API endpoint (defaults to Sepolia Etherscan)
            chain_id: Optional `chainid` for v2 multichain endpoints
            page_size: Default rows per page (`offset`)
            max_results: Upper bound on rows collected by one query
            result_window: Rows one query serves before it must restart
            timeout: Per-request timeout in seconds
            http_client: Shared client; one is created (and owned) if omitted

        Raises:
            ValueError: If api_key is empty or the sizes are not positive
        """
        if not api_key:
            msg = "Indexing API key cannot be empty"
            raise ValueError(msg)
        if min(page_size, max_results, result_window) <= 0:
            msg = "page_size, max_results and result_window must be positive"
            raise ValueError(msg)

        self.base_url = base_url
        self.chain_id = chain_id
        self.page_size = page_size
        self.max_results = max_results
        self.result_window = result_window
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or create_http_client(timeout=timeout)

    async def fetch_normal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        rows, truncated = await self._paginate("txlist", address, block_range, page_size)
        records = self._parse_rows(NormalTxRecord, rows)
        return ActivityBatch(
            source=BatchSource.BACKFILL,
            events=[r.to_event() for r in records],
            truncated=truncated,
        )

    async def fetch_internal(
        self,
        address: str,
        block_range: BlockRange | None = None,
        *,
        page_size: int | None = None,
    ) -> ActivityBatch:
        rows, truncated = await self._paginate(
            "txlistinternal", address, block_range, page_size
        )
        records = self._parse_rows(InternalTxRecord, rows)
        return ActivityBatch(
            source=BatchSource.BACKFILL,
            events=[r.to_event() for r in records],
            truncated=truncated,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---------- internal ----------

    async def _paginate(
        self,
        action: str,
        address: str,
        block_range: BlockRange | None,
        page_size: int | None,
    ) -> tuple[list[dict[str, Any]], bool]:
        """Collect every row of the range in ascending order.

        The provider only serves ``page * offset <= result_window`` rows per
        query, so a full window restarts at the block of its last row. Rows
        of that block are dropped first and fetched again by the new window.

        Returns:
            The rows and whether collection stopped before the range end
        """
        block_range = block_range or BlockRange()
        offset = page_size or self.page_size
        end_block = (
            block_range.end_block
            if block_range.end_block is not None
            else LATEST_BLOCK_SENTINEL
        )

        collected: list[dict[str, Any]] = []
        start_block = block_range.start_block
        window_start = 0
        page = 1
        requests = 0
        truncated = False
        while True:
            rows = await self._request_page({
                "module": "account",
                "action": action,
                "address": address,
                "startblock": start_block,
                "endblock": end_block,
                "page": page,
                "offset": offset,
                "sort": "asc",
            })
            requests += 1
            collected.extend(rows)

            if len(rows) < offset:
                break
            if len(collected) >= self.max_results:
                logger.warning(
                    "%s for %s reached the %s result limit; newer rows not fetched",
                    action,
                    address,
                    self.max_results,
                )
                truncated = True
                break
            if (page + 1) * offset <= self.result_window:
                page += 1
                continue

            boundary = self._row_block(collected[-1])
            if self._row_block(collected[window_start]) == boundary:
                logger.warning(
                    "%s for %s: block #%s alone fills the %s row window; "
                    "newer rows not fetched",
                    action,
                    address,
                    boundary,
                    self.result_window,
                )
                truncated = True
                break
            while self._row_block(collected[-1]) == boundary:
                collected.pop()
            logger.debug("%s window full, restarting at block #%s", action, boundary)
            start_block = boundary
            window_start = len(collected)
            page = 1

        logger.debug(
            "%s %s [%s, %s]: %s row(s) in %s request(s)",
            action,
            address,
            block_range.start_block,
            end_block,
            len(collected),
            requests,
        )
        return collected[: self.max_results], truncated

    @staticmethod
    def _row_block(row: dict[str, Any]) -> int:
        try:
            return int(row["blockNumber"])
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Row without a usable blockNumber: {row!r}"
            raise MalformedResponseError(msg) from e

    async def _request_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        query = dict(params)
        query["apikey"] = self._api_key
        if self.chain_id is not None:
            query["chainid"] = str(self.chain_id)

        action = params.get("action")
        try:
            response = await self._client.get(self.base_url, params=query)
        except httpx.TimeoutException as e:
            msg = f"{action} request timed out"
            raise IndexerUnavailableError(msg) from e
        except httpx.HTTPError as e:
            msg = f"{action} transport error: {e}"
            raise IndexerUnavailableError(msg) from e

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            msg = f"{action} throttled with HTTP 429"
            raise RateLimitedError(msg)
        if not response.is_success:
            msg = f"{action} returned HTTP {response.status_code}"
            raise IndexerUnavailableError(msg)

        try:
            payload = response.json()
        except ValueError as e:
            msg = f"{action} returned a non-JSON body"
            raise MalformedResponseError(msg) from e

        try:
            envelope = EtherscanResponse.model_validate(payload)
        except ValidationError as e:
            msg = f"{action} returned an unexpected envelope: {e}"
            raise MalformedResponseError(msg) from e

        if envelope.ok:
            if not isinstance(envelope.result, list):
                msg = f"{action} result is not a list"
                raise MalformedResponseError(msg)
            return envelope.result

        return self._classify_failure(str(action), envelope)

    @staticmethod
    def _classify_failure(action: str, envelope: EtherscanResponse) -> list[dict[str, Any]]:
        if envelope.message.strip().lower() == NO_TRANSACTIONS_MESSAGE.lower():
            return []

        detail = envelope.detail
        lowered = detail.lower()
        if any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
            raise RateLimitedError(f"{action}: {detail}")
        if any(marker in lowered for marker in _INVALID_REQUEST_MARKERS):
            raise MalformedResponseError(f"{action}: {detail}")
        raise IndexerUnavailableError(f"{action}: {detail}")

    @staticmethod
    def _parse_rows(model: type[R], rows: list[Any]) -> list[R]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            msg = f"Unparseable {model.__name__} row: {e}"
            raise MalformedResponseError(msg) from e


__all__ = ["EtherscanClient", "IndexingClient"]
