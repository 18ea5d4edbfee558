"""Exception hierarchy for the activity monitor."""


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigurationError(MonitorError, ValueError):
    """Required configuration is missing or invalid. Fatal before start."""


# Indexing API


class IndexerError(MonitorError):
    """The indexing API could not answer a query."""


class RateLimitedError(IndexerError):
    """The provider throttled the request. Retryable with backoff."""


class IndexerUnavailableError(IndexerError):
    """Transport failure, non-2xx status or provider-side error."""


class MalformedResponseError(IndexerError):
    """The response could not be understood. Not retried for that call."""


class HistoryTruncatedError(IndexerError):
    """History was cut at the result limit; newer rows were not fetched."""


# Chain head source


class ChainError(MonitorError):
    """The chain node could not serve a request."""


class BlockNotFoundError(ChainError):
    """The node returned no block for the requested number."""

    def __init__(self, block_number: int) -> None:
        super().__init__(f"Block #{block_number} not found")
        self.block_number = block_number


class ChainUnavailableError(ChainError):
    """Transport failure or RPC error talking to the node."""


class BlockGapError(ChainError):
    """More blocks were missed than catch-up is allowed to replay."""

    def __init__(self, first_block: int, last_block: int) -> None:
        super().__init__(
            f"Missed blocks #{first_block}..#{last_block} exceed the catch-up limit"
        )
        self.first_block = first_block
        self.last_block = last_block


class SubscriptionError(ChainError):
    """The block subscription could not be established or was lost."""


class SubscriptionExhaustedError(SubscriptionError):
    """Reconnect budget exhausted; monitoring cannot continue."""


__all__ = [
    "BlockGapError",
    "BlockNotFoundError",
    "ChainError",
    "ChainUnavailableError",
    "ConfigurationError",
    "HistoryTruncatedError",
    "IndexerError",
    "IndexerUnavailableError",
    "MalformedResponseError",
    "MonitorError",
    "RateLimitedError",
    "SubscriptionError",
    "SubscriptionExhaustedError",
]
