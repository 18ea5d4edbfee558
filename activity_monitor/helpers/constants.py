"""Common configuration constants used across the application."""

# Indexing API (Etherscan-compatible)
SEPOLIA_ETHERSCAN_URL = "https://api-sepolia.etherscan.io/api"
"""Default indexing endpoint for the Sepolia test network"""

ETHERSCAN_PAGE_SIZE = 10_000
"""Rows requested per page (`offset`) during backfill"""

ETHERSCAN_BLOCK_PAGE_SIZE = 1000
"""Rows requested per page for single-block internal lookups"""

ETHERSCAN_RESULT_WINDOW = 10_000
"""Rows reachable through `page` * `offset` before the query must restart"""

ETHERSCAN_MAX_RESULTS = 100_000
"""Maximum rows collected by one query across restarted windows"""

ETHERSCAN_TIMEOUT = 30.0
"""Timeout for one indexing API request in seconds"""

NO_TRANSACTIONS_MESSAGE = "No transactions found"
"""Provider message meaning an empty result, not an error"""

LATEST_BLOCK_SENTINEL = 99_999_999
"""`endblock` value the indexing API resolves to the latest block"""

# JSON-RPC
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

RPC_MAX_RETRIES = 3
"""Attempts for one block fetch before it is reported as unavailable"""

# Retry Configuration
BACKFILL_MAX_ATTEMPTS = 5
"""Attempts for each backfill query before the backfill degrades"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

# Subscription
SUBSCRIPTION_MAX_ATTEMPTS = 10
"""Consecutive failed connection attempts before monitoring stops"""

SUBSCRIPTION_BASE_DELAY = 1.0
"""Initial reconnect delay in seconds"""

SUBSCRIPTION_MAX_DELAY = 60.0
"""Maximum reconnect delay in seconds"""

WS_PING_INTERVAL = 20.0
"""WebSocket keepalive ping interval in seconds"""

WS_PING_TIMEOUT = 10.0
"""WebSocket keepalive pong timeout in seconds"""

# Engine
HEADER_QUEUE_SIZE = 100
"""Block numbers buffered between the subscription and the tailer"""

QUEUE_POLL_INTERVAL = 1.0
"""How often an idle tailer re-checks the shutdown flag, in seconds"""

DEDUP_WINDOW = 10_000
"""Number of recently emitted event identities remembered"""

MAX_CATCHUP_BLOCKS = 64
"""Largest block gap the tailer fills before skipping ahead"""

ERROR_HISTORY_SIZE = 200
"""Error reports retained for inspection"""

# Presentation
HISTORY_PREVIEW = 5
"""Historical events of each kind shown after backfill"""

INPUT_PREFIX_LENGTH = 18
"""Characters of calldata kept on normal transactions (0x + 8 bytes)"""

WEI_PER_ETHER = 10**18


__all__ = [
    "BACKFILL_MAX_ATTEMPTS",
    "DEDUP_WINDOW",
    "DEFAULT_TIMEOUT",
    "ERROR_HISTORY_SIZE",
    "ETHERSCAN_BLOCK_PAGE_SIZE",
    "ETHERSCAN_MAX_RESULTS",
    "ETHERSCAN_PAGE_SIZE",
    "ETHERSCAN_RESULT_WINDOW",
    "ETHERSCAN_TIMEOUT",
    "HEADER_QUEUE_SIZE",
    "HISTORY_PREVIEW",
    "INPUT_PREFIX_LENGTH",
    "LATEST_BLOCK_SENTINEL",
    "MAX_CATCHUP_BLOCKS",
    "NO_TRANSACTIONS_MESSAGE",
    "QUEUE_POLL_INTERVAL",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "RPC_MAX_RETRIES",
    "SEPOLIA_ETHERSCAN_URL",
    "SUBSCRIPTION_BASE_DELAY",
    "SUBSCRIPTION_MAX_ATTEMPTS",
    "SUBSCRIPTION_MAX_DELAY",
    "WEI_PER_ETHER",
    "WS_PING_INTERVAL",
    "WS_PING_TIMEOUT",
]
