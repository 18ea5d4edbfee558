"""Configuration management and environment variable utilities."""

import os
import re

from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from activity_monitor.core.errors import ConfigurationError
from activity_monitor.helpers.constants import (
    BACKFILL_MAX_ATTEMPTS,
    DEDUP_WINDOW,
    DEFAULT_TIMEOUT,
    ETHERSCAN_BLOCK_PAGE_SIZE,
    ETHERSCAN_MAX_RESULTS,
    ETHERSCAN_PAGE_SIZE,
    ETHERSCAN_TIMEOUT,
    HEADER_QUEUE_SIZE,
    HISTORY_PREVIEW,
    MAX_CATCHUP_BLOCKS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RPC_MAX_RETRIES,
    SEPOLIA_ETHERSCAN_URL,
    SUBSCRIPTION_BASE_DELAY,
    SUBSCRIPTION_MAX_ATTEMPTS,
    SUBSCRIPTION_MAX_DELAY,
)


# Load environment variables from .env file
load_dotenv()

WS_URL_ENV = "WS_RPC_SEPOLIA"
HTTP_URL_ENV = "HTTP_RPC_SEPOLIA"
ADDRESS_ENV = "ADDRESS"
API_KEY_ENV = "ETHERSCAN_API_KEY"

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def normalize_address(address: str) -> str:
    """Lower-case and validate a 20-byte hex account address.

    Raises:
        ConfigurationError: If the address is not `0x` followed by 40 hex digits
    """
    candidate = address.strip().lower()
    if not _ADDRESS_RE.match(candidate):
        msg = f"Invalid account address: {address!r}"
        raise ConfigurationError(msg)
    return candidate


class MonitorConfig(BaseModel):
    """Explicit run configuration, built once at startup and passed down."""

    model_config = ConfigDict(frozen=True)

    ws_url: str = Field(..., description="WebSocket endpoint for newHeads")
    http_url: str = Field(..., description="HTTP JSON-RPC endpoint for block bodies")
    address: str = Field(..., description="Watched account, lower-cased")
    etherscan_api_key: str = Field(..., repr=False)
    etherscan_base_url: str = SEPOLIA_ETHERSCAN_URL
    etherscan_chain_id: int | None = Field(
        default=None, description="Sent as `chainid` for v2 multichain endpoints"
    )
    etherscan_timeout: float = Field(default=ETHERSCAN_TIMEOUT, gt=0)
    page_size: int = Field(default=ETHERSCAN_PAGE_SIZE, gt=0)
    block_page_size: int = Field(default=ETHERSCAN_BLOCK_PAGE_SIZE, gt=0)
    max_results: int = Field(default=ETHERSCAN_MAX_RESULTS, gt=0)
    rpc_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    rpc_max_retries: int = Field(default=RPC_MAX_RETRIES, ge=1)
    backfill_max_attempts: int = Field(default=BACKFILL_MAX_ATTEMPTS, ge=1)
    retry_base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0)
    retry_max_delay: float = Field(default=RETRY_MAX_DELAY, ge=0)
    subscription_max_attempts: int = Field(default=SUBSCRIPTION_MAX_ATTEMPTS, ge=1)
    subscription_base_delay: float = Field(default=SUBSCRIPTION_BASE_DELAY, ge=0)
    subscription_max_delay: float = Field(default=SUBSCRIPTION_MAX_DELAY, ge=0)
    header_queue_size: int = Field(default=HEADER_QUEUE_SIZE, gt=0)
    dedup_window: int = Field(default=DEDUP_WINDOW, gt=0)
    max_catchup_blocks: int = Field(default=MAX_CATCHUP_BLOCKS, ge=0)
    history_preview: int = Field(default=HISTORY_PREVIEW, ge=0)
    log_level: str = "INFO"

    @field_validator("address")
    @classmethod
    def _lower_address(cls, value: str) -> str:
        return normalize_address(value)


_INT_ENV = {
    "ETHERSCAN_CHAIN_ID": "etherscan_chain_id",
    "ETHERSCAN_PAGE_SIZE": "page_size",
    "ETHERSCAN_MAX_RESULTS": "max_results",
    "HISTORY_PREVIEW": "history_preview",
}


def load_monitor_config(**overrides: Any) -> MonitorConfig:
    """Build the run configuration from the environment.

    Explicit keyword overrides (e.g. from the command line) win over the
    environment. Every missing required value is reported at once.

    Raises:
        ConfigurationError: If a required value is missing or any value is invalid

    Example:
        ```python
        from activity_monitor.helpers.config import load_monitor_config

        config = load_monitor_config(address="0xabc...")
        ```
    """
    values: dict[str, Any] = {
        "ws_url": os.getenv(WS_URL_ENV),
        "http_url": os.getenv(HTTP_URL_ENV),
        "address": os.getenv(ADDRESS_ENV),
        "etherscan_api_key": os.getenv(API_KEY_ENV),
    }
    base_url = get_optional_env("ETHERSCAN_BASE_URL")
    if base_url:
        values["etherscan_base_url"] = base_url
    log_level = get_optional_env("LOG_LEVEL")
    if log_level:
        values["log_level"] = log_level.upper()
    for env_key, field in _INT_ENV.items():
        raw = get_optional_env(env_key)
        if not raw:
            continue
        try:
            values[field] = int(raw)
        except ValueError as e:
            msg = f"{env_key} must be an integer, got {raw!r}"
            raise ConfigurationError(msg) from e

    values.update({k: v for k, v in overrides.items() if v is not None})

    env_names = {
        "ws_url": WS_URL_ENV,
        "http_url": HTTP_URL_ENV,
        "address": ADDRESS_ENV,
        "etherscan_api_key": API_KEY_ENV,
    }
    missing = [env_names[k] for k in env_names if not values.get(k)]
    if missing:
        msg = f"Missing configuration values: {', '.join(missing)}"
        raise ConfigurationError(msg)

    try:
        return MonitorConfig(**values)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigurationError(msg) from e


__all__ = [
    "MonitorConfig",
    "get_optional_env",
    "load_monitor_config",
    "normalize_address",
]
