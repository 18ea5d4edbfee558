"""Parsing utilities for common data transformations."""

from datetime import UTC, datetime

from typing import Any

from activity_monitor.helpers.constants import INPUT_PREFIX_LENGTH, WEI_PER_ETHER


def parse_hex_int(hex_value: str | None, default: int = 0) -> int:
    """Parse hex string to integer.

    Args:
        hex_value: Hex-encoded string or None
        default: Default value if hex_value is None

    Returns:
        int: Parsed integer value

    Example:
        >>> parse_hex_int("0xff")
        255
        >>> parse_hex_int(None, 0)
        0
    """
    if hex_value is None:
        return default
    return int(hex_value, 16)


def parse_quantity(value: str | int | None, default: int = 0) -> int:
    """Parse a JSON-RPC quantity that may be hex (`0x..`), decimal or int.

    Example:
        >>> parse_quantity("0x10")
        16
        >>> parse_quantity("16")
        16
    """
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    if value.startswith(("0x", "0X")):
        return int(value, 16)
    return int(value)


def format_ether(wei: int | None) -> str:
    """Render a wei amount as a decimal ether string without precision loss.

    Example:
        >>> format_ether(1500000000000000000)
        '1.5'
        >>> format_ether(1)
        '0.000000000000000001'
        >>> format_ether(None)
        '0'
    """
    if not wei:
        return "0"
    # Exact integer arithmetic, no float or Decimal rounding.
    sign = "-" if wei < 0 else ""
    whole, fraction = divmod(abs(wei), WEI_PER_ETHER)
    digits = str(fraction).rjust(18, "0").rstrip("0")
    return f"{sign}{whole}.{digits}" if digits else f"{sign}{whole}"


def format_timestamp(unix_seconds: int) -> str:
    """Format unix seconds as an ISO-8601 UTC string.

    Example:
        >>> format_timestamp(0)
        '1970-01-01T00:00:00Z'
    """
    return (
        datetime.fromtimestamp(unix_seconds, tz=UTC)
        .isoformat()
        .replace("+00:00", "Z")
    )


def input_prefix(data: str | None) -> str | None:
    """Shorten calldata to its selector-bearing prefix.

    Plain value transfers (no calldata) return None.

    Example:
        >>> input_prefix("0xa9059cbb000000000000000000000000")
        '0xa9059cbb00000000'
        >>> input_prefix("0x") is None
        True
    """
    if not data or data == "0x":
        return None
    return data[:INPUT_PREFIX_LENGTH]


def lower_or_none(address: str | None) -> str | None:
    """Lower-case an address, mapping empty values (contract creation) to None."""
    if not address:
        return None
    return address.lower()


__all__ = [
    "format_ether",
    "format_timestamp",
    "input_prefix",
    "lower_or_none",
    "parse_hex_int",
    "parse_quantity",
]
