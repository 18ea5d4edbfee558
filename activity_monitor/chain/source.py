"""Chain head source interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from activity_monitor.helpers.models import RpcBlock


class ChainHeadSource(ABC):
    """Push notifications of new block numbers plus pull-style block fetches."""

    @abstractmethod
    def stream_block_numbers(self) -> AsyncIterator[int]:
        """Yield new block numbers from one subscription.

        The iterator ends, or raises SubscriptionError, when the underlying
        connection is lost; reconnecting is the caller's job.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_block(self, block_number: int) -> RpcBlock:
        """Fetch a block with full transaction bodies.

        Raises:
            BlockNotFoundError: If the node has no block with that number
            ChainUnavailableError: On transport or RPC failure
        """
        raise NotImplementedError

    @abstractmethod
    async def get_block_number(self) -> int:
        """Return the current chain head number.

        Raises:
            ChainUnavailableError: On transport or RPC failure
        """
        raise NotImplementedError

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources. Default: nothing to release."""


__all__ = ["ChainHeadSource"]
