"""Event sink interface."""

from abc import ABC, abstractmethod

from activity_monitor.core.models import ActivityBatch


class EventSink(ABC):
    """Receives ordered batches of normalized events."""

    @abstractmethod
    async def emit(self, batch: ActivityBatch) -> None:
        """Deliver ``batch``. Called once per backfill and per non-empty live block."""
        raise NotImplementedError


__all__ = ["EventSink"]
