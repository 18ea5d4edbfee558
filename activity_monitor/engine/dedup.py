"""Bounded set of recently emitted event identities."""

from collections import deque
from collections.abc import Iterable
from typing import TypeVar

from activity_monitor.core.models import (
    EventIdentity,
    InternalTransaction,
    NormalTransaction,
)
from activity_monitor.helpers.constants import DEDUP_WINDOW


E = TypeVar("E", NormalTransaction, InternalTransaction)


class RecentIdentities:
    """FIFO window of identities; the oldest is forgotten once full."""

    def __init__(self, max_size: int = DEDUP_WINDOW) -> None:
        if max_size < 1:
            msg = "Dedup window must hold at least one identity"
            raise ValueError(msg)
        self.max_size = max_size
        self._order: deque[EventIdentity] = deque()
        self._seen: set[EventIdentity] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, identity: object) -> bool:
        return identity in self._seen

    def add(self, identity: EventIdentity) -> bool:
        """Remember ``identity``. Returns False if it was already known."""
        if identity in self._seen:
            return False
        self._order.append(identity)
        self._seen.add(identity)
        while len(self._order) > self.max_size:
            self._seen.discard(self._order.popleft())
        return True

    def add_all(self, events: Iterable[NormalTransaction | InternalTransaction]) -> None:
        for event in events:
            self.add(event.identity)

    def filter_new(self, events: Iterable[E]) -> list[E]:
        """Drop events already seen, and repeats within ``events``.

        Nothing is recorded; call ``add_all`` once the events are emitted.
        """
        pending: set[EventIdentity] = set()
        fresh: list[E] = []
        for event in events:
            identity = event.identity
            if identity in self._seen or identity in pending:
                continue
            pending.add(identity)
            fresh.append(event)
        return fresh


__all__ = ["RecentIdentities"]
