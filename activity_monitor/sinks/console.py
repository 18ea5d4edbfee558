"""Rich console rendering of activity batches."""

from rich.console import Console
from rich.markup import escape

from activity_monitor.core.models import (
    ActivityBatch,
    BatchSource,
    InternalTransaction,
    NormalTransaction,
)
from activity_monitor.helpers.constants import HISTORY_PREVIEW
from activity_monitor.helpers.parsers import format_ether, format_timestamp
from activity_monitor.sinks.base import EventSink


class ConsoleSink(EventSink):
    """Prints events to the terminal.

    Backfill batches are summarized per kind and only the last
    ``history_preview`` events of each kind are shown. Live batches are
    printed in full.
    """

    def __init__(
        self,
        address: str,
        console: Console | None = None,
        *,
        history_preview: int = HISTORY_PREVIEW,
    ) -> None:
        self.address = address.lower()
        self.console = console or Console()
        self.history_preview = history_preview

    async def emit(self, batch: ActivityBatch) -> None:
        if batch.source is BatchSource.BACKFILL:
            self._print_history(batch)
        else:
            for event in batch.events:
                self._print_event(event, live=True)

    def _print_history(self, batch: ActivityBatch) -> None:
        for label, events in (("normal", batch.normal), ("internal", batch.internal)):
            shown = events[-self.history_preview :] if self.history_preview else []
            self.console.print(
                f"\nFound {len(events)} {label} tx(s) for {self.address}. "
                f"Showing last {len(shown)}:"
            )
            for event in shown:
                self._print_event(event, live=False)

    def _print_event(
        self, event: NormalTransaction | InternalTransaction, *, live: bool
    ) -> None:
        prefix = "New " if live else ""
        if isinstance(event, NormalTransaction):
            header = f"[green]{prefix}NORMAL tx[/green] {event.hash}"
        else:
            header = f"[magenta]{prefix}INTERNAL tx[/magenta] parent {event.parent_hash}"

        lines = [
            header,
            f"   Block: {event.block_number}  Time: {format_timestamp(event.timestamp)}",
            f"   From:  {event.from_address}",
            f"   To:    {event.to_address}",
            f"   Value: {format_ether(event.value_wei)} ETH",
        ]
        if isinstance(event, NormalTransaction):
            if event.input_prefix:
                lines.append(f"   Input: {escape(event.input_prefix)}...")
        else:
            lines.append(f"   Type:  {escape(event.call_type)}")
            if event.trace_id:
                lines.append(f"   Trace: {escape(event.trace_id)}")

        self.console.print("\n" + "\n".join(lines))


__all__ = ["ConsoleSink"]
