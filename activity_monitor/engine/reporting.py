"""Single error-reporting path for the monitor."""

from collections import Counter, deque
from collections.abc import Callable
from typing import TypeAlias

from activity_monitor.core.models import ErrorReport, Severity
from activity_monitor.helpers.constants import ERROR_HISTORY_SIZE
from activity_monitor.helpers.logging import get_logger


logger = get_logger(__name__)

ReportListener: TypeAlias = Callable[[ErrorReport], None]


class ErrorReporter:
    """Logs every reported error and keeps a bounded history of them.

    ``status`` is ``running`` until the first degraded report, ``degraded``
    after it, and ``stopped`` once a terminal error has been reported.
    """

    def __init__(self, history_size: int = ERROR_HISTORY_SIZE) -> None:
        self.history: deque[ErrorReport] = deque(maxlen=history_size)
        self.counts: Counter[str] = Counter()
        self._listeners: list[ReportListener] = []
        self._status = "running"

    @property
    def status(self) -> str:
        return self._status

    @property
    def last_report(self) -> ErrorReport | None:
        return self.history[-1] if self.history else None

    def add_listener(self, listener: ReportListener) -> None:
        self._listeners.append(listener)

    def report(
        self,
        error: BaseException,
        severity: Severity = Severity.DEGRADED,
        context: str = "",
    ) -> ErrorReport:
        """Record ``error`` and notify listeners.

        Args:
            error: The failure being reported
            severity: Whether monitoring continues afterwards
            context: Short human-readable description of where it happened

        Returns:
            The stored report
        """
        entry = ErrorReport(error=error, severity=severity, context=context)
        self.history.append(entry)
        self.counts[entry.error_type] += 1

        if severity is Severity.TERMINAL:
            self._status = "stopped"
            logger.critical("%s: %s: %s", context, entry.error_type, error)
        else:
            if self._status == "running":
                self._status = "degraded"
            logger.warning("%s: %s: %s", context, entry.error_type, error)

        for listener in self._listeners:
            try:
                listener(entry)
            except Exception:
                logger.exception("Error listener failed")

        return entry

    def reports_of(self, error_type: type[BaseException]) -> list[ErrorReport]:
        return [r for r in self.history if isinstance(r.error, error_type)]


__all__ = ["ErrorReporter", "ReportListener"]
