"""Report sinks receiving the outcome of every tick."""

from __future__ import annotations

from collections import deque
from typing import Iterable

import structlog

from ..domain.models import SkipReason, TickReport
from ..repositories.interfaces import TickReportSink


class LoggingReportSink:
    """Emit a structured summary of each tick and one event per failure."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def publish(self, report: TickReport) -> None:
        duration_ms = None
        if report.finished_at is not None:
            duration_ms = int((report.finished_at - report.started_at).total_seconds() * 1000)
        summary = dict(
            tick_at=report.tick_at.isoformat(),
            channels_scanned=report.channels_scanned,
            firings=len(report.firings),
            skipped=len(report.skipped),
            succeeded_invocations=report.succeeded_invocations,
            failed_invocations=report.failed_invocations,
            claimed_elsewhere=sum(
                1 for item in report.skipped if item.reason is SkipReason.CLAIMED
            ),
            duration_ms=duration_ms,
        )
        if report.has_failures:
            self._logger.warning("tick.completed", failures=len(report.failures), **summary)
        elif report.firings:
            self._logger.info("tick.completed", **summary)
        else:
            self._logger.debug("tick.completed", **summary)

        for failure in report.failures:
            self._logger.warning(
                "tick.failure",
                tick_at=report.tick_at.isoformat(),
                channel_id=failure.channel_id,
                slot_id=failure.slot_id,
                stage=failure.stage.value,
                reason=failure.reason,
            )


class RecentReportsSink:
    """Keep the latest reports in memory for the status API."""

    def __init__(self, limit: int = 20) -> None:
        self._reports: deque[TickReport] = deque(maxlen=max(1, limit))

    def publish(self, report: TickReport) -> None:
        self._reports.append(report)

    @property
    def latest(self) -> TickReport | None:
        return self._reports[-1] if self._reports else None

    def recent(self) -> list[TickReport]:
        return list(reversed(self._reports))


class CompositeReportSink:
    """Fan a report out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[TickReportSink]) -> None:
        self._sinks = list(sinks)
        self._logger = structlog.get_logger(__name__)

    def publish(self, report: TickReport) -> None:
        for sink in self._sinks:
            try:
                sink.publish(report)
            except Exception:
                self._logger.exception("tick.report_sink.failed", sink=type(sink).__name__)


__all__ = ["CompositeReportSink", "LoggingReportSink", "RecentReportsSink"]
