"""Tick processing and tick report sinks."""

from .reporting import CompositeReportSink, LoggingReportSink, RecentReportsSink
from .tick_processor import TickProcessor

__all__ = [
    "CompositeReportSink",
    "LoggingReportSink",
    "RecentReportsSink",
    "TickProcessor",
]
