"""Persistence adapters and collaborator protocols."""

from .channel_repository import ChannelRepository
from .interfaces import ScheduleStore, TickReportSink

__all__ = ["ChannelRepository", "ScheduleStore", "TickReportSink"]
