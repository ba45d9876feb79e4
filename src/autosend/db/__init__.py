"""Database models and schema bootstrap."""

from .db_models import Base, ChannelModel, ScheduleSlotModel

__all__ = ["Base", "ChannelModel", "ScheduleSlotModel"]
