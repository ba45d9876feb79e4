"""Domain layer: schedule value objects and the slot state classifier."""

from .models import (
    Channel,
    ChannelAutomationState,
    ChannelStateInfo,
    FleetStates,
    ScheduleSlot,
    TickReport,
)

__all__ = [
    "Channel",
    "ChannelAutomationState",
    "ChannelStateInfo",
    "FleetStates",
    "ScheduleSlot",
    "TickReport",
]
