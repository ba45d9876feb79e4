"""Auto-send scheduling engine for channel content generation.

The package classifies channel schedules for status views and runs the
once-per-minute tick that fires generation for due slots.
"""

from .domain.automation_state import classify_channel, classify_fleet
from .scheduling.tick_processor import TickProcessor

__all__ = ["TickProcessor", "classify_channel", "classify_fleet"]
