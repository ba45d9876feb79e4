"""Collaborator interfaces consumed by the scheduling core."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from ..domain.models import Channel, TickReport


class ScheduleStore(Protocol):
    """Channel schedule storage with the conditional ``last_fired_at`` write."""

    def list_automation_enabled_channels(self) -> Sequence[Channel]:
        """Return every tenant's channels with automation switched on."""

    def list_channels(self, owner_id: str) -> Sequence[Channel]:
        """Return all channels of ``owner_id`` in display order."""

    def get_channel(self, channel_id: str) -> Channel:
        """Return one channel; raises ``NotFoundError`` when it does not exist."""

    def save_channel(self, channel: Channel) -> Channel:
        """Insert or replace ``channel`` with its slots and return the stored copy."""

    def update_slot_last_fired(
        self,
        channel_id: str,
        slot_id: str,
        *,
        fired_at: datetime,
        occurrence_start: datetime,
    ) -> bool:
        """Record a firing unless one at or after ``occurrence_start`` exists.

        Returns ``False`` when another writer already recorded the occurrence.
        """


class TickReportSink(Protocol):
    """Observability collaborator receiving the aggregated tick outcome."""

    def publish(self, report: TickReport) -> None:
        """Consume ``report``; must not raise for reporting problems."""
