"""Channel schedule store backed by SQLAlchemy."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, selectinload

from ..db.db_models import ChannelModel, ScheduleSlotModel
from ..domain.models import Channel, GenerationMode, Language, Platform, ScheduleSlot
from ..domain.schedule import clamp_active_window, normalize_days
from ..exceptions import NotFoundError, ensure_found, handle_sqlalchemy_errors

E = TypeVar("E", bound=Enum)


def _to_storage(instant: datetime) -> datetime:
    """Normalise to naive UTC, the representation kept in the database."""

    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def _from_storage(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _latest(stored: datetime | None, incoming: datetime | None) -> datetime | None:
    if stored is None:
        return incoming
    if incoming is None:
        return stored
    return max(stored, incoming)


def _parse_days(raw: str | None) -> frozenset[int]:
    if not raw:
        return frozenset()
    values: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            values.append(int(part))
    return normalize_days(values)


def _format_days(days: frozenset[int]) -> str:
    return ",".join(str(day) for day in sorted(days))


def _enum_or_default(enum_cls: type[E], value: str | None, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        return default


class ChannelRepository:
    """Provide access to channel schedules stored in the database."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_automation_enabled_channels(self) -> Sequence[Channel]:
        with self._session_factory() as session:
            rows = (
                session.execute(
                    select(ChannelModel)
                    .options(selectinload(ChannelModel.slots))
                    .where(ChannelModel.auto_send_enabled.is_(True))
                    .order_by(
                        ChannelModel.owner_id,
                        ChannelModel.order_index,
                        ChannelModel.id,
                    )
                )
                .scalars()
                .all()
            )
            return [self._to_domain(row) for row in rows]

    def list_channels(self, owner_id: str) -> Sequence[Channel]:
        with self._session_factory() as session:
            rows = (
                session.execute(
                    select(ChannelModel)
                    .options(selectinload(ChannelModel.slots))
                    .where(ChannelModel.owner_id == owner_id)
                    .order_by(ChannelModel.order_index, ChannelModel.created_at, ChannelModel.id)
                )
                .scalars()
                .all()
            )
            return [self._to_domain(row) for row in rows]

    def get_channel(self, channel_id: str) -> Channel:
        with self._session_factory() as session:
            row = session.get(
                ChannelModel, channel_id, options=[selectinload(ChannelModel.slots)]
            )
            ensure_found(row, entity="channel", identifier=channel_id)
            return self._to_domain(row)  # type: ignore[arg-type]

    def update_slot_last_fired(
        self,
        channel_id: str,
        slot_id: str,
        *,
        fired_at: datetime,
        occurrence_start: datetime,
    ) -> bool:
        """Conditionally store ``last_fired_at`` for one occurrence.

        The row is only updated when the stored value predates
        ``occurrence_start``; a concurrent writer that recorded the same
        occurrence first makes this call return ``False``.
        """
        threshold = _to_storage(occurrence_start)
        stmt = (
            update(ScheduleSlotModel)
            .where(
                ScheduleSlotModel.id == slot_id,
                ScheduleSlotModel.channel_id == channel_id,
                or_(
                    ScheduleSlotModel.last_fired_at.is_(None),
                    ScheduleSlotModel.last_fired_at < threshold,
                ),
            )
            .values(last_fired_at=_to_storage(fired_at))
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            with handle_sqlalchemy_errors(entity="schedule_slot"):
                result = session.execute(stmt)
                session.commit()
            if result.rowcount == 1:
                return True
            exists = session.execute(
                select(ScheduleSlotModel.id).where(
                    ScheduleSlotModel.id == slot_id,
                    ScheduleSlotModel.channel_id == channel_id,
                )
            ).first()
            if exists is None:
                raise NotFoundError(f"schedule slot '{channel_id}/{slot_id}' not found")
            return False

    def save_channel(self, channel: Channel) -> Channel:
        """Insert or replace a channel together with its slots.

        A slot's stored ``last_fired_at`` never moves backwards, so saving a
        snapshot read before a tick recorded a firing keeps that firing.
        """
        now = _to_storage(datetime.now(timezone.utc))
        with self._session_factory() as session:
            with handle_sqlalchemy_errors(entity="channel"):
                row = session.get(
                    ChannelModel, channel.id, options=[selectinload(ChannelModel.slots)]
                )
                if row is None:
                    row = ChannelModel(id=channel.id, created_at=now)
                    session.add(row)
                row.owner_id = channel.owner_id
                row.name = channel.name
                row.platform = channel.platform.value
                row.language = channel.language.value
                row.target_duration_sec = channel.target_duration_sec
                row.niche = channel.niche
                row.audience = channel.audience
                row.tone = channel.tone
                row.blocked_topics = channel.blocked_topics
                row.extra_notes = channel.extra_notes
                row.generation_mode = channel.generation_mode.value
                row.auto_send_enabled = channel.automation_enabled
                row.timezone = channel.timezone
                row.active_window_minutes = channel.active_window_minutes
                row.dispatch_enabled = channel.dispatch_enabled
                row.dispatch_chat_id = channel.dispatch_chat_id
                row.order_index = channel.order_index
                row.updated_at = now
                existing = {slot_row.id: slot_row for slot_row in row.slots}
                slot_rows: list[ScheduleSlotModel] = []
                for position, slot in enumerate(channel.slots):
                    slot_row = existing.get(slot.id) or ScheduleSlotModel(id=slot.id)
                    slot_row.position = position
                    slot_row.enabled = slot.enabled
                    slot_row.days_of_week = _format_days(slot.days_of_week)
                    slot_row.time = slot.time
                    slot_row.prompts_per_run = slot.prompts_per_run
                    slot_row.last_fired_at = _latest(
                        slot_row.last_fired_at,
                        _to_storage(slot.last_fired_at) if slot.last_fired_at is not None else None,
                    )
                    slot_rows.append(slot_row)
                row.slots = slot_rows
                session.commit()
                session.refresh(row)
            return self._to_domain(row)

    @staticmethod
    def _to_domain(model: ChannelModel) -> Channel:
        return Channel(
            id=model.id,
            owner_id=model.owner_id,
            name=model.name or "",
            platform=_enum_or_default(Platform, model.platform, Platform.YOUTUBE_SHORTS),
            language=_enum_or_default(Language, model.language, Language.RU),
            target_duration_sec=model.target_duration_sec,
            niche=model.niche or "",
            audience=model.audience or "",
            tone=model.tone or "",
            blocked_topics=model.blocked_topics or "",
            extra_notes=model.extra_notes,
            generation_mode=_enum_or_default(
                GenerationMode, model.generation_mode, GenerationMode.SCRIPT
            ),
            automation_enabled=bool(model.auto_send_enabled),
            timezone=model.timezone,
            active_window_minutes=clamp_active_window(model.active_window_minutes),
            dispatch_enabled=bool(model.dispatch_enabled),
            dispatch_chat_id=model.dispatch_chat_id,
            order_index=model.order_index,
            slots=tuple(ChannelRepository._to_slot_domain(slot) for slot in model.slots),
        )

    @staticmethod
    def _to_slot_domain(model: ScheduleSlotModel) -> ScheduleSlot:
        return ScheduleSlot(
            id=model.id,
            time=model.time,
            enabled=bool(model.enabled),
            days_of_week=_parse_days(model.days_of_week),
            prompts_per_run=max(1, model.prompts_per_run or 1),
            last_fired_at=_from_storage(model.last_fired_at),
        )


__all__ = ["ChannelRepository"]
