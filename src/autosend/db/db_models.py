"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base declarative class."""


class ChannelModel(Base):
    __tablename__ = "channel"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="YOUTUBE_SHORTS")
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="ru")
    target_duration_sec: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    niche: Mapped[str] = mapped_column(Text, nullable=False, default="")
    audience: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tone: Mapped[str] = mapped_column(Text, nullable=False, default="")
    blocked_topics: Mapped[str] = mapped_column(Text, nullable=False, default="")
    extra_notes: Mapped[str | None] = mapped_column(Text)
    generation_mode: Mapped[str] = mapped_column(String(32), nullable=False, default="script")
    auto_send_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    timezone: Mapped[str | None] = mapped_column(String(64))
    active_window_minutes: Mapped[int | None] = mapped_column(Integer)
    dispatch_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dispatch_chat_id: Mapped[str | None] = mapped_column(String(128))
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow_naive, nullable=False)

    slots: Mapped[list["ScheduleSlotModel"]] = relationship(
        back_populates="channel",
        cascade="all, delete-orphan",
        order_by="ScheduleSlotModel.position",
    )


class ScheduleSlotModel(Base):
    __tablename__ = "schedule_slot"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    channel_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("channel.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Comma separated Sunday-first weekday indices, e.g. "1,2,3,4,5".
    days_of_week: Mapped[str] = mapped_column(String(32), nullable=False, default="0,1,2,3,4,5,6")
    time: Mapped[str] = mapped_column(String(8), nullable=False)
    prompts_per_run: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Naive UTC.
    last_fired_at: Mapped[datetime | None] = mapped_column(DateTime)

    channel: Mapped[ChannelModel] = relationship(back_populates="slots")
