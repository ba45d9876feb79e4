"""Tick processor firing due schedule slots once per occurrence."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog

from ..domain.models import (
    Channel,
    DispatchReceipt,
    FailureStage,
    InvocationOutcome,
    ScheduleSlot,
    SkippedSlot,
    SkipReason,
    SlotFiring,
    TickFailure,
    TickReport,
)
from ..domain.schedule import (
    LocalClock,
    local_clock,
    local_date_of,
    resolve_timezone,
    truncate_to_minute,
)
from ..exceptions import ConfigurationError, DispatchTimeoutError, GenerationTimeoutError
from ..providers.base import DispatchClient, GenerationProvider
from ..repositories.interfaces import ScheduleStore, TickReportSink

T = TypeVar("T")

OccurrenceKey = tuple[str, str, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class TickProcessor:
    """Scan all tenants' schedules and fire the slots due at a given minute.

    A slot occurrence is fired at most once: the stored ``last_fired_at`` gates
    repeated ticks, an in-process registry gates overlapping ticks, and the
    store's conditional write claims the occurrence before any generation
    runs, so a competing tick or process that loses the claim never fires it.
    A claimed occurrence stays recorded even when some or all invocations
    fail; the slot then waits for its next scheduled occurrence.
    """

    def __init__(
        self,
        *,
        store: ScheduleStore,
        generator: GenerationProvider,
        dispatcher: DispatchClient | None = None,
        report_sink: TickReportSink | None = None,
        default_timezone: str = "UTC",
        max_concurrent_tenants: int = 4,
        generation_timeout_seconds: float = 25.0,
        dispatch_timeout_seconds: float = 25.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.dispatcher = dispatcher
        self.report_sink = report_sink
        self._default_timezone = default_timezone
        self._max_concurrent_tenants = max(1, max_concurrent_tenants)
        self._generation_timeout = max(0.1, generation_timeout_seconds)
        self._dispatch_timeout = max(0.1, dispatch_timeout_seconds)
        self._clock = clock or _utcnow
        self._in_flight: set[OccurrenceKey] = set()
        self._logger = structlog.get_logger(__name__)
        self.last_report: TickReport | None = None

    @staticmethod
    async def _run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Execute a blocking store call in a worker thread."""

        return await asyncio.to_thread(func, *args, **kwargs)

    # ------------------------------------------------------------------
    # Tick lifecycle
    # ------------------------------------------------------------------
    async def process_tick(self, now: datetime) -> TickReport:
        """Fire every slot due at ``now`` and return the aggregated report."""

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        tick_at = truncate_to_minute(now)
        report = TickReport(tick_at=tick_at, started_at=self._clock())
        log = self._logger.bind(tick_at=tick_at.isoformat())

        try:
            channels = await self._run_sync(self.store.list_automation_enabled_channels)
        except Exception as exc:
            log.error("tick.list_channels.failed", error=_describe(exc))
            report.failures.append(
                TickFailure(
                    channel_id=None,
                    slot_id=None,
                    stage=FailureStage.LIST_CHANNELS,
                    reason=_describe(exc),
                )
            )
            return self._finish(report)

        report.channels_scanned = len(channels)
        tenants: dict[str, list[Channel]] = {}
        for channel in channels:
            tenants.setdefault(channel.owner_id, []).append(channel)

        semaphore = asyncio.Semaphore(self._max_concurrent_tenants)
        await asyncio.gather(
            *(
                self._process_tenant(owner_id, tenant_channels, now, tick_at, report, semaphore)
                for owner_id, tenant_channels in tenants.items()
            )
        )
        return self._finish(report)

    async def _process_tenant(
        self,
        owner_id: str,
        channels: Sequence[Channel],
        now: datetime,
        tick_at: datetime,
        report: TickReport,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            for channel in channels:
                try:
                    await self._process_channel(channel, now, tick_at, report)
                except Exception as exc:
                    self._logger.error(
                        "tick.channel.failed",
                        owner_id=owner_id,
                        channel_id=channel.id,
                        error=_describe(exc),
                    )
                    report.failures.append(
                        TickFailure(
                            channel_id=channel.id,
                            slot_id=None,
                            stage=FailureStage.CHANNEL,
                            reason=_describe(exc),
                        )
                    )

    async def _process_channel(
        self,
        channel: Channel,
        now: datetime,
        tick_at: datetime,
        report: TickReport,
    ) -> None:
        if not channel.automation_enabled:
            return
        tz = resolve_timezone(channel.timezone, self._default_timezone)
        clock = local_clock(tick_at, tz)
        for slot in channel.slots:
            if not self.is_due(slot, clock):
                continue
            if slot.last_fired_at is not None and local_date_of(slot.last_fired_at, tz) == clock.date:
                self._logger.debug(
                    "tick.slot.already_fired",
                    channel_id=channel.id,
                    slot_id=slot.id,
                    last_fired_at=slot.last_fired_at.isoformat(),
                )
                report.skipped.append(
                    SkippedSlot(channel.id, slot.id, SkipReason.ALREADY_FIRED)
                )
                continue
            await self._fire_slot(channel, slot, clock, now, report)

    @staticmethod
    def is_due(slot: ScheduleSlot, clock: LocalClock) -> bool:
        """Return ``True`` when ``slot`` is scheduled for this local minute."""

        return (
            slot.enabled
            and slot.minute_of_day == clock.minute_of_day
            and clock.weekday in slot.days_of_week
        )

    # ------------------------------------------------------------------
    # Slot firing
    # ------------------------------------------------------------------
    async def _fire_slot(
        self,
        channel: Channel,
        slot: ScheduleSlot,
        clock: LocalClock,
        now: datetime,
        report: TickReport,
    ) -> None:
        key: OccurrenceKey = (channel.id, slot.id, clock.date.isoformat())
        if key in self._in_flight:
            self._logger.info(
                "tick.slot.in_flight", channel_id=channel.id, slot_id=slot.id
            )
            report.skipped.append(SkippedSlot(channel.id, slot.id, SkipReason.IN_FLIGHT))
            return

        self._in_flight.add(key)
        try:
            # The occurrence is claimed before any collaborator call.
            try:
                claimed = await self._run_sync(
                    self.store.update_slot_last_fired,
                    channel.id,
                    slot.id,
                    fired_at=now,
                    occurrence_start=clock.day_start_utc,
                )
            except Exception as exc:
                self._logger.error(
                    "tick.slot.persist_failed",
                    channel_id=channel.id,
                    slot_id=slot.id,
                    error=_describe(exc),
                )
                report.failures.append(
                    TickFailure(channel.id, slot.id, FailureStage.PERSIST, _describe(exc))
                )
                return
            if not claimed:
                self._logger.info(
                    "tick.slot.claimed_elsewhere",
                    channel_id=channel.id,
                    slot_id=slot.id,
                    occurrence_date=clock.date.isoformat(),
                )
                report.skipped.append(SkippedSlot(channel.id, slot.id, SkipReason.CLAIMED))
                return

            firing = SlotFiring(
                channel_id=channel.id,
                owner_id=channel.owner_id,
                slot_id=slot.id,
                occurrence_date=clock.date,
            )
            report.firings.append(firing)
            for index in range(max(1, slot.prompts_per_run)):
                outcome = await self._invoke(channel, slot, clock, index, report)
                firing.invocations.append(outcome)

            self._logger.info(
                "tick.slot.fired",
                channel_id=channel.id,
                slot_id=slot.id,
                occurrence_date=clock.date.isoformat(),
                succeeded=firing.succeeded,
                failed=firing.failed,
            )
        finally:
            self._in_flight.discard(key)

    async def _invoke(
        self,
        channel: Channel,
        slot: ScheduleSlot,
        clock: LocalClock,
        index: int,
        report: TickReport,
    ) -> InvocationOutcome:
        context = {
            "slot_id": slot.id,
            "occurrence_date": clock.date.isoformat(),
            "invocation_index": index,
            "prompts_per_run": slot.prompts_per_run,
        }
        try:
            result = await self._call_with_timeout(
                self.generator.generate(channel, context),
                timeout=self._generation_timeout,
                label="generate",
                timeout_error=GenerationTimeoutError,
            )
        except Exception as exc:
            self._logger.warning(
                "tick.generation.failed",
                channel_id=channel.id,
                slot_id=slot.id,
                invocation=index,
                error=_describe(exc),
            )
            report.failures.append(
                TickFailure(channel.id, slot.id, FailureStage.GENERATION, _describe(exc))
            )
            return InvocationOutcome(index=index, succeeded=False, error=_describe(exc))

        if not channel.dispatch_enabled:
            return InvocationOutcome(index=index, succeeded=True, job_reference=result.job_reference)
        if self.dispatcher is None:
            self._logger.warning(
                "tick.dispatch.not_configured", channel_id=channel.id, slot_id=slot.id
            )
            return InvocationOutcome(index=index, succeeded=True, job_reference=result.job_reference)

        try:
            await self._dispatch(self.dispatcher, channel, result.content)
        except Exception as exc:
            self._logger.warning(
                "tick.dispatch.failed",
                channel_id=channel.id,
                slot_id=slot.id,
                invocation=index,
                error=_describe(exc),
            )
            report.failures.append(
                TickFailure(channel.id, slot.id, FailureStage.DISPATCH, _describe(exc))
            )
            return InvocationOutcome(
                index=index,
                succeeded=False,
                job_reference=result.job_reference,
                error=_describe(exc),
            )
        return InvocationOutcome(
            index=index,
            succeeded=True,
            job_reference=result.job_reference,
            dispatched=True,
        )

    async def _dispatch(
        self, dispatcher: DispatchClient, channel: Channel, content: str
    ) -> DispatchReceipt:
        return await self._call_with_timeout(
            dispatcher.send(channel, content),
            timeout=self._dispatch_timeout,
            label="send",
            timeout_error=DispatchTimeoutError,
        )

    # ------------------------------------------------------------------
    # Manual runs
    # ------------------------------------------------------------------
    async def run_custom_prompt(
        self, channel: Channel, prompt: str, *, title: str | None = None
    ) -> DispatchReceipt:
        """Send an operator-written prompt to ``channel`` outside the schedule.

        The prompt skips generation and goes straight to dispatch. Slot state is
        left untouched, so scheduled occurrences still fire as usual.
        """

        dispatcher = self.dispatcher
        if dispatcher is None:
            raise ConfigurationError("Dispatch is not configured")
        log = self._logger.bind(channel_id=channel.id, owner_id=channel.owner_id, title=title)
        try:
            receipt = await self._dispatch(dispatcher, channel, prompt)
        except Exception as exc:
            log.warning("custom_prompt.dispatch.failed", error=_describe(exc))
            raise
        log.info(
            "custom_prompt.dispatched",
            prompt_length=len(prompt),
            message_id=receipt.message_id,
        )
        return receipt

    @staticmethod
    async def _call_with_timeout(
        awaitable: Awaitable[T],
        *,
        timeout: float,
        label: str,
        timeout_error: type[Exception],
    ) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise timeout_error(f"Collaborator operation {label} timed out after {timeout:.1f}s") from exc

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def _finish(self, report: TickReport) -> TickReport:
        report.finished_at = self._clock()
        self.last_report = report
        if self.report_sink is not None:
            try:
                self.report_sink.publish(report)
            except Exception:
                self._logger.exception("tick.report_sink.failed")
        return report

    async def aclose(self) -> None:
        await self.generator.aclose()
        if self.dispatcher is not None:
            await self.dispatcher.aclose()


__all__ = ["TickProcessor"]
