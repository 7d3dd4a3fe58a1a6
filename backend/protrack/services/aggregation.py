"""Daily and monthly production rollups plus the operator shift HUD.

All figures are recomputed from ``production_logs`` on every call; nothing
here reads or writes the dossier ledger. Timestamps are bucketed by
industrial day, and EVENING tonnage is reported under AFTERNOON (the raw
shift value stays as stored).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.config import settings
from protrack.models.enums import Shift
from protrack.models.production_log import ProductionLog
from protrack.models.shift_target import ShiftTarget
from protrack.services.access import RequestContext
from protrack.services.industrial_day import (
    bucket,
    current_window,
    month_window,
    plant_now,
    range_window,
    shift_at,
)

ZERO = Decimal("0")

# Reporting buckets; EVENING folds into AFTERNOON.
REPORT_SHIFT = {
    Shift.MORNING.value: "morning",
    Shift.AFTERNOON.value: "afternoon",
    Shift.EVENING.value: "afternoon",
    Shift.NIGHT.value: "night",
}


class LogFacts(Protocol):
    created_at: datetime
    platform: str
    category: str
    shift: str
    truck_count: int
    total_tonnage: Decimal
    user_id: str | None


@dataclass(slots=True)
class Rollup:
    period: str  # production date (YYYY-MM-DD) or month (YYYY-MM)
    platform: str
    category: str
    morning_tonnage: Decimal = ZERO
    afternoon_tonnage: Decimal = ZERO
    night_tonnage: Decimal = ZERO
    total_tonnage: Decimal = ZERO
    total_trucks: int = 0
    log_count: int = 0
    operators: set[str] = field(default_factory=set)

    @property
    def operator_count(self) -> int:
        return len(self.operators)

    def add(self, log: LogFacts) -> None:
        tonnage = Decimal(log.total_tonnage or 0)
        slot = REPORT_SHIFT.get(log.shift, "afternoon")
        setattr(self, f"{slot}_tonnage", getattr(self, f"{slot}_tonnage") + tonnage)
        self.total_tonnage += tonnage
        self.total_trucks += log.truck_count
        self.log_count += 1
        if log.user_id:
            self.operators.add(log.user_id)


def _rollup(logs: Iterable[LogFacts], period_of) -> list[Rollup]:
    groups: dict[tuple[str, str, str], Rollup] = {}
    for log in logs:
        key = (period_of(log.created_at), log.platform, log.category)
        row = groups.get(key)
        if row is None:
            row = groups[key] = Rollup(period=key[0], platform=key[1], category=key[2])
        row.add(log)
    return [groups[key] for key in sorted(groups)]


def rollup_daily(logs: Iterable[LogFacts]) -> list[Rollup]:
    return _rollup(logs, lambda moment: bucket(moment).date.isoformat())


def rollup_monthly(logs: Iterable[LogFacts]) -> list[Rollup]:
    return _rollup(logs, lambda moment: bucket(moment).month)


async def _logs_between(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    ctx: RequestContext,
    platform: str | None,
) -> list[ProductionLog]:
    stmt = select(ProductionLog).where(
        ProductionLog.created_at >= start, ProductionLog.created_at < end
    )
    if ctx.platform_filter is not None:
        stmt = stmt.where(ProductionLog.platform == ctx.platform_filter)
    if platform:
        stmt = stmt.where(ProductionLog.platform == platform)
    return list((await session.execute(stmt.order_by(ProductionLog.created_at))).scalars().all())


async def load_daily_rollup(
    session: AsyncSession,
    ctx: RequestContext,
    first: date,
    last: date,
    *,
    platform: str | None = None,
) -> list[Rollup]:
    start, end = range_window(first, last)
    return rollup_daily(await _logs_between(session, start, end, ctx, platform))


async def load_monthly_rollup(
    session: AsyncSession,
    ctx: RequestContext,
    year: int,
    *,
    platform: str | None = None,
) -> list[Rollup]:
    start, _ = month_window(year, 1)
    _, end = month_window(year, 12)
    return rollup_monthly(await _logs_between(session, start, end, ctx, platform))


@dataclass(frozen=True, slots=True)
class ShiftOutput:
    user_id: str
    production_date: date
    shift: str
    platform: str | None
    trucks: int
    tonnage: Decimal
    target_trucks: int
    progress_percent: int
    window_start: datetime
    window_end: datetime


async def shift_target(session: AsyncSession, platform: str | None, shift: Shift) -> int:
    if platform is None:
        return settings.HUD_DEFAULT_TARGET_TRUCKS
    target = await session.scalar(
        select(ShiftTarget.target_trucks)
        .where(ShiftTarget.platform == platform)
        .where(ShiftTarget.shift == shift.value)
    )
    return target if target else settings.HUD_DEFAULT_TARGET_TRUCKS


async def operator_shift_output(
    session: AsyncSession,
    ctx: RequestContext,
    *,
    now: datetime | None = None,
) -> ShiftOutput:
    """Trucks and tonnage the caller loaded in the current industrial day."""

    moment = plant_now() if now is None else now
    start, end = current_window(moment)
    logs = (
        await session.execute(
            select(ProductionLog.truck_count, ProductionLog.total_tonnage)
            .where(ProductionLog.user_id == ctx.user_id)
            .where(ProductionLog.created_at >= start, ProductionLog.created_at < end)
        )
    ).all()
    trucks = sum(int(count) for count, _ in logs)
    tonnage = sum((Decimal(str(value or 0)) for _, value in logs), ZERO)

    shift = shift_at(moment)
    platform = ctx.platform_filter
    target = await shift_target(session, platform, shift)
    progress = int(
        min(Decimal(100), Decimal(trucks) * 100 / Decimal(target)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )
    return ShiftOutput(
        user_id=ctx.user_id,
        production_date=start.date(),
        shift=shift.value,
        platform=platform,
        trucks=trucks,
        tonnage=tonnage,
        target_trucks=target,
        progress_percent=progress,
        window_start=start,
        window_end=end,
    )
