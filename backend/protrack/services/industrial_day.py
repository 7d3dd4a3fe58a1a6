"""Industrial day calendar.

The plant's production day runs from 06:00 to 06:00 the next morning: a
truck loaded at 05:30 on June 2 belongs to the June 1 production day. Every
shift-based aggregate (daily/monthly rollups, the operator HUD) buckets
timestamps through this module so the rule lives in exactly one place.

Timestamps are interpreted on the plant's wall clock. Naive datetimes are
plant-local: rows are stamped with :func:`protrack.core.clock.plant_now`.
Aware datetimes are converted to ``settings.PLANT_TIMEZONE`` first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from protrack.core.clock import plant_now, to_plant_time
from protrack.core.config import settings
from protrack.models.enums import Shift


@dataclass(frozen=True, slots=True)
class IndustrialDay:
    date: date
    month: str  # "YYYY-MM", derived from the shifted date
    year: int


def _start_hour(start_hour: int | None) -> int:
    return settings.INDUSTRIAL_DAY_START_HOUR if start_hour is None else start_hour


def production_date(moment: datetime, *, start_hour: int | None = None) -> date:
    local = to_plant_time(moment)
    if local.hour < _start_hour(start_hour):
        return local.date() - timedelta(days=1)
    return local.date()


def bucket(moment: datetime, *, start_hour: int | None = None) -> IndustrialDay:
    """Map a timestamp to its production date, month and year."""

    day = production_date(moment, start_hour=start_hour)
    return IndustrialDay(date=day, month=f"{day.year:04d}-{day.month:02d}", year=day.year)


def day_window(day: date, *, start_hour: int | None = None) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` wall-clock range covered by production date ``day``."""

    start = datetime.combine(day, time(hour=_start_hour(start_hour)))
    return start, start + timedelta(days=1)


def current_window(now: datetime | None = None, *, start_hour: int | None = None) -> tuple[datetime, datetime]:
    """Window of the production day in progress at ``now`` (default: plant clock)."""

    moment = plant_now() if now is None else now
    return day_window(production_date(moment, start_hour=start_hour), start_hour=start_hour)


def range_window(first: date, last: date, *, start_hour: int | None = None) -> tuple[datetime, datetime]:
    """Window spanning production dates ``first`` through ``last`` inclusive."""

    if last < first:
        raise ValueError("last production date precedes the first one")
    start, _ = day_window(first, start_hour=start_hour)
    _, end = day_window(last, start_hour=start_hour)
    return start, end


def month_window(year: int, month: int, *, start_hour: int | None = None) -> tuple[datetime, datetime]:
    first = date(year, month, 1)
    next_first = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return range_window(first, next_first - timedelta(days=1), start_hour=start_hour)


def shift_at(moment: datetime) -> Shift:
    """Shift on duty at ``moment``: 06-14 morning, 14-22 afternoon, 22-06 night."""

    hour = to_plant_time(moment).hour
    if 6 <= hour < 14:
        return Shift.MORNING
    if 14 <= hour < 22:
        return Shift.AFTERNOON
    return Shift.NIGHT
