"""Planned-vs-actual execution status of shipping dossiers.

``classify_execution`` is pure. ``load_execution_board`` joins every dossier
to the sum of its production logs and is what the monitor endpoint serves;
it reads tonnage from the logs, never from the ``planned_count`` ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.config import settings
from protrack.models.enums import ProgramStatus
from protrack.models.production_log import ProductionLog
from protrack.models.shipping_program import ShippingProgram
from protrack.services.access import RequestContext
from protrack.services.industrial_day import day_window

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERBOOKED = "OVERBOOKED"


# Most attention needed first.
STATUS_PRIORITY: dict[ExecutionStatus, int] = {
    ExecutionStatus.OVERBOOKED: 0,
    ExecutionStatus.IN_PROGRESS: 1,
    ExecutionStatus.PENDING: 2,
    ExecutionStatus.COMPLETED: 3,
}


@dataclass(frozen=True, slots=True)
class ExecutionSnapshot:
    progress_percent: int
    status: ExecutionStatus


def classify_execution(
    planned: Decimal | int | float,
    actual: Decimal | int | float,
    *,
    tolerance_pct: int | None = None,
) -> ExecutionSnapshot:
    """Classify a dossier from planned and executed tonnage.

    Progress is clamped to 100 for display; the overbooking test uses the
    raw values so that 101 t against 100 t planned is OVERBOOKED, not
    COMPLETED. A dossier without a positive plan is PENDING until anything
    is loaded against it, then OVERBOOKED.
    """

    planned = Decimal(str(planned or 0))
    actual = Decimal(str(actual or 0))
    tolerance = settings.COMPLETION_TOLERANCE_PCT if tolerance_pct is None else tolerance_pct

    if planned <= ZERO:
        if actual <= ZERO:
            return ExecutionSnapshot(0, ExecutionStatus.PENDING)
        return ExecutionSnapshot(100, ExecutionStatus.OVERBOOKED)

    ratio = actual / planned * HUNDRED
    progress = int(min(HUNDRED, ratio).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    progress = max(progress, 0)

    if actual > planned:
        status = ExecutionStatus.OVERBOOKED
    elif actual <= ZERO:
        status = ExecutionStatus.PENDING
    elif progress >= tolerance:
        status = ExecutionStatus.COMPLETED
    else:
        status = ExecutionStatus.IN_PROGRESS
    return ExecutionSnapshot(progress, status)


@dataclass(slots=True)
class ExecutionRow:
    file_number: str
    destination: str | None
    shipping_line: str | None
    platform_section: str | None
    planned_quantity: Decimal
    actual_quantity: Decimal
    actual_trucks: int
    remaining_count: int
    stored_status: str
    progress_percent: int
    status: ExecutionStatus
    last_activity_at: datetime | None = None


@dataclass(slots=True)
class ExecutionBoard:
    rows: list[ExecutionRow]
    total_planned: Decimal = ZERO
    total_executed: Decimal = ZERO
    global_progress: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)


def _sort_key(row: ExecutionRow) -> tuple[int, str]:
    return STATUS_PRIORITY[row.status], row.file_number


def build_board(rows: Iterable[ExecutionRow]) -> ExecutionBoard:
    """Sort rows by attention priority and compute the board KPIs."""

    ordered = sorted(rows, key=_sort_key)
    total_planned = sum((row.planned_quantity for row in ordered), ZERO)
    total_executed = sum((row.actual_quantity for row in ordered), ZERO)
    counts = {status.value: 0 for status in ExecutionStatus}
    for row in ordered:
        counts[row.status.value] += 1
    return ExecutionBoard(
        rows=ordered,
        total_planned=total_planned,
        total_executed=total_executed,
        global_progress=classify_execution(total_planned, total_executed).progress_percent,
        status_counts=counts,
    )


async def _log_totals(
    session: AsyncSession, file_numbers: Sequence[str]
) -> dict[str, tuple[Decimal, int]]:
    if not file_numbers:
        return {}
    result = await session.execute(
        select(
            ProductionLog.file_number,
            func.coalesce(func.sum(ProductionLog.total_tonnage), 0),
            func.coalesce(func.sum(ProductionLog.truck_count), 0),
        )
        .where(ProductionLog.file_number.in_(file_numbers))
        .group_by(ProductionLog.file_number)
    )
    return {
        file_number: (Decimal(str(tonnage)), int(trucks))
        for file_number, tonnage, trucks in result.all()
    }


async def load_execution_board(
    session: AsyncSession,
    ctx: RequestContext,
    *,
    status: ExecutionStatus | None = None,
    platform: str | None = None,
    search: str | None = None,
) -> ExecutionBoard:
    stmt = select(ShippingProgram)
    scope = ctx.platform_filter
    if scope is not None:
        stmt = stmt.where(ShippingProgram.platform_section == scope)
    if platform:
        stmt = stmt.where(ShippingProgram.platform_section == platform)
    if search:
        term = search.strip()
        stmt = stmt.where(
            ShippingProgram.file_number.icontains(term, autoescape=True)
            | ShippingProgram.destination.icontains(term, autoescape=True)
        )
    programs = list((await session.execute(stmt)).scalars().all())
    totals = await _log_totals(session, [program.file_number for program in programs])

    rows: list[ExecutionRow] = []
    for program in programs:
        actual_qty, actual_trucks = totals.get(program.file_number, (ZERO, 0))
        planned_qty = Decimal(program.planned_quantity or 0)
        snapshot = classify_execution(planned_qty, actual_qty)
        if status is not None and snapshot.status != status:
            continue
        rows.append(
            ExecutionRow(
                file_number=program.file_number,
                destination=program.destination,
                shipping_line=program.shipping_line,
                platform_section=program.platform_section,
                planned_quantity=planned_qty,
                actual_quantity=actual_qty,
                actual_trucks=actual_trucks,
                remaining_count=program.planned_count,
                stored_status=program.status,
                progress_percent=snapshot.progress_percent,
                status=snapshot.status,
                last_activity_at=program.last_activity_at,
            )
        )
    return build_board(rows)


@dataclass(frozen=True, slots=True)
class DayActivity:
    file_number: str
    platform_section: str | None
    trucks_today: int
    trucks_total: int
    remaining_count: int
    status: str


async def load_day_activity(
    session: AsyncSession, ctx: RequestContext, day: date
) -> list[DayActivity]:
    """Trucks loaded per active dossier during one industrial day."""

    start, end = day_window(day)
    stmt = select(ShippingProgram).where(ShippingProgram.status != ProgramStatus.COMPLETED.value)
    if ctx.platform_filter is not None:
        stmt = stmt.where(ShippingProgram.platform_section == ctx.platform_filter)
    programs = list((await session.execute(stmt.order_by(ShippingProgram.file_number))).scalars().all())
    if not programs:
        return []
    file_numbers = [program.file_number for program in programs]

    today = await session.execute(
        select(ProductionLog.file_number, func.sum(ProductionLog.truck_count))
        .where(ProductionLog.file_number.in_(file_numbers))
        .where(ProductionLog.created_at >= start, ProductionLog.created_at < end)
        .group_by(ProductionLog.file_number)
    )
    today_map = {fn: int(trucks or 0) for fn, trucks in today.all()}
    totals = await _log_totals(session, file_numbers)

    return [
        DayActivity(
            file_number=program.file_number,
            platform_section=program.platform_section,
            trucks_today=today_map.get(program.file_number, 0),
            trucks_total=totals.get(program.file_number, (ZERO, 0))[1],
            remaining_count=program.planned_count,
            status=program.status,
        )
        for program in programs
    ]
