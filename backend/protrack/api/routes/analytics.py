"""API endpoints that expose production rollups and the operator shift HUD."""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.db import get_session
from protrack.core.deps import get_request_context
from protrack.models.enums import Platform
from protrack.schemas.analytics import RollupListOut, RollupOut, ShiftOutputOut
from protrack.services.access import RequestContext
from protrack.services.aggregation import (
    Rollup,
    load_daily_rollup,
    load_monthly_rollup,
    operator_shift_output,
)
from protrack.services.industrial_day import plant_now, production_date

router = APIRouter(prefix="/analytics", tags=["analytics"])

MAX_DAILY_RANGE_DAYS = 366


def _rollup_out(row: Rollup) -> RollupOut:
    return RollupOut(
        period=row.period,
        platform=row.platform,
        category=row.category,
        morning_tonnage=float(row.morning_tonnage),
        afternoon_tonnage=float(row.afternoon_tonnage),
        night_tonnage=float(row.night_tonnage),
        total_tonnage=float(row.total_tonnage),
        total_trucks=row.total_trucks,
        log_count=row.log_count,
        operator_count=row.operator_count,
    )


@router.get("/daily", response_model=RollupListOut)
async def daily_rollup(
    start: date | None = None,
    end: date | None = None,
    platform: Platform | None = None,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> RollupListOut:
    """Rollup per production date; defaults to the last seven industrial days."""

    last = end or production_date(plant_now())
    first = start or (last - timedelta(days=6))
    if first > last:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end.",
        )
    if (last - first).days >= MAX_DAILY_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Date range is limited to {MAX_DAILY_RANGE_DAYS} days.",
        )
    rows = await load_daily_rollup(
        session, ctx, first, last, platform=platform.value if platform else None
    )
    return RollupListOut(granularity="daily", items=[_rollup_out(row) for row in rows])


@router.get("/monthly", response_model=RollupListOut)
async def monthly_rollup(
    year: int | None = Query(default=None, ge=2000, le=2100),
    platform: Platform | None = None,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> RollupListOut:
    target_year = year or production_date(plant_now()).year
    rows = await load_monthly_rollup(
        session, ctx, target_year, platform=platform.value if platform else None
    )
    return RollupListOut(granularity="monthly", items=[_rollup_out(row) for row in rows])


@router.get("/shift-output", response_model=ShiftOutputOut)
async def shift_output(
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ShiftOutputOut:
    output = await operator_shift_output(session, ctx)
    return ShiftOutputOut(
        user_id=output.user_id,
        production_date=output.production_date,
        shift=output.shift,
        platform=output.platform,
        trucks=output.trucks,
        tonnage=float(output.tonnage),
        target_trucks=output.target_trucks,
        progress_percent=output.progress_percent,
        window_start=output.window_start,
        window_end=output.window_end,
    )
