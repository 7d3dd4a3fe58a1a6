"""Shipping program (dossier) endpoints: lookup, projection, monitor and admin actions."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.audit import log_audit
from protrack.core.cache import clear_cache_pattern, generate_cache_key, get_cache, set_cache
from protrack.core.config import settings
from protrack.core.db import get_session, repeatable_read_transaction
from protrack.core.db_errors import raise_on_lock_conflict
from protrack.core.db_retry import with_db_retry
from protrack.core.deps import get_request_context, require_admin
from protrack.core.errors import DossierAlreadyExists, DossierNotFound
from protrack.core.events import MONITOR_CACHE_PATTERN
from protrack.models.enums import Platform, ProgramStatus
from protrack.models.shipping_program import ShippingProgram
from protrack.schemas.monitor import ExecutionBoardOut, ExecutionRowOut
from protrack.schemas.shipping_program import (
    DayActivityOut,
    DossierLookupOut,
    ReconcileOut,
    ShippingProgramCreate,
    ShippingProgramOut,
    StockProjectionOut,
)
from protrack.services.access import RequestContext
from protrack.services.dossier_lookup import get_dossier, lookup_dossiers, project_for_dossier
from protrack.services.execution_status import (
    ExecutionStatus,
    load_day_activity,
    load_execution_board,
)
from protrack.services.industrial_day import plant_now, production_date
from protrack.services.ledger import reconcile_program

router = APIRouter(prefix="/programs", tags=["programs"])


def _remote_addr(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.get("/lookup", response_model=DossierLookupOut)
async def lookup(
    q: str = Query(min_length=1, max_length=64),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> DossierLookupOut:
    programs = await lookup_dossiers(session, q, ctx, limit=limit)
    return DossierLookupOut(items=[ShippingProgramOut.model_validate(p) for p in programs])


@router.get("/monitor", response_model=ExecutionBoardOut)
async def execution_monitor(
    status_filter: ExecutionStatus | None = Query(default=None, alias="status"),
    platform: Platform | None = None,
    search: str | None = Query(default=None, max_length=64),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ExecutionBoardOut:
    filters = {
        "scope": ctx.platform_filter,
        "status": status_filter.value if status_filter else None,
        "platform": platform.value if platform else None,
        "search": (search or "").strip().lower() or None,
    }
    cache_key = generate_cache_key("execution_board", **filters)
    cached = await get_cache(cache_key)
    if cached is not None:
        return ExecutionBoardOut.model_validate(cached)

    board = await load_execution_board(
        session,
        ctx,
        status=status_filter,
        platform=filters["platform"],
        search=filters["search"],
    )
    result = ExecutionBoardOut(
        rows=[
            ExecutionRowOut(
                file_number=row.file_number,
                destination=row.destination,
                shipping_line=row.shipping_line,
                platform_section=row.platform_section,
                planned_quantity=float(row.planned_quantity),
                actual_quantity=float(row.actual_quantity),
                actual_trucks=row.actual_trucks,
                remaining_count=row.remaining_count,
                stored_status=row.stored_status,
                progress_percent=row.progress_percent,
                status=row.status.value,
                last_activity_at=row.last_activity_at,
            )
            for row in board.rows
        ],
        total_planned=float(board.total_planned),
        total_executed=float(board.total_executed),
        global_progress=board.global_progress,
        status_counts=board.status_counts,
    )
    await set_cache(cache_key, result.model_dump(mode="json"), settings.MONITOR_CACHE_TTL_SEC)
    return result


@router.get("/activity", response_model=list[DayActivityOut])
async def day_activity(
    day: date | None = Query(default=None, description="Industrial day; defaults to the current one."),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> list[DayActivityOut]:
    target_day = day or production_date(plant_now())
    rows = await load_day_activity(session, ctx, target_day)
    return [DayActivityOut.model_validate(row) for row in rows]


@router.get("/{file_number}", response_model=ShippingProgramOut)
async def get_program(
    file_number: str,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ShippingProgramOut:
    return ShippingProgramOut.model_validate(await get_dossier(session, file_number, ctx))


@router.get("/{file_number}/projection", response_model=StockProjectionOut)
async def projection(
    file_number: str,
    trucks: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> StockProjectionOut:
    program, snapshot = await project_for_dossier(session, file_number, trucks, ctx)
    return StockProjectionOut(
        file_number=program.file_number,
        platform_section=program.platform_section,
        stock=snapshot.stock,
        pending=snapshot.pending,
        projected=snapshot.projected,
        low_stock=snapshot.low_stock,
        overbooking=snapshot.overbooking,
        snapshot_taken_at=snapshot.snapshot_taken_at,
    )


@router.post("", response_model=ShippingProgramOut, status_code=status.HTTP_201_CREATED)
async def create_program(
    payload: ShippingProgramCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(require_admin),
) -> ShippingProgramOut:
    async def _create_once() -> ShippingProgramOut:
        async with repeatable_read_transaction(session):
            existing = await session.scalar(
                select(ShippingProgram.id).where(ShippingProgram.file_number == payload.file_number)
            )
            if existing:
                raise DossierAlreadyExists(payload.file_number)

            program = ShippingProgram(
                file_number=payload.file_number,
                platform_section=payload.platform_section.value,
                contract_count=payload.planned_count,
                planned_count=payload.planned_count,
                planned_quantity=payload.planned_quantity,
                destination=payload.destination,
                shipping_line=payload.shipping_line,
                sap_order_code=payload.sap_order_code,
                start_date_raw=payload.start_date_raw,
                deadline_raw=payload.deadline_raw,
                special_instructions=payload.special_instructions,
                priority_flag=payload.priority_flag,
                status=ProgramStatus.PENDING.value,
            )
            session.add(program)
            await session.flush()

            await log_audit(
                session,
                ctx.user_id,
                "shipping_program",
                program.file_number,
                "CREATE",
                details={"planned_count": program.planned_count},
                remote_addr=_remote_addr(request),
            )
            return ShippingProgramOut.model_validate(program)

    try:
        result = await with_db_retry(session, _create_once)
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    await clear_cache_pattern(MONITOR_CACHE_PATTERN)
    return result


@router.post("/{file_number}/reconcile", response_model=ReconcileOut)
async def reconcile(
    file_number: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(require_admin),
) -> ReconcileOut:
    async def _reconcile_once() -> ReconcileOut:
        async with repeatable_read_transaction(session):
            outcome = await reconcile_program(session, file_number)
            if outcome is None:
                raise DossierNotFound(file_number)
            await log_audit(
                session,
                ctx.user_id,
                "shipping_program",
                file_number,
                "RECONCILE",
                details={
                    "previous": outcome.previous,
                    "reconciled": outcome.reconciled,
                    "drift": outcome.drift,
                },
                remote_addr=_remote_addr(request),
            )
            return ReconcileOut(
                file_number=outcome.file_number,
                previous=outcome.previous,
                reconciled=outcome.reconciled,
                drift=outcome.drift,
            )

    try:
        result = await with_db_retry(session, _reconcile_once)
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    await clear_cache_pattern(MONITOR_CACHE_PATTERN)
    return result


@router.post("/{file_number}/complete", response_model=ShippingProgramOut)
async def complete_program(
    file_number: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(require_admin),
) -> ShippingProgramOut:
    """Close a dossier. It stays queryable; it only leaves the active lists."""

    async def _complete_once() -> ShippingProgramOut:
        async with repeatable_read_transaction(session):
            now = plant_now()
            result = await session.execute(
                update(ShippingProgram)
                .where(ShippingProgram.file_number == file_number)
                .where(ShippingProgram.status != ProgramStatus.COMPLETED.value)
                .values(status=ProgramStatus.COMPLETED.value, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            program = await session.scalar(
                select(ShippingProgram)
                .where(ShippingProgram.file_number == file_number)
                .execution_options(populate_existing=True)
            )
            if program is None:
                raise DossierNotFound(file_number)
            if result.rowcount:
                logger.bind(file_number=file_number, user_id=ctx.user_id).info("dossier_completed")
                await log_audit(
                    session,
                    ctx.user_id,
                    "shipping_program",
                    file_number,
                    "COMPLETE",
                    details={"remaining_count": program.planned_count},
                    remote_addr=_remote_addr(request),
                )
            return ShippingProgramOut.model_validate(program)

    try:
        result = await with_db_retry(session, _complete_once)
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    await clear_cache_pattern(MONITOR_CACHE_PATTERN)
    return result
