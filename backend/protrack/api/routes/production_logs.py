"""Production log related API endpoints."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.audit import log_audit
from protrack.core.clock import plant_now
from protrack.core.config import settings
from protrack.core.db import get_session, repeatable_read_transaction
from protrack.core.db_errors import raise_on_lock_conflict
from protrack.core.db_retry import with_db_retry
from protrack.core.deps import get_request_context
from protrack.core.errors import PermissionDenied, ProductionLogNotFound
from protrack.core.events import publish_log_event
from protrack.core.idempotency import (
    IdempotencyClaimState,
    claim_idempotency_key,
    complete_idempotency_key,
    fingerprint_payload,
    require_idempotency_key,
)
from protrack.core.optimistic_lock import _ensure_expected_timestamp
from protrack.core.rate_limit import limiter
from protrack.models.enums import Category, Platform
from protrack.models.production_log import ProductionLog
from protrack.schemas.production_log import (
    LedgerOut,
    ProductionLogListOut,
    ProductionLogOut,
    ProductionLogPayload,
    ProductionLogUpdatePayload,
    ProductionLogWriteOut,
)
from protrack.services.access import RequestContext
from protrack.services.business_rules import (
    compute_tonnage,
    normalise_submission,
    validate_submission,
)
from protrack.services.industrial_day import current_window, day_window
from protrack.services.ledger import apply_log_insert, apply_log_update

router = APIRouter(prefix="/production-logs", tags=["production-logs"])

DEFAULT_LIST_LIMIT = 200


def _remote_addr(request: Request) -> str | None:
    return request.client.host if request.client else None


def _prepare(payload: ProductionLogPayload) -> dict[str, Any]:
    """Normalise and validate a submission; returns the column values to store."""

    raw = payload.model_dump(exclude={"expected_updated_at"})
    data = {key: (value.value if isinstance(value, Enum) else value) for key, value in raw.items()}
    data = normalise_submission(data)
    validate_submission(data)
    data["weight_per_unit"] = Decimal(str(data["weight_per_unit"]))
    data["total_tonnage"] = compute_tonnage(
        data["truck_count"], data["units_per_truck"], data["weight_per_unit"]
    )
    return data


def _write_out(log: ProductionLog, ledger: LedgerOut, *, replayed: bool = False) -> ProductionLogWriteOut:
    return ProductionLogWriteOut(
        log=ProductionLogOut.model_validate(log), ledger=ledger, replayed=replayed
    )


@router.post("", response_model=ProductionLogWriteOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.LOG_SUBMIT_RATE)
async def create_production_log(
    payload: ProductionLogPayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ProductionLogWriteOut:
    idempotency_key = require_idempotency_key(request)
    ctx.require_platform(payload.platform.value)
    values = _prepare(payload)
    fingerprint = fingerprint_payload(values)

    async def _create_once() -> ProductionLogWriteOut:
        async with repeatable_read_transaction(session):
            claim = await claim_idempotency_key(
                session,
                idempotency_key=idempotency_key,
                resource="production_log",
                fingerprint=fingerprint,
            )
            if (
                claim.state == IdempotencyClaimState.REPLAY
                and claim.record
                and claim.record.resource_id
            ):
                existing = await session.get(ProductionLog, claim.record.resource_id)
                if existing:
                    # The original request already adjusted the ledger.
                    return _write_out(
                        existing,
                        LedgerOut(applied=False, file_number=existing.file_number),
                        replayed=True,
                    )
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Original request completed but production log was not found.",
                )
            if claim.state == IdempotencyClaimState.IN_PROGRESS:
                retry_after = str(claim.retry_after or 1)
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Another request with this Idempotency-Key is in progress. Please retry shortly.",
                    headers={"Retry-After": retry_after},
                )

            log = ProductionLog(**values, user_id=ctx.user_id)
            session.add(log)
            await session.flush()

            outcome = await apply_log_insert(session, log)

            await log_audit(
                session,
                ctx.user_id,
                "production_log",
                log.id,
                "CREATE",
                details={
                    "file_number": log.file_number,
                    "truck_count": log.truck_count,
                    "ledger_applied": outcome.applied,
                    "ledger_warning": outcome.warning,
                },
                remote_addr=_remote_addr(request),
            )
            await complete_idempotency_key(
                session, idempotency_key=idempotency_key, resource_id=log.id
            )
            return _write_out(log, LedgerOut.model_validate(outcome))

    try:
        response = await with_db_retry(session, _create_once)
    except OperationalError as exc:
        raise_on_lock_conflict(exc)

    if not response.replayed:
        await publish_log_event(
            "production_log.created",
            log_id=response.log.id,
            file_number=response.log.file_number,
            platform=response.log.platform,
        )
    return response


@router.put("/{log_id}", response_model=ProductionLogWriteOut)
async def update_production_log(
    log_id: str,
    payload: ProductionLogUpdatePayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ProductionLogWriteOut:
    ctx.require_platform(payload.platform.value)
    values = _prepare(payload)

    async def _update_once() -> ProductionLogWriteOut:
        async with repeatable_read_transaction(session):
            log = await session.scalar(
                select(ProductionLog)
                .where(ProductionLog.id == log_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
            )
            if not log:
                raise ProductionLogNotFound(log_id)
            if not ctx.is_admin and log.user_id != ctx.user_id:
                raise PermissionDenied("Operators can only edit their own production logs.")
            ctx.require_platform(log.platform)

            _ensure_expected_timestamp(log.updated_at, payload.expected_updated_at)

            old_file_number = log.file_number
            old_truck_count = log.truck_count
            for field, value in values.items():
                setattr(log, field, value)
            log.updated_by = ctx.user_id
            log.updated_at = plant_now()
            await session.flush()

            outcome = await apply_log_update(
                session,
                old_file_number=old_file_number,
                old_truck_count=old_truck_count,
                new_file_number=log.file_number,
                new_truck_count=log.truck_count,
            )

            await log_audit(
                session,
                ctx.user_id,
                "production_log",
                log.id,
                "UPDATE",
                details={
                    "old_file_number": old_file_number,
                    "old_truck_count": old_truck_count,
                    "file_number": log.file_number,
                    "truck_count": log.truck_count,
                    "ledger_delta": outcome.delta,
                    "ledger_warning": outcome.warning,
                },
                remote_addr=_remote_addr(request),
            )
            return _write_out(log, LedgerOut.model_validate(outcome))

    try:
        response = await with_db_retry(session, _update_once)
    except OperationalError as exc:
        raise_on_lock_conflict(exc)

    await publish_log_event(
        "production_log.updated",
        log_id=response.log.id,
        file_number=response.log.file_number,
        platform=response.log.platform,
    )
    return response


@router.get("", response_model=ProductionLogListOut)
async def list_production_logs(
    day: date | None = Query(default=None, description="Industrial day; defaults to the current one."),
    platform: Platform | None = None,
    category: Category | None = None,
    file_number: str | None = None,
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ProductionLogListOut:
    start, end = day_window(day) if day else current_window()
    stmt = select(ProductionLog).where(
        ProductionLog.created_at >= start, ProductionLog.created_at < end
    )
    if ctx.platform_filter is not None:
        stmt = stmt.where(ProductionLog.platform == ctx.platform_filter)
    if platform is not None:
        stmt = stmt.where(ProductionLog.platform == platform.value)
    if category is not None:
        stmt = stmt.where(ProductionLog.category == category.value)
    if file_number:
        stmt = stmt.where(ProductionLog.file_number == file_number.strip())
    stmt = stmt.order_by(ProductionLog.created_at.desc()).limit(limit)

    logs = list((await session.execute(stmt)).scalars().all())
    return ProductionLogListOut(
        items=[ProductionLogOut.model_validate(log) for log in logs],
        total_trucks=sum(log.truck_count for log in logs),
        total_tonnage=sum((Decimal(log.total_tonnage) for log in logs), Decimal("0")),
    )
