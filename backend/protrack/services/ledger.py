"""Remaining-count ledger kept on ``ShippingProgram.planned_count``.

Every mutation is a single server-side arithmetic ``UPDATE`` scoped by
``file_number``; the current value is never read into Python and written
back. The ledger is a cache of ``contract_count - sum(truck_count)``: when it
cannot be adjusted the triggering log is still kept and the caller gets a
warning instead of an error. ``reconcile_program`` re-derives it from the
logs on demand.

Callers run these functions inside the transaction that writes the log, so
a retried transaction (see ``with_db_retry``) never leaves a decrement
behind from a failed attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.db_retry import is_retriable
from protrack.core.errors import LedgerUpdateFailed
from protrack.models.enums import ProgramStatus
from protrack.models.production_log import ProductionLog
from protrack.models.shipping_program import ShippingProgram
from protrack.services.industrial_day import plant_now


@dataclass(frozen=True, slots=True)
class LedgerOutcome:
    applied: bool
    file_number: str | None = None
    delta: int = 0
    remaining_count: int | None = None
    warning: str | None = None

    @classmethod
    def skipped(cls) -> "LedgerOutcome":
        return cls(applied=False)


@dataclass(frozen=True, slots=True)
class Reconciliation:
    file_number: str
    previous: int
    reconciled: int

    @property
    def drift(self) -> int:
        return self.reconciled - self.previous


def _clean(file_number: str | None) -> str | None:
    if file_number is None:
        return None
    return file_number.strip() or None


async def _adjust(
    session: AsyncSession, file_number: str, delta: int, *, now: datetime
) -> int:
    """``planned_count += delta`` for one dossier; returns the new value.

    Raises :class:`LedgerUpdateFailed` when no dossier matches. Retriable
    database errors propagate so the surrounding retry loop can replay the
    whole transaction.
    """

    try:
        result = await session.execute(
            update(ShippingProgram)
            .where(ShippingProgram.file_number == file_number)
            .values(
                planned_count=ShippingProgram.planned_count + delta,
                last_activity_at=now,
            )
            .execution_options(synchronize_session=False)
        )
    except DBAPIError as exc:
        if is_retriable(exc):
            raise
        raise LedgerUpdateFailed(file_number, f"database error: {exc.orig}") from exc
    if result.rowcount == 0:
        raise LedgerUpdateFailed(file_number, "dossier not found")

    # Redundant first submissions are harmless: only a PENDING row matches.
    await session.execute(
        update(ShippingProgram)
        .where(ShippingProgram.file_number == file_number)
        .where(ShippingProgram.status == ProgramStatus.PENDING.value)
        .values(status=ProgramStatus.IN_PROGRESS.value)
        .execution_options(synchronize_session=False)
    )
    remaining = await session.scalar(
        select(ShippingProgram.planned_count).where(ShippingProgram.file_number == file_number)
    )
    return int(remaining) if remaining is not None else 0


async def _apply(session: AsyncSession, file_number: str, delta: int, event: str) -> LedgerOutcome:
    try:
        remaining = await _adjust(session, file_number, delta, now=plant_now())
    except LedgerUpdateFailed as exc:
        logger.bind(file_number=file_number, delta=delta, reason=exc.reason).warning(
            "ledger_update_failed"
        )
        return LedgerOutcome(
            applied=False, file_number=file_number, delta=delta, warning=exc.message
        )
    logger.bind(file_number=file_number, delta=delta, remaining=remaining).info(event)
    return LedgerOutcome(
        applied=True, file_number=file_number, delta=delta, remaining_count=remaining
    )


async def apply_log_insert(session: AsyncSession, log: ProductionLog) -> LedgerOutcome:
    """Decrement the dossier ledger by the trucks of a newly accepted log."""

    file_number = _clean(log.file_number)
    if file_number is None:
        return LedgerOutcome.skipped()
    return await _apply(session, file_number, -log.truck_count, "ledger_decrement_applied")


async def apply_log_update(
    session: AsyncSession,
    *,
    old_file_number: str | None,
    old_truck_count: int,
    new_file_number: str | None,
    new_truck_count: int,
) -> LedgerOutcome:
    """Adjust the ledger for an edited log by the delta only.

    Re-running the same edit sees old == new and changes nothing. When the
    edit moves the log to another dossier, the old dossier gets its trucks
    back and the new one is decremented.
    """

    old_fn = _clean(old_file_number)
    new_fn = _clean(new_file_number)

    if old_fn == new_fn:
        if new_fn is None:
            return LedgerOutcome.skipped()
        delta = old_truck_count - new_truck_count
        if delta == 0:
            return LedgerOutcome(applied=False, file_number=new_fn)
        return await _apply(session, new_fn, delta, "ledger_delta_applied")

    restored: LedgerOutcome | None = None
    if old_fn is not None:
        restored = await _apply(session, old_fn, old_truck_count, "ledger_delta_applied")
        if new_fn is None:
            return restored
    if new_fn is None:
        return LedgerOutcome.skipped()
    moved = await _apply(session, new_fn, -new_truck_count, "ledger_delta_applied")
    if restored is None or restored.warning is None:
        return moved
    # The response reports the new dossier; a failed restore must still show up.
    warnings = [w for w in (restored.warning, moved.warning) if w]
    return replace(moved, warning="; ".join(warnings))


async def reconcile_program(session: AsyncSession, file_number: str) -> Reconciliation | None:
    """Re-derive ``planned_count`` from the contract count and the log sum.

    Returns ``None`` when the dossier does not exist.
    """

    previous = await session.scalar(
        select(ShippingProgram.planned_count).where(ShippingProgram.file_number == file_number)
    )
    if previous is None:
        return None

    loaded = (
        select(func.coalesce(func.sum(ProductionLog.truck_count), 0))
        .where(ProductionLog.file_number == ShippingProgram.file_number)
        .scalar_subquery()
    )
    await session.execute(
        update(ShippingProgram)
        .where(ShippingProgram.file_number == file_number)
        .values(planned_count=ShippingProgram.contract_count - loaded)
        .execution_options(synchronize_session=False)
    )
    reconciled = await session.scalar(
        select(ShippingProgram.planned_count).where(ShippingProgram.file_number == file_number)
    )
    outcome = Reconciliation(file_number, int(previous), int(reconciled))
    log = logger.bind(
        file_number=file_number,
        previous=outcome.previous,
        reconciled=outcome.reconciled,
        drift=outcome.drift,
    )
    if outcome.drift:
        log.warning("ledger_reconciled")
    else:
        log.info("ledger_reconciled")
    return outcome


async def reconcile_all(session: AsyncSession) -> list[Reconciliation]:
    file_numbers = (
        await session.execute(select(ShippingProgram.file_number).order_by(ShippingProgram.file_number))
    ).scalars().all()
    results: list[Reconciliation] = []
    for file_number in file_numbers:
        outcome = await reconcile_program(session, file_number)
        if outcome is not None:
            results.append(outcome)
    return results
