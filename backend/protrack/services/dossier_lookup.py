"""Dossier search and the pre-submission stock projection.

Two values exist for "what is left on this dossier" and they are kept apart:

* the ledger (``ShippingProgram.planned_count``), authoritative and adjusted
  server-side per accepted log;
* the projection returned here, computed from a snapshot read at lookup
  time. If another operator submits against the same dossier between this
  lookup and the operator's own submission, the projection is stale. The
  stale submission is still accepted; the next lookup shows the true
  remaining count and the execution monitor flags the dossier OVERBOOKED if
  the combined loads exceed the plan.

``snapshot_taken_at`` is returned with every projection so the UI can show
its age.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.config import settings
from protrack.core.errors import CrossPlatformAccessDenied, DossierNotFound
from protrack.models.shipping_program import ShippingProgram
from protrack.services.access import RequestContext
from protrack.services.industrial_day import plant_now

DEFAULT_LOOKUP_LIMIT = 20


@dataclass(frozen=True, slots=True)
class StockProjection:
    stock: int
    pending: int
    projected: int
    low_stock: bool
    overbooking: bool
    snapshot_taken_at: datetime


def project_remaining(
    stock: int,
    pending: int,
    *,
    threshold: int | None = None,
    taken_at: datetime | None = None,
) -> StockProjection:
    """``stock - pending``; negative results are reported, not rejected."""

    limit = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    projected = stock - pending
    return StockProjection(
        stock=stock,
        pending=pending,
        projected=projected,
        low_stock=0 < stock < limit,
        overbooking=projected < 0,
        snapshot_taken_at=taken_at or plant_now(),
    )


def _search_stmt(term: str):
    exact_first = case((func.lower(ShippingProgram.file_number) == term.lower(), 0), else_=1)
    return (
        select(ShippingProgram)
        .where(ShippingProgram.file_number.icontains(term, autoescape=True))
        .order_by(exact_first, ShippingProgram.file_number)
    )


async def lookup_dossiers(
    session: AsyncSession,
    term: str,
    ctx: RequestContext,
    *,
    limit: int = DEFAULT_LOOKUP_LIMIT,
) -> list[ShippingProgram]:
    """Case-insensitive partial match on ``file_number`` within the caller's platform.

    An empty filtered result with hits outside the caller's platform raises
    :class:`CrossPlatformAccessDenied` naming the owning platform, so the
    operator knows the dossier exists and who handles it.
    """

    term = (term or "").strip()
    if not term:
        raise DossierNotFound(term)

    stmt = _search_stmt(term)
    scope = ctx.platform_filter
    scoped = stmt.where(ShippingProgram.platform_section == scope) if scope is not None else stmt
    matches = list((await session.execute(scoped.limit(limit))).scalars().all())
    if matches:
        return matches

    if scope is not None:
        foreign = (await session.execute(stmt.limit(1))).scalars().first()
        if foreign is not None:
            owner = foreign.platform_section or "UNASSIGNED"
            logger.bind(
                user_id=ctx.user_id,
                search_term=term,
                caller_platform=scope,
                owning_platform=owner,
            ).warning("dossier_cross_platform_denied")
            raise CrossPlatformAccessDenied(term, owner)
    raise DossierNotFound(term)


async def get_dossier(session: AsyncSession, file_number: str, ctx: RequestContext) -> ShippingProgram:
    """Exact (case-sensitive) fetch honouring platform partitioning."""

    program = await session.scalar(
        select(ShippingProgram).where(ShippingProgram.file_number == file_number)
    )
    if program is None:
        raise DossierNotFound(file_number)
    if not ctx.can_access(program.platform_section):
        owner = program.platform_section or "UNASSIGNED"
        logger.bind(
            user_id=ctx.user_id, search_term=file_number, owning_platform=owner
        ).warning("dossier_cross_platform_denied")
        raise CrossPlatformAccessDenied(file_number, owner)
    return program


async def project_for_dossier(
    session: AsyncSession, file_number: str, pending: int, ctx: RequestContext
) -> tuple[ShippingProgram, StockProjection]:
    """Fresh ledger snapshot for one dossier plus the projection for ``pending`` trucks."""

    program = await get_dossier(session, file_number, ctx)
    taken_at = plant_now()
    return program, project_remaining(program.planned_count, pending, taken_at=taken_at)
