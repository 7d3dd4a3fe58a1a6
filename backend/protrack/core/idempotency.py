"""Helpers for enforcing request idempotency on production log submission.

A retried submission carrying the same ``Idempotency-Key`` must never create
a second log row, and therefore never decrement a dossier's ledger twice.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Literal

from fastapi import HTTPException, Request, status
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.config import settings
from protrack.core.db_errors import raise_on_lock_conflict
from protrack.models.idempotency_key import IdempotencyKey

MAX_KEY_LENGTH = 128
ResourceName = Literal["production_log"]


class IdempotencyClaimState(str, Enum):
    NEW = "new"
    REPLAY = "replay"
    IN_PROGRESS = "in_progress"


@dataclass(slots=True)
class IdempotencyClaim:
    """Represents the result of attempting to claim an idempotency key."""

    state: IdempotencyClaimState
    record: IdempotencyKey | None = None
    retry_after: int | None = None


def _ttl() -> timedelta:
    return timedelta(minutes=settings.IDEMPOTENCY_TTL_MINUTES)


def _utcnow() -> datetime:
    return datetime.utcnow()


def require_idempotency_key(request: Request) -> str:
    """Extract and validate the Idempotency-Key header."""

    key = request.headers.get("Idempotency-Key", "").strip()
    if not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Idempotency-Key header is required for this operation.",
        )
    if len(key) > MAX_KEY_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Idempotency-Key must be {MAX_KEY_LENGTH} characters or fewer.",
        )
    return key


def fingerprint_payload(payload: dict[str, Any]) -> str:
    """Stable hash of a request body, used to detect key reuse with new content."""

    canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _ensure_same_payload(record: IdempotencyKey, fingerprint: str | None) -> None:
    if fingerprint and record.request_fingerprint and record.request_fingerprint != fingerprint:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Idempotency-Key was already used for a different submission.",
        )


async def claim_idempotency_key(
    session: AsyncSession,
    *,
    idempotency_key: str,
    resource: ResourceName,
    fingerprint: str | None = None,
) -> IdempotencyClaim:
    """Attempt to register the key for this resource.

    The first caller inserts the row (state=NEW). Subsequent callers see
    IN_PROGRESS (pending) or REPLAY (completed) states.
    """

    now = _utcnow()
    expires_at = now + _ttl()
    try:
        await session.execute(
            insert(IdempotencyKey).values(
                idempotency_key=idempotency_key,
                resource=resource,
                request_fingerprint=fingerprint,
                status="P",
                last_seen_at=now,
                pending_expires_at=expires_at,
            )
        )
        await session.flush()
        return IdempotencyClaim(state=IdempotencyClaimState.NEW)
    except IntegrityError:
        try:
            record = await session.scalar(
                select(IdempotencyKey)
                .where(IdempotencyKey.idempotency_key == idempotency_key)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
            )
        except OperationalError as exc:
            raise_on_lock_conflict(exc)
        if not record:
            raise
        _ensure_same_payload(record, fingerprint)
        if record.status == "C" and record.resource_id:
            record.last_seen_at = now
            await session.flush()
            return IdempotencyClaim(IdempotencyClaimState.REPLAY, record)
        if record.pending_expires_at is None or record.pending_expires_at <= now:
            # The previous holder died mid-request; take the claim over.
            record.pending_expires_at = expires_at
            record.last_seen_at = now
            await session.flush()
            return IdempotencyClaim(IdempotencyClaimState.NEW, record)
        retry_after = max(1, int((record.pending_expires_at - now).total_seconds()))
        return IdempotencyClaim(
            IdempotencyClaimState.IN_PROGRESS,
            record,
            retry_after=retry_after,
        )


async def complete_idempotency_key(
    session: AsyncSession,
    *,
    idempotency_key: str,
    resource_id: str,
) -> None:
    """Mark the request as completed so subsequent replays can short-circuit."""

    await session.execute(
        update(IdempotencyKey)
        .where(IdempotencyKey.idempotency_key == idempotency_key)
        .values(
            status="C",
            resource_id=resource_id,
            last_seen_at=_utcnow(),
            pending_expires_at=None,
        )
    )
