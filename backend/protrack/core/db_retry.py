"""Retry wrapper for write transactions that lose a deadlock or lock wait."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.config import settings
from protrack.core.db_errors import extract_error_code

T = TypeVar("T")

DEADLOCK = 1213
LOCK_WAIT_TIMEOUT = 1205
LOCK_NOWAIT = 3572
MYSQL_RETRIABLE_ERROR_CODES = {LOCK_WAIT_TIMEOUT, DEADLOCK, LOCK_NOWAIT}
MYSQL_RETRIABLE_SQLSTATES = {"40001"}


def is_retriable(exc: DBAPIError) -> bool:
    """True for deadlocks and lock wait timeouts that a fresh attempt can clear.

    With ``DB_NOWAIT_LOCKS`` a NOWAIT conflict is reported to the caller as
    409 instead of being retried.
    """

    code, sqlstate = extract_error_code(exc)
    if code == LOCK_NOWAIT:
        return not settings.DB_NOWAIT_LOCKS
    if code in MYSQL_RETRIABLE_ERROR_CODES or sqlstate in MYSQL_RETRIABLE_SQLSTATES:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return "deadlock" in message or "lock wait timeout" in message


def _backoff(attempt: int, base_delay: float, jitter: float) -> float:
    return base_delay * (2 ** (attempt - 1)) + random.uniform(0, jitter)


async def with_db_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    jitter: float | None = None,
) -> T:
    """Run ``operation`` and replay it after retriable lock failures.

    ``operation`` must open its own transaction: every retry starts from a
    rolled back session, so a ledger decrement issued by a failed attempt
    never survives next to the one issued by the successful attempt.
    """

    attempts = max(1, attempts or settings.DB_RETRY_ATTEMPTS)
    base_delay = settings.DB_RETRY_BASE_DELAY if base_delay is None else base_delay
    jitter = settings.DB_RETRY_JITTER if jitter is None else jitter

    attempt = 1
    while True:
        try:
            return await operation()
        except DBAPIError as exc:
            if attempt >= attempts or not is_retriable(exc):
                raise
            await session.rollback()
            delay = _backoff(attempt, base_delay, jitter)
            logger.bind(
                attempt=attempt,
                max_attempts=attempts,
                sleep=round(delay, 4),
                error=str(exc.orig if exc.orig is not None else exc),
            ).warning("db_retry_lock_conflict")
            await asyncio.sleep(delay)
            attempt += 1
