"""Shared helpers for database error handling."""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError

LOCK_NOWAIT_ERROR_CODES = {3572}


def extract_error_code(exc: DBAPIError) -> tuple[int | None, str | None]:
    """Return the driver error code and SQLSTATE carried by ``exc.orig``."""

    orig = getattr(exc, "orig", None)
    if not orig:
        return None, None
    code = None
    sqlstate = getattr(orig, "sqlstate", None)
    if getattr(orig, "args", None):
        try:
            code = int(orig.args[0])
        except (TypeError, ValueError):
            code = None
    return code, sqlstate


def is_lock_conflict(exc: DBAPIError) -> bool:
    code, _ = extract_error_code(exc)
    message = str(getattr(exc, "orig", exc)).lower()
    return (
        code in LOCK_NOWAIT_ERROR_CODES
        or "could not obtain lock" in message
        or "could not acquire" in message
    )


def raise_on_lock_conflict(exc: DBAPIError) -> None:
    """Translate lock-nowait conflicts into user-friendly HTTP errors."""

    if is_lock_conflict(exc):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Dossier is locked by another submission. Please retry shortly.",
        ) from exc
    raise exc
