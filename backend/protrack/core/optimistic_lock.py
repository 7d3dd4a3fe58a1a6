"""Helpers for optimistic concurrency control on production log edits."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status


def _ensure_expected_timestamp(
    current: Optional[datetime], expected: Optional[datetime]
) -> None:
    """Raise HTTP 409 if the persisted timestamp does not match the expected value.

    A log that was never edited has ``updated_at = None``; the client then
    sends no ``expected_updated_at`` either. Timestamps are compared without
    sub-second precision because MySQL DATETIME columns drop it.
    """

    if current is None and expected is None:
        return
    if current is not None and expected is not None:
        if current.replace(microsecond=0, tzinfo=None) == expected.replace(
            microsecond=0, tzinfo=None
        ):
            return
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Production log has been updated by someone else. Please reload and try again.",
    )
