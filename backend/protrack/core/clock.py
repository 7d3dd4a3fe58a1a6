"""Plant wall clock.

Every stored timestamp (``created_at``, ``updated_at``, ledger activity)
is naive plant-local time, whatever the host time zone is, so that the
industrial day windows computed from ``PLANT_TIMEZONE`` line up with the
rows they select.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from protrack.core.config import settings


def to_plant_time(moment: datetime) -> datetime:
    """Return ``moment`` as a naive plant wall-clock datetime."""

    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.PLANT_TIMEZONE)).replace(tzinfo=None)


def plant_now() -> datetime:
    return datetime.now(ZoneInfo(settings.PLANT_TIMEZONE)).replace(tzinfo=None)
