"""Pydantic schemas for production rollups and the operator HUD."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class RollupOut(BaseModel):
    period: str
    platform: str
    category: str
    morning_tonnage: float
    afternoon_tonnage: float
    night_tonnage: float
    total_tonnage: float
    total_trucks: int
    log_count: int
    operator_count: int


class RollupListOut(BaseModel):
    granularity: str  # "daily" | "monthly"
    items: List[RollupOut]


class ShiftOutputOut(BaseModel):
    user_id: str
    production_date: date
    shift: str
    platform: Optional[str] = None
    trucks: int
    tonnage: float
    target_trucks: int
    progress_percent: int
    window_start: datetime
    window_end: datetime
