from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ExecutionRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_number: str
    destination: Optional[str] = None
    shipping_line: Optional[str] = None
    platform_section: Optional[str] = None
    planned_quantity: float
    actual_quantity: float
    actual_trucks: int
    remaining_count: int
    stored_status: str
    progress_percent: int
    status: str
    last_activity_at: Optional[datetime] = None


class ExecutionBoardOut(BaseModel):
    rows: List[ExecutionRowOut]
    total_planned: float
    total_executed: float
    global_progress: int
    status_counts: Dict[str, int]
