"""Pydantic schemas for shipping programs (dossiers)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from protrack.models.enums import Platform


class ShippingProgramCreate(BaseModel):
    file_number: str = Field(min_length=1, max_length=64)
    platform_section: Platform
    planned_count: int = Field(ge=0)
    planned_quantity: Decimal = Field(ge=0)
    destination: Optional[str] = None
    shipping_line: Optional[str] = None
    sap_order_code: Optional[str] = None
    start_date_raw: Optional[str] = None
    deadline_raw: Optional[str] = None
    special_instructions: Optional[str] = None
    priority_flag: bool = False

    @field_validator("file_number")
    @classmethod
    def _strip_file_number(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("file_number must not be blank")
        return value


class ShippingProgramOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_number: str
    sap_order_code: Optional[str] = None
    destination: Optional[str] = None
    shipping_line: Optional[str] = None
    platform_section: Optional[str] = None
    contract_count: int
    planned_count: int
    planned_quantity: Decimal
    start_date_raw: Optional[str] = None
    deadline_raw: Optional[str] = None
    special_instructions: Optional[str] = None
    status: str
    priority_flag: bool = False
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class DossierLookupOut(BaseModel):
    items: List[ShippingProgramOut]


class StockProjectionOut(BaseModel):
    file_number: str
    platform_section: Optional[str] = None
    stock: int
    pending: int
    projected: int
    low_stock: bool
    overbooking: bool
    snapshot_taken_at: datetime = Field(
        description="When the ledger was read. Later submissions by others are not reflected."
    )


class ReconcileOut(BaseModel):
    file_number: str
    previous: int
    reconciled: int
    drift: int


class DayActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_number: str
    platform_section: Optional[str] = None
    trucks_today: int
    trucks_total: int
    remaining_count: int
    status: str
