"""Pydantic schemas for production log operations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from protrack.models.enums import Category, Platform, Shift


class ProductionLogPayload(BaseModel):
    category: Category
    shift: Shift
    platform: Platform
    article_code: str = Field(min_length=1, max_length=16)
    truck_count: int = Field(gt=0)
    units_per_truck: Optional[int] = None
    weight_per_unit: Optional[Decimal] = None
    reste_count: Optional[int] = Field(default=None, ge=0)
    pallet_type: Optional[str] = None

    file_number: Optional[str] = Field(default=None, max_length=64)
    bl_number: Optional[str] = Field(default=None, max_length=64)
    tc_number: Optional[str] = Field(default=None, max_length=64)
    seal_number: Optional[str] = Field(default=None, max_length=64)
    booking_ref: Optional[str] = None
    customer: Optional[str] = None
    maritime_agent: Optional[str] = None
    destination: Optional[str] = None
    sap_code: Optional[str] = None
    truck_matricul: Optional[str] = Field(default=None, max_length=32)
    comments: Optional[str] = None

    @field_validator("shift", mode="before")
    @classmethod
    def _upper_shift(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("article_code")
    @classmethod
    def _strip_article(cls, value: str) -> str:
        return value.strip()


class ProductionLogUpdatePayload(ProductionLogPayload):
    expected_updated_at: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the version being edited. Used for optimistic concurrency control.",
    )


class LedgerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    applied: bool
    file_number: Optional[str] = None
    delta: int = 0
    remaining_count: Optional[int] = None
    warning: Optional[str] = None


class ProductionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    user_id: Optional[str] = None
    category: str
    shift: str
    platform: str
    article_code: str
    truck_count: int
    units_per_truck: int
    weight_per_unit: Decimal
    total_tonnage: Decimal
    reste_count: Optional[int] = None
    pallet_type: Optional[str] = None
    file_number: Optional[str] = None
    bl_number: Optional[str] = None
    tc_number: Optional[str] = None
    seal_number: Optional[str] = None
    booking_ref: Optional[str] = None
    customer: Optional[str] = None
    maritime_agent: Optional[str] = None
    destination: Optional[str] = None
    sap_code: Optional[str] = None
    truck_matricul: Optional[str] = None
    comments: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ProductionLogWriteOut(BaseModel):
    log: ProductionLogOut
    ledger: LedgerOut
    replayed: bool = False


class ProductionLogListOut(BaseModel):
    items: List[ProductionLogOut]
    total_trucks: int
    total_tonnage: Decimal
