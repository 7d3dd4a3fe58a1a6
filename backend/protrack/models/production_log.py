"""Production log ORM model (one row per loading event)."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from protrack.core.clock import plant_now
from protrack.models.base import Base
from protrack.models.enums import Category, Shift, sql_in
from protrack.models.shipping_program import FileNumberType


def _new_id() -> str:
    return str(uuid.uuid4())


class ProductionLog(Base):
    """Represents the append-only ``production_logs`` table.

    ``total_tonnage`` is computed when the log is submitted (or explicitly
    edited) and stored; reports never recompute it. ``file_number`` is a loose
    correlation to :class:`ShippingProgram`, not a foreign key.
    """

    __tablename__ = "production_logs"
    __table_args__ = (
        CheckConstraint("truck_count > 0", name="ck_production_logs_truck_count_positive"),
        CheckConstraint(f"category IN {sql_in(Category)}", name="ck_production_logs_category"),
        CheckConstraint(f"shift IN {sql_in(Shift)}", name="ck_production_logs_shift"),
        Index("idx_production_logs_created_at", "created_at"),
        Index("idx_production_logs_file_number", "file_number"),
        Index("idx_production_logs_user_date", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=plant_now
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(64))

    category: Mapped[str] = mapped_column(String(16), nullable=False)
    shift: Mapped[str] = mapped_column(String(16), nullable=False)
    article_code: Mapped[str] = mapped_column(String(16), nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)

    truck_count: Mapped[int] = mapped_column(Integer, nullable=False)
    units_per_truck: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_per_unit: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    total_tonnage: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    reste_count: Mapped[Optional[int]] = mapped_column(Integer)
    pallet_type: Mapped[Optional[str]] = mapped_column(String(32))

    bl_number: Mapped[Optional[str]] = mapped_column(String(64))
    tc_number: Mapped[Optional[str]] = mapped_column(String(64))
    seal_number: Mapped[Optional[str]] = mapped_column(String(64))

    file_number: Mapped[Optional[str]] = mapped_column(FileNumberType)
    booking_ref: Mapped[Optional[str]] = mapped_column(String(64))
    customer: Mapped[Optional[str]] = mapped_column(String(255))
    maritime_agent: Mapped[Optional[str]] = mapped_column(String(255))
    destination: Mapped[Optional[str]] = mapped_column(String(255))
    sap_code: Mapped[Optional[str]] = mapped_column(String(64))

    truck_matricul: Mapped[Optional[str]] = mapped_column(String(32))
    comments: Mapped[Optional[str]] = mapped_column(Text)

    updated_by: Mapped[Optional[str]] = mapped_column(String(64))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
