"""Shipping program (dossier) ORM model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text, text
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column

from protrack.core.clock import plant_now
from protrack.models.base import Base
from protrack.models.enums import Platform, ProgramStatus, sql_in

# Dossier numbers are matched case-sensitively by the ledger; MySQL's default
# collation would fold case, so the column is binary there.
FileNumberType = String(64).with_variant(
    mysql.VARCHAR(64, charset="utf8mb4", collation="utf8mb4_bin"), "mysql"
)


class ShippingProgram(Base):
    """One export plan, identified by its human-assigned ``file_number``.

    ``planned_count`` is the remaining-units ledger: it starts at
    ``contract_count`` and is decremented once per accepted production log.
    It may go negative, which signals overbooking.
    """

    __tablename__ = "shipping_program"
    __table_args__ = (
        CheckConstraint(f"status IN {sql_in(ProgramStatus)}", name="ck_shipping_program_status"),
        CheckConstraint(
            f"platform_section IS NULL OR platform_section IN {sql_in(Platform)}",
            name="ck_shipping_program_platform_section",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_number: Mapped[str] = mapped_column(FileNumberType, nullable=False, unique=True)
    sap_order_code: Mapped[Optional[str]] = mapped_column(String(64))
    destination: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_line: Mapped[Optional[str]] = mapped_column(String(255))
    platform_section: Mapped[Optional[str]] = mapped_column(String(16))
    contract_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    planned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    planned_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3), nullable=False, default=Decimal("0")
    )
    start_date_raw: Mapped[Optional[str]] = mapped_column(String(64))
    deadline_raw: Mapped[Optional[str]] = mapped_column(String(64))
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'PENDING'"), default=ProgramStatus.PENDING.value
    )
    priority_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=plant_now
    )
