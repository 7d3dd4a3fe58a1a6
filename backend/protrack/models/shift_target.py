from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from protrack.core.clock import plant_now
from protrack.models.base import Base


class ShiftTarget(Base):
    """Truck target per platform and shift, shown on the operator HUD."""

    __tablename__ = "shift_targets"
    __table_args__ = (UniqueConstraint("platform", "shift", name="uq_shift_targets_platform_shift"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)
    shift: Mapped[str] = mapped_column(String(16), nullable=False)
    target_trucks: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=plant_now, onupdate=plant_now
    )
