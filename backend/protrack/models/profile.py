from datetime import datetime
from typing import Optional

from sqlalchemy import CHAR, CheckConstraint, DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from protrack.core.clock import plant_now
from protrack.models.base import Base
from protrack.models.enums import PlatformAssignment, Role, sql_in


class Profile(Base):
    """Operator profile, keyed by the identity provider's user id."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(f"role IN {sql_in(Role)}", name="ck_profiles_role"),
        CheckConstraint(
            f"platform_assignment IN {sql_in(PlatformAssignment)}",
            name="ck_profiles_platform_assignment",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    username: Mapped[Optional[str]] = mapped_column(String(150), unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'operator'")
    )
    platform_assignment: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'BIG_BAG'")
    )
    active_flag: Mapped[str] = mapped_column(
        CHAR(1), nullable=False, server_default=text("'Y'")
    )  # 'Y'/'N'
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=plant_now
    )
