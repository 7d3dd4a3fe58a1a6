"""Idempotency key tracking table."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CHAR, DateTime, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from protrack.models.base import Base


class IdempotencyKey(Base):
    """One row per client submission key.

    ``resource_id`` points at the production log created under the key and
    ``request_fingerprint`` guards against a key being reused for a
    different payload.
    """

    __tablename__ = "idempotency_key"
    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_idempotency_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(128))
    request_fingerprint: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(
        CHAR(1), nullable=False, server_default=text("'P'"), comment="P=pending,C=complete"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime)
    pending_expires_at: Mapped[datetime | None] = mapped_column(DateTime)
