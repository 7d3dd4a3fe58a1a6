"""Audit logging utilities."""

from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.models.audit_log import AuditLog


async def log_audit(
    session: AsyncSession,
    user_id: str,
    entity: str,
    entity_id: Optional[str],
    action: str,
    details: Optional[dict[str, Any]] = None,
    remote_addr: Optional[str] = None,
) -> None:
    """Record an audit row in the caller's transaction.

    The row commits or rolls back together with the change it describes, so
    a retried write leaves exactly one audit entry.
    """

    await session.execute(
        insert(AuditLog).values(
            user_id=user_id,
            entity=entity,
            entity_id=entity_id,
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
            remote_addr=remote_addr,
        )
    )
