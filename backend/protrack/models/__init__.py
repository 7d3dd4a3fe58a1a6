"""ORM model exports for convenient imports elsewhere in the app."""

from protrack.models.audit_log import AuditLog
from protrack.models.base import Base
from protrack.models.idempotency_key import IdempotencyKey
from protrack.models.production_log import ProductionLog
from protrack.models.profile import Profile
from protrack.models.shift_target import ShiftTarget
from protrack.models.shipping_program import ShippingProgram

__all__ = [
    "AuditLog",
    "Base",
    "IdempotencyKey",
    "ProductionLog",
    "Profile",
    "ShiftTarget",
    "ShippingProgram",
]
