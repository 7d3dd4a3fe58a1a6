"""Request-scoped caller context used for platform partitioning."""

from __future__ import annotations

from dataclasses import dataclass

from protrack.core.errors import PlatformAccessDenied
from protrack.models.enums import PlatformAssignment, Role


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Who is asking: built once per request and passed explicitly to services."""

    user_id: str
    role: str
    platform_assignment: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def platform_filter(self) -> str | None:
        """Platform that reads must be restricted to, or ``None`` for no restriction."""

        if self.is_admin:
            return None
        if not self.platform_assignment or self.platform_assignment == PlatformAssignment.BOTH.value:
            return None
        return self.platform_assignment

    def can_access(self, platform: str | None) -> bool:
        scope = self.platform_filter
        return scope is None or platform == scope

    def require_platform(self, platform: str) -> None:
        if not self.can_access(platform):
            raise PlatformAccessDenied(platform)
