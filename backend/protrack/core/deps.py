from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.core.db import get_session
from protrack.core.errors import PermissionDenied
from protrack.core.logging import platform_ctx_var, user_id_ctx_var
from protrack.core.security import decode_access_token
from protrack.models.profile import Profile
from protrack.services.access import RequestContext


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Profile:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    user_id = decode_access_token(auth.split(" ", 1)[1])
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    user = (
        await session.execute(select(Profile).where(Profile.id == user_id))
    ).scalar_one_or_none()
    if not user or user.active_flag != "Y":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User inactive or not found",
        )
    request.state.user_id = user.id
    user_id_ctx_var.set(user.id)
    platform_ctx_var.set(user.platform_assignment)
    session.expunge(user)
    return user


async def get_request_context(user: Profile = Depends(get_current_user)) -> RequestContext:
    """Explicit caller context for lookup and partitioning; no ambient session state."""

    return RequestContext(
        user_id=user.id,
        role=user.role,
        platform_assignment=user.platform_assignment,
    )


async def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        raise PermissionDenied("Administrator role required.")
    return ctx
