from fastapi import APIRouter, Depends

from protrack.core.deps import get_current_user
from protrack.models.profile import Profile
from protrack.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def me(user: Profile = Depends(get_current_user)):
    # returns the ORM profile; Pydantic v2 will read attributes due to from_attributes=True
    return user
