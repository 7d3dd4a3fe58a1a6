from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    platform_assignment: Optional[str] = None
