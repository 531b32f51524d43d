from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from researchcell.models.user import UserRole


class UserRef(BaseModel):
    """Compact user reference embedded in submissions"""
    id: str
    name: Optional[str] = None
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSearchResponse(BaseModel):
    users: List[UserRef]
    total: int


class RoleChangeRequest(BaseModel):
    role: UserRole


class RoleChangeResponse(BaseModel):
    message: str
    user: UserResponse
