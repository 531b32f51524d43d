from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.database import get_db
from researchcell.models.user import UserRole
from researchcell.modules.auth.dependencies import get_current_identity
from researchcell.modules.auth.role_resolver import Identity
from researchcell.schemas.user import UserRef, UserResponse, UserSearchResponse
from researchcell.services.user_directory import UserDirectory

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Profile of the signed-in user"""
    return await UserDirectory(db).get(identity.user_id)


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str = Query("", max_length=100),
    role: Optional[UserRole] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Find users by name or email, e.g. to pick co-authors or advisors"""
    users = await UserDirectory(db).search(q, role=role, limit=limit)
    return UserSearchResponse(
        users=[UserRef.model_validate(user) for user in users],
        total=len(users),
    )
