"""
User Directory
Read access to users plus the one write path for role changes
"""

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.exceptions import InvalidRoleError, UserNotFoundError, ValidationError
from researchcell.core.logging_config import logger
from researchcell.core.types import is_valid_uuid, normalize_uuid, utcnow
from researchcell.models.user import User, UserRole


class UserDirectory:
    """Service for user lookups"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, user_id: str) -> Optional[User]:
        if not is_valid_uuid(user_id):
            return None
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get(self, user_id: str) -> User:
        user = await self.find(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def find_many(self, user_ids: Sequence[str]) -> List[User]:
        """
        Resolve every id, preserving request order and collapsing duplicates.

        Raises:
            UserNotFoundError: for the first id that does not resolve
        """
        unique_ids = list(dict.fromkeys(normalize_uuid(uid) for uid in user_ids))
        for uid in unique_ids:
            if not is_valid_uuid(uid):
                raise UserNotFoundError(uid)
        if not unique_ids:
            return []

        result = await self.db.execute(select(User).where(User.id.in_(unique_ids)))
        by_id = {user.id: user for user in result.scalars().all()}
        missing = [uid for uid in unique_ids if uid not in by_id]
        if missing:
            raise UserNotFoundError(missing[0])
        return [by_id[uid] for uid in unique_ids]

    async def search(self, query: str, role: Optional[UserRole] = None, limit: int = 20) -> List[User]:
        """Case-insensitive match on name or email"""
        stmt = select(User).where(User.is_active.is_(True))
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if role is not None:
            stmt = stmt.where(User.role == role)
        result = await self.db.execute(stmt.order_by(User.name, User.email).limit(limit))
        return list(result.scalars().all())

    async def create(self, email: str, name: Optional[str] = None, role: UserRole = UserRole.STUDENT) -> User:
        """Register a user record for an identity issued elsewhere"""
        if await self.find_by_email(email) is not None:
            raise ValidationError(f"User with email '{email}' already exists", field="email")
        user = User(email=email.lower(), name=name, role=role)
        self.db.add(user)
        await self.db.flush()
        return user

    async def change_role(self, user_id: str, role: UserRole, actor_id: str) -> User:
        """The only place a user's role is written"""
        user = await self.get(user_id)
        previous = user.role
        if previous == role:
            return user

        user.role = role
        user.updated_at = utcnow()
        await self.db.flush()

        logger.info(
            f"Role of {user.email} changed {previous.value} -> {role.value} by {actor_id}",
            extra={
                "event_type": "role_change",
                "target_user_id": user.id,
                "from_role": previous.value,
                "to_role": role.value,
                "actor_id": actor_id,
            }
        )
        return user

    @staticmethod
    def require_roles(users: Iterable[User], roles: Sequence[UserRole]) -> None:
        """Raise InvalidRoleError for the first user outside `roles`"""
        for user in users:
            if user.role not in roles:
                raise InvalidRoleError(user.id, user.role.value, [r.value for r in roles])
