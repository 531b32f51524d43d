from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
import enum

from researchcell.core.database import Base
from researchcell.core.types import GUID, generate_uuid, utcnow


class UserRole(str, enum.Enum):
    """User roles"""
    STUDENT = "STUDENT"
    FACULTY = "FACULTY"
    ADMIN = "ADMIN"


REVIEWER_ROLES = (UserRole.FACULTY, UserRole.ADMIN)


class User(Base):
    """
    Portal user.

    `role` is the only place a user's role is stored; it is written only by
    UserDirectory.change_role.
    """
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
