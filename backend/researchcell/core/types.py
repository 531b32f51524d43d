"""Custom SQLAlchemy types and small helpers shared by the models"""
from datetime import datetime
import uuid

from sqlalchemy import TypeDecorator, String


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.utcnow()


class GUID(TypeDecorator):
    """Stores UUIDs as VARCHAR(36) on every backend (SQLite and PostgreSQL)"""
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        return str(value) if value is not None else value


def is_valid_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


def normalize_uuid(value: str) -> str:
    """Canonical lowercase form of a UUID string; invalid values pass through unchanged"""
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, TypeError):
        return str(value)
