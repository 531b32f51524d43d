"""
Idempotency Models

Stores the outcome of mutating requests sent with an `Idempotency-Key`
header so a retried request returns the first response instead of
applying twice.
"""
from sqlalchemy import Column, String, DateTime, Integer, JSON, UniqueConstraint

from researchcell.core.database import Base
from researchcell.core.types import GUID, generate_uuid, utcnow


class IdempotencyKey(Base):
    """
    Cached response of an idempotent request.

    When a request arrives with a key the table is checked:
    - key exists, same request hash: return the cached response
    - key exists, different hash: reject, the key was reused for another payload
    - key missing or expired: proceed and store the response
    """
    __tablename__ = "idempotency_keys"
    __table_args__ = (
        UniqueConstraint("key", "actor_id", "endpoint", name="uq_idempotency_key"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Client supplied key, scoped per actor and endpoint
    key = Column(String(255), nullable=False, index=True)
    actor_id = Column(GUID, nullable=False, index=True)
    endpoint = Column(String(255), nullable=False)

    # sha256 of the canonical request payload
    request_hash = Column(String(64), nullable=False)

    # Response data (cached for duplicate requests)
    status_code = Column(Integer, nullable=False)
    response_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<IdempotencyKey(key='{self.key}', endpoint='{self.endpoint}')>"
