"""
Idempotency Service

Lets clients retry a mutating request with the same `Idempotency-Key`
without applying it twice:
- same key, same payload: the stored response is returned
- same key, different payload: ConflictError
- key expired (IDEMPOTENCY_KEY_TTL_HOURS): treated as unseen

The key row is written in the same transaction as the work it guards, so a
failed request leaves no key behind and two racing requests cannot both
commit: the loser hits the unique constraint and replays the winner.
"""

import hashlib
import json
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.config import settings
from researchcell.core.exceptions import ConflictError, ValidationError
from researchcell.core.logging_config import logger
from researchcell.core.types import utcnow
from researchcell.models.idempotency import IdempotencyKey

MAX_KEY_LENGTH = 255


def request_fingerprint(payload: Any) -> str:
    """sha256 of the canonical JSON form of a request payload"""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IdempotencyService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(
        self, key: str, actor_id: str, endpoint: str, payload: Any
    ) -> Optional[Tuple[int, Dict[str, Any]]]:
        """
        Return (status_code, response) of a completed request with this key,
        or None when the request should run.
        """
        if not key or len(key) > MAX_KEY_LENGTH:
            raise ValidationError("Idempotency-Key must be 1-255 characters", field="Idempotency-Key")

        result = await self.db.execute(
            select(IdempotencyKey).where(
                IdempotencyKey.key == key,
                IdempotencyKey.actor_id == actor_id,
                IdempotencyKey.endpoint == endpoint,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None

        if record.expires_at <= utcnow():
            await self.db.delete(record)
            await self.db.flush()
            return None

        if record.request_hash != request_fingerprint(payload):
            raise ConflictError(
                "Idempotency-Key was already used with a different request payload",
                details={"idempotency_key": key},
            )

        logger.info(
            f"[Idempotency] Replaying stored response for key {key}",
            extra={"event_type": "idempotent_replay", "endpoint": endpoint, "actor_id": actor_id},
        )
        return record.status_code, record.response_data

    async def store(
        self,
        key: str,
        actor_id: str,
        endpoint: str,
        payload: Any,
        status_code: int,
        response_data: Dict[str, Any],
    ) -> IdempotencyKey:
        """
        Add the key row to the caller's transaction and flush it.

        Raises:
            IntegrityError: another request committed the same key first
        """
        now = utcnow()
        record = IdempotencyKey(
            key=key,
            actor_id=actor_id,
            endpoint=endpoint,
            request_hash=request_fingerprint(payload),
            status_code=status_code,
            response_data=response_data,
            created_at=now,
            expires_at=now + timedelta(hours=settings.IDEMPOTENCY_KEY_TTL_HOURS),
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def replay_after_race(
        self, key: str, actor_id: str, endpoint: str, payload: Any
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Response of the request that won a race on `key`.

        Call after the losing transaction was rolled back. Raises ConflictError
        when the winner used a different payload or is no longer stored.
        """
        stored = await self.lookup(key, actor_id, endpoint, payload)
        if stored is None:
            raise ConflictError(
                "A request with this Idempotency-Key is already being processed",
                details={"idempotency_key": key},
            )
        return stored

    async def purge_expired(self) -> int:
        result = await self.db.execute(
            delete(IdempotencyKey).where(IdempotencyKey.expires_at <= utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0
