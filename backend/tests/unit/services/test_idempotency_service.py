"""
Unit Tests for IdempotencyService
"""
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from researchcell.core.exceptions import ConflictError, ValidationError
from researchcell.core.types import utcnow
from researchcell.models.idempotency import IdempotencyKey
from researchcell.services.idempotency_service import IdempotencyService, request_fingerprint

ENDPOINT = "POST /admin/paper/bulk-action"
PAYLOAD = {"ids": ["a", "b"], "action": "publish", "comments": None}
RESPONSE = {"message": "2 paper(s) published", "count": 2, "ids": ["a", "b"]}


class TestFingerprint:

    def test_key_order_does_not_matter(self):
        assert request_fingerprint({"a": 1, "b": 2}) == request_fingerprint({"b": 2, "a": 1})

    def test_different_payloads(self):
        assert request_fingerprint({"ids": ["a"]}) != request_fingerprint({"ids": ["b"]})


class TestIdempotencyService:

    @pytest.mark.asyncio
    async def test_unseen_key(self, db_session, admin):
        assert await IdempotencyService(db_session).lookup("key-1", admin.user_id, ENDPOINT, PAYLOAD) is None

    @pytest.mark.asyncio
    async def test_replay_returns_stored_response(self, db_session, admin):
        service = IdempotencyService(db_session)
        await service.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)

        assert await service.lookup("key-1", admin.user_id, ENDPOINT, dict(PAYLOAD)) == (200, RESPONSE)

    @pytest.mark.asyncio
    async def test_same_key_different_payload(self, db_session, admin):
        service = IdempotencyService(db_session)
        await service.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)

        with pytest.raises(ConflictError):
            await service.lookup("key-1", admin.user_id, ENDPOINT, {**PAYLOAD, "action": "reject"})

    @pytest.mark.asyncio
    async def test_keys_are_scoped_per_actor_and_endpoint(self, db_session, admin, faculty):
        service = IdempotencyService(db_session)
        await service.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)

        assert await service.lookup("key-1", faculty.user_id, ENDPOINT, PAYLOAD) is None
        assert await service.lookup("key-1", admin.user_id, "POST /admin/project/bulk-action", PAYLOAD) is None

    @pytest.mark.asyncio
    async def test_expired_key_is_forgotten(self, db_session, admin):
        service = IdempotencyService(db_session)
        record = await service.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
        record.expires_at = utcnow() - timedelta(minutes=1)
        await db_session.commit()

        assert await service.lookup("key-1", admin.user_id, ENDPOINT, PAYLOAD) is None
        result = await db_session.execute(select(IdempotencyKey))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_purge_expired(self, db_session, admin):
        service = IdempotencyService(db_session)
        old = await service.store("old", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
        await service.store("new", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
        old.expires_at = utcnow() - timedelta(hours=1)
        await db_session.commit()

        assert await service.purge_expired() == 1

    @pytest.mark.asyncio
    async def test_key_length(self, db_session, admin):
        with pytest.raises(ValidationError):
            await IdempotencyService(db_session).lookup("k" * 256, admin.user_id, ENDPOINT, PAYLOAD)

    @pytest.mark.asyncio
    async def test_key_rolls_back_with_the_work(self, db_session, admin):
        service = IdempotencyService(db_session)
        await service.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
        await db_session.rollback()

        assert await service.lookup("key-1", admin.user_id, ENDPOINT, PAYLOAD) is None


class TestKeyRace:
    """Two requests that both saw the key as unseen"""

    @pytest.mark.asyncio
    async def test_loser_replays_winner(self, session_factory, admin):
        async with session_factory() as first, session_factory() as second:
            loser = IdempotencyService(first)
            assert await loser.lookup("key-1", admin.user_id, ENDPOINT, PAYLOAD) is None

            await IdempotencyService(second).store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
            await second.commit()

            with pytest.raises(IntegrityError):
                await loser.store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
            await first.rollback()

            assert await loser.replay_after_race("key-1", admin.user_id, ENDPOINT, PAYLOAD) == (200, RESPONSE)

    @pytest.mark.asyncio
    async def test_loser_with_other_payload_conflicts(self, session_factory, admin):
        async with session_factory() as session:
            await IdempotencyService(session).store("key-1", admin.user_id, ENDPOINT, PAYLOAD, 200, RESPONSE)
            await session.commit()

            with pytest.raises(ConflictError):
                await IdempotencyService(session).replay_after_race(
                    "key-1", admin.user_id, ENDPOINT, {**PAYLOAD, "action": "reject"}
                )

    @pytest.mark.asyncio
    async def test_missing_winner_is_conflict(self, db_session, admin):
        with pytest.raises(ConflictError) as exc_info:
            await IdempotencyService(db_session).replay_after_race("key-1", admin.user_id, ENDPOINT, PAYLOAD)
        assert "already being processed" in exc_info.value.message
