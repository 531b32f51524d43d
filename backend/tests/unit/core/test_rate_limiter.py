"""
Unit Tests for Rate Limiting
Tests for: role tiers, limit provider, limiter enforcement over HTTP
"""
import contextvars

import pytest

from researchcell.core import rate_limiter
from researchcell.core.rate_limiter import (
    RATE_LIMITS,
    limiter,
    set_rate_limit_tier,
    tier_for_identity,
    tier_rate_limit,
)
from researchcell.models.user import UserRole
from researchcell.modules.auth.role_resolver import Identity


def _identity(role: UserRole) -> Identity:
    return Identity(user_id="3f1c2a9e-0000-4000-8000-000000000001", email="x@example.edu", role=role)


def _limit_for(identity) -> str:
    def run():
        set_rate_limit_tier(identity)
        return tier_rate_limit()
    return contextvars.copy_context().run(run)


class TestTiers:
    """Test tier resolution"""

    def test_anonymous_tier(self):
        assert tier_for_identity(None) == "anonymous"

    @pytest.mark.parametrize("role,tier", [
        (UserRole.STUDENT, "student"),
        (UserRole.FACULTY, "faculty"),
        (UserRole.ADMIN, "admin"),
    ])
    def test_role_tiers(self, role, tier):
        assert tier_for_identity(_identity(role)) == tier

    def test_provider_follows_recorded_tier(self):
        assert _limit_for(None) == RATE_LIMITS["anonymous"]
        assert _limit_for(_identity(UserRole.FACULTY)) == RATE_LIMITS["faculty"]
        assert _limit_for(_identity(UserRole.ADMIN)) == RATE_LIMITS["admin"]

    def test_faculty_allowance_differs_from_anonymous(self):
        assert _limit_for(_identity(UserRole.FACULTY)) != _limit_for(None)


@pytest.fixture
def enabled_limiter(monkeypatch):
    """Limiter switched on with small per-tier allowances"""
    monkeypatch.setattr(limiter, "enabled", True)
    monkeypatch.setitem(rate_limiter.RATE_LIMITS, "anonymous", "2/minute")
    monkeypatch.setitem(rate_limiter.RATE_LIMITS, "faculty", "4/minute")
    limiter.reset()
    yield limiter
    limiter.reset()


class TestEnforcement:
    """Test default limits over HTTP"""

    @pytest.mark.asyncio
    async def test_anonymous_caller_gets_anonymous_allowance(self, client, enabled_limiter):
        statuses = [(await client.get("/api/v1/health")).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    @pytest.mark.asyncio
    async def test_faculty_caller_gets_larger_allowance(self, client, enabled_limiter, faculty_headers):
        statuses = [
            (await client.get("/api/v1/health", headers=faculty_headers)).status_code
            for _ in range(5)
        ]

        assert statuses == [200, 200, 200, 200, 429]

    @pytest.mark.asyncio
    async def test_exceeded_body_reports_tier(self, client, enabled_limiter, faculty_headers):
        for _ in range(4):
            await client.get("/api/v1/health", headers=faculty_headers)

        response = await client.get("/api/v1/health", headers=faculty_headers)

        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["details"]["tier"] == "faculty"
        assert body["details"]["tier_limit"] == "4/minute"
        assert response.headers["Retry-After"] == "60"

    @pytest.mark.asyncio
    async def test_disabled_limiter_never_blocks(self, client):
        statuses = {(await client.get("/api/v1/health")).status_code for _ in range(5)}

        assert statuses == {200}
