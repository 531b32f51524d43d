"""
Integration Tests for admin endpoints and user lookups
"""
import uuid

import pytest
from httpx import AsyncClient

from researchcell.models.submission import SubmissionKind
from researchcell.modules.workflow.engine import ReviewWorkflowEngine
from researchcell.modules.workflow.transitions import Decision
from researchcell.services.idempotency_service import IdempotencyService
from researchcell.services.submission_service import SubmissionService

API = "/api/v1"
PAPER = SubmissionKind.PAPER


async def make_papers(db, student, faculty_user, faculty, approved=2, pending=0):
    """Return (approved_ids, pending_ids)"""
    service = SubmissionService(db)
    engine = ReviewWorkflowEngine(db)
    approved_ids, pending_ids = [], []
    for i in range(approved + pending):
        paper = await service.create_paper(
            student, title=f"Paper number {i}", abstract="Abstract", file_path=f"papers/{i}.pdf",
            faculty_advisor_ids=[faculty_user.id],
        )
        if i < approved:
            await engine.decide(PAPER, paper.id, faculty, Decision.APPROVE)
            approved_ids.append(paper.id)
        else:
            pending_ids.append(paper.id)
    return approved_ids, pending_ids


class TestRoleManagement:

    @pytest.mark.asyncio
    async def test_change_role(self, client: AsyncClient, student_user, admin_headers):
        response = await client.patch(
            f"{API}/admin/users/{student_user.id}/role",
            json={"role": "FACULTY"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Role updated to FACULTY"
        assert body["user"]["role"] == "FACULTY"

    @pytest.mark.asyncio
    async def test_unknown_role(self, client: AsyncClient, student_user, admin_headers):
        response = await client.patch(
            f"{API}/admin/users/{student_user.id}/role",
            json={"role": "DEAN"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient, admin_headers):
        response = await client.patch(
            f"{API}/admin/users/{uuid.uuid4()}/role",
            json={"role": "ADMIN"},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_faculty_cannot_change_roles(self, client: AsyncClient, student_user, faculty_headers):
        response = await client.patch(
            f"{API}/admin/users/{student_user.id}/role",
            json={"role": "ADMIN"},
            headers=faculty_headers,
        )

        assert response.status_code == 403


class TestReviewerAssignment:

    @pytest.mark.asyncio
    async def test_assign_reviewer(self, client: AsyncClient, paper, other_faculty_user, admin_headers):
        response = await client.put(
            f"{API}/admin/paper/{paper.id}/reviewer",
            json={"reviewer_id": other_faculty_user.id, "reason": "subject expert"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["submission"]["reviewer"]["id"] == other_faculty_user.id

    @pytest.mark.asyncio
    async def test_student_cannot_review(self, client: AsyncClient, paper, other_student_user, admin_headers):
        response = await client.put(
            f"{API}/admin/paper/{paper.id}/reviewer",
            json={"reviewer_id": other_student_user.id},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ROLE"


class TestBulkAction:

    @pytest.mark.asyncio
    async def test_bulk_publish(self, client: AsyncClient, db_session, student, faculty_user, faculty, admin_headers):
        approved_ids, _ = await make_papers(db_session, student, faculty_user, faculty, approved=2)

        response = await client.post(
            f"{API}/admin/paper/bulk-action",
            json={"ids": approved_ids, "action": "publish"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"message": "2 paper(s) published", "count": 2, "ids": approved_ids}

        listing = await client.get(f"{API}/published", params={"kind": "paper"})
        assert listing.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_bulk_publish_all_or_nothing(
        self, client: AsyncClient, db_session, student, faculty_user, faculty, admin_headers,
    ):
        approved_ids, pending_ids = await make_papers(db_session, student, faculty_user, faculty, approved=1, pending=1)

        response = await client.post(
            f"{API}/admin/paper/bulk-action",
            json={"ids": approved_ids + pending_ids, "action": "publish"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["details"]["failing_ids"] == pending_ids

        listing = await client.get(f"{API}/published", params={"kind": "paper"})
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_bulk_unknown_ids(self, client: AsyncClient, paper, admin_headers):
        missing = str(uuid.uuid4())

        response = await client.post(
            f"{API}/admin/paper/bulk-action",
            json={"ids": [paper.id, missing], "action": "accept"},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["details"]["missing_ids"] == [missing]

    @pytest.mark.asyncio
    async def test_idempotent_retry(
        self, client: AsyncClient, db_session, student, faculty_user, faculty, admin_headers,
    ):
        approved_ids, _ = await make_papers(db_session, student, faculty_user, faculty, approved=2)
        headers = {**admin_headers, "Idempotency-Key": "publish-batch-1"}
        payload = {"ids": approved_ids, "action": "publish"}

        first = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)
        second = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.json() == first.json()

        audit = await client.get(f"{API}/admin/paper/{approved_ids[0]}/audit", headers=admin_headers)
        assert [e["action"] for e in audit.json()].count("admin:publish") == 1

        reused = await client.post(
            f"{API}/admin/paper/bulk-action",
            json={**payload, "action": "reject"},
            headers=headers,
        )
        assert reused.status_code == 409

    @pytest.mark.asyncio
    async def test_failed_request_does_not_keep_key(
        self, client: AsyncClient, db_session, student, faculty_user, faculty, admin_headers,
    ):
        approved_ids, pending_ids = await make_papers(db_session, student, faculty_user, faculty, approved=1, pending=1)
        headers = {**admin_headers, "Idempotency-Key": "publish-batch-2"}
        payload = {"ids": approved_ids + pending_ids, "action": "publish"}

        failed = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)
        assert failed.status_code == 409

        await ReviewWorkflowEngine(db_session).decide(PAPER, pending_ids[0], faculty, Decision.APPROVE)
        retried = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)

        assert retried.status_code == 200
        assert retried.json()["count"] == 2

    @pytest.mark.asyncio
    async def test_losing_a_key_race_replays_the_winner(
        self, client: AsyncClient, db_session, student, faculty_user, faculty, admin_headers, monkeypatch,
    ):
        approved_ids, _ = await make_papers(db_session, student, faculty_user, faculty, approved=2)
        headers = {**admin_headers, "Idempotency-Key": "accept-batch-1"}
        payload = {"ids": approved_ids, "action": "accept"}

        first = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)
        assert first.status_code == 200

        # The second request checks the key before the first one committed it
        real_lookup = IdempotencyService.lookup
        calls = []

        async def lookup_before_commit(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await real_lookup(self, *args, **kwargs)

        monkeypatch.setattr(IdempotencyService, "lookup", lookup_before_commit)
        second = await client.post(f"{API}/admin/paper/bulk-action", json=payload, headers=headers)

        assert second.status_code == 200
        assert second.json() == first.json()
        assert len(calls) == 2

        audit = await client.get(f"{API}/admin/paper/{approved_ids[0]}/audit", headers=admin_headers)
        assert [e["action"] for e in audit.json()].count("admin:accept") == 1

    @pytest.mark.asyncio
    async def test_reviewers_cannot_bulk_act(self, client: AsyncClient, paper, faculty_headers):
        response = await client.post(
            f"{API}/admin/paper/bulk-action",
            json={"ids": [paper.id], "action": "accept"},
            headers=faculty_headers,
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}


class TestAdminReads:

    @pytest.mark.asyncio
    async def test_bulk_delete(self, client: AsyncClient, paper, faculty_headers, admin_headers):
        paper_id = paper.id

        response = await client.request(
            "DELETE", f"{API}/admin/paper",
            json={"ids": [paper_id, str(uuid.uuid4())]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"message": "1 paper(s) deleted", "count": 1}

        response = await client.get(f"{API}/submissions/paper/{paper_id}", headers=faculty_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, paper, project, admin_headers):
        response = await client.get(f"{API}/admin/project/stats", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "kind": "project",
            "total": 1,
            "breakdown": [{"status": "UPLOAD", "reviewer_status": "PENDING", "count": 1}],
        }

    @pytest.mark.asyncio
    async def test_audit_trail(self, client: AsyncClient, paper, admin_headers):
        paper_id = paper.id
        await client.post(
            f"{API}/admin/paper/{paper_id}/action",
            json={"action": "accept", "comments": "fast-tracked"},
            headers=admin_headers,
        )

        response = await client.get(f"{API}/admin/paper/{paper_id}/audit", headers=admin_headers)

        assert response.status_code == 200
        entries = response.json()
        assert [e["action"] for e in entries] == ["create", "admin:accept"]
        assert entries[1]["from_status"] == "UPLOAD"
        assert entries[1]["to_status"] == "ON_REVIEW"
        assert entries[1]["details"]["comments"] == "fast-tracked"


class TestUsersAndHealth:

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, faculty_user, faculty_headers):
        response = await client.get(f"{API}/users/me", headers=faculty_headers)

        assert response.status_code == 200
        assert response.json()["email"] == faculty_user.email
        assert response.json()["role"] == "FACULTY"

    @pytest.mark.asyncio
    async def test_search_by_role(self, client: AsyncClient, faculty_user, student_user, student_headers):
        response = await client.get(f"{API}/users/search", params={"role": "FACULTY"}, headers=student_headers)

        assert response.status_code == 200
        assert [u["id"] for u in response.json()["users"]] == [faculty_user.id]

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        root = await client.get("/health")
        live = await client.get(f"{API}/health/live")

        assert root.status_code == 200
        assert root.json()["status"] == "healthy"
        assert live.json()["status"] == "alive"
        assert "X-Request-ID" in live.headers
