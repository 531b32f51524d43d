"""
Unit Tests for RevisionCycleController
"""
from datetime import datetime

import pytest

from researchcell.core.config import settings
from researchcell.core.exceptions import AuthorizationError, ConflictError
from researchcell.models.submission import ReviewerStatus, SubmissionKind
from researchcell.modules.workflow.engine import ReviewWorkflowEngine
from researchcell.modules.workflow.revision import RevisionCycleController
from researchcell.modules.workflow.transitions import Decision
from researchcell.services.submission_store import SubmissionStore

PROJECT = SubmissionKind.PROJECT


@pytest.fixture
async def assigned_project(db_session, project, faculty):
    """Project claimed by `faculty`"""
    return await ReviewWorkflowEngine(db_session).assign_reviewer(PROJECT, project.id, faculty.user_id, faculty)


class TestRequestUpdates:

    @pytest.mark.asyncio
    async def test_request_updates_opens_round(self, db_session, assigned_project, faculty):
        deadline = datetime(2025, 1, 1)
        project = await RevisionCycleController(db_session).request_updates(
            assigned_project.id, faculty, "Add an evaluation section", deadline=deadline
        )

        assert project.needs_update is True
        assert project.reviewer_status == ReviewerStatus.NEEDS_UPDATES
        assert project.update_request == "Add an evaluation section"
        assert project.update_deadline == deadline
        assert project.revision_count == 1
        assert len(project.revisions) == 1
        assert project.revisions[0].round_number == 1
        assert project.revisions[0].is_open

    @pytest.mark.asyncio
    async def test_only_assigned_reviewer_requests_updates(self, db_session, assigned_project, other_faculty):
        project_id = assigned_project.id
        with pytest.raises(AuthorizationError):
            await RevisionCycleController(db_session).request_updates(project_id, other_faculty, "More tests")

        current = await SubmissionStore(db_session, PROJECT).get(project_id, fresh=True)
        assert current.needs_update is False
        assert current.revision_count == 0

    @pytest.mark.asyncio
    async def test_revision_cap(self, db_session, assigned_project, faculty, student, monkeypatch):
        monkeypatch.setattr(settings, "MAX_REVISION_ROUNDS", 1)
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id

        await controller.request_updates(project_id, faculty, "Round one")
        await controller.submit_revision(project_id, student, "Done")

        with pytest.raises(ConflictError) as exc_info:
            await controller.request_updates(project_id, faculty, "Round two")
        assert "Revision limit reached" in exc_info.value.message


class TestSubmitRevision:

    @pytest.mark.asyncio
    async def test_revision_without_request_is_conflict(self, db_session, assigned_project, student):
        project_id = assigned_project.id
        with pytest.raises(ConflictError):
            await RevisionCycleController(db_session).submit_revision(project_id, student, "Unprompted update")

        current = await SubmissionStore(db_session, PROJECT).get(project_id, fresh=True)
        assert current.reviewer_status == ReviewerStatus.PENDING
        assert current.student_update_comments is None

    @pytest.mark.asyncio
    async def test_request_then_revision(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id

        await controller.request_updates(project_id, faculty, "Link the repository")
        project = await controller.submit_revision(
            project_id, student, "Repository linked", project_link="https://gitlab.com/example/new"
        )

        assert project.needs_update is False
        assert project.reviewer_status == ReviewerStatus.PENDING
        assert project.student_update_comments == "Repository linked"
        assert project.student_updated_at is not None
        assert project.project_link == "https://gitlab.com/example/new"

        revision = project.revisions[0]
        assert revision.response_comments == "Repository linked"
        assert revision.responded_by == student.user_id
        assert not revision.is_open

    @pytest.mark.asyncio
    async def test_empty_link_clears_field(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        await controller.request_updates(assigned_project.id, faculty, "Remove the dead link")

        project = await controller.submit_revision(assigned_project.id, student, "Removed", project_link="")

        assert project.project_link is None

    @pytest.mark.asyncio
    async def test_only_members_submit(self, db_session, assigned_project, faculty, other_student):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id
        await controller.request_updates(project_id, faculty, "Update the abstract")

        with pytest.raises(AuthorizationError):
            await controller.submit_revision(project_id, other_student, "Not my project")

        current = await SubmissionStore(db_session, PROJECT).get(project_id, fresh=True)
        assert current.needs_update is True

    @pytest.mark.asyncio
    async def test_multiple_rounds_are_kept(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id

        for round_number in (1, 2, 3):
            await controller.request_updates(project_id, faculty, f"Round {round_number}")
            await controller.submit_revision(project_id, student, f"Answer {round_number}")

        history = await controller.history(project_id)
        assert [r.round_number for r in history] == [1, 2, 3]
        assert [r.response_comments for r in history] == ["Answer 1", "Answer 2", "Answer 3"]

    @pytest.mark.asyncio
    async def test_decision_after_revision(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id
        await controller.request_updates(project_id, faculty, "Fix the build")
        await controller.submit_revision(project_id, student, "Fixed")

        project = await ReviewWorkflowEngine(db_session).decide(PROJECT, project_id, faculty, Decision.APPROVE)

        assert project.reviewer_status == ReviewerStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_revision_replaces_description(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        await controller.request_updates(assigned_project.id, faculty, "Describe the dataset")

        project = await controller.submit_revision(
            assigned_project.id, student, "Described", description="Now with a dataset section"
        )

        assert project.description == "Now with a dataset section"


class TestDecisionClosesRound:

    @pytest.mark.asyncio
    async def test_reject_closes_unanswered_round(self, db_session, assigned_project, faculty):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id
        await controller.request_updates(project_id, faculty, "Add tests")

        project = await ReviewWorkflowEngine(db_session).decide(PROJECT, project_id, faculty, Decision.REJECT)

        assert project.needs_update is False
        revision = project.revisions[0]
        assert not revision.is_open
        assert revision.closed_at is not None
        assert revision.closed_reason == Decision.REJECT.value
        assert revision.response_comments is None

    @pytest.mark.asyncio
    async def test_later_revision_answers_the_new_round(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        engine = ReviewWorkflowEngine(db_session)
        project_id = assigned_project.id

        await controller.request_updates(project_id, faculty, "Round one")
        await engine.decide(PROJECT, project_id, faculty, Decision.REJECT)
        await controller.request_updates(project_id, faculty, "Round two")
        await controller.submit_revision(project_id, student, "answer")

        history = await controller.history(project_id)
        assert [(r.round_number, r.is_open, r.response_comments) for r in history] == [
            (1, False, None),
            (2, False, "answer"),
        ]
        assert history[0].closed_reason == Decision.REJECT.value
        assert history[1].closed_at is None

    @pytest.mark.asyncio
    async def test_answered_round_is_not_closed_by_decision(self, db_session, assigned_project, faculty, student):
        controller = RevisionCycleController(db_session)
        project_id = assigned_project.id
        await controller.request_updates(project_id, faculty, "Fix the build")
        await controller.submit_revision(project_id, student, "Fixed")

        project = await ReviewWorkflowEngine(db_session).decide(PROJECT, project_id, faculty, Decision.APPROVE)

        assert project.revisions[0].closed_at is None
        assert project.revisions[0].response_comments == "Fixed"
