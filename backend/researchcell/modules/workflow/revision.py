"""
Revision Cycle Controller
=========================
The request-updates / submit-revision loop of ongoing projects.

Each request opens a RevisionRound. The student's revision answers it; a
reviewer decision taken while it is unanswered closes it. The loop can
repeat any number of times unless MAX_REVISION_ROUNDS caps it.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.config import settings
from researchcell.core.exceptions import ConflictError
from researchcell.core.logging_config import set_submission_id
from researchcell.core.types import utcnow
from researchcell.models.revision import RevisionRound
from researchcell.models.submission import OnGoingProject, SubmissionKind
from researchcell.modules.auth.access_guard import WorkflowAction, authorize_action
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.transitions import (
    ReviewEvent,
    ensure_not_frozen,
    next_reviewer_status,
)
from researchcell.services.audit_service import AuditService
from researchcell.services.submission_store import SubmissionStore


def open_round(project: OnGoingProject) -> Optional[RevisionRound]:
    """Latest round still waiting for the student's response"""
    for revision in reversed(project.revisions):
        if revision.is_open:
            return revision
    return None


class RevisionCycleController:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = SubmissionStore(db, SubmissionKind.PROJECT)
        self.audit = AuditService(db)

    async def request_updates(
        self,
        project_id: str,
        actor: Identity,
        message: str,
        deadline: Optional[datetime] = None,
    ) -> OnGoingProject:
        """Send a project back to its members with a change request"""
        set_submission_id(str(project_id))

        async with self.store.transaction():
            project = await self.store.get(project_id)
            authorize_action(WorkflowAction.REQUEST_UPDATES, actor, project)
            ensure_not_frozen(project)

            previous_status = project.reviewer_status
            new_status = next_reviewer_status(SubmissionKind.PROJECT, previous_status, ReviewEvent.REQUEST_UPDATES)

            if settings.revision_cap_enabled and project.revision_count >= settings.MAX_REVISION_ROUNDS:
                raise ConflictError(
                    f"Revision limit reached ({settings.MAX_REVISION_ROUNDS} rounds)",
                    details={"revision_count": project.revision_count},
                )

            now = utcnow()
            round_number = project.revision_count + 1
            project.revisions.append(RevisionRound(
                round_number=round_number,
                requested_by=actor.user_id,
                request_message=message,
                deadline=deadline,
                requested_at=now,
            ))

            await self.store.update(
                project,
                reviewer_status=new_status,
                needs_update=True,
                update_request=message,
                update_deadline=deadline,
                reviewed_at=now,
                student_update_comments=None,
                student_updated_at=None,
                revision_count=round_number,
            )
            await self.audit.record(
                actor, "request_updates", SubmissionKind.PROJECT, project.id,
                from_status=previous_status, to_status=new_status,
                details={
                    "round": round_number,
                    "deadline": deadline.isoformat() if deadline else None,
                },
            )

        return project

    async def submit_revision(
        self,
        project_id: str,
        actor: Identity,
        comments: str,
        project_link: Optional[str] = None,
        project_image: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OnGoingProject:
        """
        Answer an open change request.

        An empty string clears project_link / project_image; None leaves the
        field as it is.
        """
        set_submission_id(str(project_id))

        async with self.store.transaction():
            project = await self.store.get(project_id)
            authorize_action(WorkflowAction.SUBMIT_REVISION, actor, project)
            ensure_not_frozen(project)

            if not project.needs_update:
                raise ConflictError(
                    "No revision has been requested for this project",
                    details={"project_id": project.id},
                )

            previous_status = project.reviewer_status
            new_status = next_reviewer_status(SubmissionKind.PROJECT, previous_status, ReviewEvent.SUBMIT_REVISION)

            now = utcnow()
            fields = {
                "student_update_comments": comments,
                "student_updated_at": now,
                "needs_update": False,
                "reviewer_status": new_status,
            }
            if project_link is not None:
                fields["project_link"] = project_link or None
            if project_image is not None:
                fields["project_image"] = project_image or None
            if description is not None:
                fields["description"] = description

            revision = open_round(project)
            if revision is not None:
                revision.response_comments = comments
                revision.responded_by = actor.user_id
                revision.responded_at = now

            await self.store.update(project, **fields)
            await self.audit.record(
                actor, "submit_revision", SubmissionKind.PROJECT, project.id,
                from_status=previous_status, to_status=new_status,
                details={
                    "round": revision.round_number if revision is not None else None,
                    "changed_fields": sorted(k for k in fields if k in ("project_link", "project_image", "description")),
                },
            )

        return project

    async def history(self, project_id: str, viewer: Optional[Identity] = None) -> List[RevisionRound]:
        """Revision rounds of a project, oldest first"""
        project = await self.store.get(project_id)
        if viewer is not None:
            authorize_action(WorkflowAction.VIEW_SUBMISSION, viewer, project)
        return list(project.revisions)
