"""
Submission Service Layer
Creation, listings, stats and deletion of papers and projects
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.exceptions import ValidationError
from researchcell.core.logging_config import logger
from researchcell.core.types import normalize_uuid
from researchcell.models.submission import (
    OnGoingProject,
    PaperStatus,
    ProjectStatus,
    ResearchPaper,
    SubmissionKind,
)
from researchcell.models.user import REVIEWER_ROLES, UserRole
from researchcell.modules.auth.access_guard import WorkflowAction, authorize_action
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.transitions import ensure_not_frozen
from researchcell.services.audit_service import AuditService
from researchcell.services.submission_store import SubmissionFilters, SubmissionStore
from researchcell.services.user_directory import UserDirectory

PUBLISHED_STATUS = {
    SubmissionKind.PAPER: PaperStatus.PUBLISH,
    SubmissionKind.PROJECT: ProjectStatus.PUBLISH,
}

# Content an owner may change after submission
EDITABLE_FIELDS = {
    SubmissionKind.PAPER: ("title", "abstract", "file_path", "keywords"),
    SubmissionKind.PROJECT: ("title", "description", "project_link", "project_image"),
}
CLEARABLE_FIELDS = ("project_link", "project_image")


class SubmissionService:
    """Service for submission management outside the review state machine"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserDirectory(db)
        self.audit = AuditService(db)

    def store(self, kind: SubmissionKind) -> SubmissionStore:
        return SubmissionStore(self.db, kind)

    # =====================================================
    # CREATION
    # =====================================================

    async def _resolve_people(self, actor: Identity, owner_ids: Sequence[str], advisor_ids: Sequence[str]):
        """Owners always include the creating student; advisors must be faculty or admin"""
        owner_ids = list(owner_ids)
        if actor.role == UserRole.STUDENT and actor.user_id not in {normalize_uuid(o) for o in owner_ids}:
            owner_ids.insert(0, actor.user_id)
        if not owner_ids:
            raise ValidationError("At least one author or member is required", field="owners")
        if not advisor_ids:
            raise ValidationError("At least one faculty advisor is required", field="faculty_advisor_ids")

        owners = await self.users.find_many(owner_ids)
        advisors = await self.users.find_many(advisor_ids)
        UserDirectory.require_roles(advisors, REVIEWER_ROLES)
        return owners, advisors

    async def create_paper(
        self,
        actor: Identity,
        title: str,
        abstract: str,
        file_path: str,
        keywords: Optional[List[str]] = None,
        author_ids: Sequence[str] = (),
        faculty_advisor_ids: Sequence[str] = (),
    ) -> ResearchPaper:
        authorize_action(WorkflowAction.CREATE_SUBMISSION, actor)
        store = self.store(SubmissionKind.PAPER)

        async with store.transaction():
            authors, advisors = await self._resolve_people(actor, author_ids, faculty_advisor_ids)
            paper = await store.create(
                title=title,
                abstract=abstract,
                file_path=file_path,
                keywords=list(keywords or []),
                authors=authors,
                faculty_advisors=advisors,
            )
            await self.audit.record(actor, "create", SubmissionKind.PAPER, paper.id, to_status=paper.status)

        return paper

    async def create_project(
        self,
        actor: Identity,
        title: str,
        description: str,
        project_link: Optional[str] = None,
        project_image: Optional[str] = None,
        member_ids: Sequence[str] = (),
        faculty_advisor_ids: Sequence[str] = (),
    ) -> OnGoingProject:
        authorize_action(WorkflowAction.CREATE_SUBMISSION, actor)
        store = self.store(SubmissionKind.PROJECT)

        async with store.transaction():
            members, advisors = await self._resolve_people(actor, member_ids, faculty_advisor_ids)
            project = await store.create(
                title=title,
                description=description,
                project_link=project_link or None,
                project_image=project_image or None,
                members=members,
                faculty_advisors=advisors,
            )
            await self.audit.record(actor, "create", SubmissionKind.PROJECT, project.id, to_status=project.status)

        return project

    async def update_content(self, kind: SubmissionKind, submission_id: str, actor: Identity, **fields):
        """
        Owner edit of a submission's content.

        Only the kind's EDITABLE_FIELDS may change; status and reviewer_status
        are never touched here. None leaves a field as it is and an empty
        string clears project_link / project_image.
        """
        kind = SubmissionKind(kind)
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS[kind]))
        if unknown:
            raise ValidationError(f"Cannot edit {', '.join(unknown)} on a {kind.value}", field=unknown[0])

        changes: Dict[str, Any] = {}
        for name, value in fields.items():
            if value is None:
                continue
            if name in CLEARABLE_FIELDS:
                value = value or None
            elif name == "keywords":
                value = list(value)
            changes[name] = value
        if not changes:
            raise ValidationError("No fields to update", field="fields")

        store = self.store(kind)
        async with store.transaction():
            submission = await store.get(submission_id)
            authorize_action(WorkflowAction.EDIT_SUBMISSION, actor, submission)
            ensure_not_frozen(submission)
            await store.update(submission, **changes)
            await self.audit.record(
                actor, "edit", kind, submission.id,
                details={"changed_fields": sorted(changes)},
            )

        return submission

    async def get_for(self, kind: SubmissionKind, submission_id: str, viewer: Identity):
        """A submission the viewer is allowed to read, published or not"""
        submission = await self.store(kind).get(submission_id)
        authorize_action(WorkflowAction.VIEW_SUBMISSION, viewer, submission)
        return submission

    # =====================================================
    # LISTINGS
    # =====================================================

    async def list_submissions(
        self,
        kind: SubmissionKind,
        filters: Optional[SubmissionFilters] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Any], int]:
        return await self.store(kind).find_many(filters, page=page, page_size=page_size)

    async def review_queue(self, kind: SubmissionKind, reviewer: Identity, page: int = 1, page_size: int = 10):
        """Submissions assigned to `reviewer`"""
        filters = SubmissionFilters(reviewer_id=reviewer.user_id)
        return await self.list_submissions(kind, filters, page, page_size)

    async def owned_by(self, kind: SubmissionKind, owner: Identity, page: int = 1, page_size: int = 10):
        """Papers the caller authored / projects the caller is a member of"""
        filters = SubmissionFilters(owner_id=owner.user_id)
        return await self.list_submissions(kind, filters, page, page_size)

    async def published(self, kind: SubmissionKind, page: int = 1, page_size: int = 10, query: Optional[str] = None):
        kind = SubmissionKind(kind)
        filters = SubmissionFilters(status=PUBLISHED_STATUS[kind], query=query)
        return await self.list_submissions(kind, filters, page, page_size)

    async def stats(self, kind: SubmissionKind) -> Dict[str, Any]:
        store = self.store(kind)
        breakdown = await store.status_breakdown()
        return {
            "kind": store.kind.value,
            "total": sum(row["count"] for row in breakdown),
            "breakdown": breakdown,
        }

    # =====================================================
    # ADMIN
    # =====================================================

    async def delete_submissions(self, kind: SubmissionKind, submission_ids: Sequence[str], actor: Identity) -> int:
        """Delete by ids; unknown ids are ignored and the deleted count returned"""
        authorize_action(WorkflowAction.DELETE, actor)
        kind = SubmissionKind(kind)
        unique_ids = list(dict.fromkeys(normalize_uuid(sid) for sid in submission_ids))
        if not unique_ids:
            raise ValidationError("At least one id is required", field="ids")

        store = self.store(kind)
        async with store.transaction():
            submissions = await store.find_by_ids(unique_ids)
            for submission in submissions:
                await self.audit.record(actor, "admin:delete", kind, submission.id, from_status=submission.status)
            deleted = await store.delete_many([s.id for s in submissions])

        logger.info(
            f"[Admin] Deleted {deleted} {kind.value}(s)",
            extra={"event_type": "bulk_delete", "count": deleted, "actor_id": actor.user_id},
        )
        return deleted

    async def audit_trail(self, kind: SubmissionKind, submission_id: str, actor: Identity):
        authorize_action(WorkflowAction.VIEW_AUDIT, actor)
        submission = await self.store(kind).get(submission_id)
        return await self.audit.history(kind, submission.id)
