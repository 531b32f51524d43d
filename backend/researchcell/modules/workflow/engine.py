"""
Review Workflow Engine
======================
Reviewer assignment and reviewer decisions for papers and projects.

Every operation runs in one SubmissionStore transaction:
load -> action policy -> frozen check -> transition table -> write -> audit.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.exceptions import AuthorizationError
from researchcell.core.logging_config import set_submission_id
from researchcell.core.types import utcnow
from researchcell.models.submission import (
    SubmissionKind,
    PaperStatus,
)
from researchcell.models.user import REVIEWER_ROLES
from researchcell.modules.auth.access_guard import (
    NOT_ASSIGNED_REVIEWER,
    WorkflowAction,
    authorize_action,
)
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.revision import open_round
from researchcell.modules.workflow.transitions import (
    DECISION_EVENTS,
    PUBLISH_DECISIONS,
    Decision,
    ReviewEvent,
    ensure_event_supported,
    ensure_not_frozen,
    next_reviewer_status,
)
from researchcell.services.audit_service import AuditService
from researchcell.services.submission_store import SubmissionStore
from researchcell.services.user_directory import UserDirectory


class ReviewWorkflowEngine:
    """Reviewer assignment and decisions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserDirectory(db)
        self.audit = AuditService(db)

    def store(self, kind: SubmissionKind) -> SubmissionStore:
        return SubmissionStore(self.db, kind)

    async def assign_reviewer(
        self,
        kind: SubmissionKind,
        submission_id: str,
        reviewer_id: str,
        actor: Identity,
        reason: Optional[str] = None,
    ):
        """
        Put a reviewer on a submission.

        ADMIN may assign any FACULTY or ADMIN user. FACULTY may only assign
        itself, and only while the submission is unassigned or already theirs.
        The review axis is reset: reviewer_status=PENDING, reviewed_at and
        reviewer_comments cleared.
        """
        kind = SubmissionKind(kind)
        store = self.store(kind)
        set_submission_id(str(submission_id))

        async with store.transaction():
            submission = await store.get(submission_id)
            authorize_action(WorkflowAction.ASSIGN_REVIEWER, actor, submission, target_user_id=reviewer_id)
            reviewer = await self.users.get(reviewer_id)
            UserDirectory.require_roles([reviewer], REVIEWER_ROLES)
            ensure_not_frozen(submission)

            if not actor.is_admin and submission.reviewer_id is None:
                won = await store.claim_reviewer(submission.id, actor.user_id)
                submission = await store.get(submission.id, fresh=True)
                if not won and submission.reviewer_id != actor.user_id:
                    raise AuthorizationError(
                        "Submission was claimed by another reviewer",
                        action=WorkflowAction.ASSIGN_REVIEWER.value,
                    )

            previous_reviewer = submission.reviewer_id
            previous_status = submission.reviewer_status
            new_status = next_reviewer_status(kind, previous_status, ReviewEvent.ASSIGN_REVIEWER)

            await store.update(
                submission,
                reviewer=reviewer,
                reviewer_id=reviewer.id,
                reviewer_status=new_status,
                reviewed_at=None,
                reviewer_comments=None,
            )
            await self.audit.record(
                actor, "assign_reviewer", kind, submission.id,
                from_status=previous_status, to_status=new_status,
                details={
                    "reviewer_id": reviewer.id,
                    "previous_reviewer_id": previous_reviewer,
                    "reason": reason,
                },
            )

        return submission

    async def decide(
        self,
        kind: SubmissionKind,
        submission_id: str,
        actor: Identity,
        decision: Decision,
        comments: Optional[str] = None,
    ):
        """
        Record a reviewer decision.

        An unassigned submission is claimed by the deciding actor through a
        conditional write; whoever loses that race is rejected unless ADMIN.
        """
        kind = SubmissionKind(kind)
        decision = Decision(decision)
        event = DECISION_EVENTS[decision]
        ensure_event_supported(kind, event)

        store = self.store(kind)
        set_submission_id(str(submission_id))

        async with store.transaction():
            submission = await store.get(submission_id)
            authorize_action(WorkflowAction.DECIDE, actor, submission)
            if decision in PUBLISH_DECISIONS:
                authorize_action(WorkflowAction.PUBLISH_DECISION, actor)
            ensure_not_frozen(submission)
            next_reviewer_status(kind, submission.reviewer_status, event)

            claimed = False
            if submission.reviewer_id is None:
                claimed = await store.claim_reviewer(submission.id, actor.user_id)
                submission = await store.get(submission.id, fresh=True)
                if not claimed and submission.reviewer_id != actor.user_id and not actor.is_admin:
                    raise AuthorizationError(NOT_ASSIGNED_REVIEWER, action=WorkflowAction.DECIDE.value)
                ensure_not_frozen(submission)

            previous_status = submission.reviewer_status
            new_status = next_reviewer_status(kind, previous_status, event)

            fields = {
                "reviewer_status": new_status,
                "reviewed_at": utcnow(),
                "reviewer_comments": comments,
            }
            if kind == SubmissionKind.PAPER:
                if decision == Decision.APPROVE:
                    fields["status"] = PaperStatus.ON_REVIEW
                elif decision == Decision.REJECT_FOR_PUBLISH:
                    fields["status"] = PaperStatus.REJECT
            else:
                fields["needs_update"] = False
                revision = open_round(submission)
                if revision is not None:
                    revision.closed_at = fields["reviewed_at"]
                    revision.closed_reason = decision.value

            await store.update(submission, **fields)
            await self.audit.record(
                actor, f"decide:{decision.value}", kind, submission.id,
                from_status=previous_status, to_status=new_status,
                details={"comments": comments, "claimed": claimed},
            )

        return submission
