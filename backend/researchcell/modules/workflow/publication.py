"""
Admin Publication Gate
======================
Admin accept / reject / publish of submissions, one at a time or in bulk.

Publishing requires a reviewer-approved submission. Bulk requests are
all-or-nothing: every id is validated before anything is written.
"""

from typing import Awaitable, Callable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.exceptions import (
    ConflictError,
    SubmissionsNotFoundError,
    ValidationError,
)
from researchcell.core.logging_config import logger, set_submission_id
from researchcell.core.types import normalize_uuid
from researchcell.models.submission import SubmissionKind
from researchcell.modules.auth.access_guard import WorkflowAction, authorize_action
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.transitions import (
    ADMIN_ACTION_STATUS,
    AdminAction,
    is_publishable,
)
from researchcell.services.audit_service import AuditService
from researchcell.services.submission_store import SubmissionStore


def _not_approved_message(kind: SubmissionKind) -> str:
    return f"{kind.value.capitalize()} must be reviewer-approved first"


class AdminPublicationGate:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def _apply(self, store: SubmissionStore, submission, actor: Identity,
                     action: AdminAction, comments: Optional[str], bulk: bool = False) -> bool:
        """Write one admin action; returns False when nothing changed"""
        target = ADMIN_ACTION_STATUS[store.kind][action]
        if action == AdminAction.PUBLISH and submission.status == target:
            return False

        previous = submission.status
        await store.update(submission, status=target)
        await self.audit.record(
            actor, f"admin:{action.value}", store.kind, submission.id,
            from_status=previous, to_status=target,
            details={"comments": comments, "bulk": bulk},
        )
        return True

    async def admin_action(
        self,
        kind: SubmissionKind,
        submission_id: str,
        actor: Identity,
        action: AdminAction,
        comments: Optional[str] = None,
    ):
        """
        accept  -> project ONGOING / paper ON_REVIEW
        reject  -> project CANCELLED / paper REJECT
        publish -> PUBLISH, only once reviewer-approved; publishing twice is a no-op
        """
        kind = SubmissionKind(kind)
        action = AdminAction(action)
        authorize_action(WorkflowAction.ADMIN_ACTION, actor)

        store = SubmissionStore(self.db, kind)
        set_submission_id(str(submission_id))

        async with store.transaction():
            submission = await store.get(submission_id)
            if (action == AdminAction.PUBLISH and not submission.is_published
                    and not is_publishable(kind, submission.reviewer_status)):
                raise ConflictError(
                    _not_approved_message(kind),
                    details={
                        "submission_id": submission.id,
                        "reviewer_status": submission.reviewer_status.value,
                    },
                )
            changed = await self._apply(store, submission, actor, action, comments)

        if not changed:
            logger.info(f"[AdminGate] {kind.value} {submission.id} already published")
        return submission

    async def bulk_admin_action(
        self,
        kind: SubmissionKind,
        submission_ids: Sequence[str],
        actor: Identity,
        action: AdminAction,
        comments: Optional[str] = None,
        before_commit: Optional[Callable[[List], Awaitable[None]]] = None,
    ) -> List:
        """
        Apply one admin action to many submissions in one transaction.

        `before_commit` is awaited with the updated submissions inside that
        transaction, so whatever it writes commits or rolls back with them.

        Raises:
            SubmissionsNotFoundError: some ids do not resolve (all listed)
            ConflictError: publish with ids that are not reviewer-approved,
                listed in details["failing_ids"]; nothing is applied
        """
        kind = SubmissionKind(kind)
        action = AdminAction(action)
        authorize_action(WorkflowAction.BULK_ADMIN_ACTION, actor)

        unique_ids = list(dict.fromkeys(normalize_uuid(sid) for sid in submission_ids))
        if not unique_ids:
            raise ValidationError("At least one id is required", field="ids")

        store = SubmissionStore(self.db, kind)

        async with store.transaction():
            found = {s.id: s for s in await store.find_by_ids(unique_ids)}
            missing = [sid for sid in unique_ids if sid not in found]
            if missing:
                raise SubmissionsNotFoundError(kind.value, missing)

            if action == AdminAction.PUBLISH:
                failing = [
                    sid for sid in unique_ids
                    if not found[sid].is_published and not is_publishable(kind, found[sid].reviewer_status)
                ]
                if failing:
                    raise ConflictError(
                        f"{len(failing)} {kind.value}(s) must be reviewer-approved first",
                        details={"failing_ids": failing},
                    )

            for sid in unique_ids:
                await self._apply(store, found[sid], actor, action, comments, bulk=True)
            if before_commit is not None:
                await before_commit([found[sid] for sid in unique_ids])

        logger.info(
            f"[AdminGate] Bulk {action.value} applied to {len(unique_ids)} {kind.value}(s)",
            extra={"event_type": "bulk_admin_action", "count": len(unique_ids), "actor_id": actor.user_id},
        )
        return [found[sid] for sid in unique_ids]
