"""
Admin endpoints: roles, reviewer assignment, accept / reject / publish,
bulk operations, stats and the audit trail
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.api.v1.endpoints.common import mutation_response
from researchcell.core.database import get_db
from researchcell.core.rate_limiter import bulk_action_rate_limit
from researchcell.models.submission import SubmissionKind
from researchcell.modules.auth.access_guard import WorkflowAction, authorize_action
from researchcell.modules.auth.dependencies import get_current_admin
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.engine import ReviewWorkflowEngine
from researchcell.modules.workflow.publication import AdminPublicationGate
from researchcell.schemas.submission import (
    AdminActionRequest,
    AssignReviewerRequest,
    AuditEntryResponse,
    BulkActionRequest,
    BulkActionResponse,
    BulkDeleteRequest,
    StatsResponse,
    SubmissionMutationResponse,
)
from researchcell.schemas.user import RoleChangeRequest, RoleChangeResponse, UserResponse
from researchcell.services.idempotency_service import IdempotencyService
from researchcell.services.submission_service import SubmissionService
from researchcell.services.user_directory import UserDirectory

router = APIRouter(prefix="/admin", tags=["Admin"])

ACTION_MESSAGES = {
    "accept": "accepted",
    "reject": "rejected",
    "publish": "published",
}


# ============================================
# USERS
# ============================================

@router.patch("/users/{user_id}/role", response_model=RoleChangeResponse)
async def change_user_role(
    user_id: str,
    payload: RoleChangeRequest,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Change a user's role (the only way a role is ever written)"""
    authorize_action(WorkflowAction.CHANGE_ROLE, identity)
    user = await UserDirectory(db).change_role(user_id, payload.role, actor_id=identity.user_id)
    await db.commit()
    return RoleChangeResponse(
        message=f"Role updated to {payload.role.value}",
        user=UserResponse.model_validate(user),
    )


# ============================================
# SUBMISSIONS
# ============================================

@router.put("/{kind}/{submission_id}/reviewer", response_model=SubmissionMutationResponse)
async def assign_reviewer(
    kind: SubmissionKind,
    submission_id: str,
    payload: AssignReviewerRequest,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Assign or reassign the reviewer; review state is reset to PENDING"""
    submission = await ReviewWorkflowEngine(db).assign_reviewer(
        kind, submission_id, payload.reviewer_id, identity, reason=payload.reason
    )
    return mutation_response("Reviewer assigned", submission)


@router.post("/{kind}/bulk-action", response_model=BulkActionResponse)
@bulk_action_rate_limit()
async def bulk_action(
    request: Request,
    kind: SubmissionKind,
    payload: BulkActionRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Accept, reject or publish many submissions at once.

    All-or-nothing: unknown ids or (for publish) ids that are not
    reviewer-approved fail the whole request. With an Idempotency-Key,
    a retry of the same request returns the first response.
    """
    endpoint = f"POST /admin/{kind.value}/bulk-action"
    fingerprint = payload.model_dump(mode="json")
    idempotency = IdempotencyService(db)
    response = {}

    if idempotency_key is not None:
        stored = await idempotency.lookup(idempotency_key, identity.user_id, endpoint, fingerprint)
        if stored is not None:
            status_code, data = stored
            return JSONResponse(status_code=status_code, content=data)

    async def remember(submissions):
        ids = [submission.id for submission in submissions]
        response.update(BulkActionResponse(
            message=f"{len(ids)} {kind.value}(s) {ACTION_MESSAGES[payload.action.value]}",
            count=len(ids),
            ids=ids,
        ).model_dump(mode="json"))
        if idempotency_key is not None:
            await idempotency.store(idempotency_key, identity.user_id, endpoint, fingerprint, 200, response)

    try:
        await AdminPublicationGate(db).bulk_admin_action(
            kind, payload.ids, identity, payload.action,
            comments=payload.comments, before_commit=remember,
        )
    except IntegrityError:
        if idempotency_key is None:
            raise
        # Lost the race on this key: the bulk writes were rolled back
        status_code, data = await idempotency.replay_after_race(
            idempotency_key, identity.user_id, endpoint, fingerprint
        )
        return JSONResponse(status_code=status_code, content=data)
    return response


@router.post("/{kind}/{submission_id}/action", response_model=SubmissionMutationResponse)
async def admin_action(
    kind: SubmissionKind,
    submission_id: str,
    payload: AdminActionRequest,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    submission = await AdminPublicationGate(db).admin_action(
        kind, submission_id, identity, payload.action, comments=payload.comments
    )
    message = f"{kind.value.capitalize()} {ACTION_MESSAGES[payload.action.value]}"
    return mutation_response(message, submission)


@router.delete("/{kind}")
async def delete_submissions(
    kind: SubmissionKind,
    payload: BulkDeleteRequest,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete submissions by id; unknown ids are skipped"""
    deleted = await SubmissionService(db).delete_submissions(kind, payload.ids, identity)
    return {"message": f"{deleted} {kind.value}(s) deleted", "count": deleted}


@router.get("/{kind}/stats", response_model=StatsResponse)
async def submission_stats(
    kind: SubmissionKind,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Counts per (status, reviewer_status)"""
    return await SubmissionService(db).stats(kind)


@router.get("/{kind}/{submission_id}/audit", response_model=List[AuditEntryResponse])
async def submission_audit(
    kind: SubmissionKind,
    submission_id: str,
    identity: Identity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Workflow audit entries for one submission, oldest first"""
    return await SubmissionService(db).audit_trail(kind, submission_id, identity)
