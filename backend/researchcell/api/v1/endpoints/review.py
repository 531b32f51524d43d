"""
Reviewer endpoints (FACULTY and ADMIN)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.api.v1.endpoints.common import PageParams, mutation_response, page_response
from researchcell.core.database import get_db
from researchcell.models.submission import SubmissionKind
from researchcell.modules.auth.dependencies import get_current_faculty
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.engine import ReviewWorkflowEngine
from researchcell.modules.workflow.revision import RevisionCycleController
from researchcell.schemas.submission import (
    DecisionRequest,
    RequestUpdatesRequest,
    SubmissionListResponse,
    SubmissionMutationResponse,
)
from researchcell.services.submission_service import SubmissionService

router = APIRouter(prefix="/review", tags=["Review"])

DECISION_MESSAGES = {
    "approve": "Submission approved",
    "reject": "Submission rejected",
    "accept_for_publish": "Paper accepted for publication",
    "reject_for_publish": "Paper rejected for publication",
}


@router.get("/queue", response_model=SubmissionListResponse)
async def review_queue(
    kind: SubmissionKind = Query(SubmissionKind.PAPER),
    pagination: PageParams = Depends(),
    identity: Identity = Depends(get_current_faculty),
    db: AsyncSession = Depends(get_db)
):
    """Submissions assigned to the caller"""
    items, total = await SubmissionService(db).review_queue(
        kind, identity, page=pagination.page, page_size=pagination.page_size
    )
    return page_response(items, total, pagination.page, pagination.page_size)


@router.post("/{kind}/{submission_id}/claim", response_model=SubmissionMutationResponse)
async def claim_submission(
    kind: SubmissionKind,
    submission_id: str,
    identity: Identity = Depends(get_current_faculty),
    db: AsyncSession = Depends(get_db)
):
    """Assign yourself as the reviewer of an unassigned submission"""
    submission = await ReviewWorkflowEngine(db).assign_reviewer(
        kind, submission_id, identity.user_id, identity, reason="self-assigned"
    )
    return mutation_response("Reviewer assigned", submission)


@router.post("/{kind}/{submission_id}/decision", response_model=SubmissionMutationResponse)
async def decide(
    kind: SubmissionKind,
    submission_id: str,
    payload: DecisionRequest,
    identity: Identity = Depends(get_current_faculty),
    db: AsyncSession = Depends(get_db)
):
    """Record a reviewer decision; an unassigned submission is claimed by the caller"""
    submission = await ReviewWorkflowEngine(db).decide(
        kind, submission_id, identity, payload.decision, comments=payload.comments
    )
    return mutation_response(DECISION_MESSAGES[payload.decision.value], submission)


@router.post("/project/{project_id}/request-updates", response_model=SubmissionMutationResponse)
async def request_updates(
    project_id: str,
    payload: RequestUpdatesRequest,
    identity: Identity = Depends(get_current_faculty),
    db: AsyncSession = Depends(get_db)
):
    """Ask the project members for changes, optionally by a deadline"""
    project = await RevisionCycleController(db).request_updates(
        project_id, identity, payload.message, deadline=payload.deadline
    )
    return mutation_response("Updates requested", project)
