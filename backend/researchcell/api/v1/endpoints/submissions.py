"""
Authenticated read access to papers and projects
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.api.v1.endpoints.common import PageParams, page_response, parse_status
from researchcell.core.database import get_db
from researchcell.models.submission import ReviewerStatus, SubmissionKind
from researchcell.models.user import UserRole
from researchcell.modules.auth.dependencies import get_current_identity
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.revision import RevisionCycleController
from researchcell.schemas.submission import RevisionRoundResponse, SubmissionListResponse, serialize_submission
from researchcell.services.submission_service import SubmissionService
from researchcell.services.submission_store import SubmissionFilters

router = APIRouter(prefix="/submissions", tags=["Submissions"])


@router.get("/project/{project_id}/revisions", response_model=List[RevisionRoundResponse])
async def revision_history(
    project_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Request / response rounds of a project, oldest first"""
    return await RevisionCycleController(db).history(project_id, viewer=identity)


@router.get("/{kind}", response_model=SubmissionListResponse)
async def list_submissions(
    kind: SubmissionKind,
    status: Optional[str] = Query(None),
    reviewer_status: Optional[ReviewerStatus] = Query(None),
    reviewer_id: Optional[str] = Query(None),
    needs_review: bool = Query(False, description="Unassigned or pending review"),
    q: Optional[str] = Query(None, max_length=200),
    pagination: PageParams = Depends(),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    List submissions with optional filters.

    Students only ever see their own submissions here.
    """
    filters = SubmissionFilters(
        owner_id=identity.user_id if identity.role == UserRole.STUDENT else None,
        status=parse_status(kind, status),
        reviewer_status=reviewer_status,
        reviewer_id=reviewer_id,
        needs_review=needs_review,
        query=q,
    )
    items, total = await SubmissionService(db).list_submissions(
        kind, filters, page=pagination.page, page_size=pagination.page_size
    )
    return page_response(items, total, pagination.page, pagination.page_size)


@router.get("/{kind}/{submission_id}")
async def get_submission(
    kind: SubmissionKind,
    submission_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Any submission for reviewers and admins; students read only their own"""
    return serialize_submission(await SubmissionService(db).get_for(kind, submission_id, identity))
