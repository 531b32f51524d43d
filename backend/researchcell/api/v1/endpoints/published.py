"""
Public view of published papers and projects (no session required)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.api.v1.endpoints.common import PageParams, page_response
from researchcell.core.database import get_db
from researchcell.core.exceptions import SubmissionNotFoundError
from researchcell.models.submission import SubmissionKind
from researchcell.schemas.submission import SubmissionListResponse, serialize_submission
from researchcell.services.submission_service import SubmissionService
from researchcell.services.submission_store import SubmissionStore

router = APIRouter(prefix="/published", tags=["Published"])


@router.get("", response_model=SubmissionListResponse)
async def list_published(
    kind: SubmissionKind = Query(SubmissionKind.PAPER),
    q: Optional[str] = Query(None, max_length=200),
    pagination: PageParams = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """Published submissions of one kind, newest first"""
    items, total = await SubmissionService(db).published(
        kind, page=pagination.page, page_size=pagination.page_size, query=q
    )
    return page_response(items, total, pagination.page, pagination.page_size)


@router.get("/{kind}/{submission_id}")
async def get_published(
    kind: SubmissionKind,
    submission_id: str,
    db: AsyncSession = Depends(get_db)
):
    """A single published submission; unpublished ones are reported as missing"""
    submission = await SubmissionStore(db, kind).find(submission_id)
    if submission is None or not submission.is_published:
        raise SubmissionNotFoundError(kind.value, submission_id)
    return serialize_submission(submission)
