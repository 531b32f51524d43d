"""
Student endpoints: submit and edit papers and projects, answer revision requests
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.api.v1.endpoints.common import PageParams, mutation_response, page_response
from researchcell.core.database import get_db
from researchcell.models.submission import SubmissionKind
from researchcell.modules.auth.dependencies import get_current_student
from researchcell.modules.auth.role_resolver import Identity
from researchcell.modules.workflow.revision import RevisionCycleController
from researchcell.schemas.submission import (
    PaperCreate,
    PaperUpdate,
    ProjectCreate,
    ProjectUpdate,
    SubmissionListResponse,
    SubmissionMutationResponse,
    SubmitRevisionRequest,
)
from researchcell.services.submission_service import SubmissionService

router = APIRouter(prefix="/student", tags=["Student"])


@router.post("/papers", response_model=SubmissionMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_paper(
    payload: PaperCreate,
    identity: Identity = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Upload a research paper; the caller is always one of its authors"""
    paper = await SubmissionService(db).create_paper(
        identity,
        title=payload.title,
        abstract=payload.abstract,
        file_path=payload.file_path,
        keywords=payload.keywords,
        author_ids=payload.author_ids,
        faculty_advisor_ids=payload.faculty_advisor_ids,
    )
    return mutation_response("Research paper submitted", paper)


@router.post("/projects", response_model=SubmissionMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    identity: Identity = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Register an ongoing project; the caller is always one of its members"""
    project = await SubmissionService(db).create_project(
        identity,
        title=payload.title,
        description=payload.description,
        project_link=payload.project_link,
        project_image=payload.project_image,
        member_ids=payload.member_ids,
        faculty_advisor_ids=payload.faculty_advisor_ids,
    )
    return mutation_response("Project submitted", project)


@router.get("/submissions", response_model=SubmissionListResponse)
async def my_submissions(
    kind: SubmissionKind = Query(SubmissionKind.PAPER),
    pagination: PageParams = Depends(),
    identity: Identity = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Papers the caller authored, or projects the caller is a member of"""
    items, total = await SubmissionService(db).owned_by(
        kind, identity, page=pagination.page, page_size=pagination.page_size
    )
    return page_response(items, total, pagination.page, pagination.page_size)


@router.post("/projects/{project_id}/revision", response_model=SubmissionMutationResponse)
async def submit_revision(
    project_id: str,
    payload: SubmitRevisionRequest,
    identity: Identity = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Answer the open change request on a project"""
    project = await RevisionCycleController(db).submit_revision(
        project_id,
        identity,
        comments=payload.comments,
        project_link=payload.project_link,
        project_image=payload.project_image,
        description=payload.description,
    )
    return mutation_response("Revision submitted", project)


UPDATE_SCHEMAS = {
    SubmissionKind.PAPER: PaperUpdate,
    SubmissionKind.PROJECT: ProjectUpdate,
}


@router.patch("/{kind}/{submission_id}", response_model=SubmissionMutationResponse)
async def update_submission(
    kind: SubmissionKind,
    submission_id: str,
    payload: Dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Edit the content of one of the caller's own submissions"""
    try:
        changes = UPDATE_SCHEMAS[kind].model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())
    submission = await SubmissionService(db).update_content(
        kind, submission_id, identity, **changes.model_dump(exclude_unset=True)
    )
    return mutation_response(f"{kind.value.capitalize()} updated", submission)
