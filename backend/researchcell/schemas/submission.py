from pydantic import AfterValidator, AnyUrl, BaseModel, Field, ConfigDict, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Annotated, Optional, List, Dict, Any
from datetime import datetime, timezone

from researchcell.models.submission import PaperStatus, ProjectStatus, ReviewerStatus, SubmissionKind
from researchcell.modules.workflow.transitions import AdminAction, Decision
from researchcell.schemas.user import UserRef


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """DateTime columns hold naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


_URL = TypeAdapter(AnyUrl)


def _check_link(value: Optional[str]) -> Optional[str]:
    """Links are absolute URLs; an empty string is let through to clear the link"""
    if value:
        try:
            _URL.validate_python(value)
        except PydanticValidationError:
            raise ValueError("must be a valid URL") from None
    return value


ProjectLink = Annotated[Optional[str], Field(max_length=1000), AfterValidator(_check_link)]


# ============================================
# Requests
# ============================================

class PaperCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=500)
    abstract: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1, max_length=1000)
    keywords: List[str] = Field(default_factory=list)
    author_ids: List[str] = Field(default_factory=list)
    faculty_advisor_ids: List[str] = Field(..., min_length=1)


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=500)
    description: str = Field(..., min_length=1)
    project_link: ProjectLink = None
    project_image: Optional[str] = Field(None, max_length=1000)
    member_ids: List[str] = Field(default_factory=list)
    faculty_advisor_ids: List[str] = Field(..., min_length=1)


class AssignReviewerRequest(BaseModel):
    reviewer_id: str
    reason: Optional[str] = None


class DecisionRequest(BaseModel):
    decision: Decision
    comments: Optional[str] = None


class RequestUpdatesRequest(BaseModel):
    message: str = Field(..., min_length=1)
    deadline: Optional[datetime] = None

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v):
        return _naive_utc(v)


class SubmitRevisionRequest(BaseModel):
    comments: str = Field(..., min_length=1)
    project_link: ProjectLink = None
    project_image: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, min_length=1)


class PaperUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=500)
    abstract: Optional[str] = Field(None, min_length=1)
    file_path: Optional[str] = Field(None, min_length=1, max_length=1000)
    keywords: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    project_link: ProjectLink = None
    project_image: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(extra="forbid")


class AdminActionRequest(BaseModel):
    action: AdminAction
    comments: Optional[str] = None


class BulkActionRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    action: AdminAction
    comments: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


# ============================================
# Responses
# ============================================

class RevisionRoundResponse(BaseModel):
    round_number: int
    requested_by: Optional[str] = None
    request_message: str
    deadline: Optional[datetime] = None
    requested_at: datetime
    response_comments: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class _ReviewFields(BaseModel):
    id: str
    title: str
    reviewer: Optional[UserRef] = None
    reviewer_status: ReviewerStatus
    reviewer_comments: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    faculty_advisors: List[UserRef] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaperResponse(_ReviewFields):
    kind: SubmissionKind = SubmissionKind.PAPER
    abstract: str
    file_path: str
    keywords: List[str] = Field(default_factory=list)
    status: PaperStatus
    authors: List[UserRef] = Field(default_factory=list)


class ProjectResponse(_ReviewFields):
    kind: SubmissionKind = SubmissionKind.PROJECT
    description: str
    project_link: Optional[str] = None
    project_image: Optional[str] = None
    status: ProjectStatus
    needs_update: bool
    update_request: Optional[str] = None
    update_deadline: Optional[datetime] = None
    student_update_comments: Optional[str] = None
    student_updated_at: Optional[datetime] = None
    revision_count: int
    members: List[UserRef] = Field(default_factory=list)


class SubmissionMutationResponse(BaseModel):
    message: str
    submission: Dict[str, Any]


class SubmissionListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BulkActionResponse(BaseModel):
    message: str
    count: int
    ids: List[str]


class StatusBreakdownRow(BaseModel):
    status: str
    reviewer_status: str
    count: int


class StatsResponse(BaseModel):
    kind: str
    total: int
    breakdown: List[StatusBreakdownRow]


class AuditEntryResponse(BaseModel):
    id: str
    actor_id: Optional[str] = None
    actor_role: str
    action: str
    target_type: str
    target_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


def serialize_submission(submission) -> Dict[str, Any]:
    """JSON-ready dict of a paper or project with users resolved to {id, name, email}"""
    schema = PaperResponse if submission.kind == SubmissionKind.PAPER else ProjectResponse
    return schema.model_validate(submission).model_dump(mode="json")
