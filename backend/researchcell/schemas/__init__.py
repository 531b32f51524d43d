# Pydantic schemas
from researchcell.schemas.submission import (
    PaperCreate,
    ProjectCreate,
    PaperUpdate,
    ProjectUpdate,
    AssignReviewerRequest,
    DecisionRequest,
    RequestUpdatesRequest,
    SubmitRevisionRequest,
    AdminActionRequest,
    BulkActionRequest,
    BulkDeleteRequest,
    PaperResponse,
    ProjectResponse,
    SubmissionMutationResponse,
    SubmissionListResponse,
    BulkActionResponse,
    StatsResponse,
    AuditEntryResponse,
    serialize_submission,
)
from researchcell.schemas.user import (
    UserRef,
    UserResponse,
    UserSearchResponse,
    RoleChangeRequest,
    RoleChangeResponse,
)

__all__ = [
    "PaperCreate",
    "ProjectCreate",
    "PaperUpdate",
    "ProjectUpdate",
    "AssignReviewerRequest",
    "DecisionRequest",
    "RequestUpdatesRequest",
    "SubmitRevisionRequest",
    "AdminActionRequest",
    "BulkActionRequest",
    "BulkDeleteRequest",
    "PaperResponse",
    "ProjectResponse",
    "SubmissionMutationResponse",
    "SubmissionListResponse",
    "BulkActionResponse",
    "StatsResponse",
    "AuditEntryResponse",
    "serialize_submission",
    "UserRef",
    "UserResponse",
    "UserSearchResponse",
    "RoleChangeRequest",
    "RoleChangeResponse",
]
