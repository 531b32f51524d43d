from researchcell.models.user import User, UserRole, REVIEWER_ROLES
from researchcell.models.submission import (
    SubmissionKind,
    PaperStatus,
    ProjectStatus,
    ReviewerStatus,
    ResearchPaper,
    OnGoingProject,
    SUBMISSION_MODELS,
    model_for,
)
from researchcell.models.revision import RevisionRound
from researchcell.models.audit_log import WorkflowAuditLog
from researchcell.models.idempotency import IdempotencyKey

__all__ = [
    "User",
    "UserRole",
    "REVIEWER_ROLES",
    "SubmissionKind",
    "PaperStatus",
    "ProjectStatus",
    "ReviewerStatus",
    "ResearchPaper",
    "OnGoingProject",
    "SUBMISSION_MODELS",
    "model_for",
    "RevisionRound",
    "WorkflowAuditLog",
    "IdempotencyKey",
]
