"""
Access Guard
============
Two pure decision tables:

1. the route table, evaluated by `authorize(path, identity)` for every
   request before it reaches an endpoint;
2. the action policy table, evaluated by `authorize_action(...)` inside the
   workflow services before any state is touched.

Neither function performs I/O. The middleware in core/middleware.py turns
an AccessDecision into a response.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Tuple
from urllib.parse import urlencode

from researchcell.core.config import settings
from researchcell.core.exceptions import AuthorizationError
from researchcell.models.user import UserRole
from researchcell.modules.auth.role_resolver import Identity


# ============================================
# Route table
# ============================================

PUBLIC_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/signup",
    "/verify",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})

PUBLIC_PREFIXES: Tuple[str, ...] = (
    "/api/v1/auth",
    "/api/v1/published",
    "/api/v1/health",
    "/static",
)

PROTECTED_PREFIXES: Tuple[str, ...] = (
    "/dashboard",
    "/api",
)

ADMIN_PREFIXES: Tuple[str, ...] = (
    "/api/v1/admin",
    "/dashboard/userlist",
    "/dashboard/achievement",
    "/dashboard/adminpaperwork",
    "/dashboard/ongoing-projects",
    "/dashboard/reviewerlist",
)

FACULTY_PREFIXES: Tuple[str, ...] = (
    "/api/v1/review",
    "/dashboard/paper",
    "/dashboard/project",
)

STUDENT_PREFIXES: Tuple[str, ...] = (
    "/api/v1/student",
    "/dashboard/student",
)

ROLE_GATES: Tuple[Tuple[Tuple[str, ...], FrozenSet[UserRole], str], ...] = (
    (ADMIN_PREFIXES, frozenset({UserRole.ADMIN}), "Admin access required"),
    (FACULTY_PREFIXES, frozenset({UserRole.FACULTY, UserRole.ADMIN}), "Faculty access required"),
    (STUDENT_PREFIXES, frozenset({UserRole.STUDENT, UserRole.ADMIN}), "Student access required"),
)


class DecisionKind(str, enum.Enum):
    ALLOW = "ALLOW"
    REDIRECT_TO_LOGIN = "REDIRECT_TO_LOGIN"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class AccessDecision:
    kind: DecisionKind
    status_code: int = 200
    message: Optional[str] = None
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.kind == DecisionKind.ALLOW


ALLOW = AccessDecision(DecisionKind.ALLOW)


def matches_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix match: /api matches /api and /api/x, not /apix"""
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def _under_any(path: str, prefixes: Tuple[str, ...]) -> bool:
    return any(matches_prefix(path, prefix) for prefix in prefixes)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or _under_any(path, PUBLIC_PREFIXES)


def is_api_path(path: str) -> bool:
    return matches_prefix(path, "/api")


def login_redirect_url(path: str) -> str:
    return f"{settings.LOGIN_PATH}?{urlencode({'callbackUrl': path})}"


def authorize(path: str, identity: Optional[Identity]) -> AccessDecision:
    """
    Decide whether `identity` may reach `path`.

    Precedence: public allowlist, then authentication, then the role gates
    from most to least privileged.
    """
    if is_public_path(path):
        return ALLOW

    if identity is None:
        if not _under_any(path, PROTECTED_PREFIXES):
            return ALLOW
        if is_api_path(path):
            return AccessDecision(DecisionKind.UNAUTHORIZED, 401, "Authentication required")
        return AccessDecision(DecisionKind.REDIRECT_TO_LOGIN, 307, redirect_to=login_redirect_url(path))

    for prefixes, roles, message in ROLE_GATES:
        if _under_any(path, prefixes) and identity.role not in roles:
            return AccessDecision(DecisionKind.FORBIDDEN, 403, message)

    return ALLOW


# ============================================
# Action policy table
# ============================================

class WorkflowAction(str, enum.Enum):
    ASSIGN_REVIEWER = "ASSIGN_REVIEWER"
    DECIDE = "DECIDE"
    PUBLISH_DECISION = "PUBLISH_DECISION"
    REQUEST_UPDATES = "REQUEST_UPDATES"
    SUBMIT_REVISION = "SUBMIT_REVISION"
    ADMIN_ACTION = "ADMIN_ACTION"
    BULK_ADMIN_ACTION = "BULK_ADMIN_ACTION"
    DELETE = "DELETE"
    CREATE_SUBMISSION = "CREATE_SUBMISSION"
    CHANGE_ROLE = "CHANGE_ROLE"
    VIEW_AUDIT = "VIEW_AUDIT"
    EDIT_SUBMISSION = "EDIT_SUBMISSION"
    VIEW_SUBMISSION = "VIEW_SUBMISSION"


OwnershipCheck = Callable[[Identity, object, Optional[str]], bool]

NOT_ASSIGNED_REVIEWER = "You are not the assigned reviewer for this submission"


def _is_reviewer(identity: Identity, submission) -> bool:
    return submission is not None and submission.reviewer_id == identity.user_id


def _is_owner(identity: Identity, submission) -> bool:
    return submission is not None and any(user.id == identity.user_id for user in submission.owners)


def _self_assign(identity: Identity, submission, target_user_id: Optional[str]) -> bool:
    if target_user_id != identity.user_id:
        return False
    return submission is None or submission.reviewer_id in (None, identity.user_id)


def _reviewer_or_unassigned(identity: Identity, submission, target_user_id: Optional[str]) -> bool:
    return submission is None or submission.reviewer_id is None or _is_reviewer(identity, submission)


def _assigned_reviewer(identity: Identity, submission, target_user_id: Optional[str]) -> bool:
    return _is_reviewer(identity, submission)


def _member(identity: Identity, submission, target_user_id: Optional[str]) -> bool:
    return _is_owner(identity, submission)


def _viewer(identity: Identity, submission, target_user_id: Optional[str]) -> bool:
    # Faculty are the reviewer pool: any of them may claim an unassigned submission
    return identity.role == UserRole.FACULTY or _is_owner(identity, submission)


@dataclass(frozen=True)
class ActionPolicy:
    roles: FrozenSet[UserRole]
    ownership: Optional[OwnershipCheck] = None
    ownership_message: str = "Not authorized"


_ADMIN_ONLY = frozenset({UserRole.ADMIN})
_REVIEWERS = frozenset({UserRole.FACULTY, UserRole.ADMIN})
_SUBMITTERS = frozenset({UserRole.STUDENT, UserRole.ADMIN})
_EVERYONE = frozenset(UserRole)

ACTION_POLICIES: Dict[WorkflowAction, ActionPolicy] = {
    WorkflowAction.ASSIGN_REVIEWER: ActionPolicy(
        _REVIEWERS, _self_assign,
        "Faculty can only assign themselves to an unassigned submission",
    ),
    WorkflowAction.DECIDE: ActionPolicy(_REVIEWERS, _reviewer_or_unassigned, NOT_ASSIGNED_REVIEWER),
    WorkflowAction.PUBLISH_DECISION: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.REQUEST_UPDATES: ActionPolicy(_REVIEWERS, _assigned_reviewer, NOT_ASSIGNED_REVIEWER),
    WorkflowAction.SUBMIT_REVISION: ActionPolicy(
        _SUBMITTERS, _member, "Only project members can submit a revision",
    ),
    WorkflowAction.ADMIN_ACTION: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.BULK_ADMIN_ACTION: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.DELETE: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.CREATE_SUBMISSION: ActionPolicy(_SUBMITTERS),
    WorkflowAction.CHANGE_ROLE: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.VIEW_AUDIT: ActionPolicy(_ADMIN_ONLY),
    WorkflowAction.EDIT_SUBMISSION: ActionPolicy(
        _SUBMITTERS, _member, "Only authors or members can edit this submission",
    ),
    WorkflowAction.VIEW_SUBMISSION: ActionPolicy(
        _EVERYONE, _viewer, "Only authors, members and reviewers can view this submission",
    ),
}


def authorize_action(
    action: WorkflowAction,
    identity: Identity,
    submission=None,
    target_user_id: Optional[str] = None,
) -> None:
    """
    Check the action policy for `identity`.

    Raises:
        AuthorizationError: role not allowed, or ownership predicate failed
    """
    action = WorkflowAction(action)
    policy = ACTION_POLICIES[action]

    if identity.role not in policy.roles:
        if policy.roles == _ADMIN_ONLY:
            message = "Admin access required"
        else:
            allowed = ", ".join(sorted(role.value for role in policy.roles))
            message = f"Role {identity.role.value} cannot perform {action.value}; requires one of: {allowed}"
        raise AuthorizationError(message, action=action.value)

    if policy.ownership is None:
        return
    if identity.is_admin:
        return
    if not policy.ownership(identity, submission, target_user_id):
        raise AuthorizationError(policy.ownership_message, action=action.value)
