"""
Custom Exceptions for the Research Cell Portal
==============================================

Every error raised by the workflow carries a machine readable code, a
human readable message and the HTTP status it maps to. The API layer turns
them into JSON with `error_response()`; nothing below this layer builds
HTTP responses itself.

Usage:
    from researchcell.core.exceptions import SubmissionNotFoundError, ConflictError

    if submission is None:
        raise SubmissionNotFoundError("project", project_id)
"""

from typing import Optional, Any, Dict, List


class ResearchCellError(Exception):
    """Base exception for all portal errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# ============================================
# Validation Errors (400)
# ============================================

class ValidationError(ResearchCellError):
    """Input validation failed"""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        issues: Optional[List[Dict[str, str]]] = None
    ):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if issues:
            details["issues"] = issues
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidRoleError(ValidationError):
    """A user does not hold the role the operation needs (e.g. a student as reviewer)"""

    def __init__(self, user_id: str, role: str, expected: List[str]):
        super().__init__(
            f"User '{user_id}' has role {role}; expected one of: {', '.join(expected)}"
        )
        self.code = "INVALID_ROLE"
        self.details = {"user_id": user_id, "role": role, "expected": expected}


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(ResearchCellError):
    """No session, or the session could not be verified"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="AUTH_REQUIRED")


class TokenExpiredError(AuthenticationError):
    """Session token has expired"""

    def __init__(self):
        super().__init__("Token has expired")
        self.code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """Session token is malformed or carries bad claims"""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(reason)
        self.code = "INVALID_TOKEN"


class AuthorizationError(ResearchCellError):
    """Role or ownership guard failed"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", action: Optional[str] = None):
        details = {"action": action} if action else {}
        super().__init__(message, code="NOT_AUTHORIZED", details=details)


# ============================================
# Resource Errors (404)
# ============================================

class ResourceNotFoundError(ResearchCellError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type.capitalize()} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class SubmissionNotFoundError(ResourceNotFoundError):
    """Paper or project not found"""

    def __init__(self, kind: str, submission_id: str):
        super().__init__(kind, submission_id)


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("user", user_id)


class SubmissionsNotFoundError(ResearchCellError):
    """Some ids of a bulk request did not resolve"""

    status_code = 404

    def __init__(self, kind: str, missing_ids: List[str]):
        super().__init__(
            f"{len(missing_ids)} {kind}(s) not found",
            code=f"{kind.upper()}_NOT_FOUND",
            details={"missing_ids": missing_ids}
        )


# ============================================
# State Errors (409)
# ============================================

class ConflictError(ResearchCellError):
    """The requested state transition is not allowed right now"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class InvalidTransitionError(ConflictError):
    """No transition exists for (current state, event)"""

    def __init__(self, current: str, event: str):
        super().__init__(
            f"Cannot apply '{event}' while reviewer status is {current}",
            details={"current_status": current, "event": event}
        )
        self.code = "INVALID_TRANSITION"


class ConcurrentUpdateError(ConflictError):
    """Optimistic concurrency check failed"""

    def __init__(self, kind: str, submission_id: Optional[str] = None):
        target = f"{kind.capitalize()} '{submission_id}'" if submission_id else f"This {kind}"
        super().__init__(
            f"{target} was modified by another request, retry",
            details={"kind": kind, "submission_id": submission_id}
        )
        self.code = "CONCURRENT_UPDATE"


# ============================================
# Internal Errors (500)
# ============================================

class InternalError(ResearchCellError):
    """Persistence or unexpected failure"""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, code="INTERNAL_ERROR")


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: ResearchCellError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "error": error.message,
        "code": error.code,
        "details": error.details
    }
