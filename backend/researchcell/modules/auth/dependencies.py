from typing import Callable

from fastapi import Depends, Request

from researchcell.core.exceptions import AuthenticationError, AuthorizationError
from researchcell.core.logging_config import set_user_id
from researchcell.models.user import UserRole
from researchcell.modules.auth.role_resolver import (
    Identity,
    identity_from_headers,
    resolve_identity,
    token_from_request,
)


async def get_current_identity(request: Request) -> Identity:
    """
    Get the authenticated caller.

    Prefers the identity the access guard middleware attached to the request;
    falls back to verifying the session token directly when the endpoint is
    mounted without the middleware.
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        identity = identity_from_headers(request.headers)
    if identity is None:
        identity = resolve_identity(token_from_request(request))
    if identity is None:
        raise AuthenticationError()

    set_user_id(identity.user_id)
    return identity


def require_roles(*roles: UserRole, message: str = "Not authorized") -> Callable:
    """Dependency factory: the caller must hold one of `roles`"""
    allowed = frozenset(roles)

    async def _checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise AuthorizationError(message)
        return identity

    return _checker


get_current_admin = require_roles(UserRole.ADMIN, message="Admin access required")
get_current_faculty = require_roles(UserRole.FACULTY, UserRole.ADMIN, message="Faculty access required")
get_current_student = require_roles(UserRole.STUDENT, UserRole.ADMIN, message="Student access required")
