"""
Role Resolver
=============
Turns an opaque session token into an Identity (user id, email, role).

The resolver never raises for a missing or bad token: it logs the failure
and returns None, leaving the "what now" decision to the access guard.
"""

from dataclasses import dataclass
from typing import Optional, Mapping

from starlette.requests import HTTPConnection

from researchcell.core.config import settings
from researchcell.core.exceptions import AuthenticationError
from researchcell.core.logging_config import logger
from researchcell.core.security import decode_token
from researchcell.core.types import is_valid_uuid, normalize_uuid
from researchcell.models.user import UserRole


# Headers the access guard attaches to authorized requests
USER_ID_HEADER = "x-user-id"
USER_TYPE_HEADER = "x-user-type"
USER_EMAIL_HEADER = "x-user-email"
IDENTITY_HEADERS = (USER_ID_HEADER, USER_TYPE_HEADER, USER_EMAIL_HEADER)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller"""
    user_id: str
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def _parse_role(value: Optional[str]) -> Optional[UserRole]:
    if not value:
        return None
    try:
        return UserRole(str(value).upper())
    except ValueError:
        return None


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    """Verify a session token and read the identity claims from it"""
    if not token:
        return None

    try:
        payload = decode_token(token)
    except AuthenticationError as e:
        logger.log_auth_event("token_verify", success=False, reason=e.message)
        return None

    user_id = payload.get("sub")
    email = payload.get("email") or ""
    role = _parse_role(payload.get("role"))

    if not user_id or not is_valid_uuid(user_id):
        logger.log_auth_event("token_verify", success=False, reason="Invalid token payload")
        return None

    if role is None:
        logger.log_auth_event(
            "token_verify", success=False, user_email=email,
            reason=f"Unknown role claim: {payload.get('role')!r}"
        )
        return None

    return Identity(user_id=normalize_uuid(user_id), email=email, role=role)


def token_from_request(conn: HTTPConnection) -> Optional[str]:
    """Bearer header first, then the session cookie"""
    auth_header = conn.headers.get("authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return conn.cookies.get(settings.SESSION_COOKIE_NAME) or None


def identity_from_headers(headers: Mapping[str, str]) -> Optional[Identity]:
    """Rebuild the identity the access guard propagated on the request"""
    user_id = headers.get(USER_ID_HEADER)
    role = _parse_role(headers.get(USER_TYPE_HEADER))
    if not user_id or role is None:
        return None
    return Identity(user_id=user_id, email=headers.get(USER_EMAIL_HEADER, ""), role=role)


def identity_to_headers(identity: Identity) -> list:
    """Raw ASGI header pairs for an identity"""
    return [
        (USER_ID_HEADER.encode("latin-1"), identity.user_id.encode("latin-1")),
        (USER_TYPE_HEADER.encode("latin-1"), identity.role.value.encode("latin-1")),
        (USER_EMAIL_HEADER.encode("latin-1"), identity.email.encode("latin-1", "replace")),
    ]
