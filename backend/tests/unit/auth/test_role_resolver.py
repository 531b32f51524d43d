"""
Unit Tests for the role resolver
"""
from datetime import timedelta

from starlette.requests import HTTPConnection

from researchcell.core.config import settings
from researchcell.core.security import create_access_token
from researchcell.models.user import UserRole
from researchcell.modules.auth.role_resolver import (
    Identity,
    identity_from_headers,
    identity_to_headers,
    resolve_identity,
    token_from_request,
)

USER_ID = "5a8c1e2f-3b4d-4e6f-8a9b-0c1d2e3f4a5b"


def connection(headers=None):
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return HTTPConnection({"type": "http", "headers": raw})


class TestResolveIdentity:

    def test_valid_token(self):
        token = create_access_token({"sub": USER_ID, "email": "ana@college.edu", "role": "FACULTY"})

        identity = resolve_identity(token)

        assert identity == Identity(user_id=USER_ID, email="ana@college.edu", role=UserRole.FACULTY)
        assert identity.role == UserRole.FACULTY
        assert not identity.is_admin

    def test_role_claim_is_case_insensitive(self):
        token = create_access_token({"sub": USER_ID, "email": "ana@college.edu", "role": "admin"})
        assert resolve_identity(token).is_admin

    def test_user_id_is_normalized(self):
        token = create_access_token({"sub": USER_ID.upper(), "role": "STUDENT"})
        assert resolve_identity(token).user_id == USER_ID

    def test_missing_token(self):
        assert resolve_identity(None) is None
        assert resolve_identity("") is None

    def test_expired_token(self):
        token = create_access_token({"sub": USER_ID, "role": "STUDENT"}, expires_delta=timedelta(seconds=-1))
        assert resolve_identity(token) is None

    def test_unknown_role(self):
        token = create_access_token({"sub": USER_ID, "role": "DEVELOPER"})
        assert resolve_identity(token) is None

    def test_invalid_subject(self):
        token = create_access_token({"sub": "not-a-uuid", "role": "STUDENT"})
        assert resolve_identity(token) is None

    def test_garbage_token(self):
        assert resolve_identity("not.a.jwt") is None


class TestTokenFromRequest:

    def test_bearer_header(self):
        assert token_from_request(connection({"Authorization": "Bearer abc.def"})) == "abc.def"

    def test_session_cookie(self):
        conn = connection({"Cookie": f"{settings.SESSION_COOKIE_NAME}=cookie-token"})
        assert token_from_request(conn) == "cookie-token"

    def test_bearer_wins_over_cookie(self):
        conn = connection({
            "Authorization": "Bearer header-token",
            "Cookie": f"{settings.SESSION_COOKIE_NAME}=cookie-token",
        })
        assert token_from_request(conn) == "header-token"

    def test_no_credentials(self):
        assert token_from_request(connection()) is None


class TestIdentityHeaders:

    def test_header_round_trip(self):
        identity = Identity(user_id=USER_ID, email="ana@college.edu", role=UserRole.STUDENT)
        headers = {k.decode("latin-1"): v.decode("latin-1") for k, v in identity_to_headers(identity)}

        assert headers["x-user-type"] == "STUDENT"
        assert identity_from_headers(headers) == identity

    def test_incomplete_headers(self):
        assert identity_from_headers({"x-user-id": USER_ID}) is None
