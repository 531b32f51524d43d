"""
Research Cell Portal - HTTP Middleware
Access control, request/response logging and security headers
"""

import time
from typing import Callable, Set
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request, HTTPConnection
from starlette.responses import Response, JSONResponse, RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from researchcell.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    set_submission_id,
    generate_request_id,
)
from researchcell.core.rate_limiter import set_rate_limit_tier
from researchcell.core.types import is_valid_uuid
from researchcell.modules.auth.access_guard import DecisionKind, authorize
from researchcell.modules.auth.role_resolver import (
    IDENTITY_HEADERS,
    identity_to_headers,
    resolve_identity,
    token_from_request,
)


# Paths that should skip detailed logging (health checks, docs)
SKIP_LOGGING_PATHS: Set[str] = {
    "/health",
    "/api/v1/health",
    "/",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    if path in SKIP_LOGGING_PATHS:
        return True
    if path.startswith("/static/") or path.endswith((".js", ".css", ".png", ".ico")):
        return True
    return False


def submission_id_from_path(path: str) -> str:
    """First UUID-looking path segment, used as the submission id log context"""
    for segment in path.split("/"):
        if len(segment) == 36 and is_valid_uuid(segment):
            return segment
    return ""


class AccessGuardMiddleware:
    """
    Pure ASGI middleware that enforces the route table.

    Resolves the caller from the bearer header or session cookie, asks the
    access guard for a decision and either answers the request itself
    (redirect / 401 / 403) or forwards it with the identity attached as
    x-user-id / x-user-type / x-user-email headers and on request.state.

    NOTE: Uses pure ASGI instead of BaseHTTPMiddleware so the rewritten
    headers reach the endpoint.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        path = scope.get("path", "/")
        identity = resolve_identity(token_from_request(conn))
        decision = authorize(path, identity)

        if decision.kind == DecisionKind.REDIRECT_TO_LOGIN:
            response: Response = RedirectResponse(decision.redirect_to, status_code=decision.status_code)
            await response(scope, receive, send)
            return

        if decision.kind in (DecisionKind.UNAUTHORIZED, DecisionKind.FORBIDDEN):
            logger.log_auth_event(
                "route_guard", success=False,
                user_email=identity.email if identity else None,
                reason=f"{decision.message} ({path})",
            )
            response = JSONResponse(status_code=decision.status_code, content={"error": decision.message})
            await response(scope, receive, send)
            return

        # Client supplied identity headers are never trusted
        headers = [
            (name, value) for name, value in scope.get("headers", [])
            if name.decode("latin-1").lower() not in IDENTITY_HEADERS
        ]
        modified_scope = dict(scope)
        modified_scope["state"] = dict(scope.get("state") or {})
        if identity is not None:
            headers.extend(identity_to_headers(identity))
            modified_scope["state"]["identity"] = identity
            set_user_id(identity.user_id)
        modified_scope["headers"] = headers
        set_rate_limit_tier(identity)

        await self.app(modified_scope, receive, send)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    Features:
    - Generates and tracks request IDs for correlation
    - Logs request method, path, status, and duration
    - Sets context variables for downstream logging
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        path = request.url.path
        submission_id = submission_id_from_path(path)
        if submission_id:
            set_submission_id(submission_id)

        skip_logging = should_skip_logging(path)
        start_time = time.perf_counter()

        if not skip_logging:
            client_ip = request.client.host if request.client else "unknown"
            logger.info(
                f"→ {request.method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": path,
                    "client_ip": client_ip,
                    "user_agent": request.headers.get("user-agent", ""),
                }
            )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not skip_logging:
                logger.log_request(request.method, path, response.status_code, duration_ms)

                # Performance warning for slow requests
                if duration_ms > 1000:
                    logger.warning(
                        f"Slow request: {request.method} {path} took {duration_ms:.2f}ms",
                        extra={
                            "event_type": "slow_request",
                            "http_method": request.method,
                            "http_path": path,
                            "duration_ms": duration_ms,
                        }
                    )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"✗ {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                }
            )
            raise

        finally:
            # Clear context variables
            set_request_id("")
            set_user_id("")
            set_submission_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
