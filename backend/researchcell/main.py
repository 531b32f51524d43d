from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from researchcell.core.config import settings
from researchcell.core.database import init_db, close_db, session_scope
from researchcell.core.exceptions import ResearchCellError, ValidationError, InternalError, error_response
from researchcell.core.logging_config import logger
from researchcell.core.middleware import (
    AccessGuardMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from researchcell.core.rate_limiter import limiter, rate_limit_exceeded_handler
from researchcell.api.v1.router import api_router
from researchcell.services.idempotency_service import IdempotencyService

APP_VERSION = "1.0.0"


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if settings.MAX_REVISION_ROUNDS < 0:
        errors.append("MAX_REVISION_ROUNDS must be 0 (unlimited) or positive")

    if settings.IDEMPOTENCY_KEY_TTL_HOURS <= 0:
        errors.append("IDEMPOTENCY_KEY_TTL_HOURS must be positive")

    if not settings.RATE_LIMIT_ENABLED:
        warnings.append("RATE_LIMIT_ENABLED is false - rate limiting disabled")

    if settings.RATE_LIMIT_STORAGE_URI.startswith("memory://") and not settings.is_dev_mode():
        warnings.append("Rate limits are kept in memory - not shared between workers")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


async def purge_expired_idempotency_keys():
    async with session_scope() as session:
        purged = await IdempotencyService(session).purge_expired()
    if purged:
        logger.info(f"[Startup] Purged {purged} expired idempotency keys")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    # Step 1: Validate critical configuration (fail fast!)
    await validate_critical_config()

    # Step 2: Ensure database tables exist
    await init_db()

    # Step 3: Drop idempotency keys that can no longer be replayed
    await purge_expired_idempotency_keys()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Research cell portal: paper and project submissions, review and publication",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
# 1. Default rate limit (innermost, sees the identity attached by the guard)
app.add_middleware(SlowAPIMiddleware)

# 2. Access guard
app.add_middleware(AccessGuardMiddleware)

# 3. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 4. Request logging (runs for every request, including rejected ones)
app.add_middleware(RequestLoggingMiddleware)

# 5. CORS - Origins from CORS_ORIGINS_STR in .env
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(ResearchCellError)
async def portal_exception_handler(request: Request, exc: ResearchCellError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    issues = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    error = ValidationError("Request validation failed", issues=issues)
    return JSONResponse(status_code=error.status_code, content=error_response(error))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    error = InternalError(str(exc) if settings.DEBUG else "An error occurred")
    return JSONResponse(status_code=error.status_code, content=error_response(error))


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to the {settings.APP_NAME}",
        "version": APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "researchcell.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
