from fastapi import APIRouter

from researchcell.api.v1.endpoints import admin, health, published, review, student, submissions, users

api_router = APIRouter()

# Deep health checks (/health/live, /health/ready)
api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "researchcell-backend"}


api_router.include_router(published.router)
api_router.include_router(users.router)
api_router.include_router(submissions.router)
api_router.include_router(student.router)
api_router.include_router(review.router)
api_router.include_router(admin.router)
