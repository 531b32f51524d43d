# API endpoints
from . import admin, health, published, review, student, submissions, users

__all__ = ["admin", "health", "published", "review", "student", "submissions", "users"]
