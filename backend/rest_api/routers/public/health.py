"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config.logging import rest_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.redis_pool import check_redis_health


router = APIRouter(prefix="/api", tags=["health"])


def check_database_health() -> dict:
    """Check database connectivity."""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


@router.get("/health/detailed")
def detailed_health_check():
    """
    Detailed health check that verifies connectivity to the database and,
    when notifications go through Redis, to Redis.

    Returns 503 Service Unavailable if any dependency is down.
    """
    dependencies = {"database": check_database_health()}
    if settings.notifications_enabled:
        dependencies["redis"] = check_redis_health()

    all_healthy = all(dep["status"] == "healthy" for dep in dependencies.values())
    checks = {
        "service": "rest-api",
        "environment": settings.environment,
        "status": "healthy" if all_healthy else "degraded",
        "dependencies": dependencies,
    }

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
