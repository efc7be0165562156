"""Health check endpoints."""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
import logging

from ..core.config import settings
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "InsegnaMi API",
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": utcnow().isoformat(),
    }

@router.get("/db")
async def database_health(request: Request):
    """Database connectivity check"""
    healthy = await request.app.state.db.health_check()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "database": "connected" if healthy else "unreachable"},
    )

@router.get("/cache")
async def cache_health(request: Request):
    """Redis cache health check"""
    healthy = await request.app.state.cache.ping()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "cache": "connected" if healthy else "unreachable"},
    )
