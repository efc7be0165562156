from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.cache import CacheManager, get_cache
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..services.dashboard_service import DashboardService

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/admin")
async def admin_dashboard(
    claims: Claims = Depends(require(Action.DASHBOARD_ADMIN)),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    """School-wide counters, cached per tenant"""
    return await DashboardService(db, claims, cache).get_admin_stats()


@router.get("/student")
async def student_dashboard(
    claims: Claims = Depends(require(Action.DASHBOARD_STUDENT)),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService(db, claims).get_student_dashboard()


@router.get("/parent")
async def parent_dashboard(
    claims: Claims = Depends(require(Action.DASHBOARD_PARENT)),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService(db, claims).get_parent_dashboard()
