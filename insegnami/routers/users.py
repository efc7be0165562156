"""Tenant member management (admin only)."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.queue import JobQueue, get_job_queue
from ..core.security import Claims
from ..models.shared.user import Role, UserStatus
from ..schemas.auth_schemas import InviteUserRequest, MemberUpdate
from ..services.auth_service import AuthService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("")
async def list_users(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    role: Optional[Role] = Query(None),
    status: Optional[UserStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    claims: Claims = Depends(require(Action.USER_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """List members of the caller's school"""
    result = await AuthService(db).list_members(
        claims, page=pagination.page, limit=pagination.limit, role=role, status=status, search=search
    )
    return Paginator.create_response(result["items"], result["page"], result["limit"], result["total"])


@router.post("", status_code=201)
async def invite_user(
    data: InviteUserRequest,
    claims: Claims = Depends(require(Action.USER_MANAGE)),
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    return await AuthService(db, queue).invite_user(claims, data)


@router.patch("/{user_id}")
async def update_user(
    user_id: UUID,
    data: MemberUpdate,
    claims: Claims = Depends(require(Action.USER_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).update_member(claims, user_id, data)
