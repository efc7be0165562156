from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.notice import NoticeType
from ..schemas.communication_schemas import NoticeCreate, NoticeUpdate
from ..services.notice_service import NoticeService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/notices", tags=["Notices"])


@router.get("")
async def list_notices(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    type: Optional[NoticeType] = Query(None),
    urgent_only: bool = Query(False, alias="urgentOnly"),
    claims: Claims = Depends(require(Action.NOTICE_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Published, unexpired notices addressed to the caller; pinned and urgent first"""
    result = await NoticeService(db, claims).list_notices(
        page=pagination.page, limit=pagination.limit, type=type, urgent_only=urgent_only
    )
    return Paginator.create_response(
        [NoticeService.format(n) for n in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/{notice_id}")
async def get_notice(
    notice_id: UUID,
    claims: Claims = Depends(require(Action.NOTICE_READ)),
    db: AsyncSession = Depends(get_db),
):
    return NoticeService.format(await NoticeService(db, claims).get(notice_id))


@router.post("", status_code=201)
async def create_notice(
    data: NoticeCreate,
    claims: Claims = Depends(require(Action.NOTICE_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return NoticeService.format(await NoticeService(db, claims).create_notice(data))


@router.put("/{notice_id}")
async def update_notice(
    notice_id: UUID,
    data: NoticeUpdate,
    claims: Claims = Depends(require(Action.NOTICE_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return NoticeService.format(await NoticeService(db, claims).update_notice(notice_id, data))


@router.delete("/{notice_id}")
async def delete_notice(
    notice_id: UUID,
    claims: Claims = Depends(require(Action.NOTICE_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    await NoticeService(db, claims).delete_notice(notice_id)
    return {"message": "Notice deleted", "id": str(notice_id)}
