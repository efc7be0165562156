from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.notification import NotificationType
from ..schemas.communication_schemas import NotificationCreate, NotificationUpdate
from ..services.notification_service import NotificationService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    unread_only: bool = Query(False, alias="unreadOnly"),
    type: Optional[NotificationType] = Query(None),
    include_dismissed: bool = Query(False, alias="includeDismissed"),
    claims: Claims = Depends(require(Action.NOTIFICATION_READ)),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own notifications, highest priority first"""
    result = await NotificationService(db, claims).list_own(
        page=pagination.page,
        limit=pagination.limit,
        unread_only=unread_only,
        type=type,
        include_dismissed=include_dismissed,
    )
    return Paginator.create_response(
        [NotificationService.format(n) for n in result["items"]],
        result["page"],
        result["limit"],
        result["total"],
        additional_info={"unreadCount": result["unreadCount"]},
    )


@router.post("/mark-all-read")
async def mark_all_read(
    claims: Claims = Depends(require(Action.NOTIFICATION_READ)),
    db: AsyncSession = Depends(get_db),
):
    updated = await NotificationService(db, claims).mark_all_read()
    return {"message": f"{updated} notifications marked as read", "updated": updated}


@router.get("/{notification_id}")
async def get_notification(
    notification_id: UUID,
    claims: Claims = Depends(require(Action.NOTIFICATION_READ)),
    db: AsyncSession = Depends(get_db),
):
    return NotificationService.format(await NotificationService(db, claims).get(notification_id))


@router.patch("/{notification_id}")
async def update_notification(
    notification_id: UUID,
    data: NotificationUpdate,
    claims: Claims = Depends(require(Action.NOTIFICATION_READ)),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService(db, claims).change_status(notification_id, data.target_status)
    return NotificationService.format(notification)


@router.post("", status_code=201)
async def create_notification(
    data: NotificationCreate,
    claims: Claims = Depends(require(Action.NOTIFICATION_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Create a notification for the caller, or for another member when allowed to send"""
    return NotificationService.format(await NotificationService(db, claims).create_notification(data))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    claims: Claims = Depends(require(Action.NOTIFICATION_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService(db, claims).delete_notification(notification_id)
    return {"message": "Notification deleted", "id": str(notification_id)}
