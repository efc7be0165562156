from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.lesson import LessonStatus
from ..schemas.class_schemas import LessonCreate, LessonStatusUpdate, LessonUpdate
from ..services.lesson_service import LessonService
from ..utils.pagination import PaginationParams, Paginator
from ..utils.timeutils import to_naive_utc

router = APIRouter(prefix="/api/v1/lessons", tags=["Lessons"])


@router.get("")
async def list_lessons(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    class_id: Optional[UUID] = Query(None, alias="classId"),
    teacher_id: Optional[UUID] = Query(None, alias="teacherId"),
    status: Optional[LessonStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    claims: Claims = Depends(require(Action.LESSON_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Lessons in a date range, earliest first"""
    result = await LessonService(db, claims).list_lessons(
        page=pagination.page,
        limit=pagination.limit,
        class_id=class_id,
        teacher_id=teacher_id,
        status=status,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
    )
    return Paginator.create_response(
        [LessonService.format(l) for l in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: UUID,
    claims: Claims = Depends(require(Action.LESSON_READ)),
    db: AsyncSession = Depends(get_db),
):
    return LessonService.format(await LessonService(db, claims).get_lesson(lesson_id))


@router.post("", status_code=201)
async def create_lesson(
    data: LessonCreate,
    claims: Claims = Depends(require(Action.LESSON_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return LessonService.format(await LessonService(db, claims).create_lesson(data))


@router.put("/{lesson_id}")
async def update_lesson(
    lesson_id: UUID,
    data: LessonUpdate,
    claims: Claims = Depends(require(Action.LESSON_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return LessonService.format(await LessonService(db, claims).update_lesson(lesson_id, data))


@router.patch("/{lesson_id}/status")
async def change_lesson_status(
    lesson_id: UUID,
    data: LessonStatusUpdate,
    claims: Claims = Depends(require(Action.LESSON_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return LessonService.format(await LessonService(db, claims).change_status(lesson_id, data.status))


@router.delete("/{lesson_id}")
async def delete_lesson(
    lesson_id: UUID,
    claims: Claims = Depends(require(Action.LESSON_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await LessonService(db, claims).delete_lesson(lesson_id)
    return {"message": "Lesson deleted", "id": str(lesson_id)}
