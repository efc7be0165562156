from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.teacher import TeacherStatus
from ..schemas.people_schemas import BulkDeleteRequest, TeacherCreate, TeacherUpdate
from ..services.export_service import ExportService
from ..services.teacher_service import TeacherService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/teachers", tags=["Teachers"])


@router.get("")
async def list_teachers(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[TeacherStatus] = Query(None),
    claims: Claims = Depends(require(Action.TEACHER_READ)),
    db: AsyncSession = Depends(get_db),
):
    result = await TeacherService(db, claims).list_teachers(
        page=pagination.page, limit=pagination.limit, search=search, status=status
    )
    return Paginator.create_response(
        [TeacherService.format(t) for t in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/export")
async def export_teachers(
    format: Optional[str] = Query("csv"),
    claims: Claims = Depends(require(Action.TEACHER_EXPORT)),
    db: AsyncSession = Depends(get_db),
):
    return await ExportService(db, claims).export("teachers", format)


@router.post("/bulk-delete")
async def bulk_delete_teachers(
    data: BulkDeleteRequest,
    claims: Claims = Depends(require(Action.TEACHER_BULK_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    deactivated = await TeacherService(db, claims).bulk_deactivate(data.ids)
    return {"message": f"{deactivated} teachers deactivated", "deactivated": deactivated}


@router.get("/{teacher_id}")
async def get_teacher(
    teacher_id: UUID,
    claims: Claims = Depends(require(Action.TEACHER_READ)),
    db: AsyncSession = Depends(get_db),
):
    return TeacherService.format(await TeacherService(db, claims).get(teacher_id))


@router.post("", status_code=201)
async def create_teacher(
    data: TeacherCreate,
    claims: Claims = Depends(require(Action.TEACHER_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return TeacherService.format(await TeacherService(db, claims).create_teacher(data))


@router.put("/{teacher_id}")
async def update_teacher(
    teacher_id: UUID,
    data: TeacherUpdate,
    claims: Claims = Depends(require(Action.TEACHER_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return TeacherService.format(await TeacherService(db, claims).update_teacher(teacher_id, data))


@router.delete("/{teacher_id}")
async def delete_teacher(
    teacher_id: UUID,
    claims: Claims = Depends(require(Action.TEACHER_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the teacher becomes INACTIVE"""
    teacher = await TeacherService(db, claims).deactivate(teacher_id)
    return {"message": "Teacher deactivated", "id": str(teacher.id), "status": teacher.status.value}
