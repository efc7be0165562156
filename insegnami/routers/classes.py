from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..schemas.class_schemas import ClassCreate, ClassUpdate, EnrollRequest
from ..services.class_service import ClassService
from ..services.enrollment_service import EnrollmentService
from ..services.export_service import ExportService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/classes", tags=["Classes"])


@router.get("")
async def list_classes(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    search: Optional[str] = Query(None, max_length=100),
    teacher_id: Optional[UUID] = Query(None, alias="teacherId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    claims: Claims = Depends(require(Action.CLASS_READ)),
    db: AsyncSession = Depends(get_db),
):
    result = await ClassService(db, claims).list_classes(
        page=pagination.page, limit=pagination.limit, search=search, teacher_id=teacher_id, is_active=is_active
    )
    return Paginator.create_response(
        [ClassService.format(c) for c in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/export")
async def export_classes(
    format: Optional[str] = Query("csv"),
    claims: Claims = Depends(require(Action.CLASS_EXPORT)),
    db: AsyncSession = Depends(get_db),
):
    return await ExportService(db, claims).export("classes", format)


@router.get("/{class_id}")
async def get_class(
    class_id: UUID,
    claims: Claims = Depends(require(Action.CLASS_READ)),
    db: AsyncSession = Depends(get_db),
):
    return ClassService.format(await ClassService(db, claims).get_class(class_id))


@router.get("/{class_id}/stats")
async def class_stats(
    class_id: UUID,
    claims: Claims = Depends(require(Action.CLASS_STATS)),
    db: AsyncSession = Depends(get_db),
):
    """Enrollment, lesson completion and attendance figures"""
    return await ClassService(db, claims).get_class_stats(class_id)


@router.get("/{class_id}/students")
async def class_students(
    class_id: UUID,
    claims: Claims = Depends(require(Action.STUDENT_READ)),
    db: AsyncSession = Depends(get_db),
):
    students = await ClassService(db, claims).get_enrolled_students(class_id)
    return {"classId": str(class_id), "students": students, "total": len(students)}


@router.post("", status_code=201)
async def create_class(
    data: ClassCreate,
    claims: Claims = Depends(require(Action.CLASS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return ClassService.format(await ClassService(db, claims).create_class(data))


@router.put("/{class_id}")
async def update_class(
    class_id: UUID,
    data: ClassUpdate,
    claims: Claims = Depends(require(Action.CLASS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return ClassService.format(await ClassService(db, claims).update_class(class_id, data))


@router.delete("/{class_id}")
async def delete_class(
    class_id: UUID,
    claims: Claims = Depends(require(Action.CLASS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the class is marked inactive"""
    class_obj = await ClassService(db, claims).deactivate(class_id)
    return {"message": "Class deactivated", "id": str(class_obj.id), "isActive": class_obj.is_active}


@router.post("/{class_id}/enroll")
async def enroll_students(
    class_id: UUID,
    data: EnrollRequest,
    claims: Claims = Depends(require(Action.CLASS_ENROLL)),
    db: AsyncSession = Depends(get_db),
):
    """Enroll a batch of students; the whole batch fails if it does not fit"""
    return await EnrollmentService(db, claims).enroll(class_id, data.student_ids)


@router.post("/{class_id}/unenroll")
async def unenroll_students(
    class_id: UUID,
    data: EnrollRequest,
    claims: Claims = Depends(require(Action.CLASS_ENROLL)),
    db: AsyncSession = Depends(get_db),
):
    return await EnrollmentService(db, claims).unenroll(class_id, data.student_ids)
