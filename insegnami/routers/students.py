from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.student import StudentStatus
from ..schemas.people_schemas import BulkDeleteRequest, StudentCreate, StudentUpdate
from ..services.export_service import ExportService
from ..services.student_service import StudentService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/v1/students", tags=["Students"])


@router.get("")
async def list_students(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[StudentStatus] = Query(None),
    class_id: Optional[UUID] = Query(None, alias="classId"),
    claims: Claims = Depends(require(Action.STUDENT_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Get paginated students with filtering"""
    result = await StudentService(db, claims).list_students(
        page=pagination.page, limit=pagination.limit, search=search, status=status, class_id=class_id
    )
    return Paginator.create_response(
        [StudentService.format(s) for s in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/stats")
async def student_stats(
    claims: Claims = Depends(require(Action.STUDENT_STATS)),
    db: AsyncSession = Depends(get_db),
):
    return await StudentService(db, claims).get_stats()


@router.get("/export")
async def export_students(
    format: Optional[str] = Query("csv"),
    claims: Claims = Depends(require(Action.STUDENT_EXPORT)),
    db: AsyncSession = Depends(get_db),
):
    return await ExportService(db, claims).export("students", format)


@router.post("/bulk-delete")
async def bulk_delete_students(
    data: BulkDeleteRequest,
    claims: Claims = Depends(require(Action.STUDENT_BULK_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate several students at once"""
    deactivated = await StudentService(db, claims).bulk_deactivate(data.ids)
    return {"message": f"{deactivated} students deactivated", "deactivated": deactivated}


@router.get("/{student_id}")
async def get_student(
    student_id: UUID,
    claims: Claims = Depends(require(Action.STUDENT_READ)),
    db: AsyncSession = Depends(get_db),
):
    student = await StudentService(db, claims).get(student_id)
    return StudentService.format(student, detailed=True)


@router.post("", status_code=201)
async def create_student(
    data: StudentCreate,
    claims: Claims = Depends(require(Action.STUDENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    student = await StudentService(db, claims).create_student(data)
    return StudentService.format(student, detailed=True)


@router.put("/{student_id}")
async def update_student(
    student_id: UUID,
    data: StudentUpdate,
    claims: Claims = Depends(require(Action.STUDENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    student = await StudentService(db, claims).update_student(student_id, data)
    return StudentService.format(student, detailed=True)


@router.delete("/{student_id}")
async def delete_student(
    student_id: UUID,
    claims: Claims = Depends(require(Action.STUDENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the student becomes INACTIVE"""
    student = await StudentService(db, claims).deactivate(student_id)
    return {"message": "Student deactivated", "id": str(student.id), "status": student.status.value}
