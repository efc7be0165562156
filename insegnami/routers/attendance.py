from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.attendance import AttendanceStatus
from ..schemas.record_schemas import AttendanceRecord, BulkAttendanceRequest
from ..services.attendance_service import AttendanceService
from ..services.export_service import ExportService
from ..utils.pagination import PaginationParams, Paginator
from ..utils.timeutils import to_naive_utc

router = APIRouter(prefix="/api/v1/attendance", tags=["Attendance"])


def attendance_filters(
    lesson_id: Optional[UUID] = Query(None, alias="lessonId"),
    student_id: Optional[UUID] = Query(None, alias="studentId"),
    class_id: Optional[UUID] = Query(None, alias="classId"),
    status: Optional[AttendanceStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
) -> dict:
    return {
        "lesson_id": lesson_id,
        "student_id": student_id,
        "class_id": class_id,
        "status": status,
        "start_date": to_naive_utc(start_date),
        "end_date": to_naive_utc(end_date),
    }


@router.get("")
async def list_attendance(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    filters: dict = Depends(attendance_filters),
    claims: Claims = Depends(require(Action.ATTENDANCE_READ)),
    db: AsyncSession = Depends(get_db),
):
    result = await AttendanceService(db, claims).list_attendance(
        page=pagination.page, limit=pagination.limit, **filters
    )
    return Paginator.create_response(
        [AttendanceService.format(a) for a in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/stats")
async def attendance_stats(
    filters: dict = Depends(attendance_filters),
    claims: Claims = Depends(require(Action.ATTENDANCE_STATS)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService(db, claims).get_stats(**filters)


@router.get("/export")
async def export_attendance(
    format: Optional[str] = Query("csv"),
    claims: Claims = Depends(require(Action.ATTENDANCE_EXPORT)),
    db: AsyncSession = Depends(get_db),
):
    return await ExportService(db, claims).export("attendance", format)


@router.post("", status_code=201)
async def record_attendance(
    data: AttendanceRecord,
    claims: Claims = Depends(require(Action.ATTENDANCE_RECORD)),
    db: AsyncSession = Depends(get_db),
):
    """Record or overwrite one student's attendance for a lesson"""
    return AttendanceService.format(await AttendanceService(db, claims).record(data))


@router.post("/bulk")
async def bulk_record_attendance(
    data: BulkAttendanceRequest,
    claims: Claims = Depends(require(Action.ATTENDANCE_RECORD)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService(db, claims).bulk_record(data)
