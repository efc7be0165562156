from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import Claims
from ..models.tenant_specific.payment import PaymentStatus
from ..schemas.record_schemas import PaymentCreate, PaymentStatusUpdate, PaymentUpdate
from ..services.export_service import ExportService
from ..services.payment_service import PaymentService
from ..utils.pagination import PaginationParams, Paginator
from ..utils.timeutils import to_naive_utc

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


def payment_filters(
    status: Optional[PaymentStatus] = Query(None),
    student_id: Optional[UUID] = Query(None, alias="studentId"),
    class_id: Optional[UUID] = Query(None, alias="classId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
) -> dict:
    return {
        "status": status,
        "student_id": student_id,
        "class_id": class_id,
        "start_date": to_naive_utc(start_date),
        "end_date": to_naive_utc(end_date),
    }


@router.get("")
async def list_payments(
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    filters: dict = Depends(payment_filters),
    claims: Claims = Depends(require(Action.PAYMENT_READ)),
    db: AsyncSession = Depends(get_db),
):
    result = await PaymentService(db, claims).list_payments(page=pagination.page, limit=pagination.limit, **filters)
    return Paginator.create_response(
        [PaymentService.format(p) for p in result["items"]], result["page"], result["limit"], result["total"]
    )


@router.get("/stats")
async def payment_stats(
    filters: dict = Depends(payment_filters),
    claims: Claims = Depends(require(Action.PAYMENT_STATS)),
    db: AsyncSession = Depends(get_db),
):
    """Totals per status; overdue payments are flipped before counting"""
    return await PaymentService(db, claims).get_stats(**filters)


@router.get("/export")
async def export_payments(
    format: Optional[str] = Query("csv"),
    claims: Claims = Depends(require(Action.PAYMENT_EXPORT)),
    db: AsyncSession = Depends(get_db),
):
    return await ExportService(db, claims).export("payments", format)


@router.get("/{payment_id}")
async def get_payment(
    payment_id: UUID,
    claims: Claims = Depends(require(Action.PAYMENT_READ)),
    db: AsyncSession = Depends(get_db),
):
    return PaymentService.format(await PaymentService(db, claims).get(payment_id))


@router.post("", status_code=201)
async def create_payment(
    data: PaymentCreate,
    claims: Claims = Depends(require(Action.PAYMENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return PaymentService.format(await PaymentService(db, claims).create_payment(data))


@router.put("/{payment_id}")
async def update_payment(
    payment_id: UUID,
    data: PaymentUpdate,
    claims: Claims = Depends(require(Action.PAYMENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return PaymentService.format(await PaymentService(db, claims).update_payment(payment_id, data))


@router.patch("/{payment_id}/status")
async def change_payment_status(
    payment_id: UUID,
    data: PaymentStatusUpdate,
    claims: Claims = Depends(require(Action.PAYMENT_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    return PaymentService.format(await PaymentService(db, claims).change_status(payment_id, data))
