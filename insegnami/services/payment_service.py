# insegnami/services/payment_service.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404
from ..models.lifecycle import ensure_transition
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.payment import Payment, PaymentStatus
from ..models.tenant_specific.student import Student
from ..schemas.record_schemas import PaymentCreate, PaymentStatusUpdate, PaymentUpdate
from ..utils.aggregation import summarize_payments
from ..utils.timeutils import month_start, utcnow

logger = logging.getLogger(__name__)

MONTHS_OF_HISTORY = 12


class PaymentService(BaseService[Payment]):
    label = "Payment"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Payment, db, claims)

    def _filters(
        self,
        status: Optional[PaymentStatus] = None,
        student_id: Optional[UUID] = None,
        class_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        criteria = []
        if status:
            criteria.append(Payment.status == status)
        if student_id:
            criteria.append(Payment.student_id == student_id)
        if class_id:
            criteria.append(Payment.class_id == class_id)
        if start_date:
            criteria.append(Payment.due_date >= start_date)
        if end_date:
            criteria.append(Payment.due_date <= end_date)
        return criteria

    async def list_payments(self, page: int = 1, limit: int = 20, **filters) -> Dict[str, Any]:
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=self._filters(**filters),
            order_by=[Payment.due_date.desc()],
        )

    async def create_payment(self, data: PaymentCreate) -> Payment:
        await get_scoped_or_404(self.db, Student, data.student_id, self.claims, label="Student")
        if data.class_id:
            await get_scoped_or_404(self.db, ClassModel, data.class_id, self.claims, label="Class")
        payment = await self.create({**data.model_dump(), "status": PaymentStatus.PENDING})
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} created payment {payment.id}")
        return payment

    async def update_payment(self, payment_id: UUID, data: PaymentUpdate) -> Payment:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("class_id"):
            await get_scoped_or_404(self.db, ClassModel, changes["class_id"], self.claims, label="Class")
        return await self.update(payment_id, changes)

    async def change_status(self, payment_id: UUID, data: PaymentStatusUpdate) -> Payment:
        payment = await self.get(payment_id)
        ensure_transition("Payment", payment.status, data.status)
        payment.status = data.status
        if data.status == PaymentStatus.PAID:
            payment.paid_date = data.paid_date or utcnow()
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: payment {payment.id} moved to {data.status.value}")
        return payment

    async def mark_overdue(self) -> int:
        """Flip PENDING payments past their due date to OVERDUE in one statement."""
        stmt = self.scoped(
            update(Payment)
            .where(Payment.status == PaymentStatus.PENDING, Payment.due_date < utcnow())
            .values(status=PaymentStatus.OVERDUE, updated_at=utcnow())
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        if result.rowcount:
            logger.info(f"Tenant {self.tenant_id}: flipped {result.rowcount} payments to OVERDUE")
        return result.rowcount

    async def get_stats(self, **filters) -> Dict[str, Any]:
        """Payment totals; stale PENDING rows are flipped first so they count as overdue."""
        flipped = await self.mark_overdue()
        now = utcnow()
        stmt = self.scoped(
            select(Payment.status, Payment.amount, Payment.paid_date)
        ).where(*self._filters(**filters))
        rows = [row._asdict() for row in (await self.db.execute(stmt)).all()]
        buckets = [month_start(now, back) for back in range(MONTHS_OF_HISTORY - 1, -1, -1)]
        return {
            **summarize_payments(rows, month_start(now), monthly_buckets=buckets),
            "markedOverdue": flipped,
        }

    @staticmethod
    def format(payment: Payment) -> Dict[str, Any]:
        return {
            "id": str(payment.id),
            "tenantId": str(payment.tenant_id),
            "studentId": str(payment.student_id),
            "classId": str(payment.class_id) if payment.class_id else None,
            "amount": float(payment.amount),
            "paymentMethod": payment.payment_method.value,
            "status": payment.status.value,
            "dueDate": payment.due_date.isoformat(),
            "paidDate": payment.paid_date.isoformat() if payment.paid_date else None,
            "description": payment.description,
            "reference": payment.reference,
            "notes": payment.notes,
            "createdAt": payment.created_at.isoformat(),
        }
