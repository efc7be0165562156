# insegnami/models/tenant_specific/payment.py
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Text, Enum, Uuid, CheckConstraint, Index
from ..base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


class Payment(Base):
    __tablename__ = "payments"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id"), nullable=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, name="payment_method"), default=PaymentMethod.BANK_TRANSFER, nullable=False)
    status = Column(Enum(PaymentStatus, name="payment_status"), default=PaymentStatus.PENDING, nullable=False)
    due_date = Column(DateTime, nullable=False)
    paid_date = Column(DateTime)
    description = Column(String(500))
    reference = Column(String(100))
    notes = Column(Text)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_tenant_status_due", "tenant_id", "status", "due_date"),
    )
