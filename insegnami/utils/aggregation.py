# insegnami/utils/aggregation.py
"""Pure statistics helpers used by the stats and dashboard endpoints.

Nothing here touches the database; callers pass in counts or rows they
already fetched. All percentages are integers rounded half-up, and a zero
denominator always yields 0.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

Number = Union[int, float, Decimal]

ATTENDANCE_KEYS = ("PRESENT", "ABSENT", "LATE", "EXCUSED")
PAYMENT_KEYS = ("PENDING", "PAID", "OVERDUE", "CANCELLED", "REFUNDED")


def percentage(part: Number, total: Number) -> int:
    """Round ``part / total * 100`` half-up; 0 when ``total`` is 0."""
    if not total:
        return 0
    value = Decimal(str(part)) * 100 / Decimal(str(total))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def attendance_rate(present: int, total: int) -> int:
    return percentage(present, total)


def absentee_rate(absent: int, total: int) -> int:
    return percentage(absent, total)


def average_lesson_attendance(lessons: Iterable[Mapping[str, int]]) -> int:
    """Average per-lesson attendance rate.

    Each item carries ``present`` and ``enrolled``. Lessons with nobody
    enrolled are left out of the average instead of counting as 0%.
    """
    rates = [
        Decimal(lesson["present"]) * 100 / Decimal(lesson["enrolled"])
        for lesson in lessons
        if lesson.get("enrolled", 0) > 0
    ]
    if not rates:
        return 0
    average = sum(rates) / len(rates)
    return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_attendance(counts: Mapping[Any, int]) -> Dict[str, int]:
    """Shape per-status attendance counts into the stats payload."""
    normalized = {_key(status): count for status, count in counts.items()}
    present = normalized.get("PRESENT", 0)
    absent = normalized.get("ABSENT", 0)
    late = normalized.get("LATE", 0)
    excused = normalized.get("EXCUSED", 0)
    total = sum(normalized.get(k, 0) for k in ATTENDANCE_KEYS)
    return {
        "total": total,
        "present": present,
        "absent": absent,
        "late": late,
        "excused": excused,
        "attendanceRate": attendance_rate(present, total),
        "absenteeRate": absentee_rate(absent, total),
    }


def summarize_payments(
    rows: Sequence[Mapping[str, Any]],
    month_start: datetime,
    monthly_buckets: Optional[Sequence[datetime]] = None,
) -> Dict[str, Any]:
    """Totals over payment rows.

    Each row needs ``status``, ``amount`` and ``paid_date``. Run the overdue
    flip before calling this so stale PENDING rows are counted as OVERDUE.
    ``monthly_buckets`` is an ascending list of month starts; when given,
    paid revenue is also broken down per month.
    """
    counts = {k: 0 for k in PAYMENT_KEYS}
    amounts = {k: Decimal("0") for k in PAYMENT_KEYS}
    paid_this_month = Decimal("0")
    monthly = {bucket: Decimal("0") for bucket in (monthly_buckets or [])}

    for row in rows:
        status = _key(row["status"])
        amount = Decimal(str(row["amount"]))
        counts[status] = counts.get(status, 0) + 1
        amounts[status] = amounts.get(status, Decimal("0")) + amount

        paid_date = row.get("paid_date")
        if status == "PAID" and paid_date is not None:
            if paid_date >= month_start:
                paid_this_month += amount
            for bucket in reversed(monthly_buckets or []):
                if paid_date >= bucket:
                    monthly[bucket] += amount
                    break

    total = len(rows)
    billable = counts["PAID"] + counts["PENDING"] + counts["OVERDUE"]
    summary: Dict[str, Any] = {
        "totalPayments": total,
        "paidPayments": counts["PAID"],
        "pendingPayments": counts["PENDING"],
        "overduePayments": counts["OVERDUE"],
        "cancelledPayments": counts["CANCELLED"],
        "refundedPayments": counts["REFUNDED"],
        "totalRevenue": float(amounts["PAID"]),
        "pendingAmount": float(amounts["PENDING"]),
        "overdueAmount": float(amounts["OVERDUE"]),
        "paidThisMonth": float(paid_this_month),
        "collectionRate": percentage(counts["PAID"], billable),
        "statusDistribution": [
            {"status": k, "count": counts[k], "percentage": percentage(counts[k], total)}
            for k in PAYMENT_KEYS
        ],
    }
    if monthly_buckets is not None:
        summary["monthlyRevenue"] = [
            {"month": bucket.strftime("%Y-%m"), "amount": float(monthly[bucket])}
            for bucket in monthly_buckets
        ]
    return summary


def _key(status: Any) -> str:
    return getattr(status, "value", status)
