from datetime import datetime
from decimal import Decimal

import pytest

from insegnami.models import AttendanceStatus, PaymentStatus
from insegnami.utils.aggregation import (
    absentee_rate, attendance_rate, average_lesson_attendance, percentage,
    summarize_attendance, summarize_payments
)


@pytest.mark.parametrize(
    "part,total,expected",
    [
        (0, 0, 0),
        (5, 0, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (1, 200, 1),
        (1, 201, 0),
        (10, 10, 100),
        (Decimal("12.50"), Decimal("50.00"), 25),
    ],
)
def test_percentage_rounds_half_up(part, total, expected):
    assert percentage(part, total) == expected


def test_rates_on_empty_data_are_zero():
    assert attendance_rate(0, 0) == 0
    assert absentee_rate(0, 0) == 0


def test_average_lesson_attendance_skips_lessons_without_students():
    lessons = [
        {"present": 3, "enrolled": 4},
        {"present": 0, "enrolled": 0},
        {"present": 1, "enrolled": 2},
    ]
    assert average_lesson_attendance(lessons) == 63
    assert average_lesson_attendance([]) == 0
    assert average_lesson_attendance([{"present": 0, "enrolled": 0}]) == 0


def test_summarize_attendance_accepts_enum_keys():
    summary = summarize_attendance({
        AttendanceStatus.PRESENT: 6,
        AttendanceStatus.ABSENT: 2,
        AttendanceStatus.LATE: 1,
        AttendanceStatus.EXCUSED: 1,
    })
    assert summary == {
        "total": 10,
        "present": 6,
        "absent": 2,
        "late": 1,
        "excused": 1,
        "attendanceRate": 60,
        "absenteeRate": 20,
    }


def test_summarize_attendance_empty():
    summary = summarize_attendance({})
    assert summary["total"] == 0
    assert summary["attendanceRate"] == 0
    assert summary["absenteeRate"] == 0


def test_summarize_payments():
    month_start = datetime(2026, 10, 1)
    buckets = [datetime(2026, 8, 1), datetime(2026, 9, 1), datetime(2026, 10, 1)]
    rows = [
        {"status": PaymentStatus.PAID, "amount": Decimal("100.00"), "paid_date": datetime(2026, 10, 5)},
        {"status": PaymentStatus.PAID, "amount": Decimal("50.00"), "paid_date": datetime(2026, 9, 20)},
        {"status": PaymentStatus.PENDING, "amount": Decimal("30.00"), "paid_date": None},
        {"status": PaymentStatus.OVERDUE, "amount": Decimal("20.00"), "paid_date": None},
        {"status": PaymentStatus.CANCELLED, "amount": Decimal("10.00"), "paid_date": None},
    ]

    summary = summarize_payments(rows, month_start, monthly_buckets=buckets)

    assert summary["totalPayments"] == 5
    assert summary["paidPayments"] == 2
    assert summary["pendingPayments"] == 1
    assert summary["overduePayments"] == 1
    assert summary["cancelledPayments"] == 1
    assert summary["totalRevenue"] == 150.0
    assert summary["pendingAmount"] == 30.0
    assert summary["overdueAmount"] == 20.0
    assert summary["paidThisMonth"] == 100.0
    # cancelled payments are not billable
    assert summary["collectionRate"] == 50
    assert summary["monthlyRevenue"] == [
        {"month": "2026-08", "amount": 0.0},
        {"month": "2026-09", "amount": 50.0},
        {"month": "2026-10", "amount": 100.0},
    ]
    distribution = {d["status"]: d for d in summary["statusDistribution"]}
    assert distribution["PAID"]["percentage"] == 40
    assert distribution["REFUNDED"]["count"] == 0


def test_summarize_payments_empty():
    summary = summarize_payments([], datetime(2026, 10, 1))
    assert summary["totalPayments"] == 0
    assert summary["collectionRate"] == 0
    assert "monthlyRevenue" not in summary
