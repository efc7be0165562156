from datetime import timedelta

from sqlalchemy import select

from insegnami.models import Payment, PaymentStatus, Role
from insegnami.utils.timeutils import utcnow

from .factories import auth_headers


async def payment_status(session, payment):
    return (await session.execute(select(Payment.status).where(Payment.id == payment.id))).scalar_one()


async def test_stats_count_stale_pending_payments_as_overdue(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    student = await factory.student(tenant)
    stale = await factory.payment(student, amount="80.00", due_date=utcnow() - timedelta(days=3))
    await factory.payment(student, amount="20.00")
    await factory.payment(student, amount="100.00", status=PaymentStatus.PAID, paid_date=utcnow())

    response = await client.get("/api/v1/payments/stats", headers=headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["markedOverdue"] == 1
    assert stats["overduePayments"] == 1
    assert stats["overdueAmount"] == 80.0
    assert stats["pendingPayments"] == 1
    assert stats["paidPayments"] == 1
    assert stats["totalRevenue"] == 100.0
    assert stats["paidThisMonth"] == 100.0
    assert stats["collectionRate"] == 33
    assert len(stats["monthlyRevenue"]) == 12
    assert stats["monthlyRevenue"][-1]["amount"] == 100.0
    assert await payment_status(session, stale) == PaymentStatus.OVERDUE

    again = await client.get("/api/v1/payments/stats", headers=headers)
    assert again.json()["markedOverdue"] == 0
    assert again.json()["overduePayments"] == 1


async def test_paying_sets_paid_date(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    payment = await factory.payment(await factory.student(tenant))

    response = await client.patch(f"/api/v1/payments/{payment.id}/status", json={"status": "PAID"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"
    assert response.json()["paidDate"] is not None


async def test_status_changes_follow_the_lifecycle(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    student = await factory.student(tenant)
    paid = await factory.payment(student, status=PaymentStatus.PAID, paid_date=utcnow())
    url = f"/api/v1/payments/{paid.id}/status"

    back_to_pending = await client.patch(url, json={"status": "PENDING"}, headers=headers)
    assert back_to_pending.status_code == 400
    assert back_to_pending.json()["reason"] == "validation_error"

    duplicate = await client.patch(url, json={"status": "PAID"}, headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["reason"] == "duplicate_action"

    cancelled = await client.patch(url, json={"status": "CANCELLED"}, headers=headers)
    assert cancelled.status_code == 400
    body = cancelled.json()
    assert body["reason"] == "invalid_transition"
    assert body["currentStatus"] == "PAID"
    assert body["targetStatus"] == "CANCELLED"

    refunded = await client.patch(url, json={"status": "REFUNDED"}, headers=headers)
    assert refunded.status_code == 200
    assert refunded.json()["status"] == "REFUNDED"


async def test_create_and_update_payment(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    student = await factory.student(tenant)

    response = await client.post(
        "/api/v1/payments",
        json={
            "studentId": str(student.id),
            "amount": "150.50",
            "paymentMethod": "CARD",
            "dueDate": "2026-11-30T00:00:00+01:00",
            "description": "Retta novembre",
        },
        headers=headers,
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "PENDING"
    assert created["amount"] == 150.5
    assert created["dueDate"] == "2026-11-29T23:00:00"

    response = await client.put(f"/api/v1/payments/{created['id']}", json={"amount": "160.00"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["amount"] == 160.0

    invalid = await client.post(
        "/api/v1/payments",
        json={"studentId": str(student.id), "amount": "-5", "dueDate": "2026-11-30T00:00:00Z"},
        headers=headers,
    )
    assert invalid.status_code == 400


async def test_teachers_have_no_payment_access(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.TEACHER))
    payment = await factory.payment(await factory.student(tenant))

    assert (await client.get("/api/v1/payments", headers=headers)).status_code == 403
    assert (await client.get(f"/api/v1/payments/{payment.id}", headers=headers)).status_code == 403
    assert (await client.get("/api/v1/payments/stats", headers=headers)).status_code == 403


async def test_learners_see_only_their_own_payments(client, factory):
    tenant = await factory.tenant()
    student_claims = await factory.claims(tenant, Role.STUDENT)
    parent_claims = await factory.claims(tenant, Role.PARENT)
    own = await factory.student(tenant, user_id=student_claims.user_id, parent_user_id=parent_claims.user_id)
    classmate = await factory.student(tenant)
    own_payment = await factory.payment(own)
    other_payment = await factory.payment(classmate)

    for claims in (student_claims, parent_claims):
        headers = auth_headers(claims)
        response = await client.get("/api/v1/payments", headers=headers)
        assert [p["id"] for p in response.json()["items"]] == [str(own_payment.id)]
        assert (await client.get(f"/api/v1/payments/{other_payment.id}", headers=headers)).status_code == 404
        assert (await client.patch(
            f"/api/v1/payments/{own_payment.id}/status", json={"status": "PAID"}, headers=headers
        )).status_code == 403
