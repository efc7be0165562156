import csv
import io
import uuid

import pytest
from sqlalchemy import select

from insegnami.core.security import Claims
from insegnami.core.tenant_scope import scope_query
from insegnami.models import AttendanceStatus, Role, Student, User

from .factories import auth_headers

LIST_ENDPOINTS = {
    "students": "/api/v1/students",
    "teachers": "/api/v1/teachers",
    "classes": "/api/v1/classes",
    "lessons": "/api/v1/lessons",
    "attendance": "/api/v1/attendance",
    "payments": "/api/v1/payments",
    "notices": "/api/v1/notices",
}


async def build_school(factory, name):
    tenant = await factory.tenant(name)
    teacher = await factory.teacher(tenant)
    klass = await factory.klass(tenant, teacher)
    student = await factory.student(tenant, first_name=f"{name} pupil")
    await factory.enroll(klass, [student])
    lesson = await factory.lesson(klass)
    attendance = await factory.attendance(lesson, student, AttendanceStatus.PRESENT)
    payment = await factory.payment(student)
    notice = await factory.notice(tenant, [Role.ADMIN, Role.TEACHER])
    return {
        "tenant": tenant,
        "students": student,
        "teachers": teacher,
        "classes": klass,
        "lessons": lesson,
        "attendance": attendance,
        "payments": payment,
        "notices": notice,
    }


@pytest.fixture
async def schools(factory):
    return await build_school(factory, "Alpha"), await build_school(factory, "Beta")


async def test_lists_only_show_own_tenant(client, factory, schools):
    alpha, beta = schools
    headers = auth_headers(await factory.claims(alpha["tenant"], Role.ADMIN))

    for entity, url in LIST_ENDPOINTS.items():
        response = await client.get(url, headers=headers)
        assert response.status_code == 200, entity
        ids = {item["id"] for item in response.json()["items"]}
        assert ids == {str(alpha[entity].id)}, entity
        assert str(beta[entity].id) not in ids


async def test_other_tenant_ids_are_not_found(client, factory, schools):
    alpha, beta = schools
    headers = auth_headers(await factory.claims(alpha["tenant"], Role.ADMIN))

    for url in (
        f"/api/v1/students/{beta['students'].id}",
        f"/api/v1/teachers/{beta['teachers'].id}",
        f"/api/v1/classes/{beta['classes'].id}",
        f"/api/v1/classes/{beta['classes'].id}/stats",
        f"/api/v1/lessons/{beta['lessons'].id}",
        f"/api/v1/payments/{beta['payments'].id}",
        f"/api/v1/notices/{beta['notices'].id}",
    ):
        response = await client.get(url, headers=headers)
        assert response.status_code == 404, url
        assert response.json()["reason"] == "not_found"

    # same answer as for an id that never existed
    missing = await client.get(f"/api/v1/students/{uuid.uuid4()}", headers=headers)
    assert missing.status_code == 404


async def test_writes_cannot_reach_other_tenant(client, session, factory, schools):
    alpha, beta = schools
    headers = auth_headers(await factory.claims(alpha["tenant"], Role.ADMIN))

    response = await client.put(
        f"/api/v1/students/{beta['students'].id}", json={"firstName": "Hijacked"}, headers=headers
    )
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/classes/{beta['classes'].id}", headers=headers)
    assert response.status_code == 404

    response = await client.post(
        "/api/v1/payments",
        json={"studentId": str(beta["students"].id), "amount": "50.00", "dueDate": "2026-12-01T00:00:00Z"},
        headers=headers,
    )
    assert response.status_code == 404

    first_name = (await session.execute(
        select(Student.first_name).where(Student.id == beta["students"].id)
    )).scalar_one()
    assert first_name == "Beta pupil"


async def test_export_excludes_other_tenant(client, factory, schools):
    alpha, beta = schools
    headers = auth_headers(await factory.claims(alpha["tenant"], Role.ADMIN))

    response = await client.get("/api/v1/students/export", headers=headers)
    assert response.status_code == 200
    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert [row["id"] for row in rows] == [str(alpha["students"].id)]


async def test_superadmin_sees_every_tenant(client, factory, schools):
    alpha, beta = schools
    headers = auth_headers(await factory.claims(alpha["tenant"], Role.SUPERADMIN))

    response = await client.get("/api/v1/students", headers=headers)
    ids = {item["id"] for item in response.json()["items"]}
    assert ids == {str(alpha["students"].id), str(beta["students"].id)}

    response = await client.get(f"/api/v1/classes/{beta['classes'].id}", headers=headers)
    assert response.status_code == 200


def test_unscoped_entities_are_refused():
    claims = Claims(
        user_id=uuid.uuid4(), email="a@example.com", role=Role.ADMIN,
        tenant_id=uuid.uuid4(), tenant_name="Alpha",
    )
    with pytest.raises(ValueError):
        scope_query(select(User), User, claims)
