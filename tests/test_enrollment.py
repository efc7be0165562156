import uuid
from datetime import timedelta

from sqlalchemy import func, select

from insegnami.models import ClassModel, EnrollmentStatus, Role, StudentClass
from insegnami.utils.timeutils import utcnow

from .factories import auth_headers


def enroll_url(klass, action="enroll"):
    return f"/api/v1/classes/{klass.id}/{action}"


def ids(students):
    return [str(s.id) for s in students]


async def active_enrollments(session, klass):
    stmt = select(func.count()).select_from(StudentClass).where(
        StudentClass.class_id == klass.id, StudentClass.status == EnrollmentStatus.ACTIVE
    )
    return (await session.execute(stmt)).scalar()


async def current_students(session, klass):
    return (await session.execute(
        select(ClassModel.current_students).where(ClassModel.id == klass.id)
    )).scalar_one()


async def enrollment_rows(session, klass):
    return (await session.execute(
        select(func.count()).select_from(StudentClass).where(StudentClass.class_id == klass.id)
    )).scalar()


async def test_batch_larger_than_remaining_capacity_is_refused(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant, max_students=10)
    students = await factory.students(tenant, 11)
    await factory.enroll(klass, students[:8])

    response = await client.post(enroll_url(klass), json={"studentIds": ids(students[8:11])}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["reason"] == "capacity_exceeded"
    assert body["availableCapacity"] == 2
    assert body["requestedEnrollments"] == 3
    assert await active_enrollments(session, klass) == 8

    response = await client.post(enroll_url(klass), json={"studentIds": ids(students[8:10])}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["enrolledStudents"] == 2
    assert body["currentStudents"] == 10
    assert body["availableCapacity"] == 0
    assert await active_enrollments(session, klass) == 10
    assert await current_students(session, klass) == 10

    full = await client.post(enroll_url(klass), json={"studentIds": ids(students[10:])}, headers=headers)
    assert full.status_code == 400
    assert full.json()["availableCapacity"] == 0


async def test_repeated_ids_count_once(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant, max_students=2)
    a, b = await factory.students(tenant, 2)

    response = await client.post(
        enroll_url(klass), json={"studentIds": [str(a.id), str(a.id), str(b.id), str(a.id)]}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["enrolledStudents"] == 2
    assert await active_enrollments(session, klass) == 2


async def test_already_enrolled_batch_is_rejected(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)
    students = await factory.students(tenant, 2)
    await factory.enroll(klass, students)

    response = await client.post(enroll_url(klass), json={"studentIds": ids(students)}, headers=headers)
    assert response.status_code == 400
    assert response.json()["reason"] == "already_enrolled"
    assert await current_students(session, klass) == 2
    assert await enrollment_rows(session, klass) == 2


async def test_dropped_student_is_reactivated_in_place(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)
    student = await factory.student(tenant)
    long_ago = utcnow() - timedelta(days=90)
    await factory.enroll(klass, [student], status=EnrollmentStatus.DROPPED, enrolled_at=long_ago)

    response = await client.post(enroll_url(klass), json={"studentIds": [str(student.id)]}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["newEnrollments"] == 0
    assert body["reactivatedEnrollments"] == 1

    rows = (await session.execute(
        select(StudentClass.status, StudentClass.enrolled_at, StudentClass.dropped_at).where(
            StudentClass.class_id == klass.id, StudentClass.student_id == student.id
        )
    )).all()
    assert len(rows) == 1
    status, enrolled_at, dropped_at = rows[0]
    assert status == EnrollmentStatus.ACTIVE
    assert enrolled_at > long_ago
    assert dropped_at is None


async def test_enroll_unenroll_enroll_keeps_a_single_row(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)
    student = await factory.student(tenant)
    body = {"studentIds": [str(student.id)]}
    enrolled_at = select(StudentClass.enrolled_at).where(
        StudentClass.class_id == klass.id, StudentClass.student_id == student.id
    )

    first = await client.post(enroll_url(klass), json=body, headers=headers)
    assert first.status_code == 200
    assert first.json()["newEnrollments"] == 1
    first_enrolled_at = (await session.execute(enrolled_at)).scalar_one()

    dropped = await client.post(enroll_url(klass, "unenroll"), json=body, headers=headers)
    assert dropped.status_code == 200
    assert dropped.json()["currentStudents"] == 0

    again = await client.post(enroll_url(klass, "unenroll"), json=body, headers=headers)
    assert again.status_code == 400
    assert again.json()["reason"] == "nothing_to_unenroll"
    assert await current_students(session, klass) == 0
    assert await active_enrollments(session, klass) == 0
    assert await enrollment_rows(session, klass) == 1

    back = await client.post(enroll_url(klass), json=body, headers=headers)
    assert back.status_code == 200
    assert back.json()["newEnrollments"] == 0
    assert back.json()["reactivatedEnrollments"] == 1
    assert back.json()["currentStudents"] == 1

    repeat = await client.post(enroll_url(klass), json=body, headers=headers)
    assert repeat.status_code == 400
    assert repeat.json()["reason"] == "already_enrolled"

    assert await current_students(session, klass) == 1
    assert await active_enrollments(session, klass) == 1
    assert await enrollment_rows(session, klass) == 1
    assert (await session.execute(enrolled_at)).scalar_one() > first_enrolled_at


async def test_unknown_students_are_listed(client, session, factory):
    tenant = await factory.tenant()
    other = await factory.tenant("Altra")
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)
    mine = await factory.student(tenant)
    foreign = await factory.student(other)
    ghost = uuid.uuid4()

    response = await client.post(
        enroll_url(klass), json={"studentIds": [str(mine.id), str(foreign.id), str(ghost)]}, headers=headers
    )
    assert response.status_code == 404
    assert set(response.json()["notFoundIds"]) == {str(foreign.id), str(ghost)}
    assert await active_enrollments(session, klass) == 0


async def test_other_tenant_class_is_not_found(client, factory):
    tenant = await factory.tenant()
    other = await factory.tenant("Altra")
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    foreign_class = await factory.klass(other)
    student = await factory.student(tenant)

    response = await client.post(enroll_url(foreign_class), json={"studentIds": [str(student.id)]}, headers=headers)
    assert response.status_code == 404


async def test_unenroll(client, session, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)
    enrolled = await factory.students(tenant, 3)
    outsider = await factory.student(tenant)
    await factory.enroll(klass, enrolled)

    nothing = await client.post(enroll_url(klass, "unenroll"), json={"studentIds": [str(outsider.id)]}, headers=headers)
    assert nothing.status_code == 400
    assert nothing.json()["reason"] == "nothing_to_unenroll"

    response = await client.post(enroll_url(klass, "unenroll"), json={"studentIds": ids(enrolled[:2])}, headers=headers)
    assert response.status_code == 200
    assert response.json()["unenrolledStudents"] == 2
    assert response.json()["currentStudents"] == 1
    assert await active_enrollments(session, klass) == 1

    dropped_at = (await session.execute(
        select(StudentClass.dropped_at).where(StudentClass.student_id == enrolled[0].id)
    )).scalar_one()
    assert dropped_at is not None


async def test_enrollment_requires_admin(client, session, factory):
    tenant = await factory.tenant()
    teacher_claims = await factory.claims(tenant, Role.TEACHER)
    teacher = await factory.teacher(tenant, user_id=teacher_claims.user_id)
    klass = await factory.klass(tenant, teacher)
    student = await factory.student(tenant)
    body = {"studentIds": [str(student.id)]}

    unauthenticated = await client.post(enroll_url(klass), json=body)
    assert unauthenticated.status_code == 401

    forbidden = await client.post(enroll_url(klass), json=body, headers=auth_headers(teacher_claims))
    assert forbidden.status_code == 403
    assert await active_enrollments(session, klass) == 0


async def test_enroll_body_is_validated(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    klass = await factory.klass(tenant)

    response = await client.post(enroll_url(klass), json={"studentIds": []}, headers=headers)
    assert response.status_code == 400
    assert response.json()["reason"] == "validation_error"
