from sqlalchemy import func, select, update

from insegnami.core.security import decode_session_token
from insegnami.models import Role, Student, Tenant, TenantMembership, TokenPurpose, UserStatus, VerificationToken
from insegnami.worker import SEND_EMAIL_TASK

from .factories import auth_headers

REGISTRATION = {
    "schoolName": "Liceo Galilei",
    "firstName": "Anna",
    "lastName": "Neri",
    "email": "Anna@Example.com",
    "password": "supersecret1",
}


async def _token_for(session, email, purpose):
    stmt = select(VerificationToken.token).where(
        VerificationToken.identifier == email, VerificationToken.purpose == purpose
    )
    return (await session.execute(stmt)).scalar_one()


async def test_requests_without_session_are_rejected(client, session):
    response = await client.get("/api/v1/students")
    assert response.status_code == 401
    assert response.json()["reason"] == "unauthenticated"

    response = await client.post("/api/v1/students", json={"firstName": "Ghost", "lastName": "Writer"})
    assert response.status_code == 401
    count = (await session.execute(select(func.count()).select_from(Student))).scalar()
    assert count == 0


async def test_garbage_token_is_rejected(client):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_login_returns_session_claims(client, factory):
    tenant = await factory.tenant("Scuola Dante")
    user, _ = await factory.member(tenant, Role.TEACHER, email="prof@example.com", password="password123")

    response = await client.post("/api/v1/auth/login", json={"email": "PROF@example.com", "password": "password123"})
    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["user"]["role"] == "TEACHER"
    assert body["user"]["tenantName"] == "Scuola Dante"

    claims = decode_session_token(body["token"])
    assert claims.user_id == user.id
    assert claims.tenant_id == tenant.id

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "prof@example.com"
    assert me.json()["memberships"] == [
        {"tenantId": str(tenant.id), "tenantName": "Scuola Dante", "role": "TEACHER"}
    ]


async def test_login_failures_share_one_status(client, factory):
    tenant = await factory.tenant()
    await factory.member(tenant, Role.ADMIN, email="admin@example.com", password="password123")
    await factory.member(
        tenant, Role.TEACHER, email="pending@example.com", password="password123", status=UserStatus.PENDING
    )

    wrong = await client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "nope-nope"})
    unknown = await client.post("/api/v1/auth/login", json={"email": "who@example.com", "password": "password123"})
    pending = await client.post("/api/v1/auth/login", json={"email": "pending@example.com", "password": "password123"})

    assert wrong.status_code == unknown.status_code == pending.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"]


async def test_register_verify_then_login(client, session, queue):
    response = await client.post("/api/v1/auth/register", json=REGISTRATION)
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "anna@example.com"
    assert body["emailQueued"] is True
    assert queue.jobs[0][0] == SEND_EMAIL_TASK
    assert queue.jobs[0][1]["to"] == "anna@example.com"

    # not usable until the email is confirmed
    login = {"email": "anna@example.com", "password": "supersecret1"}
    assert (await client.post("/api/v1/auth/login", json=login)).status_code == 401

    token = await _token_for(session, "anna@example.com", TokenPurpose.EMAIL_VERIFICATION)
    verified = await client.get(
        "/api/v1/auth/verify-email", params={"email": "anna@example.com", "token": token}
    )
    assert verified.status_code == 200
    assert verified.json()["activatedTenants"] == [body["tenantId"]]

    is_active = (await session.execute(
        select(Tenant.is_active).where(Tenant.name == "Liceo Galilei")
    )).scalar_one()
    assert is_active is True

    response = await client.post("/api/v1/auth/login", json=login)
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "ADMIN"

    # tokens are single use
    again = await client.get("/api/v1/auth/verify-email", params={"email": "anna@example.com", "token": token})
    assert again.status_code == 400


async def test_register_rejects_existing_email(client):
    assert (await client.post("/api/v1/auth/register", json=REGISTRATION)).status_code == 201
    duplicate = await client.post("/api/v1/auth/register", json={**REGISTRATION, "schoolName": "Altra Scuola"})
    assert duplicate.status_code == 409
    assert duplicate.json()["reason"] == "conflict"


async def test_register_validates_body(client):
    response = await client.post("/api/v1/auth/register", json={**REGISTRATION, "password": "short"})
    assert response.status_code == 400
    body = response.json()
    assert body["reason"] == "validation_error"
    assert any(detail["field"] == "password" for detail in body["details"])


async def test_password_reset_flow(client, session, factory, queue):
    tenant = await factory.tenant()
    await factory.member(tenant, Role.PARENT, email="mamma@example.com", password="oldpassword")

    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert unknown.status_code == 200
    assert queue.jobs == []

    known = await client.post("/api/v1/auth/forgot-password", json={"email": "mamma@example.com"})
    assert known.json() == unknown.json()
    assert len(queue.emails) == 1

    token = await _token_for(session, "mamma@example.com", TokenPurpose.PASSWORD_RESET)
    reset = await client.post("/api/v1/auth/reset-password", json={"token": token, "password": "newpassword"})
    assert reset.status_code == 200

    old = await client.post("/api/v1/auth/login", json={"email": "mamma@example.com", "password": "oldpassword"})
    new = await client.post("/api/v1/auth/login", json={"email": "mamma@example.com", "password": "newpassword"})
    assert old.status_code == 401
    assert new.status_code == 200


async def test_change_password_checks_current(client, factory):
    tenant = await factory.tenant()
    await factory.member(tenant, Role.TEACHER, email="t@example.com", password="password123")
    claims = await client.post("/api/v1/auth/login", json={"email": "t@example.com", "password": "password123"})
    headers = {"Authorization": f"Bearer {claims.json()['token']}"}

    wrong = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "not-it-at-all", "newPassword": "password456"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "password123", "newPassword": "password456"},
        headers=headers,
    )
    assert ok.status_code == 200


async def test_refresh_picks_up_membership_changes(client, session, factory):
    tenant = await factory.tenant()
    claims = await factory.claims(tenant, Role.TEACHER)

    await session.execute(
        update(TenantMembership)
        .where(TenantMembership.user_id == claims.user_id)
        .values(role=Role.ADMIN, permissions={"deny": ["student:export"]})
    )
    await session.commit()

    response = await client.post("/api/v1/auth/refresh", headers=auth_headers(claims))
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["role"] == "ADMIN"
    assert user["permissions"] == {"deny": ["student:export"]}


async def test_refresh_rejects_suspended_account(client, factory):
    tenant = await factory.tenant()
    claims = await factory.claims(tenant, Role.TEACHER, status=UserStatus.SUSPENDED)
    response = await client.post("/api/v1/auth/refresh", headers=auth_headers(claims))
    assert response.status_code == 401
