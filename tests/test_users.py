from sqlalchemy import select

from insegnami.models import Role, TokenPurpose, User, UserStatus, VerificationToken

from .factories import auth_headers


async def test_invite_creates_pending_member(client, session, factory, queue):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    body = {"email": "Nuovo.Docente@example.com", "firstName": "Carlo", "lastName": "Ferri", "role": "TEACHER"}

    response = await client.post("/api/v1/users", json=body, headers=headers)
    assert response.status_code == 201
    invited = response.json()
    assert invited["email"] == "nuovo.docente@example.com"
    assert invited["status"] == "PENDING"
    assert invited["role"] == "TEACHER"
    assert invited["emailQueued"] is True
    assert queue.emails[0]["to"] == "nuovo.docente@example.com"

    again = await client.post("/api/v1/users", json=body, headers=headers)
    assert again.status_code == 409

    token = (await session.execute(
        select(VerificationToken.token).where(
            VerificationToken.identifier == "nuovo.docente@example.com",
            VerificationToken.purpose == TokenPurpose.PASSWORD_RESET,
        )
    )).scalar_one()
    reset = await client.post("/api/v1/auth/reset-password", json={"token": token, "password": "benvenuto1"})
    assert reset.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"email": "nuovo.docente@example.com", "password": "benvenuto1"}
    )
    assert login.status_code == 200
    status = (await session.execute(
        select(User.status).where(User.email == "nuovo.docente@example.com")
    )).scalar_one()
    assert status == UserStatus.ACTIVE


async def test_existing_users_join_without_a_new_account(client, factory, queue):
    tenant = await factory.tenant()
    other = await factory.tenant("Altra")
    user, _ = await factory.member(other, Role.TEACHER, password="password1")
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))

    response = await client.post(
        "/api/v1/users",
        json={"email": user.email, "firstName": "X", "lastName": "Y", "role": "PARENT"},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["id"] == str(user.id)
    assert response.json()["status"] == "ACTIVE"
    assert response.json()["tenantId"] == str(tenant.id)


async def test_only_superadmins_grant_superadmin(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    response = await client.post(
        "/api/v1/users",
        json={"email": "capo@example.com", "firstName": "A", "lastName": "B", "role": "SUPERADMIN"},
        headers=headers,
    )
    assert response.status_code == 403


async def test_list_members_of_own_school(client, factory):
    tenant = await factory.tenant()
    other = await factory.tenant("Altra")
    admin = await factory.claims(tenant, Role.ADMIN)
    await factory.member(tenant, Role.TEACHER)
    await factory.member(tenant, Role.STUDENT)
    await factory.member(other, Role.TEACHER)
    headers = auth_headers(admin)

    everyone = await client.get("/api/v1/users", headers=headers)
    assert everyone.status_code == 200
    assert everyone.json()["total"] == 3

    teachers = await client.get("/api/v1/users?role=TEACHER", headers=headers)
    assert teachers.json()["total"] == 1

    denied = await client.get("/api/v1/users", headers=auth_headers(await factory.claims(tenant, Role.TEACHER)))
    assert denied.status_code == 403


async def test_update_member(client, factory):
    tenant = await factory.tenant()
    admin = await factory.claims(tenant, Role.ADMIN)
    teacher, _ = await factory.member(tenant, Role.TEACHER)
    headers = auth_headers(admin)
    url = f"/api/v1/users/{teacher.id}"

    promoted = await client.patch(
        url, json={"role": "ADMIN", "permissions": {"deny": ["PAYMENT_WRITE"]}}, headers=headers
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"
    assert promoted.json()["permissions"] == {"deny": ["PAYMENT_WRITE"]}

    suspended = await client.patch(url, json={"status": "SUSPENDED"}, headers=headers)
    assert suspended.json()["status"] == "SUSPENDED"

    unknown_key = await client.patch(url, json={"permissions": {"grant": ["X"]}}, headers=headers)
    assert unknown_key.status_code == 400


async def test_admins_cannot_change_themselves(client, factory):
    tenant = await factory.tenant()
    admin = await factory.claims(tenant, Role.ADMIN)
    headers = auth_headers(admin)

    role = await client.patch(f"/api/v1/users/{admin.user_id}", json={"role": "TEACHER"}, headers=headers)
    assert role.status_code == 403
    status = await client.patch(f"/api/v1/users/{admin.user_id}", json={"status": "INACTIVE"}, headers=headers)
    assert status.status_code == 403


async def test_members_of_other_schools_are_not_found(client, factory):
    tenant = await factory.tenant()
    other = await factory.tenant("Altra")
    outsider, _ = await factory.member(other, Role.TEACHER)
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))

    response = await client.patch(f"/api/v1/users/{outsider.id}", json={"role": "PARENT"}, headers=headers)
    assert response.status_code == 404
