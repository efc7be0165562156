from datetime import timedelta

import pytest
from sqlalchemy import func, select

from insegnami.models import Notice, Role
from insegnami.utils.timeutils import utcnow

from .factories import auth_headers


def notice_body(**overrides):
    body = {
        "title": "Gita scolastica",
        "content": "Partenza alle 8:00",
        "targetRoles": ["STUDENT", "PARENT"],
    }
    body.update(overrides)
    return body


async def notice_count(session):
    return (await session.execute(select(func.count()).select_from(Notice))).scalar()


@pytest.mark.parametrize(
    "overrides",
    [{"isUrgent": True}, {"isPinned": True}, {"type": "URGENT"}],
)
async def test_teacher_cannot_publish_urgent_or_pinned(client, session, factory, overrides):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.TEACHER))

    response = await client.post("/api/v1/notices", json=notice_body(**overrides), headers=headers)
    assert response.status_code == 403
    assert response.json()["reason"] == "forbidden"
    assert await notice_count(session) == 0


async def test_teacher_publishes_regular_notice(client, factory):
    tenant = await factory.tenant()
    claims = await factory.claims(tenant, Role.TEACHER)

    response = await client.post("/api/v1/notices", json=notice_body(), headers=auth_headers(claims))
    assert response.status_code == 201
    body = response.json()
    assert body["authorId"] == str(claims.user_id)
    assert body["targetRoles"] == ["PARENT", "STUDENT"]
    assert body["isUrgent"] is False


async def test_admin_publishes_urgent_pinned_notice(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))

    response = await client.post(
        "/api/v1/notices", json=notice_body(isUrgent=True, isPinned=True, type="URGENT"), headers=headers
    )
    assert response.status_code == 201
    assert response.json()["isUrgent"] is True
    assert response.json()["isPinned"] is True


async def test_learners_see_only_published_notices_for_their_role(client, factory):
    tenant = await factory.tenant()
    now = utcnow()
    visible = await factory.notice(tenant, [Role.STUDENT], title="visible")
    urgent = await factory.notice(tenant, [Role.STUDENT, Role.PARENT], title="urgent", is_urgent=True)
    await factory.notice(tenant, [Role.TEACHER], title="staff only")
    await factory.notice(tenant, [Role.STUDENT], title="future", publish_at=now + timedelta(days=1))
    await factory.notice(
        tenant, [Role.STUDENT], title="expired",
        publish_at=now - timedelta(days=10), expires_at=now - timedelta(days=1),
    )
    other = await factory.tenant("Altra")
    await factory.notice(other, [Role.STUDENT], title="other school")

    headers = auth_headers(await factory.claims(tenant, Role.STUDENT))
    response = await client.get("/api/v1/notices", headers=headers)
    assert response.status_code == 200
    titles = [n["title"] for n in response.json()["items"]]
    assert titles == ["urgent", "visible"]

    hidden = await client.get("/api/v1/notices?urgentOnly=true", headers=headers)
    assert [n["id"] for n in hidden.json()["items"]] == [str(urgent.id)]

    assert (await client.get(f"/api/v1/notices/{visible.id}", headers=headers)).status_code == 200


async def test_admin_sees_every_notice_of_the_school(client, factory):
    tenant = await factory.tenant()
    await factory.notice(tenant, [Role.STUDENT], title="future", publish_at=utcnow() + timedelta(days=1))
    await factory.notice(tenant, [Role.TEACHER], title="staff")

    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    response = await client.get("/api/v1/notices", headers=headers)
    assert response.json()["total"] == 2


async def test_only_author_or_admin_may_edit(client, factory):
    tenant = await factory.tenant()
    author = await factory.claims(tenant, Role.TEACHER)
    colleague = await factory.claims(tenant, Role.TEACHER)
    admin = await factory.claims(tenant, Role.ADMIN)

    created = await client.post(
        "/api/v1/notices", json=notice_body(targetRoles=["TEACHER", "STUDENT"]), headers=auth_headers(author)
    )
    notice_id = created.json()["id"]
    url = f"/api/v1/notices/{notice_id}"

    response = await client.put(url, json={"title": "Cambiato"}, headers=auth_headers(colleague))
    assert response.status_code == 403

    response = await client.put(url, json={"isPinned": True}, headers=auth_headers(author))
    assert response.status_code == 403

    response = await client.put(
        url, json={"title": "Aggiornato", "targetRoles": ["TEACHER", "PARENT"]}, headers=auth_headers(author)
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Aggiornato"
    assert response.json()["targetRoles"] == ["PARENT", "TEACHER"]

    response = await client.put(url, json={"isPinned": True}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["isPinned"] is True


async def test_teacher_keeps_access_to_own_notice_for_other_roles(client, factory):
    tenant = await factory.tenant()
    author = await factory.claims(tenant, Role.TEACHER)
    colleague = await factory.claims(tenant, Role.TEACHER)

    created = await client.post("/api/v1/notices", json=notice_body(), headers=auth_headers(author))
    assert created.status_code == 201
    url = f"/api/v1/notices/{created.json()['id']}"

    response = await client.get(url, headers=auth_headers(author))
    assert response.status_code == 200
    assert response.json()["targetRoles"] == ["PARENT", "STUDENT"]

    response = await client.put(url, json={"title": "Cambiato"}, headers=auth_headers(author))
    assert response.status_code == 200
    assert response.json()["title"] == "Cambiato"

    listed = await client.get("/api/v1/notices", headers=auth_headers(author))
    assert [n["title"] for n in listed.json()["items"]] == ["Cambiato"]

    assert (await client.get(url, headers=auth_headers(colleague))).status_code == 404


async def test_notice_update_rejects_null_for_required_fields(client, factory):
    tenant = await factory.tenant()
    notice = await factory.notice(tenant, [Role.STUDENT], title="Orari")
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    url = f"/api/v1/notices/{notice.id}"

    response = await client.put(url, json={"isPinned": None, "title": None}, headers=headers)
    assert response.status_code == 400
    assert response.json()["reason"] == "validation_error"

    response = await client.put(url, json={"expiresAt": None}, headers=headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Orari"
    assert response.json()["isPinned"] is False


async def test_only_admin_may_delete(client, session, factory):
    tenant = await factory.tenant()
    notice = await factory.notice(tenant, [Role.TEACHER])

    teacher = auth_headers(await factory.claims(tenant, Role.TEACHER))
    assert (await client.delete(f"/api/v1/notices/{notice.id}", headers=teacher)).status_code == 403

    admin = auth_headers(await factory.claims(tenant, Role.ADMIN))
    assert (await client.delete(f"/api/v1/notices/{notice.id}", headers=admin)).status_code == 200
    assert await notice_count(session) == 0


async def test_notice_window_is_validated(client, factory):
    tenant = await factory.tenant()
    headers = auth_headers(await factory.claims(tenant, Role.ADMIN))
    response = await client.post(
        "/api/v1/notices",
        json=notice_body(publishAt="2026-10-10T10:00:00Z", expiresAt="2026-10-09T10:00:00Z"),
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "validation_error"
