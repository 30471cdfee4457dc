"""
HTTP tests for the forms endpoints and error rendering.
"""
from datetime import timedelta

from conftest import form_definition, mint_token


async def _create(client, headers, **overrides):
    response = await client.post("/api/forms", json=form_definition(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_and_read_form(client, auth_headers):
    created = await _create(client, auth_headers("owner-1"), customLink="careers")

    assert created["owner"] == "owner-1"
    assert created["published"] is True
    assert created["sections"][0]["fields"][0] == {
        "id": "f1",
        "type": "text",
        "label": "Name",
        "name": "name",
        "required": True,
        "options": [],
    }

    by_id = await client.get(f"/api/forms/{created['id']}")
    by_link = await client.get("/api/forms/careers")
    assert by_id.status_code == 200
    assert by_id.json() == by_link.json()
    assert by_id.json()["expired"] is False


async def test_create_requires_authentication(client):
    response = await client.post("/api/forms", json=form_definition())

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"


async def test_invalid_or_expired_token_is_rejected(client):
    bad = {"Authorization": "Bearer not-a-jwt"}
    stale = {"Authorization": f"Bearer {mint_token('owner-1', expires_in=timedelta(minutes=-5))}"}
    forged = {"Authorization": f"Bearer {mint_token('owner-1', secret='wrong-secret')}"}

    for headers in (bad, stale, forged):
        response = await client.get("/api/forms", headers=headers)
        assert response.status_code == 401


async def test_bearer_prefix_is_optional(client):
    response = await client.get("/api/forms", headers={"Authorization": mint_token("owner-1")})

    assert response.status_code == 200
    assert response.json() == []


async def test_html_is_stripped_from_definition(client, auth_headers):
    created = await _create(client, auth_headers("owner-1"), title="<b>Survey</b><script>x</script>")

    assert "<" not in created["title"]
    assert created["title"].startswith("Survey")


async def test_invalid_definition_is_a_validation_failure(client, auth_headers):
    payload = form_definition(customLink="has spaces!")

    response = await client.post("/api/forms", json=payload, headers=auth_headers("owner-1"))

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_failure"
    assert body["errors"]


async def test_reserved_custom_link_is_rejected(client, auth_headers):
    response = await client.post("/api/forms", json=form_definition(customLink="expired"), headers=auth_headers("u"))

    assert response.status_code == 422


async def test_duplicate_custom_link_is_409(client, auth_headers):
    await _create(client, auth_headers("owner-1"), customLink="dup")

    response = await client.post("/api/forms", json=form_definition(customLink="dup"), headers=auth_headers("owner-2"))

    assert response.status_code == 409
    assert response.json() == {"detail": "This custom link is already in use", "code": "conflict"}


async def test_unknown_form_is_404(client):
    response = await client.get("/api/forms/does-not-exist")

    assert response.status_code == 404
    assert response.json()["code"] == "form_not_found"


async def test_owner_controls(client, auth_headers):
    owner = auth_headers("owner-1")
    created = await _create(client, owner, customLink="old")

    update = await client.put(
        f"/api/forms/{created['id']}", json={"title": "Renamed", "isEditable": True}, headers=owner
    )
    assert update.status_code == 200
    assert update.json()["title"] == "Renamed"
    assert update.json()["customLink"] is None
    assert update.json()["lastEditedAt"] is not None

    unpublish = await client.put(f"/api/forms/{created['id']}/publish", json={"published": False}, headers=owner)
    assert unpublish.json()["message"] == "Form unpublished successfully"
    assert unpublish.json()["form"]["published"] is False

    publish = await client.put(f"/api/forms/{created['id']}/publish", json={"published": True}, headers=owner)
    assert publish.json()["message"] == "Form published successfully"
    assert publish.json()["form"]["expiryDate"] is None

    listed = await client.get("/api/forms", headers=owner)
    assert [f["id"] for f in listed.json()] == [created["id"]]

    deleted = await client.delete(f"/api/forms/{created['id']}", headers=owner)
    assert deleted.json() == {"message": "Form deleted successfully"}
    assert (await client.get(f"/api/forms/{created['id']}")).status_code == 404


async def test_non_owner_gets_not_found(client, auth_headers):
    created = await _create(client, auth_headers("owner-1"))
    stranger = auth_headers("stranger")

    for method, path, body in (
        ("PUT", f"/api/forms/{created['id']}", {"title": "x"}),
        ("DELETE", f"/api/forms/{created['id']}", None),
        ("PUT", f"/api/forms/{created['id']}/expire", None),
        ("PUT", f"/api/forms/{created['id']}/publish", {"published": False}),
    ):
        response = await client.request(method, path, json=body, headers=stranger)
        assert response.status_code == 404
        assert response.json()["detail"] == "Form not found or unauthorized"


async def test_expire_then_shared_read(client, auth_headers):
    owner = auth_headers("owner-1")
    created = await _create(client, owner)

    shared = await client.get(f"/api/forms/shared/{created['urlId']}")
    assert shared.status_code == 200
    assert "owner" not in shared.json()

    expired = await client.put(f"/api/forms/{created['id']}/expire", headers=owner)
    assert expired.json()["message"] == "Form expired successfully"

    shared = await client.get(f"/api/forms/shared/{created['urlId']}")
    assert shared.status_code == 403
    assert shared.json()["code"] == "form_expired"

    public = await client.get(f"/api/forms/{created['id']}")
    assert public.status_code == 200
    assert public.json()["expired"] is True

    listing = await client.get("/api/forms/expired", headers=owner)
    assert [f["id"] for f in listing.json()] == [created["id"]]


async def test_health_db(client):
    response = await client.get("/health/db")

    assert response.json() == {"status": "ok", "db": True}


async def test_request_id_is_echoed(client):
    response = await client.get("/health/db", headers={"x-request-id": "abc123"})

    assert response.headers["x-request-id"] == "abc123"
