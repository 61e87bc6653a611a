from __future__ import annotations

from fastapi.testclient import TestClient

from clientdesk.authz.policy import Role

from conftest import Factory


def test_portal_is_client_only(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)

    response = client.get("/api/portal/profile", headers=factory.headers(operator))

    assert response.status_code == 403
    assert response.json()["message"] == "Client portal access only"


def test_client_user_without_profile_is_rejected(client: TestClient, factory: Factory) -> None:
    orphan = factory.user(Role.CLIENT)

    response = client.get("/api/portal/dashboard", headers=factory.headers(orphan))

    assert response.status_code == 403
    assert response.json()["message"] == "No client profile linked to this account"


def test_profile_read_and_update(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()
    headers = factory.headers(user)

    profile = client.get("/api/portal/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["data"]["id"] == str(portal_client.id)

    updated = client.put("/api/portal/profile", json={"city": "Porto", "zipCode": "4000"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["city"] == "Porto"
    assert updated.json()["data"]["zipCode"] == "4000"
    assert updated.json()["data"]["email"] == portal_client.email


def test_subscriptions_show_only_active(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()
    factory.subscription(portal_client, factory.product("Support"))
    factory.subscription(portal_client, factory.product("Old"), is_active=False)
    factory.subscription(factory.client(), factory.product("Someone else"))

    response = client.get("/api/portal/subscriptions", headers=factory.headers(user))

    assert response.status_code == 200
    assert [item["product"]["name"] for item in response.json()["data"]] == ["Support"]


def test_claims_are_scoped_to_own_client(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()
    staff = factory.user(Role.SUPERVISOR)
    own = factory.claim(portal_client, staff, title="Own")
    foreign = factory.claim(factory.client(), staff, title="Foreign")
    headers = factory.headers(user)

    listed = client.get("/api/portal/claims", headers=headers)
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()["data"]] == [str(own.id)]

    assert client.get(f"/api/portal/claims/{own.id}", headers=headers).status_code == 200
    assert client.get(f"/api/portal/claims/{foreign.id}", headers=headers).status_code == 403


def test_portal_claim_creation_stamps_client(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()

    response = client.post(
        "/api/portal/claims",
        json={"title": "Wrong size", "description": "The shirt is too small", "clientId": "ignored"},
        headers=factory.headers(user),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["clientId"] == str(portal_client.id)
    assert data["createdById"] == str(user.id)
    assert data["assignedToId"] is None


def test_portal_attachment_upload_and_download(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()
    claim = factory.claim(portal_client, factory.user(Role.ADMIN))
    headers = factory.headers(user)

    uploaded = client.post(
        f"/api/portal/claims/{claim.id}/attachments",
        files={"file": ("photo.png", b"\x89PNG fake", "image/png")},
        headers=headers,
    )
    assert uploaded.status_code == 201
    attachment_id = uploaded.json()["data"]["id"]

    downloaded = client.get(f"/api/portal/claims/{claim.id}/attachments/{attachment_id}", headers=headers)
    assert downloaded.status_code == 200
    assert downloaded.content == b"\x89PNG fake"
    assert downloaded.headers["content-type"] == "image/png"

    _, intruder = factory.portal_client()
    denied = client.get(f"/api/portal/claims/{claim.id}/attachments/{attachment_id}", headers=factory.headers(intruder))
    assert denied.status_code == 403


def test_portal_dashboard(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()
    staff = factory.user(Role.ADMIN)
    factory.subscription(portal_client, factory.product("Support", "100.00", "monthly"), quantity=2)
    factory.subscription(portal_client, factory.product("License", "1200.00", "yearly"))
    factory.subscription(portal_client, factory.product("Old", "50.00", "monthly"), is_active=False)
    factory.claim(portal_client, staff, status="OPEN")
    factory.claim(portal_client, staff, status="IN_PROGRESS")
    factory.claim(portal_client, staff, status="CLOSED")

    response = client.get("/api/portal/dashboard", headers=factory.headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["profile"]["email"] == portal_client.email
    assert data["subscriptions"] == {"active": 2, "total": 3, "monthlySpend": 300.0}
    assert data["claims"] == {"total": 3, "open": 2, "resolved": 1}
    assert len(data["recentClaims"]) == 3
