from __future__ import annotations

from fastapi.testclient import TestClient

from clientdesk.authz.policy import Role

from conftest import Factory


def test_admin_dashboard_includes_users_and_revenue(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    factory.user(Role.OPERATOR, is_active=False)
    customer = factory.client()
    factory.client()
    factory.subscription(customer, factory.product("Support", "100.00", "monthly"))
    factory.lead(admin, status="CONVERTED")
    factory.lead(admin)
    factory.claim(customer, admin, status="RESOLVED")

    response = client.get("/api/dashboard/admin", headers=factory.headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["users"]["total"] == 2
    assert data["users"]["active"] == 1
    assert {item["role"]: item["count"] for item in data["users"]["byRole"]} == {"ADMIN": 1, "OPERATOR": 1}
    assert data["leads"] == {"total": 2, "new": 1, "converted": 1, "conversionRate": 50.0}
    assert data["clients"] == {"total": 2, "active": 2, "withSubscriptions": 1}
    assert data["claims"] == {"total": 1, "open": 0, "inProgress": 0, "resolved": 1}
    assert data["revenue"] == {"monthlyRecurring": 100.0, "yearlyProjected": 1200.0}


def test_supervisor_dashboard_omits_users(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)

    denied = client.get("/api/dashboard/admin", headers=factory.headers(supervisor))
    assert denied.status_code == 403

    response = client.get("/api/dashboard", headers=factory.headers(supervisor))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["users"] is None
    assert data["revenue"] == {"monthlyRecurring": 0.0, "yearlyProjected": 0.0}


def test_operator_dashboard_is_scoped(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    supervisor = factory.user(Role.SUPERVISOR)
    customer = factory.client()
    factory.lead(operator)
    factory.lead(supervisor, assigned_to=operator, status="CONVERTED")
    factory.lead(supervisor)
    factory.claim(customer, supervisor, assigned_to=operator, status="IN_PROGRESS")
    factory.claim(customer, supervisor)
    headers = factory.headers(operator)

    response = client.get("/api/dashboard/operator", headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["leads"]["total"] == 2
    assert data["leads"]["converted"] == 1
    assert data["claims"] == {"total": 1, "open": 0, "inProgress": 1, "resolved": 0}
    assert data["clients"] == {"total": 0, "active": 0, "withSubscriptions": 0}
    assert data["revenue"] is None


def test_recent_activity_lists_latest_first(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR, first_name="Sue")
    headers = factory.headers(supervisor)
    for index in range(3):
        client.post(
            "/api/leads",
            json={"firstName": f"Lead{index}", "lastName": "Doe", "email": f"lead{index}@prospect.io"},
            headers=headers,
        )

    data = client.get("/api/dashboard/supervisor", headers=headers).json()["data"]

    activity = data["recentActivity"]
    assert len(activity) == 3
    assert activity[0]["description"] == 'Lead "Lead2 Doe" created'
    assert activity[0]["user"]["firstName"] == "Sue"


def test_generic_dashboard_dispatches_client(client: TestClient, factory: Factory) -> None:
    portal_client, user = factory.portal_client()

    response = client.get("/api/dashboard", headers=factory.headers(user))

    assert response.status_code == 200
    assert response.json()["data"]["profile"]["email"] == portal_client.email
