from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Role
from clientdesk.users.models import User

from conftest import Factory


def test_manager_creates_client_operator_cannot(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    operator = factory.user(Role.OPERATOR)
    payload = {"firstName": "Ada", "lastName": "Lovelace", "email": "Ada@Engines.io", "company": "Engines"}

    denied = client.post("/api/clients", json=payload, headers=factory.headers(operator))
    assert denied.status_code == 403

    created = client.post("/api/clients", json=payload, headers=factory.headers(supervisor))
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["email"] == "ada@engines.io"
    assert data["hasPortalAccess"] is False

    duplicate = client.post("/api/clients", json=payload, headers=factory.headers(supervisor))
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "A client with this email already exists"


def test_operator_can_list_and_read_clients(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    acme = factory.client(first_name="Acme", last_name="Buyer")
    factory.client(first_name="Zed", last_name="Other")
    headers = factory.headers(operator)

    listed = client.get("/api/clients", params={"search": "acme"}, headers=headers)
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()["data"]] == [str(acme.id)]

    detail = client.get(f"/api/clients/{acme.id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["subscriptions"] == []


def test_duplicate_subscription_is_rejected(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    customer = factory.client()
    product = factory.product("Support")
    headers = factory.headers(supervisor)

    first = client.post(f"/api/clients/{customer.id}/products", json={"productId": str(product.id), "quantity": 2}, headers=headers)
    assert first.status_code == 201
    [subscription] = first.json()["data"]["subscriptions"]
    assert subscription["quantity"] == 2
    assert subscription["product"]["name"] == "Support"

    second = client.post(f"/api/clients/{customer.id}/products", json={"productId": str(product.id)}, headers=headers)
    assert second.status_code == 400
    assert second.json()["message"] == "Client already has this product"


def test_subscription_quantity_must_be_positive(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    customer = factory.client()
    product = factory.product()

    response = client.post(
        f"/api/clients/{customer.id}/products",
        json={"productId": str(product.id), "quantity": 0},
        headers=factory.headers(supervisor),
    )

    assert response.status_code == 422


def test_update_and_remove_subscription(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    customer = factory.client()
    product = factory.product()
    factory.subscription(customer, product)
    headers = factory.headers(supervisor)

    updated = client.put(f"/api/clients/{customer.id}/products/{product.id}", json={"quantity": 5}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["subscriptions"][0]["quantity"] == 5

    removed = client.delete(f"/api/clients/{customer.id}/products/{product.id}", headers=headers)
    assert removed.status_code == 200
    assert removed.json()["data"]["subscriptions"] == []

    missing = client.delete(f"/api/clients/{customer.id}/products/{product.id}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Subscription not found"


def test_client_income_normalises_cycles(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    customer = factory.client()
    factory.subscription(customer, factory.product("Support", "100.00", "monthly"), quantity=2)
    factory.subscription(customer, factory.product("License", "1200.00", "yearly"))
    factory.subscription(customer, factory.product("Setup", "500.00", "one-time"))
    factory.subscription(customer, factory.product("Retired", "999.00", "monthly"), is_active=False)

    income = client.get(f"/api/clients/{customer.id}/income", headers=factory.headers(supervisor))

    assert income.status_code == 200
    data = income.json()["data"]
    assert data["monthlyIncome"] == 300.0
    assert data["yearlyIncome"] == 3600.0
    assert len(data["products"]) == 3


def test_income_report_ranks_clients(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    support = factory.product("Support", "100.00", "monthly")
    small = factory.client(first_name="Small", last_name="Shop")
    big = factory.client(first_name="Big", last_name="Corp")
    factory.subscription(small, support)
    factory.subscription(big, support, quantity=3, custom_price="90.00")

    report = client.get("/api/clients/income-report", headers=factory.headers(admin)).json()["data"]

    assert report["totalMonthlyIncome"] == 370.0
    assert report["totalYearlyIncome"] == 4440.0
    assert report["clientCount"] == 2
    assert report["activeSubscriptions"] == 2
    assert [item["clientName"] for item in report["topClients"]] == ["Big Corp", "Small Shop"]
    assert report["productBreakdown"][0]["clientCount"] == 2


def test_create_portal_account(client: TestClient, factory: Factory, db_session: Session) -> None:
    admin = factory.user(Role.ADMIN)
    customer = factory.client(email="portal@engines.io")
    headers = factory.headers(admin)

    created = client.post(f"/api/clients/{customer.id}/create-portal-account", headers=headers)
    assert created.status_code == 201
    assert created.json()["data"]["hasPortalAccess"] is True
    user = db_session.scalar(select(User).where(User.email == "portal@engines.io"))
    assert user is not None and user.role == "CLIENT"

    again = client.post(f"/api/clients/{customer.id}/create-portal-account", headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Client already has portal access"


def test_delete_client_deactivates(client: TestClient, factory: Factory, db_session: Session) -> None:
    admin = factory.user(Role.ADMIN)
    customer = factory.client()

    response = client.delete(f"/api/clients/{customer.id}", headers=factory.headers(admin))

    assert response.status_code == 200
    db_session.refresh(customer)
    assert customer.is_active is False
