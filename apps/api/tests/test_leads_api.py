from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clientdesk.activity.models import Activity
from clientdesk.authz.policy import Role
from clientdesk.clients.models import Client
from clientdesk.core.auth import identity_from_user
from clientdesk.leads.models import Lead
from clientdesk.leads.schemas import LeadConvert
from clientdesk.leads.service import LeadService, lead_service
from clientdesk.users.models import User

from conftest import Factory


def test_operator_creates_and_lists_only_own_leads(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    other = factory.user(Role.OPERATOR)
    factory.lead(other)
    headers = factory.headers(operator)

    created = client.post(
        "/api/leads",
        json={"firstName": "Jane", "lastName": "Doe", "email": "Jane@Prospect.io", "source": "referral"},
        headers=headers,
    )
    assert created.status_code == 201
    lead = created.json()["data"]
    assert lead["status"] == "NEW"
    assert lead["email"] == "jane@prospect.io"
    assert lead["createdBy"]["id"] == str(operator.id)

    listed = client.get("/api/leads", headers=headers)
    assert listed.status_code == 200
    body = listed.json()
    assert [item["id"] for item in body["data"]] == [lead["id"]]
    assert body["meta"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}


def test_operator_cannot_assign_on_create(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    colleague = factory.user(Role.OPERATOR)

    response = client.post(
        "/api/leads",
        json={"firstName": "Jane", "lastName": "Doe", "email": "jane@prospect.io", "assignedToId": str(colleague.id)},
        headers=factory.headers(operator),
    )

    assert response.status_code == 403


def test_operator_is_forbidden_from_foreign_lead(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    lead = factory.lead(factory.user(Role.SUPERVISOR))

    response = client.get(f"/api/leads/{lead.id}", headers=factory.headers(operator))

    assert response.status_code == 403
    assert response.json()["message"] == "Access denied to this lead"


def test_operator_cannot_update_foreign_lead(client: TestClient, factory: Factory, db_session: Session) -> None:
    operator = factory.user(Role.OPERATOR)
    lead = factory.lead(factory.user(Role.SUPERVISOR), source="referral")
    headers = factory.headers(operator)

    edited = client.put(f"/api/leads/{lead.id}", json={"source": "hijacked"}, headers=headers)
    moved = client.put(f"/api/leads/{lead.id}/status", json={"status": "LOST"}, headers=headers)

    assert (edited.status_code, moved.status_code) == (403, 403)
    assert moved.json()["message"] == "Access denied to this lead"
    db_session.expire_all()
    unchanged = db_session.get(Lead, lead.id)
    assert (unchanged.source, unchanged.status) == ("referral", "NEW")


def test_assignee_operator_can_update_status(client: TestClient, factory: Factory, db_session: Session) -> None:
    operator = factory.user(Role.OPERATOR)
    lead = factory.lead(factory.user(Role.SUPERVISOR), assigned_to=operator)

    response = client.put(f"/api/leads/{lead.id}/status", json={"status": "CONTACTED"}, headers=factory.headers(operator))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CONTACTED"
    activity = db_session.scalar(select(Activity).where(Activity.lead_id == lead.id, Activity.action == "STATUS_CHANGED"))
    assert activity is not None
    assert activity.event_metadata == {"oldStatus": "NEW", "newStatus": "CONTACTED"}


def test_converted_lead_status_is_locked(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    lead = factory.lead(admin, status="CONVERTED")

    response = client.put(f"/api/leads/{lead.id}/status", json={"status": "NEW"}, headers=factory.headers(admin))

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot change status of converted leads"


def test_unknown_status_is_a_validation_error(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    lead = factory.lead(admin)

    response = client.put(f"/api/leads/{lead.id}/status", json={"status": "ARCHIVED"}, headers=factory.headers(admin))

    assert response.status_code == 422
    assert "status" in response.json()["error"]


def test_assign_is_manager_only(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    operator = factory.user(Role.OPERATOR, first_name="Olive", last_name="Op")
    lead = factory.lead(supervisor)

    denied = client.put(f"/api/leads/{lead.id}/assign", json={"assignedToId": str(operator.id)}, headers=factory.headers(operator))
    assert denied.status_code == 403

    assigned = client.put(f"/api/leads/{lead.id}/assign", json={"assignedToId": str(operator.id)}, headers=factory.headers(supervisor))
    assert assigned.status_code == 200
    assert assigned.json()["data"]["assignedTo"]["firstName"] == "Olive"


def test_assign_to_unknown_user_is_rejected(client: TestClient, factory: Factory) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    lead = factory.lead(supervisor)

    response = client.put(
        f"/api/leads/{lead.id}/assign",
        json={"assignedToId": "00000000-0000-4000-8000-000000000000"},
        headers=factory.headers(supervisor),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Assignee user not found"


def test_convert_creates_client_and_portal_user(client: TestClient, factory: Factory, db_session: Session) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    lead = factory.lead(supervisor, email="convert@prospect.io")

    response = client.post(
        f"/api/leads/{lead.id}/convert",
        json={"createPortalAccount": True, "city": "Lisbon"},
        headers=factory.headers(supervisor),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["lead"]["status"] == "CONVERTED"
    assert data["lead"]["convertedAt"] is not None

    new_client = db_session.scalar(select(Client).where(Client.email == "convert@prospect.io"))
    assert new_client is not None
    assert str(new_client.id) == data["clientId"]
    assert new_client.converted_from_id == lead.id
    assert new_client.city == "Lisbon"
    portal_user = db_session.scalar(select(User).where(User.email == "convert@prospect.io"))
    assert portal_user is not None
    assert portal_user.role == "CLIENT"
    assert new_client.user_id == portal_user.id

    again = client.post(f"/api/leads/{lead.id}/convert", json={}, headers=factory.headers(supervisor))
    assert again.status_code == 400
    assert again.json()["message"] == "Lead is already converted"


def test_convert_rejects_existing_client_email(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    factory.client(email="taken@prospect.io")
    lead = factory.lead(admin, email="taken@prospect.io")

    response = client.post(f"/api/leads/{lead.id}/convert", json={}, headers=factory.headers(admin))

    assert response.status_code == 400
    assert response.json()["message"] == "A client with this email already exists"


def test_operator_cannot_convert(client: TestClient, factory: Factory) -> None:
    operator = factory.user(Role.OPERATOR)
    lead = factory.lead(operator)

    response = client.post(f"/api/leads/{lead.id}/convert", json={}, headers=factory.headers(operator))

    assert response.status_code == 403


def test_failed_conversion_leaves_nothing_behind(
    client: TestClient,
    factory: Factory,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    admin = factory.user(Role.ADMIN)
    lead = factory.lead(admin, email="atomic@prospect.io")

    def explode(self: LeadService, session: Session, lead: Lead) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(LeadService, "_mark_converted", explode)
    users_before = db_session.scalar(select(func.count()).select_from(User))

    with pytest.raises(RuntimeError):
        lead_service.convert(db_session, identity_from_user(admin), lead.id, LeadConvert(create_portal_account=True))

    db_session.expire_all()
    assert db_session.get(Lead, lead.id).status == "NEW"
    assert db_session.scalar(select(func.count()).select_from(Client)) == 0
    assert db_session.scalar(select(func.count()).select_from(User)) == users_before
    assert db_session.scalar(select(func.count()).select_from(Activity).where(Activity.action == "CONVERTED")) == 0


def test_delete_keeps_audit_trail(client: TestClient, factory: Factory, db_session: Session) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    lead = factory.lead(supervisor)
    lead_id = lead.id

    response = client.delete(f"/api/leads/{lead_id}", headers=factory.headers(supervisor))

    assert response.status_code == 200
    assert db_session.get(Lead, lead_id) is None
    activity = db_session.scalar(select(Activity).where(Activity.action == "DELETED"))
    assert activity is not None
    assert activity.lead_id is None
    assert activity.event_metadata == {"leadId": str(lead_id)}


def test_stats_and_sources(client: TestClient, factory: Factory) -> None:
    admin = factory.user(Role.ADMIN)
    factory.lead(admin, status="NEW", source="website")
    factory.lead(admin, status="CONVERTED", source="referral")
    factory.lead(admin, status="LOST", source=None)
    factory.lead(admin, status="CONVERTED", source="website")
    headers = factory.headers(admin)

    stats = client.get("/api/leads/stats", headers=headers).json()["data"]
    assert stats["total"] == 4
    assert stats["byStatus"]["CONVERTED"] == 2
    assert stats["byStatus"]["QUALIFIED"] == 0
    assert stats["conversionRate"] == 50.0

    sources = client.get("/api/leads/sources", headers=headers).json()["data"]
    assert sources == ["referral", "website"]


def test_client_role_has_no_staff_access(client: TestClient, factory: Factory) -> None:
    _, user = factory.portal_client()

    response = client.get("/api/leads", headers=factory.headers(user))

    assert response.status_code == 403
    assert response.json()["message"] == "Staff access only"


def test_delete_nulls_lead_reference_on_earlier_activity(client: TestClient, factory: Factory, db_session: Session) -> None:
    supervisor = factory.user(Role.SUPERVISOR)
    lead = factory.lead(supervisor)
    lead_id = lead.id
    headers = factory.headers(supervisor)
    assert client.put(f"/api/leads/{lead_id}", json={"company": "Acme"}, headers=headers).status_code == 200
    assert client.put(f"/api/leads/{lead_id}/status", json={"status": "CONTACTED"}, headers=headers).status_code == 200

    assert client.delete(f"/api/leads/{lead_id}", headers=headers).status_code == 200

    db_session.expire_all()
    assert db_session.scalars(select(Activity).where(Activity.lead_id == lead_id)).all() == []
    history = db_session.scalars(select(Activity).where(Activity.action.in_(["UPDATED", "STATUS_CHANGED"]))).all()
    assert {activity.action for activity in history} == {"UPDATED", "STATUS_CHANGED"}
    assert all(activity.lead_id is None for activity in history)


def test_deleting_converted_lead_keeps_client(client: TestClient, factory: Factory, db_session: Session) -> None:
    admin = factory.user(Role.ADMIN)
    lead = factory.lead(admin, email="origin@prospect.io")
    lead_id = lead.id
    headers = factory.headers(admin)
    converted = client.post(f"/api/leads/{lead_id}/convert", json={}, headers=headers)
    assert converted.status_code == 200

    assert client.delete(f"/api/leads/{lead_id}", headers=headers).status_code == 200

    db_session.expire_all()
    kept = db_session.get(Client, uuid.UUID(converted.json()["data"]["clientId"]))
    assert kept is not None
    assert kept.converted_from_id is None
    conversion = db_session.scalar(select(Activity).where(Activity.action == "CONVERTED"))
    assert conversion.lead_id is None
    assert conversion.client_id == kept.id
