from __future__ import annotations

import uuid

import pytest

from clientdesk.authz.policy import (
    Action,
    Identity,
    OwnerRef,
    ResourceKind,
    Role,
    authorize,
    can_access,
    has_minimum_role,
    is_manager,
    is_staff,
)
from clientdesk.core.errors import ForbiddenError
from clientdesk.core.rbac import client_only, require_min_role, staff_only


ACTOR = uuid.uuid4()
OTHER = uuid.uuid4()
CLIENT_A = uuid.uuid4()
CLIENT_B = uuid.uuid4()


def test_role_hierarchy_ordering() -> None:
    assert has_minimum_role(Role.ADMIN, Role.SUPERVISOR)
    assert has_minimum_role(Role.SUPERVISOR, Role.SUPERVISOR)
    assert not has_minimum_role(Role.OPERATOR, Role.SUPERVISOR)
    assert not has_minimum_role(Role.CLIENT, Role.OPERATOR)
    assert has_minimum_role("OPERATOR", "CLIENT")


def test_manager_and_staff_sets() -> None:
    assert is_manager(Role.ADMIN) and is_manager(Role.SUPERVISOR)
    assert not is_manager(Role.OPERATOR)
    assert is_staff(Role.OPERATOR)
    assert not is_staff(Role.CLIENT)


@pytest.mark.parametrize("role", [Role.ADMIN, Role.SUPERVISOR])
@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("kind", list(ResourceKind))
def test_managers_reach_every_resource(role: Role, action: Action, kind: ResourceKind) -> None:
    assert can_access(role, ACTOR, None, kind, OwnerRef(), action)


def test_operator_lead_access_requires_creator_or_assignee() -> None:
    assert can_access(Role.OPERATOR, ACTOR, None, ResourceKind.LEAD, OwnerRef(created_by_id=ACTOR))
    assert can_access(Role.OPERATOR, ACTOR, None, ResourceKind.LEAD, OwnerRef(created_by_id=OTHER, assigned_to_id=ACTOR))
    assert can_access(Role.OPERATOR, ACTOR, None, ResourceKind.LEAD, OwnerRef(created_by_id=ACTOR), Action.UPDATE)
    assert not can_access(Role.OPERATOR, ACTOR, None, ResourceKind.LEAD, OwnerRef(created_by_id=OTHER, assigned_to_id=OTHER))


def test_operator_claim_access_requires_assignment() -> None:
    assert can_access(Role.OPERATOR, ACTOR, None, ResourceKind.CLAIM, OwnerRef(assigned_to_id=ACTOR, created_by_id=OTHER))
    # Creating a claim does not grant access to it.
    assert not can_access(Role.OPERATOR, ACTOR, None, ResourceKind.CLAIM, OwnerRef(created_by_id=ACTOR))


def test_operator_reads_clients_but_never_assigns_or_deletes() -> None:
    assert can_access(Role.OPERATOR, ACTOR, None, ResourceKind.CLIENT, OwnerRef(client_id=CLIENT_A))
    assert not can_access(Role.OPERATOR, ACTOR, None, ResourceKind.CLIENT, OwnerRef(client_id=CLIENT_A), Action.UPDATE)
    for kind in ResourceKind:
        owner = OwnerRef(created_by_id=ACTOR, assigned_to_id=ACTOR, client_id=CLIENT_A)
        assert not can_access(Role.OPERATOR, ACTOR, None, kind, owner, Action.ASSIGN)
        assert not can_access(Role.OPERATOR, ACTOR, None, kind, owner, Action.DELETE)


def test_client_role_is_limited_to_own_records() -> None:
    own_claim = OwnerRef(client_id=CLIENT_A)
    assert can_access(Role.CLIENT, ACTOR, CLIENT_A, ResourceKind.CLAIM, own_claim)
    assert not can_access(Role.CLIENT, ACTOR, CLIENT_A, ResourceKind.CLAIM, own_claim, Action.UPDATE)
    assert not can_access(Role.CLIENT, ACTOR, CLIENT_A, ResourceKind.CLAIM, OwnerRef(client_id=CLIENT_B))
    assert can_access(Role.CLIENT, ACTOR, CLIENT_A, ResourceKind.CLIENT, OwnerRef(client_id=CLIENT_A))
    assert not can_access(Role.CLIENT, ACTOR, CLIENT_A, ResourceKind.LEAD, OwnerRef(created_by_id=ACTOR))
    assert not can_access(Role.CLIENT, ACTOR, None, ResourceKind.CLAIM, own_claim)


def test_authorize_raises_forbidden_with_message() -> None:
    identity = Identity(user_id=ACTOR, email="op@clientdesk.io", role=Role.OPERATOR)
    with pytest.raises(ForbiddenError) as excinfo:
        authorize(identity, ResourceKind.CLAIM, OwnerRef(assigned_to_id=OTHER), Action.READ)
    assert excinfo.value.message == "Access denied to this claim"
    assert excinfo.value.status_code == 403

    with pytest.raises(ForbiddenError) as custom:
        authorize(identity, ResourceKind.LEAD, OwnerRef(), Action.DELETE, "Only admins and supervisors can delete leads")
    assert custom.value.message == "Only admins and supervisors can delete leads"


def test_rbac_dependencies_check_role() -> None:
    operator = Identity(user_id=ACTOR, email="op@clientdesk.io", role=Role.OPERATOR)
    admin = Identity(user_id=OTHER, email="admin@clientdesk.io", role=Role.ADMIN)
    supervisor_or_higher = require_min_role(Role.SUPERVISOR)

    assert supervisor_or_higher(admin) is admin
    with pytest.raises(ForbiddenError) as denied:
        supervisor_or_higher(operator)
    assert denied.value.message == "Requires SUPERVISOR role or higher"

    assert staff_only(operator) is operator
    portal_user = Identity(user_id=OTHER, email="c@prospect.io", role=Role.CLIENT)
    with pytest.raises(ForbiddenError) as unlinked:
        client_only(portal_user)
    assert unlinked.value.message == "No client profile linked to this account"
    with pytest.raises(ForbiddenError) as staff_denied:
        client_only(operator)
    assert staff_denied.value.message == "Client portal access only"
