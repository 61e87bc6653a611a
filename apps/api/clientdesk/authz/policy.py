"""Role hierarchy and resource-ownership rules.

Everything here is pure: no session, no request. Route gates in
``clientdesk.core.rbac`` and every domain service delegate to
:func:`can_access` / :func:`authorize` so the rules live in one place.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from clientdesk.core.errors import ForbiddenError


class Role(str, Enum):
    CLIENT = "CLIENT"
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"


# Lowest to highest privilege.
ROLE_HIERARCHY: tuple[Role, ...] = (Role.CLIENT, Role.OPERATOR, Role.SUPERVISOR, Role.ADMIN)
MANAGER_ROLES = frozenset({Role.ADMIN, Role.SUPERVISOR})
STAFF_ROLES = frozenset({Role.ADMIN, Role.SUPERVISOR, Role.OPERATOR})


class ResourceKind(str, Enum):
    LEAD = "LEAD"
    CLAIM = "CLAIM"
    CLIENT = "CLIENT"


class Action(str, Enum):
    READ = "READ"
    UPDATE = "UPDATE"
    ASSIGN = "ASSIGN"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class OwnerRef:
    """Ownership facts of one record, whatever its kind."""

    created_by_id: uuid.UUID | None = None
    assigned_to_id: uuid.UUID | None = None
    client_id: uuid.UUID | None = None


@dataclass(slots=True)
class Identity:
    user_id: uuid.UUID
    email: str
    role: Role
    first_name: str = ""
    last_name: str = ""
    client_id: uuid.UUID | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def role_level(role: Role | str) -> int:
    return ROLE_HIERARCHY.index(Role(role))


def has_minimum_role(role: Role | str, minimum: Role | str) -> bool:
    return role_level(role) >= role_level(minimum)


def is_manager(role: Role | str) -> bool:
    return Role(role) in MANAGER_ROLES


def is_staff(role: Role | str) -> bool:
    return Role(role) in STAFF_ROLES


def can_access(
    role: Role | str,
    actor_id: uuid.UUID | None,
    actor_client_id: uuid.UUID | None,
    kind: ResourceKind,
    owner: OwnerRef,
    action: Action = Action.READ,
) -> bool:
    role = Role(role)
    if role in MANAGER_ROLES:
        return True
    if action in (Action.ASSIGN, Action.DELETE):
        return False

    if role is Role.OPERATOR:
        if actor_id is None:
            return False
        if kind is ResourceKind.LEAD:
            return actor_id in (owner.created_by_id, owner.assigned_to_id)
        if kind is ResourceKind.CLAIM:
            return owner.assigned_to_id == actor_id
        if kind is ResourceKind.CLIENT:
            return action is Action.READ
        return False

    if role is Role.CLIENT:
        if actor_client_id is None or owner.client_id is None:
            return False
        if kind is ResourceKind.CLAIM:
            return action is Action.READ and owner.client_id == actor_client_id
        if kind is ResourceKind.CLIENT:
            return owner.client_id == actor_client_id
        return False

    return False


def authorize(
    identity: Identity,
    kind: ResourceKind,
    owner: OwnerRef,
    action: Action = Action.READ,
    message: str | None = None,
) -> None:
    if not can_access(identity.role, identity.user_id, identity.client_id, kind, owner, action):
        raise ForbiddenError(message or f"Access denied to this {kind.value.lower()}")
