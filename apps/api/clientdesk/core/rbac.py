from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends

from clientdesk.authz.policy import Identity, Role, has_minimum_role, is_staff
from clientdesk.core.auth import get_current_identity
from clientdesk.core.errors import ForbiddenError


IdentityDependency = Callable[..., Identity]


def require_authenticated(identity: Identity = Depends(get_current_identity)) -> Identity:
    return identity


def require_min_role(minimum: Role) -> IdentityDependency:
    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not has_minimum_role(identity.role, minimum):
            raise ForbiddenError(f"Requires {minimum.value} role or higher")
        return identity

    return checker


def require_roles(*roles: Role) -> IdentityDependency:
    allowed = frozenset(roles)

    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise ForbiddenError(f"Requires one of roles: {', '.join(role.value for role in roles)}")
        return identity

    return checker


def staff_only(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not is_staff(identity.role):
        raise ForbiddenError("Staff access only")
    return identity


def client_only(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role is not Role.CLIENT:
        raise ForbiddenError("Client portal access only")
    if identity.client_id is None:
        raise ForbiddenError("No client profile linked to this account")
    return identity


admin_only = require_roles(Role.ADMIN)
manager_only = require_roles(Role.ADMIN, Role.SUPERVISOR)
