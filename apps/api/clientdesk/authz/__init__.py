from clientdesk.authz.policy import (
    MANAGER_ROLES,
    ROLE_HIERARCHY,
    STAFF_ROLES,
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
    role_level,
)

__all__ = [
    "MANAGER_ROLES",
    "ROLE_HIERARCHY",
    "STAFF_ROLES",
    "Action",
    "Identity",
    "OwnerRef",
    "ResourceKind",
    "Role",
    "authorize",
    "can_access",
    "has_minimum_role",
    "is_manager",
    "is_staff",
    "role_level",
]
