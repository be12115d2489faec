"""Auth package: token verification, dependencies, RBAC."""

from dealdesk.auth.dependencies import (
    get_current_user,
    require_admin,
    require_partner,
    require_partner_permission,
    require_permission,
)
from dealdesk.auth.rbac import check_permission, get_permissions_for_role

__all__ = [
    "check_permission",
    "get_current_user",
    "get_permissions_for_role",
    "require_admin",
    "require_partner",
    "require_partner_permission",
    "require_permission",
]
