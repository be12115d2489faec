"""RBAC permission matrix and checker.

Roles are disjoint: clients own deals, partners act on deals released to
them, admins run the desk. Permissions are (action, resource_type) tuples.
"""

import uuid

from dealdesk.models.enums import UserRole


# ── Actions ───────────────────────────────────────────────────────────────


class Action:
    VIEW = "view"
    MANAGE = "manage"
    UPLOAD = "upload"
    APPROVE = "approve"
    WAIVE = "waive"
    RELEASE = "release"
    RESPOND = "respond"
    TRANSITION = "transition"


# ── Resource Types ────────────────────────────────────────────────────────


class Resource:
    REQUIREMENT = "requirement"
    CHECKLIST = "checklist"
    DEAL_RELEASE = "deal_release"
    ACCESS_LOG = "access_log"


# ── Per-role permission sets ──────────────────────────────────────────────

_CLIENT_PERMS: set[tuple[str, str]] = {
    (Action.VIEW, Resource.REQUIREMENT),
    (Action.VIEW, Resource.CHECKLIST),
    (Action.UPLOAD, Resource.CHECKLIST),
}

_PARTNER_PERMS: set[tuple[str, str]] = {
    (Action.VIEW, Resource.DEAL_RELEASE),
    (Action.RESPOND, Resource.DEAL_RELEASE),
}

_ADMIN_PERMS: set[tuple[str, str]] = _CLIENT_PERMS | {
    (Action.MANAGE, Resource.REQUIREMENT),
    (Action.APPROVE, Resource.CHECKLIST),
    (Action.WAIVE, Resource.CHECKLIST),
    (Action.MANAGE, Resource.CHECKLIST),
    (Action.VIEW, Resource.DEAL_RELEASE),
    (Action.RELEASE, Resource.DEAL_RELEASE),
    (Action.TRANSITION, Resource.DEAL_RELEASE),
    (Action.VIEW, Resource.ACCESS_LOG),
}

PERMISSION_MATRIX: dict[UserRole, set[tuple[str, str]]] = {
    UserRole.CLIENT: _CLIENT_PERMS,
    UserRole.PARTNER: _PARTNER_PERMS,
    UserRole.ADMIN: _ADMIN_PERMS,
}


# ── Public API ────────────────────────────────────────────────────────────


def check_permission(
    role: UserRole,
    action: str,
    resource_type: str,
    resource_id: uuid.UUID | None = None,  # reserved for future object-level checks
) -> bool:
    """Check if a role has permission for an action on a resource type."""
    perms = PERMISSION_MATRIX.get(role)
    if perms is None:
        return False
    return (action, resource_type) in perms


def get_permissions_for_role(role: UserRole) -> dict[str, list[str]]:
    """Return permissions grouped by resource type (for API responses)."""
    perms = PERMISSION_MATRIX.get(role, set())
    result: dict[str, list[str]] = {}
    for action, resource in sorted(perms):
        result.setdefault(resource, []).append(action)
    return result
