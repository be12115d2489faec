"""Typed failures raised by the checklist and deal-release services.

Every error is recoverable at the call site. The HTTP layer maps them to the
standard error envelope via ``disclosure_error_handler``.
"""

from typing import Any


class DisclosureError(Exception):
    """Base class for all domain failures."""

    error = "disclosure_error"
    status_code = 400

    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(DisclosureError):
    """Missing or malformed required input (e.g. an empty waive reason)."""

    error = "validation_error"
    status_code = 422


class NotEligibleError(DisclosureError):
    """Status change on a requirement that does not apply to the deal."""

    error = "not_eligible"
    status_code = 409


class InvalidStateTransitionError(DisclosureError):
    """Checklist or release transition attempted from a forbidden state."""

    error = "invalid_state_transition"
    status_code = 409

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Cannot move from '{current}' to '{target}'",
            detail={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class NotFoundError(DisclosureError):
    """Unknown deal, requirement, partner or release id."""

    error = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", detail={"entity": entity, "id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class AccessLockedError(DisclosureError):
    """Partner requested content above its release's access level."""

    error = "access_locked"
    status_code = 403
