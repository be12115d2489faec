"""Auth schemas: CurrentUser."""

import uuid

from pydantic import BaseModel

from dealdesk.models.enums import UserRole


class CurrentUser(BaseModel):
    """Caller identity extracted from the bearer token. Trusted as given."""

    user_id: uuid.UUID
    role: UserRole
    email: str
    partner_id: uuid.UUID | None = None  # set for funding-partner users

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
