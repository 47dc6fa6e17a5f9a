from collections.abc import Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.constants import STAFF_ROLES, Role


class CurrentUser(BaseModel):
    """Caller identity decoded from the identity service's JWT."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID
    email: str
    roles: list[Role] = Field(default_factory=list)

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        return any(r in self.roles for r in roles)

    @property
    def is_staff(self) -> bool:
        """Teachers and admins run batches and act on behalf of students."""
        return self.has_any_role(STAFF_ROLES)
