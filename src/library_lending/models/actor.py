"""
Caller identity as supplied by the session layer.

The lending core trusts these values; it only uses the role to decide whether
an actor counts as staff for the staff-only transitions.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Caller role."""

    GUEST = "GUEST"
    MEMBER = "MEMBER"
    LIBRARIAN = "LIBRARIAN"
    ADMIN = "ADMIN"


STAFF_ROLES = frozenset({Role.LIBRARIAN, Role.ADMIN})


class Actor(BaseModel):
    """An authenticated caller."""

    user_id: str = Field(..., min_length=1, max_length=50, description="Authenticated user ID")
    role: Role = Field(default=Role.MEMBER, description="Caller role")

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    model_config = ConfigDict(frozen=True)
