"""
Caller identity schemas used for authority checks.
"""

from __future__ import annotations

import enum
from uuid import UUID

from pydantic import BaseModel, Field

from sangh.core.levels import UnitLevel

VERIFY_IDENTITY_PERMISSION = "verify_identity"


class ActorRole(str, enum.Enum):
    """Role the caller acts in for one request."""

    superadmin = "superadmin"
    admin = "admin"
    president = "president"
    secretary = "secretary"
    treasurer = "treasurer"
    member = "member"


class Actor(BaseModel):
    """
    Who is performing an operation.

    ``level``/``unit_id`` name the unit whose office the caller acts from; they
    are ignored for superadmin and admin.
    """

    user_id: UUID
    role: ActorRole
    level: UnitLevel | None = None
    unit_id: UUID | None = None
    permissions: list[str] = Field(default_factory=list)

    @property
    def is_superadmin(self) -> bool:
        return self.role == ActorRole.superadmin

    @property
    def can_verify_identity(self) -> bool:
        return self.role == ActorRole.admin and VERIFY_IDENTITY_PERMISSION in self.permissions

    @property
    def history_level(self) -> str:
        """Level recorded in review history entries."""
        if self.role in (ActorRole.superadmin, ActorRole.admin):
            return self.role.value
        return self.level.value if self.level else "user"
