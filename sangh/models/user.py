"""
User ORM model.

Backs the default IdentityDirectory. Other profile data lives elsewhere.
"""

from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from sangh.models.base import Base, TimestampMixin, UUIDMixin


class IdentityStatus(str, enum.Enum):
    """Identity verification state of a user."""

    none = "none"
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class User(Base, UUIDMixin, TimestampMixin):
    """Represents a platform user as seen by the hierarchy engine."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    identity_status: Mapped[IdentityStatus] = mapped_column(
        Enum(IdentityStatus, name="identity_status"), nullable=False, default=IdentityStatus.none
    )
    identity_number: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)
    identity_application_id: Mapped[UUID | None] = mapped_column(nullable=True)

    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @property
    def is_identity_verified(self) -> bool:
        return self.identity_status == IdentityStatus.verified

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
