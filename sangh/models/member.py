"""
UnitMember ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sangh.models.base import Base, UTCDateTime, UUIDMixin, utcnow

if TYPE_CHECKING:
    from sangh.models.org_unit import OrgUnit


class MemberStatus(str, enum.Enum):
    """Member status enumeration."""

    active = "active"
    inactive = "inactive"


class UnitMember(Base, UUIDMixin):
    """A verified user on a unit's roster."""

    __tablename__ = "unit_members"
    __table_args__ = (
        Index("idx_unit_members_unit_user", "unit_id", "user_id", unique=True),
    )

    unit_id: Mapped[UUID] = mapped_column(
        ForeignKey("org_units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(220), nullable=False)
    identity_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    photo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    added_by: Mapped[UUID | None] = mapped_column(nullable=True)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, name="member_status"), nullable=False, default=MemberStatus.active
    )

    # Relationships
    unit: Mapped[OrgUnit] = relationship("OrgUnit", back_populates="members")

    def __repr__(self) -> str:
        return f"<UnitMember unit_id={self.unit_id} user_id={self.user_id} status={self.status}>"
