"""
OrgUnit ORM model.

One row per Sangh. Office bearer terms and members are owned child rows.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sangh.core.levels import LOCATION_KEYS, UnitLevel
from sangh.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin

if TYPE_CHECKING:
    from sangh.models.member import UnitMember
    from sangh.models.office_bearer import BearerRole, OfficeBearerTerm


class UnitStatus(str, enum.Enum):
    """Unit lifecycle status. Units are deactivated, never deleted."""

    active = "active"
    inactive = "inactive"


class OrgUnit(Base, UUIDMixin, TimestampMixin):
    """A node in the country > state > district > city > area hierarchy."""

    __tablename__ = "org_units"
    __table_args__ = (
        Index("idx_org_units_level_status", "level", "status"),
        Index("idx_org_units_location", "country", "state", "district", "city"),
        # An active city/area owns its exact location tuple.
        Index(
            "uq_org_units_active_location",
            "level",
            "country",
            "state",
            "district",
            "city",
            "area",
            unique=True,
            postgresql_where=text("status = 'active' AND level IN ('city', 'area')"),
            sqlite_where=text("status = 'active' AND level IN ('city', 'area')"),
        ),
    )

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    level: Mapped[UnitLevel] = mapped_column(Enum(UnitLevel, name="unit_level"), nullable=False)

    # Location, populated down to and including ``level``; deeper fields stay empty.
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    district: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    area: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    parent_unit_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("org_units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    access_code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    status: Mapped[UnitStatus] = mapped_column(
        Enum(UnitStatus, name="unit_status"), nullable=False, default=UnitStatus.active
    )

    # Term block shared by the three office bearers.
    current_term_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_term_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    current_term_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    previous_terms: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    established_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)

    # Relationships
    office_bearers: Mapped[list[OfficeBearerTerm]] = relationship(
        "OfficeBearerTerm",
        back_populates="unit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OfficeBearerTerm.start_date",
    )
    members: Mapped[list[UnitMember]] = relationship(
        "UnitMember",
        back_populates="unit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UnitMember.joined_at",
    )

    @property
    def location(self) -> dict[str, str]:
        return {key: getattr(self, key) or "" for key in LOCATION_KEYS}

    @property
    def is_active(self) -> bool:
        return self.status == UnitStatus.active

    @property
    def active_members(self) -> list[UnitMember]:
        from sangh.models.member import MemberStatus

        return [m for m in self.members if m.status == MemberStatus.active]

    def current_terms(self) -> dict[BearerRole, OfficeBearerTerm]:
        """Most recently started term per role."""
        current: dict[BearerRole, OfficeBearerTerm] = {}
        for term in sorted(self.office_bearers, key=lambda t: t.start_date):
            current[term.role] = term
        return current

    def current_term(self, role: BearerRole) -> OfficeBearerTerm | None:
        return self.current_terms().get(role)

    def terms_for_role(self, role: BearerRole) -> list[OfficeBearerTerm]:
        return sorted(
            (t for t in self.office_bearers if t.role == role), key=lambda t: t.start_date
        )

    def __repr__(self) -> str:
        return f"<OrgUnit id={self.id} level={self.level} name={self.name!r}>"
