"""
OfficeBearerTerm ORM model.

A term row per (unit, role, holder). The latest-started row for a role is the
role's current term; older rows are kept as the role's record.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Index, String, Text, event, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sangh.core.exceptions import InvalidTenureError
from sangh.core.levels import UnitLevel
from sangh.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin

if TYPE_CHECKING:
    from sangh.models.org_unit import OrgUnit

TERM_YEARS = 2


class BearerRole(str, enum.Enum):
    """The three office bearer roles every unit carries."""

    president = "president"
    secretary = "secretary"
    treasurer = "treasurer"


class TermStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    terminated = "terminated"


def add_years(moment: datetime, years: int) -> datetime:
    """Calendar-exact year offset; 29 February lands on 28 February."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def term_end(start: datetime) -> datetime:
    return add_years(start, TERM_YEARS)


class OfficeBearerTerm(Base, UUIDMixin, TimestampMixin):
    """One holder's two-year term in one role of one unit."""

    __tablename__ = "office_bearer_terms"
    __table_args__ = (
        Index("idx_office_bearer_terms_unit_role", "unit_id", "role"),
        # A user holds at most one active position per level across the registry.
        Index(
            "uq_office_bearer_terms_active_user_level",
            "user_id",
            "level",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    unit_id: Mapped[UUID] = mapped_column(
        ForeignKey("org_units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[BearerRole] = mapped_column(Enum(BearerRole, name="bearer_role"), nullable=False)
    level: Mapped[UnitLevel] = mapped_column(Enum(UnitLevel, name="unit_level"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(220), nullable=False)
    identity_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    photo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[TermStatus] = mapped_column(
        Enum(TermStatus, name="term_status"), nullable=False, default=TermStatus.active
    )
    end_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    unit: Mapped[OrgUnit] = relationship("OrgUnit", back_populates="office_bearers")

    def has_exact_tenure(self) -> bool:
        return self.end_date == term_end(self.start_date)

    def __repr__(self) -> str:
        return (
            f"<OfficeBearerTerm unit_id={self.unit_id} role={self.role} "
            f"user_id={self.user_id} status={self.status}>"
        )


@event.listens_for(OfficeBearerTerm, "before_insert")
@event.listens_for(OfficeBearerTerm, "before_update")
def _validate_tenure(mapper: Any, connection: Any, target: OfficeBearerTerm) -> None:
    if target.start_date is None or target.end_date is None:
        raise InvalidTenureError("Office bearer term requires start and end dates")
    if not target.has_exact_tenure():
        raise InvalidTenureError(
            f"Office bearer tenure must be exactly {TERM_YEARS} years "
            f"({target.start_date.isoformat()} -> {target.end_date.isoformat()})"
        )
