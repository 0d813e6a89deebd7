"""
Identity verification application ORM model.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sangh.core.levels import LOCATION_KEYS, ReviewLevel
from sangh.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from sangh.models.org_unit import OrgUnit


class ApplicationStatus(str, enum.Enum):
    """Application state. Anything but pending is terminal."""

    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ReviewDecision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


class Application(Base, UUIDMixin, TimestampMixin):
    """An identity verification request routed to one reviewing unit."""

    __tablename__ = "applications"
    __table_args__ = (
        Index("idx_applications_status_level", "status", "application_level"),
        Index("idx_applications_applicant_status", "applicant_user_id", "status"),
    )

    applicant_user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)

    # Location snapshot taken at submission.
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    district: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    area: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    application_level: Mapped[ReviewLevel] = mapped_column(
        Enum(ReviewLevel, name="review_level"), nullable=False
    )
    # None routes the application to superadmin.
    reviewing_unit_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("org_units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.pending,
    )
    is_office_bearer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    review_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    comments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    reviewed_by: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    verified_number: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)

    documents: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Relationships
    reviewing_unit: Mapped[OrgUnit | None] = relationship("OrgUnit", lazy="raise")

    @property
    def location(self) -> dict[str, str]:
        return {key: getattr(self, key) or "" for key in LOCATION_KEYS}

    @property
    def is_terminal(self) -> bool:
        return self.status != ApplicationStatus.pending

    def __repr__(self) -> str:
        return f"<Application id={self.id} level={self.application_level} status={self.status}>"
