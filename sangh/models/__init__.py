"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from sangh.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin
from sangh.models.org_unit import OrgUnit, UnitStatus
from sangh.models.office_bearer import BearerRole, OfficeBearerTerm, TermStatus
from sangh.models.member import MemberStatus, UnitMember
from sangh.models.application import Application, ApplicationStatus, ReviewDecision
from sangh.models.user import IdentityStatus, User

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDMixin",
    "OrgUnit",
    "UnitStatus",
    "OfficeBearerTerm",
    "BearerRole",
    "TermStatus",
    "UnitMember",
    "MemberStatus",
    "Application",
    "ApplicationStatus",
    "ReviewDecision",
    "User",
    "IdentityStatus",
]
