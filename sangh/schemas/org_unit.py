"""
Org unit schemas.

Inputs and responses for unit registry, roster and term operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from sangh.core.levels import UnitLevel
from sangh.models.office_bearer import BearerRole
from sangh.schemas.location import Location

ROLE_ORDER: tuple[BearerRole, ...] = tuple(BearerRole)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class OfficeBearerCandidate(BaseModel):
    """Proposed holder of one office bearer role."""

    user_id: UUID
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    document: str | None = None
    photo: str | None = None


class OfficeBearerCandidates(BaseModel):
    """Initial president/secretary/treasurer of a new unit."""

    president: OfficeBearerCandidate | None = None
    secretary: OfficeBearerCandidate | None = None
    treasurer: OfficeBearerCandidate | None = None


class MemberCandidate(BaseModel):
    """A user proposed for a unit roster. Missing names are reported per candidate."""

    user_id: UUID | None = None
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone_number: str | None = None
    address: dict[str, str] = Field(default_factory=dict)
    document: str | None = None
    photo: str | None = None


class MemberUpdate(BaseModel):
    """Partial patch of a member's personal fields; only set fields apply."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    phone_number: str | None = None
    address: dict[str, str] | None = None
    document: str | None = None
    photo: str | None = None


class UnitCreate(BaseModel):
    """Everything needed to found a unit."""

    name: str = Field(min_length=2, max_length=150)
    level: UnitLevel
    location: Location
    parent_id: UUID | None = None
    office_bearers: OfficeBearerCandidates
    members: list[MemberCandidate] = Field(default_factory=list)
    constituent_unit_ids: list[UUID] = Field(default_factory=list)
    description: str | None = None
    contact: dict[str, str] = Field(default_factory=dict)
    established_date: datetime | None = None


class BearerDocuments(BaseModel):
    document: str | None = None
    photo: str | None = None


class UnitUpdate(BaseModel):
    """Editable unit fields. Levels, locations and parents never change."""

    name: str | None = Field(default=None, min_length=2, max_length=150)
    description: str | None = None
    contact: dict[str, str] | None = None
    bearer_documents: dict[str, BearerDocuments] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class OfficeBearerResponse(BaseModel):
    id: UUID
    role: str
    user_id: UUID
    name: str
    identity_number: str | None
    document: str | None
    photo: str | None
    start_date: datetime
    end_date: datetime
    status: str
    history: list[dict[str, Any]]

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    first_name: str
    last_name: str
    identity_number: str | None
    email: str | None
    phone_number: str | None
    address: dict[str, Any]
    document: str | None
    photo: str | None
    joined_at: datetime
    status: str

    model_config = {"from_attributes": True}


class UnitSummary(BaseModel):
    """Lightweight unit reference used in hierarchy views."""

    id: UUID
    name: str
    level: UnitLevel
    location: Location
    status: str

    model_config = {"from_attributes": True}


class OrgUnitResponse(BaseModel):
    id: UUID
    name: str
    level: UnitLevel
    location: Location
    parent_unit_id: UUID | None
    access_code: str
    status: str
    current_term_number: int
    current_term_start: datetime
    current_term_end: datetime
    office_bearers: list[OfficeBearerResponse]
    members: list[MemberResponse]
    member_count: int
    description: str | None
    contact: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_unit(cls, unit: Any) -> OrgUnitResponse:
        """Build from an OrgUnit, listing only each role's current term."""
        bearers = sorted(unit.current_terms().values(), key=lambda t: ROLE_ORDER.index(t.role))
        members = unit.active_members
        return cls(
            id=unit.id,
            name=unit.name,
            level=unit.level,
            location=Location.model_validate(unit.location),
            parent_unit_id=unit.parent_unit_id,
            access_code=unit.access_code,
            status=unit.status,
            current_term_number=unit.current_term_number,
            current_term_start=unit.current_term_start,
            current_term_end=unit.current_term_end,
            office_bearers=[OfficeBearerResponse.model_validate(t) for t in bearers],
            members=[MemberResponse.model_validate(m) for m in members],
            member_count=len(members),
            description=unit.description,
            contact=unit.contact or {},
            created_at=unit.created_at,
        )


class HierarchyResponse(BaseModel):
    current: OrgUnitResponse
    parent: UnitSummary | None
    children: list[UnitSummary]
    siblings: list[UnitSummary]


class UnitListResponse(BaseModel):
    units: list[OrgUnitResponse]
    total: int
    page: int
    pages: int


class MembersListResponse(BaseModel):
    members: list[MemberResponse]
    total: int
    page: int
    pages: int


class BulkMemberSuccess(BaseModel):
    user_id: UUID
    name: str


class BulkMemberFailure(BaseModel):
    user_id: UUID | None
    reason: str


class BulkMemberResult(BaseModel):
    """Per-candidate outcome of a bulk roster addition."""

    success: list[BulkMemberSuccess] = Field(default_factory=list)
    failed: list[BulkMemberFailure] = Field(default_factory=list)
    total_members: int = 0


class TermStatusResponse(BaseModel):
    has_ending_terms: bool
    ending_roles: list[str]
    days_remaining: int | None


class TenureHistoryResponse(BaseModel):
    term_number: int
    term_start: datetime
    term_end: datetime
    office_bearers: list[OfficeBearerResponse]
    previous_terms: list[dict[str, Any]]
