"""
Identity verification application schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from sangh.core.levels import ReviewLevel, UnitLevel
from sangh.schemas.location import Location

# Personal fields a reviewer may correct while an application is pending.
EDITABLE_DETAIL_FIELDS: frozenset[str] = frozenset(
    {
        "name", "father_or_husband_name", "phone_number", "whatsapp_number", "blood_group",
        "marriage_status", "spouse_name", "marriage_date", "son_count", "son_names",
        "daughter_count", "daughter_names", "panth", "gotra", "sansthan", "sansthan_position",
        "father_name", "father_native_place", "mother_name", "mother_native_place",
        "grandfather_name", "grandfather_native_place", "great_grandfather_name",
        "great_grandfather_native_place", "brothers", "sisters", "education", "job",
        "job_address", "job_position", "job_annual_income", "business", "business_type",
        "business_address", "business_annual_income", "student", "degree", "school_name",
        "homemaker", "retired", "contact_details",
    }
)


class ApplicationSubmit(BaseModel):
    """Applicant input. ``application_level`` overrides location-based inference."""

    location: Location
    application_level: ReviewLevel | None = None
    is_office_bearer: bool = False
    documents: dict[str, str] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)


class ApplicationEdit(BaseModel):
    details: dict[str, Any]
    remarks: str | None = None


class ReviewEntry(BaseModel):
    action: str
    by: UUID | None = None
    level: str
    unit_id: UUID | None = None
    remarks: str | None = None
    timestamp: datetime


class CommentEntry(BaseModel):
    user_id: UUID
    comment: str
    timestamp: datetime


class ApplicationResponse(BaseModel):
    id: UUID
    applicant_user_id: UUID
    location: Location
    application_level: ReviewLevel
    reviewing_unit_id: UUID | None
    status: str
    is_office_bearer: bool
    review_history: list[ReviewEntry]
    comments: list[CommentEntry]
    verified_number: str | None
    documents: dict[str, str]
    details: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    total: int


class ReviewingTarget(BaseModel):
    """Where an application lands; ``unit_id`` None means superadmin."""

    unit_id: UUID | None
    level: ReviewLevel

    @property
    def is_superadmin(self) -> bool:
        return self.unit_id is None


class RoutingDecision(BaseModel):
    application_level: ReviewLevel
    reviewing_unit_id: UUID | None
    initial_level: UnitLevel | None
