"""
Org unit registry.

Handles unit creation and validation against parents and constituent units,
hierarchy lookups, listing and deactivation.
"""

from __future__ import annotations

import logging
import math
import secrets
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core import levels
from sangh.core.collaborators import (
    DirectoryUser,
    DocumentStore,
    IdentityDirectory,
    NotificationSink,
    discard_documents,
    publish,
)
from sangh.core.config import settings
from sangh.core.exceptions import ConflictError, NotFoundError, ValidationError
from sangh.core.levels import (
    ACCESS_CODE_PREFIXES,
    CONSTITUENT_LEVELS,
    LOCATION_KEYS,
    UNIQUE_LOCATION_LEVELS,
    UnitLevel,
)
from sangh.models.base import utcnow
from sangh.models.member import UnitMember
from sangh.models.office_bearer import BearerRole, OfficeBearerTerm, TermStatus, term_end
from sangh.models.org_unit import OrgUnit, UnitStatus
from sangh.schemas.authority import Actor
from sangh.schemas.location import Location
from sangh.schemas.org_unit import (
    ROLE_ORDER,
    HierarchyResponse,
    OfficeBearerCandidate,
    OrgUnitResponse,
    UnitCreate,
    UnitListResponse,
    UnitSummary,
    UnitUpdate,
)
from sangh.services.authority import AuthorityVerifier
from sangh.services.term_service import TermService
from sangh.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def generate_access_code(level: UnitLevel) -> str:
    """``<PREFIX>-<6 digits>-<6 hex>``, e.g. ``CTY-042917-9F3A1C``."""
    digits = f"{secrets.randbelow(10**6):06d}"
    return f"{ACCESS_CODE_PREFIXES[level]}-{digits}-{secrets.token_hex(3).upper()}"


def scoped_location(location: Location, level: UnitLevel) -> dict[str, str]:
    """Location columns for a unit at ``level``; fields below the level are cleared."""
    required = levels.required_fields(level)
    return {key: (getattr(location, key) if key in required else "") for key in LOCATION_KEYS}


class OrgUnitService:
    """Handles all org unit registry operations."""

    def __init__(
        self,
        db: AsyncSession,
        directory: IdentityDirectory | None = None,
        documents: DocumentStore | None = None,
        notifications: NotificationSink | None = None,
    ) -> None:
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.documents = documents
        self.notifications = notifications
        self.authority = AuthorityVerifier(db)
        self.terms = TermService(db, self.directory, notifications)

    async def _get_unit(self, unit_id: UUID, lock: bool = False) -> OrgUnit:
        query = select(OrgUnit).where(OrgUnit.id == unit_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        unit = result.scalar_one_or_none()
        if unit is None:
            raise NotFoundError("Sangh not found", code="UNIT_NOT_FOUND")
        return unit

    # -----------------------------------------------------------------------
    # Create Unit
    # -----------------------------------------------------------------------

    async def create_unit(
        self, data: UnitCreate, actor: Actor | None = None, now: datetime | None = None
    ) -> OrgUnitResponse:
        """
        Create a new unit.

        - Validates location, uniqueness, parent and constituent units
        - Validates office bearers and (for cities) the founding members
        - Creates the unit with three two-year office bearer terms
        - Links constituent units to the new unit
        """
        now = now or utcnow()
        level = data.level

        missing = levels.missing_fields(data.location, level)
        if missing:
            raise ValidationError(
                f"Missing required location fields for {level.value} level: {', '.join(missing)}",
                code="INCOMPLETE_LOCATION",
            )
        location = scoped_location(data.location, level)

        if actor is not None:
            await self.authority.require_create_authority(actor, level, location)

        await self._check_location_available(level, location)
        parent = await self._validate_parent(data.parent_id, level, location)
        constituents = await self._validate_constituents(data.constituent_unit_ids, level, location)
        bearers = await self._validate_office_bearers(data, level)
        members = await self._validate_founding_members(data, level, bearers)
        for member in members:
            member.added_by = actor.user_id if actor is not None else None
            member.joined_at = now

        unit = OrgUnit(
            name=data.name,
            level=level,
            **location,
            parent_unit_id=parent.id if parent is not None else None,
            access_code=generate_access_code(level),
            status=UnitStatus.active,
            current_term_number=1,
            current_term_start=now,
            current_term_end=term_end(now),
            previous_terms=[],
            description=data.description,
            contact=dict(data.contact),
            established_date=data.established_date or now,
            created_by=actor.user_id if actor is not None else None,
            office_bearers=[
                OfficeBearerTerm(
                    role=role,
                    level=level,
                    user_id=candidate.user_id,
                    first_name=candidate.first_name,
                    last_name=candidate.last_name,
                    name=f"{candidate.first_name} {candidate.last_name}",
                    identity_number=user.identity_number,
                    document=candidate.document,
                    photo=candidate.photo,
                    start_date=now,
                    end_date=term_end(now),
                    status=TermStatus.active,
                    history=[],
                )
                for role, (candidate, user) in bearers.items()
            ],
            members=members,
        )
        self.db.add(unit)

        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Sangh or office bearer position already exists", code="DUPLICATE_UNIT"
            ) from exc

        for constituent in constituents:
            constituent.parent_unit_id = unit.id
        await self.db.flush()

        logger.info("Created %s level unit %s (%s)", level.value, unit.id, unit.name)
        await publish(
            self.notifications,
            "unit_created",
            {"unit_id": str(unit.id), "level": level.value, "name": unit.name},
        )
        return OrgUnitResponse.from_unit(unit)

    async def _check_location_available(self, level: UnitLevel, location: dict[str, str]) -> None:
        if level not in UNIQUE_LOCATION_LEVELS:
            return
        query = select(OrgUnit.id).where(
            OrgUnit.level == level,
            OrgUnit.status == UnitStatus.active,
        )
        for key, value in location.items():
            query = query.where(getattr(OrgUnit, key) == value)
        result = await self.db.execute(query.limit(1))
        if result.first() is not None:
            raise ConflictError(
                f"An active {level.value} level Sangh already exists for this location",
                code="DUPLICATE_UNIT",
            )

    async def _validate_parent(
        self, parent_id: UUID | None, level: UnitLevel, location: dict[str, str]
    ) -> OrgUnit | None:
        if level == UnitLevel.country:
            if parent_id is not None:
                raise ValidationError("Country level Sangh cannot have a parent", code="INVALID_PARENT")
            return None
        if parent_id is None:
            return None

        result = await self.db.execute(select(OrgUnit).where(OrgUnit.id == parent_id))
        parent = result.scalar_one_or_none()
        if parent is None:
            raise NotFoundError("Parent Sangh not found", code="PARENT_NOT_FOUND")
        if not parent.is_active:
            raise ValidationError("Parent Sangh is not active", code="INVALID_PARENT")

        expected = levels.parent_level(level)
        if parent.level != expected:
            raise ValidationError(
                f"Parent of a {level.value} level Sangh must be a {expected.value} level Sangh",
                code="INVALID_PARENT",
            )
        if not levels.location_matches(parent.location, location, parent.level):
            raise ValidationError(
                f"Sangh location must lie within the parent {parent.level.value}",
                code="INVALID_PARENT",
            )
        return parent

    async def _validate_constituents(
        self, unit_ids: list[UUID], level: UnitLevel, location: dict[str, str]
    ) -> list[OrgUnit]:
        """Constituent units one level below, from the same region and unclaimed."""
        if level not in CONSTITUENT_LEVELS:
            if unit_ids:
                raise ValidationError(
                    f"{level.value.capitalize()} level Sanghs are not formed from constituent units",
                    code="INVALID_CONSTITUENTS",
                )
            return []

        child = levels.child_level(level)
        unique_ids = list(dict.fromkeys(unit_ids))
        if len(unique_ids) < settings.MIN_CONSTITUENT_UNITS:
            raise ValidationError(
                f"At least {settings.MIN_CONSTITUENT_UNITS} {child.value} level Sanghs are "
                f"required to form a {level.value} level Sangh",
                code="INSUFFICIENT_CONSTITUENTS",
            )

        result = await self.db.execute(select(OrgUnit).where(OrgUnit.id.in_(unique_ids)))
        constituents = list(result.scalars().all())
        if len(constituents) != len(unique_ids):
            raise NotFoundError("One or more constituent Sanghs not found", code="CONSTITUENT_NOT_FOUND")

        for constituent in constituents:
            if not constituent.is_active:
                raise ValidationError(
                    f"Constituent Sangh {constituent.name} is not active", code="INVALID_CONSTITUENTS"
                )
            if constituent.level != child:
                raise ValidationError(
                    f"All constituent units must be {child.value} level Sanghs",
                    code="INVALID_CONSTITUENTS",
                )
            if not levels.location_matches(constituent.location, location, level):
                raise ValidationError(
                    f"All constituent units must be from the same {level.value}",
                    code="REGION_MISMATCH",
                )

        parent_ids = {c.parent_unit_id for c in constituents if c.parent_unit_id is not None}
        if parent_ids:
            claimed = await self.db.execute(
                select(OrgUnit.id).where(
                    OrgUnit.id.in_(parent_ids), OrgUnit.status == UnitStatus.active
                )
            )
            if claimed.first() is not None:
                raise ConflictError(
                    "One or more constituent Sanghs already belong to another Sangh",
                    code="CONSTITUENT_CLAIMED",
                )
        return constituents

    async def _validate_office_bearers(
        self, data: UnitCreate, level: UnitLevel
    ) -> dict[BearerRole, tuple[OfficeBearerCandidate, DirectoryUser]]:
        candidates = {role: getattr(data.office_bearers, role.value) for role in ROLE_ORDER}

        absent = [role.value for role, c in candidates.items() if c is None]
        if absent:
            raise ValidationError(
                f"Missing office bearers: {', '.join(absent)}", code="MISSING_OFFICE_BEARERS"
            )
        if len({c.user_id for c in candidates.values()}) != len(candidates):
            raise ValidationError(
                "President, secretary and treasurer must be different users",
                code="DUPLICATE_OFFICE_BEARER",
            )

        missing_docs: list[str] = []
        for role, candidate in candidates.items():
            if not candidate.document:
                missing_docs.append(f"{role.value} identity document")
            if not candidate.photo:
                missing_docs.append(f"{role.value} photo")
        if missing_docs:
            raise ValidationError(
                f"Missing required documents: {', '.join(missing_docs)}", code="MISSING_DOCUMENTS"
            )

        bearers: dict[BearerRole, tuple[OfficeBearerCandidate, DirectoryUser]] = {}
        for role, candidate in candidates.items():
            user = await self.directory.find_verified_user(candidate.user_id)
            if user is None:
                raise ValidationError(
                    f"{role.value.capitalize()} must have a verified identity",
                    code="IDENTITY_NOT_VERIFIED",
                )
            bearers[role] = (candidate, user)

        for candidate, _ in bearers.values():
            await self.terms.ensure_bearer_available(candidate.user_id, level)
        return bearers

    async def _validate_founding_members(
        self,
        data: UnitCreate,
        level: UnitLevel,
        bearers: dict[BearerRole, tuple[OfficeBearerCandidate, DirectoryUser]],
    ) -> list[UnitMember]:
        if any(c.user_id is None for c in data.members):
            raise ValidationError("Every member requires a user id", code="MISSING_FIELDS")

        distinct: dict[UUID, Any] = {}
        for candidate in data.members:
            distinct.setdefault(candidate.user_id, candidate)

        if level == UnitLevel.city and len(distinct) < settings.CITY_MIN_MEMBERS:
            raise ValidationError(
                f"City level Sangh must have at least {settings.CITY_MIN_MEMBERS} members",
                code="INSUFFICIENT_MEMBERS",
            )

        bearer_ids = {candidate.user_id for candidate, _ in bearers.values()}
        if bearer_ids & distinct.keys():
            raise ValidationError(
                "Office bearers cannot also be listed as members", code="MEMBER_IS_OFFICE_BEARER"
            )

        members: list[UnitMember] = []
        for user_id, candidate in distinct.items():
            user = await self.directory.find_verified_user(user_id)
            if user is None:
                raise ValidationError(
                    f"Member {candidate.first_name or user_id} must have a verified identity",
                    code="IDENTITY_NOT_VERIFIED",
                )
            first_name = candidate.first_name or user.first_name
            last_name = candidate.last_name or user.last_name
            members.append(
                UnitMember(
                    user_id=user_id,
                    first_name=first_name,
                    last_name=last_name,
                    name=f"{first_name} {last_name}",
                    identity_number=user.identity_number,
                    email=candidate.email or user.email,
                    phone_number=candidate.phone_number or user.phone_number,
                    address=dict(candidate.address),
                    document=candidate.document,
                    photo=candidate.photo,
                )
            )
        return members

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    async def get_unit(self, unit_id: UUID) -> OrgUnitResponse:
        """Get a unit with its current office bearers and active members."""
        return OrgUnitResponse.from_unit(await self._get_unit(unit_id))

    async def get_hierarchy(self, unit_id: UUID) -> HierarchyResponse:
        """
        One hop in each direction: parent, active children, active siblings.
        """
        unit = await self._get_unit(unit_id)

        parent = None
        siblings: list[OrgUnit] = []
        if unit.parent_unit_id is not None:
            result = await self.db.execute(select(OrgUnit).where(OrgUnit.id == unit.parent_unit_id))
            parent = result.scalar_one_or_none()
            result = await self.db.execute(
                select(OrgUnit)
                .where(
                    OrgUnit.parent_unit_id == unit.parent_unit_id,
                    OrgUnit.id != unit.id,
                    OrgUnit.status == UnitStatus.active,
                )
                .order_by(OrgUnit.name)
            )
            siblings = list(result.scalars().all())

        children = await self._active_children(unit.id)
        return HierarchyResponse(
            current=OrgUnitResponse.from_unit(unit),
            parent=UnitSummary.model_validate(parent) if parent is not None else None,
            children=[UnitSummary.model_validate(c) for c in children],
            siblings=[UnitSummary.model_validate(s) for s in siblings],
        )

    async def _active_children(self, unit_id: UUID) -> list[OrgUnit]:
        result = await self.db.execute(
            select(OrgUnit)
            .where(OrgUnit.parent_unit_id == unit_id, OrgUnit.status == UnitStatus.active)
            .order_by(OrgUnit.name)
        )
        return list(result.scalars().all())

    async def get_child_units(self, unit_id: UUID) -> list[OrgUnitResponse]:
        unit = await self._get_unit(unit_id)
        return [OrgUnitResponse.from_unit(c) for c in await self._active_children(unit.id)]

    async def get_units_by_level_and_location(
        self,
        level: UnitLevel | None = None,
        location: Location | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> UnitListResponse:
        """Active units filtered by level and any populated location fields, newest first."""
        page = max(page, 1)
        limit = max(limit, 1)

        query = select(OrgUnit).where(OrgUnit.status == UnitStatus.active)
        if level is not None:
            query = query.where(OrgUnit.level == level)
        if location is not None:
            for key, value in location.as_dict().items():
                if value:
                    query = query.where(getattr(OrgUnit, key) == value)

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()
        result = await self.db.execute(
            query.order_by(OrgUnit.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return UnitListResponse(
            units=[OrgUnitResponse.from_unit(u) for u in result.scalars().all()],
            total=total,
            page=page,
            pages=math.ceil(total / limit),
        )

    # -----------------------------------------------------------------------
    # Update Unit
    # -----------------------------------------------------------------------

    async def update_unit(
        self, unit_id: UUID, data: UnitUpdate, actor: Actor | None = None
    ) -> OrgUnitResponse:
        """
        Update name, description, contact and office bearer documents.

        Replaced document URLs are discarded after the update is applied.
        """
        unit = await self._get_unit(unit_id)
        if actor is not None:
            await self.authority.require_unit_authority(actor, unit)

        if data.name is not None:
            unit.name = data.name
        if data.description is not None:
            unit.description = data.description
        if data.contact is not None:
            unit.contact = {**unit.contact, **data.contact}

        replaced: list[str | None] = []
        for role_name, docs in data.bearer_documents.items():
            try:
                role = BearerRole(role_name)
            except ValueError:
                raise ValidationError("Invalid position specified", code="INVALID_ROLE") from None
            term = unit.current_term(role)
            if term is None:
                raise NotFoundError(f"No current {role.value} for this Sangh", code="TERM_NOT_FOUND")
            if docs.document and docs.document != term.document:
                replaced.append(term.document)
                term.document = docs.document
            if docs.photo and docs.photo != term.photo:
                replaced.append(term.photo)
                term.photo = docs.photo

        await self.db.flush()
        await discard_documents(self.documents, replaced)
        return OrgUnitResponse.from_unit(unit)

    # -----------------------------------------------------------------------
    # Deactivate Unit
    # -----------------------------------------------------------------------

    async def deactivate_unit(self, unit_id: UUID, actor: Actor | None = None) -> OrgUnitResponse:
        """Deactivate a unit and terminate its active office bearer terms."""
        unit = await self._get_unit(unit_id, lock=True)
        if actor is not None:
            await self.authority.require_unit_authority(actor, unit)
        if not unit.is_active:
            raise ConflictError("Sangh is already inactive", code="UNIT_INACTIVE")

        unit.status = UnitStatus.inactive
        for term in unit.office_bearers:
            if term.status == TermStatus.active:
                term.status = TermStatus.terminated
                term.end_reason = "Sangh deactivated"

        await self.db.flush()
        logger.info("Deactivated unit %s", unit.id)
        await publish(self.notifications, "unit_deactivated", {"unit_id": str(unit.id)})
        return OrgUnitResponse.from_unit(unit)
