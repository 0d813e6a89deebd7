"""
Unit member roster.

Roster mutations lock the unit row so concurrent removals cannot take a city
below its minimum membership.
"""

from __future__ import annotations

import logging
import math
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core.collaborators import (
    DirectoryUser,
    DocumentStore,
    IdentityDirectory,
    discard_documents,
)
from sangh.core.config import settings
from sangh.core.exceptions import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    SanghError,
    ValidationError,
)
from sangh.core.levels import UnitLevel
from sangh.models.base import utcnow
from sangh.models.member import MemberStatus, UnitMember
from sangh.models.office_bearer import TermStatus
from sangh.models.org_unit import OrgUnit
from sangh.schemas.org_unit import (
    BulkMemberFailure,
    BulkMemberResult,
    BulkMemberSuccess,
    MemberCandidate,
    MemberResponse,
    MembersListResponse,
    MemberUpdate,
)
from sangh.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


class MembershipService:
    """Handles all member roster operations."""

    def __init__(
        self,
        db: AsyncSession,
        directory: IdentityDirectory | None = None,
        documents: DocumentStore | None = None,
    ) -> None:
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.documents = documents

    async def _lock_unit(self, unit_id: UUID) -> OrgUnit:
        result = await self.db.execute(
            select(OrgUnit)
            .where(OrgUnit.id == unit_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        unit = result.scalar_one_or_none()
        if unit is None:
            raise NotFoundError("Sangh not found", code="UNIT_NOT_FOUND")
        if not unit.is_active:
            raise ValidationError("Sangh is not active", code="UNIT_INACTIVE")
        return unit

    @staticmethod
    def _find_member(unit: OrgUnit, member_id: UUID) -> UnitMember:
        for member in unit.members:
            if member.id == member_id and member.status == MemberStatus.active:
                return member
        raise NotFoundError("Member not found", code="MEMBER_NOT_FOUND")

    # -----------------------------------------------------------------------
    # Add Members
    # -----------------------------------------------------------------------

    async def _validate_candidate(self, unit: OrgUnit, candidate: MemberCandidate) -> DirectoryUser:
        """
        Check one candidate against the unit.

        - First name, last name and user id present
        - Verified identity
        - Not already an active member or a current office bearer
        """
        if candidate.user_id is None or not candidate.first_name or not candidate.last_name:
            raise ValidationError(
                "Missing required fields: first name, last name and user id",
                code="MISSING_FIELDS",
            )

        user = await self.directory.find_user(candidate.user_id)
        if user is None:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        if not user.is_identity_verified:
            raise ValidationError("User must have a verified identity", code="IDENTITY_NOT_VERIFIED")

        if any(m.user_id == candidate.user_id for m in unit.active_members):
            raise ConflictError("User is already a member of this Sangh", code="ALREADY_MEMBER")

        bearer_ids = {
            t.user_id for t in unit.current_terms().values() if t.status == TermStatus.active
        }
        if candidate.user_id in bearer_ids:
            raise ValidationError(
                "Office bearers cannot be added as members", code="MEMBER_IS_OFFICE_BEARER"
            )
        return user

    def _place_member(
        self, unit: OrgUnit, candidate: MemberCandidate, user: DirectoryUser, added_by: UUID | None
    ) -> UnitMember:
        """Insert a new member row, or reactivate the user's earlier one."""
        fields = {
            "first_name": candidate.first_name,
            "last_name": candidate.last_name,
            "name": f"{candidate.first_name} {candidate.last_name}",
            "identity_number": user.identity_number,
            "email": candidate.email or user.email,
            "phone_number": candidate.phone_number or user.phone_number,
            "address": dict(candidate.address) or {
                "city": user.city or "",
                "district": user.district or "",
                "state": user.state or "",
            },
            "document": candidate.document,
            "photo": candidate.photo,
            "added_by": added_by,
            "joined_at": utcnow(),
            "status": MemberStatus.active,
        }

        for member in unit.members:
            if member.user_id == candidate.user_id:
                for key, value in fields.items():
                    setattr(member, key, value)
                return member

        member = UnitMember(user_id=candidate.user_id, **fields)
        unit.members.append(member)
        return member

    async def add_member(
        self, unit_id: UUID, candidate: MemberCandidate, added_by: UUID | None = None
    ) -> MemberResponse:
        """Add one member; any failed check raises."""
        unit = await self._lock_unit(unit_id)
        user = await self._validate_candidate(unit, candidate)
        member = self._place_member(unit, candidate, user, added_by)
        await self.db.flush()

        logger.info("Added member %s to unit %s", candidate.user_id, unit.id)
        return MemberResponse.model_validate(member)

    async def add_members(
        self, unit_id: UUID, candidates: list[MemberCandidate], added_by: UUID | None = None
    ) -> BulkMemberResult:
        """
        Add up to MAX_BULK_MEMBERS members.

        Each candidate is validated on its own; failures are reported per
        candidate instead of failing the batch.
        """
        if not candidates:
            raise ValidationError("Please provide at least one member", code="EMPTY_BATCH")
        if len(candidates) > settings.MAX_BULK_MEMBERS:
            raise ValidationError(
                f"Cannot add more than {settings.MAX_BULK_MEMBERS} members at once",
                code="BATCH_TOO_LARGE",
            )

        unit = await self._lock_unit(unit_id)
        outcome = BulkMemberResult()
        for candidate in candidates:
            try:
                user = await self._validate_candidate(unit, candidate)
            except SanghError as exc:
                outcome.failed.append(BulkMemberFailure(user_id=candidate.user_id, reason=exc.message))
                continue
            member = self._place_member(unit, candidate, user, added_by)
            outcome.success.append(BulkMemberSuccess(user_id=member.user_id, name=member.name))

        await self.db.flush()
        outcome.total_members = len(unit.active_members)
        logger.info(
            "Bulk add to unit %s: %d added, %d failed",
            unit.id,
            len(outcome.success),
            len(outcome.failed),
        )
        return outcome

    # -----------------------------------------------------------------------
    # Remove Member
    # -----------------------------------------------------------------------

    async def remove_member(self, unit_id: UUID, member_id: UUID) -> None:
        """
        Deactivate a member.

        City units may never drop below CITY_MIN_MEMBERS active members.
        """
        unit = await self._lock_unit(unit_id)
        member = self._find_member(unit, member_id)

        if unit.level == UnitLevel.city and len(unit.active_members) - 1 < settings.CITY_MIN_MEMBERS:
            raise InvariantViolation(
                f"City level Sangh must maintain at least {settings.CITY_MIN_MEMBERS} members",
                code="MIN_MEMBERS",
            )

        member.status = MemberStatus.inactive
        await self.db.flush()
        logger.info("Removed member %s from unit %s", member.user_id, unit.id)
        await discard_documents(self.documents, [member.document, member.photo])

    # -----------------------------------------------------------------------
    # Update Member
    # -----------------------------------------------------------------------

    async def update_member_details(
        self, unit_id: UUID, member_id: UUID, fields: MemberUpdate
    ) -> MemberResponse:
        """
        Patch a member's personal fields.

        Replaced or cleared document/photo URLs are discarded best-effort after
        the update. Names can be changed but never cleared.
        """
        unit = await self._lock_unit(unit_id)
        member = self._find_member(unit, member_id)

        changes = fields.model_dump(exclude_unset=True)
        for key in ("first_name", "last_name"):
            if key in changes and changes[key] is None:
                raise ValidationError(f"{key} cannot be empty", code="NAME_REQUIRED")

        replaced = [
            getattr(member, key)
            for key in ("document", "photo")
            if key in changes and getattr(member, key) and changes[key] != getattr(member, key)
        ]
        for key, value in changes.items():
            setattr(member, key, value)
        if "first_name" in changes or "last_name" in changes:
            member.name = f"{member.first_name} {member.last_name}"

        await self.db.flush()
        await discard_documents(self.documents, replaced)
        return MemberResponse.model_validate(member)

    # -----------------------------------------------------------------------
    # List Members
    # -----------------------------------------------------------------------

    async def list_members(
        self, unit_id: UUID, page: int = 1, limit: int = 20, search: str | None = None
    ) -> MembersListResponse:
        """Active members, oldest first, optionally filtered by name or email."""
        page = max(page, 1)
        limit = max(limit, 1)

        unit_exists = await self.db.execute(select(OrgUnit.id).where(OrgUnit.id == unit_id))
        if unit_exists.first() is None:
            raise NotFoundError("Sangh not found", code="UNIT_NOT_FOUND")

        query = select(UnitMember).where(
            UnitMember.unit_id == unit_id, UnitMember.status == MemberStatus.active
        )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(UnitMember.name.ilike(pattern), UnitMember.email.ilike(pattern)))

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()
        result = await self.db.execute(
            query.order_by(UnitMember.joined_at).offset((page - 1) * limit).limit(limit)
        )
        return MembersListResponse(
            members=[MemberResponse.model_validate(m) for m in result.scalars().all()],
            total=total,
            page=page,
            pages=math.ceil(total / limit),
        )
