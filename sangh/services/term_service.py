"""
Office bearer term management.

Handles tenure status checks, succession of office bearers, the unit-level
term block and the scheduled expiry sweep. A user may hold at most one
active office bearer position per level across the whole registry.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core.collaborators import IdentityDirectory, NotificationSink, publish
from sangh.core.config import settings
from sangh.core.exceptions import ConflictError, NotFoundError, ValidationError
from sangh.core.levels import UnitLevel
from sangh.models.base import utcnow
from sangh.models.office_bearer import BearerRole, OfficeBearerTerm, TermStatus, term_end
from sangh.models.org_unit import OrgUnit
from sangh.schemas.org_unit import (
    ROLE_ORDER,
    BearerDocuments,
    OfficeBearerResponse,
    OrgUnitResponse,
    TenureHistoryResponse,
    TermStatusResponse,
)
from sangh.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def history_entry(term: OfficeBearerTerm, reason: str | None) -> dict[str, str | None]:
    """Archived record of a finished term, as stored in JSON history columns."""
    return {
        "role": term.role.value,
        "user_id": str(term.user_id),
        "name": term.name,
        "start_date": term.start_date.isoformat(),
        "end_date": term.end_date.isoformat(),
        "reason": reason,
    }


class TermService:
    """Handles all office bearer term operations."""

    def __init__(
        self,
        db: AsyncSession,
        directory: IdentityDirectory | None = None,
        notifications: NotificationSink | None = None,
    ) -> None:
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.notifications = notifications

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
    # Global uniqueness
    # -----------------------------------------------------------------------

    async def ensure_bearer_available(
        self, user_id: UUID, level: UnitLevel, exclude_term_ids: Iterable[UUID] = ()
    ) -> None:
        """
        Raise ConflictError if ``user_id`` already holds an active position at ``level``.

        This is a point-in-time check; the partial unique index on
        (user_id, level) for active terms is the final arbiter.
        """
        query = select(OfficeBearerTerm).where(
            OfficeBearerTerm.user_id == user_id,
            OfficeBearerTerm.level == level,
            OfficeBearerTerm.status == TermStatus.active,
        )
        excluded = list(exclude_term_ids)
        if excluded:
            query = query.where(OfficeBearerTerm.id.not_in(excluded))

        result = await self.db.execute(query.limit(1))
        existing = result.scalar_one_or_none()
        if existing is not None:
            raise ConflictError(
                f"User already holds the {existing.role.value} position "
                f"in another {level.value} level Sangh",
                code="DUPLICATE_OFFICE_BEARER",
            )

    # -----------------------------------------------------------------------
    # Term status
    # -----------------------------------------------------------------------

    async def check_term_status(self, unit_id: UUID, now: datetime | None = None) -> TermStatusResponse:
        """
        Report which active roles end within the warning window.

        Read-only: expired terms are closed by ``sweep_expired_terms`` and are
        no longer reported once closed.
        """
        now = now or utcnow()
        unit = await self._get_unit(unit_id)
        window = timedelta(days=settings.TERM_WARNING_DAYS)

        current = unit.current_terms()
        ending: list[str] = []
        days: list[int] = []
        for role in ROLE_ORDER:
            term = current.get(role)
            if term is None or term.status != TermStatus.active:
                continue
            remaining = term.end_date - now
            if remaining <= window:
                ending.append(role.value)
            days.append(math.ceil(remaining / timedelta(days=1)))

        return TermStatusResponse(
            has_ending_terms=bool(ending),
            ending_roles=ending,
            days_remaining=min(days) if days else None,
        )

    # -----------------------------------------------------------------------
    # Replace Office Bearer
    # -----------------------------------------------------------------------

    async def replace_office_bearer(
        self,
        unit_id: UUID,
        role: BearerRole | str,
        new_user_id: UUID,
        reason: str,
        documents: BearerDocuments | None = None,
        now: datetime | None = None,
    ) -> OrgUnitResponse:
        """
        Hand a role over to a new holder once the current term has ended.

        - Current term must have ended (no mid-term replacement)
        - New holder must be verified and free at this level
        - Outgoing term is completed and carried into the new term's history
        - When all three roles have rotated, the term block advances
        """
        now = now or utcnow()
        try:
            role = BearerRole(role)
        except ValueError:
            raise ValidationError("Invalid position specified", code="INVALID_ROLE") from None

        unit = await self._get_unit(unit_id, lock=True)
        if not unit.is_active:
            raise ValidationError("Cannot replace office bearers of an inactive Sangh", code="UNIT_INACTIVE")

        current = unit.current_term(role)
        if current is not None and current.end_date > now:
            raise ValidationError(
                "Current office bearer's tenure has not ended yet", code="TENURE_NOT_ENDED"
            )

        user = await self.directory.find_user(new_user_id)
        if user is None:
            raise NotFoundError("New office bearer not found", code="USER_NOT_FOUND")
        if not user.is_identity_verified:
            raise ValidationError(
                "New office bearer must have a verified identity", code="IDENTITY_NOT_VERIFIED"
            )

        await self.ensure_bearer_available(
            new_user_id, unit.level, exclude_term_ids=[current.id] if current is not None else []
        )

        history: list[dict[str, str | None]] = []
        if current is not None:
            current.status = TermStatus.completed
            current.end_reason = reason
            history = [*current.history, history_entry(current, reason)]
            # Free the (user, level) slot before the new term is inserted.
            await self.db.flush()

        documents = documents or BearerDocuments()
        new_term = OfficeBearerTerm(
            role=role,
            level=unit.level,
            user_id=new_user_id,
            first_name=user.first_name,
            last_name=user.last_name,
            name=f"{user.first_name} {user.last_name}".strip(),
            identity_number=user.identity_number,
            document=documents.document,
            photo=documents.photo,
            start_date=now,
            end_date=term_end(now),
            status=TermStatus.active,
            history=history,
        )
        unit.office_bearers.append(new_term)

        self._advance_term_block(unit, now)

        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "User already holds an office bearer position at this level",
                code="DUPLICATE_OFFICE_BEARER",
            ) from exc

        logger.info(
            "Replaced %s of unit %s with user %s (term %s)",
            role.value,
            unit.id,
            new_user_id,
            unit.current_term_number,
        )
        await publish(
            self.notifications,
            "office_bearer_replaced",
            {"unit_id": str(unit.id), "role": role.value, "user_id": str(new_user_id)},
        )
        return OrgUnitResponse.from_unit(unit)

    def _advance_term_block(self, unit: OrgUnit, now: datetime) -> None:
        """
        Archive the outgoing trio once every role has a term newer than the block start.
        """
        current = unit.current_terms()
        if len(current) < len(ROLE_ORDER):
            return
        if not all(term.start_date > unit.current_term_start for term in current.values()):
            return

        outgoing: dict[str, dict[str, str]] = {}
        for role in ROLE_ORDER:
            held = [t for t in unit.terms_for_role(role) if t.start_date <= unit.current_term_start]
            if held:
                outgoing[role.value] = {"user_id": str(held[-1].user_id), "name": held[-1].name}

        unit.previous_terms = [
            *unit.previous_terms,
            {
                "term_number": unit.current_term_number,
                "start_date": unit.current_term_start.isoformat(),
                "end_date": now.isoformat(),
                "office_bearers": outgoing,
            },
        ]
        unit.current_term_number += 1
        unit.current_term_start = now
        unit.current_term_end = term_end(now)

    # -----------------------------------------------------------------------
    # Tenure History
    # -----------------------------------------------------------------------

    async def get_tenure_history(self, unit_id: UUID) -> TenureHistoryResponse:
        unit = await self._get_unit(unit_id)
        bearers = sorted(unit.current_terms().values(), key=lambda t: ROLE_ORDER.index(t.role))
        return TenureHistoryResponse(
            term_number=unit.current_term_number,
            term_start=unit.current_term_start,
            term_end=unit.current_term_end,
            office_bearers=[OfficeBearerResponse.model_validate(t) for t in bearers],
            previous_terms=list(unit.previous_terms),
        )

    # -----------------------------------------------------------------------
    # Expiry sweep
    # -----------------------------------------------------------------------

    async def sweep_expired_terms(self, now: datetime | None = None) -> int:
        """Mark active terms whose end date has passed as completed. Returns the count."""
        now = now or utcnow()
        result = await self.db.execute(
            update(OfficeBearerTerm)
            .where(
                OfficeBearerTerm.status == TermStatus.active,
                OfficeBearerTerm.end_date <= now,
            )
            .values(status=TermStatus.completed, end_reason="Tenure ended")
        )
        count = result.rowcount or 0
        if count:
            logger.info("Term sweep completed %d expired office bearer terms", count)
        return count
