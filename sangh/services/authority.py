"""
Authority checks.

Decides whether an actor may review an application or manage a unit. All
level rules come from the MANAGEABLE_LEVELS table: a president acts on their
own level when the location matches exactly, and on every level below it
inside their jurisdiction. Founding a new unit needs a strictly higher level.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core.exceptions import AuthorityError
from sangh.core.levels import (
    MANAGEABLE_LEVELS,
    ReviewLevel,
    UnitLevel,
    can_act_upon,
    location_matches,
)
from sangh.models.application import Application
from sangh.models.office_bearer import BearerRole, TermStatus
from sangh.models.org_unit import OrgUnit
from sangh.schemas.authority import Actor, ActorRole

logger = logging.getLogger(__name__)


def covers_level(actor_level: UnitLevel, target_level: UnitLevel) -> bool:
    """Same level or any level below it."""
    return target_level == actor_level or target_level in MANAGEABLE_LEVELS[actor_level]


class AuthorityVerifier:
    """Evaluates review and management authority for an Actor."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def president_unit(self, actor: Actor) -> OrgUnit | None:
        """
        The active unit the actor presides over, or None.

        The actor's claimed unit must exist, be active, sit at the claimed
        level and have the actor as its current active president.
        """
        if actor.role != ActorRole.president or actor.unit_id is None:
            return None

        result = await self.db.execute(select(OrgUnit).where(OrgUnit.id == actor.unit_id))
        unit = result.scalar_one_or_none()
        if unit is None or not unit.is_active:
            return None
        if actor.level is not None and unit.level != actor.level:
            return None

        term = unit.current_term(BearerRole.president)
        if term is None or term.status != TermStatus.active or term.user_id != actor.user_id:
            return None
        return unit

    # -----------------------------------------------------------------------
    # Review authority
    # -----------------------------------------------------------------------

    async def has_review_authority(self, reviewer: Actor, application: Application) -> bool:
        """
        Whether ``reviewer`` may decide ``application``.

        - Superadmin always
        - Admin holding the identity verification permission
        - Country presidents for country and superadmin routed applications
        - Presidents at the application's level or above whose jurisdiction
          contains the application's location
        """
        if reviewer.is_superadmin or reviewer.can_verify_identity:
            return True

        unit = await self.president_unit(reviewer)
        if unit is None:
            return False

        app_level = ReviewLevel(application.application_level)
        if unit.level == UnitLevel.country and app_level in (ReviewLevel.country, ReviewLevel.superadmin):
            return True
        if app_level == ReviewLevel.superadmin:
            return False

        if not covers_level(unit.level, UnitLevel(app_level.value)):
            return False
        return location_matches(unit.location, application.location, unit.level)

    async def require_review_authority(self, reviewer: Actor, application: Application) -> None:
        if not await self.has_review_authority(reviewer, application):
            logger.info("Reviewer %s denied on application %s", reviewer.user_id, application.id)
            raise AuthorityError("You do not have authority to review this application")

    # -----------------------------------------------------------------------
    # Unit management
    # -----------------------------------------------------------------------

    async def can_manage_level(self, actor: Actor, level: UnitLevel | str, location: Any) -> bool:
        """Whether ``actor`` may act on a unit at ``level`` located at ``location``."""
        if actor.is_superadmin:
            return True

        unit = await self.president_unit(actor)
        if unit is None:
            return False
        if not covers_level(unit.level, UnitLevel(level)):
            return False
        return location_matches(unit.location, location, unit.level)

    async def can_manage_unit(self, actor: Actor, target: OrgUnit) -> bool:
        if actor.is_superadmin:
            return True
        if actor.unit_id == target.id:
            return await self.president_unit(actor) is not None
        return await self.can_manage_level(actor, target.level, target.location)

    async def require_unit_authority(self, actor: Actor, target: OrgUnit) -> None:
        if not await self.can_manage_unit(actor, target):
            raise AuthorityError(
                f"You do not have authority to manage {target.level.value} level units here"
            )

    async def can_create_unit(self, actor: Actor, level: UnitLevel | str, location: Any) -> bool:
        """
        Whether ``actor`` may found a new unit at ``level`` located at ``location``.

        Superadmins and admins always may. Presidents only create units strictly
        below their own level inside their jurisdiction.
        """
        if actor.role in (ActorRole.superadmin, ActorRole.admin):
            return True

        unit = await self.president_unit(actor)
        if unit is None:
            return False
        if not can_act_upon(unit.level, level):
            return False
        return location_matches(unit.location, location, unit.level)

    async def require_create_authority(self, actor: Actor, level: UnitLevel, location: Any) -> None:
        if not await self.can_create_unit(actor, level, location):
            raise AuthorityError(f"You do not have authority to create {level.value} level units here")
