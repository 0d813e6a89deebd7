"""
Jurisdiction resolution.

Finds the active unit responsible for a location at a level, escalating up
the hierarchy until a unit is found. When not even a country unit exists the
superadmin is responsible, so resolution never fails.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core import levels
from sangh.core.levels import ReviewLevel, UnitLevel
from sangh.models.org_unit import OrgUnit, UnitStatus
from sangh.schemas.application import ReviewingTarget

logger = logging.getLogger(__name__)

SUPERADMIN_TARGET = ReviewingTarget(unit_id=None, level=ReviewLevel.superadmin)


class JurisdictionResolver:
    """Looks up reviewing units by level and location."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_unit_at(self, level: UnitLevel, location: Any) -> OrgUnit | None:
        """Oldest active unit at ``level`` whose location matches on that level's fields."""
        filters = levels.location_filters(location, level)
        if not all(filters.values()):
            return None

        query = select(OrgUnit).where(
            OrgUnit.level == level,
            OrgUnit.status == UnitStatus.active,
        )
        for key, value in filters.items():
            query = query.where(getattr(OrgUnit, key) == value)

        result = await self.db.execute(query.order_by(OrgUnit.created_at).limit(1))
        return result.scalar_one_or_none()

    async def find_reviewing_unit(self, level: UnitLevel | str, location: Any) -> ReviewingTarget:
        """
        Resolve the reviewing unit for ``location`` starting at ``level``.

        - Tries ``level`` first, then each level above it
        - Falls back to superadmin once country has been tried
        """
        if level == ReviewLevel.superadmin:
            return SUPERADMIN_TARGET

        start = UnitLevel(level)
        for candidate in levels.escalation_path(start):
            unit = await self.find_unit_at(candidate, location)
            if unit is not None:
                if candidate != start:
                    logger.info(
                        "Escalated review from %s to %s unit %s",
                        start.value,
                        candidate.value,
                        unit.id,
                    )
                return ReviewingTarget(unit_id=unit.id, level=ReviewLevel(candidate.value))

        logger.warning("No active unit covers %s-level location; routing to superadmin", start.value)
        return SUPERADMIN_TARGET
