"""
Application routing.

Picks the starting level for an identity application from the populated
location fields, then lets the jurisdiction resolver escalate from there.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core.config import settings
from sangh.core.exceptions import ValidationError
from sangh.core.levels import ReviewLevel, UnitLevel, location_value
from sangh.schemas.application import RoutingDecision
from sangh.schemas.location import Location
from sangh.services.jurisdiction import SUPERADMIN_TARGET, JurisdictionResolver

logger = logging.getLogger(__name__)


def infer_level(location: Any) -> UnitLevel:
    """
    Starting level for a location.

    area+city+district -> area; city+district -> city; district -> district;
    anything else -> state.
    """
    has = {key: bool(location_value(location, key)) for key in ("district", "city", "area")}
    if has["area"] and has["city"] and has["district"]:
        return UnitLevel.area
    if has["city"] and has["district"]:
        return UnitLevel.city
    if has["district"]:
        return UnitLevel.district
    return UnitLevel.state


def normalize_location(location: Location) -> Location:
    """Fill in the default country and require a state."""
    if not location.state:
        raise ValidationError("State is required in location data", code="STATE_REQUIRED")
    if not location.country:
        return location.model_copy(update={"country": settings.DEFAULT_COUNTRY})
    return location


class RoutingService:
    """Decides where a new application is reviewed."""

    def __init__(self, db: AsyncSession, resolver: JurisdictionResolver | None = None) -> None:
        self.db = db
        self.resolver = resolver or JurisdictionResolver(db)

    async def route_application(
        self,
        location: Location,
        explicit_level: ReviewLevel | str | None = None,
        is_office_bearer: bool = False,
    ) -> RoutingDecision:
        """
        Resolve the application level and reviewing unit.

        - ``explicit_level`` bypasses inference; ``superadmin`` skips the unit lookup
        - Country-level office bearers are reviewed by superadmin directly
        - The stored level is the one actually resolved, which may sit above
          the starting level
        """
        location = normalize_location(location)

        if explicit_level is not None:
            explicit_level = ReviewLevel(explicit_level)
            if explicit_level == ReviewLevel.superadmin:
                return RoutingDecision(
                    application_level=ReviewLevel.superadmin,
                    reviewing_unit_id=None,
                    initial_level=None,
                )
            initial = UnitLevel(explicit_level.value)
        else:
            initial = infer_level(location)

        if is_office_bearer and initial == UnitLevel.country:
            target = SUPERADMIN_TARGET
        else:
            target = await self.resolver.find_reviewing_unit(initial, location)

        logger.info(
            "Routed application starting at %s to %s (unit %s)",
            initial.value,
            target.level.value,
            target.unit_id,
        )
        return RoutingDecision(
            application_level=target.level,
            reviewing_unit_id=target.unit_id,
            initial_level=initial,
        )
