"""
Jurisdiction and application routing tests.

Verifies that:
- The starting level follows the populated location fields
- Resolution escalates to the nearest active unit above
- Superadmin is the fallback when no unit covers the location
- Explicit levels and office bearer applications are honoured
"""

import pytest

from sangh.core.exceptions import ValidationError
from sangh.core.levels import ReviewLevel, UnitLevel
from sangh.models import UnitStatus
from sangh.schemas.location import Location
from sangh.services.jurisdiction import JurisdictionResolver
from sangh.services.routing_service import RoutingService, infer_level, normalize_location

from conftest import KOTHRUD_AREA, NAGPUR_CITY, PUNE_CITY

PUNE_DISTRICT = Location(country="India", state="Maharashtra", district="Pune")
MAHARASHTRA = Location(country="India", state="Maharashtra")
INDIA = Location(country="India")


@pytest.fixture
def resolver(db):
    return JurisdictionResolver(db)


@pytest.fixture
def routing(db):
    return RoutingService(db)


# ---------------------------------------------------------------------------
# Level inference
# ---------------------------------------------------------------------------

def test_infer_level_from_location():
    assert infer_level(KOTHRUD_AREA) == UnitLevel.area
    assert infer_level(PUNE_CITY) == UnitLevel.city
    assert infer_level(PUNE_DISTRICT) == UnitLevel.district
    assert infer_level(MAHARASHTRA) == UnitLevel.state


def test_city_without_district_starts_at_state():
    assert infer_level({"state": "Maharashtra", "city": "Pune"}) == UnitLevel.state


def test_normalize_location_requires_state():
    with pytest.raises(ValidationError) as exc:
        normalize_location(Location(city="Pune", district="Pune"))
    assert exc.value.code == "STATE_REQUIRED"


def test_normalize_location_fills_country():
    location = normalize_location(Location(state="Maharashtra"))
    assert location.country == "India"


# ---------------------------------------------------------------------------
# Jurisdiction resolution
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_exact_level_match(resolver, seed_unit):
    city = await seed_unit(UnitLevel.city, PUNE_CITY)

    target = await resolver.find_reviewing_unit(UnitLevel.city, PUNE_CITY)

    assert target.unit_id == city.id
    assert target.level == ReviewLevel.city


@pytest.mark.asyncio
async def test_escalates_to_district(resolver, seed_unit):
    district = await seed_unit(UnitLevel.district, PUNE_DISTRICT)
    await seed_unit(UnitLevel.city, NAGPUR_CITY)

    target = await resolver.find_reviewing_unit(UnitLevel.city, PUNE_CITY)

    assert target.unit_id == district.id
    assert target.level == ReviewLevel.district


@pytest.mark.asyncio
async def test_inactive_units_are_skipped(resolver, seed_unit):
    await seed_unit(UnitLevel.city, PUNE_CITY, status=UnitStatus.inactive)
    state = await seed_unit(UnitLevel.state, MAHARASHTRA)

    target = await resolver.find_reviewing_unit(UnitLevel.city, PUNE_CITY)

    assert target.unit_id == state.id


@pytest.mark.asyncio
async def test_falls_back_to_superadmin(resolver, seed_unit):
    await seed_unit(UnitLevel.city, NAGPUR_CITY)

    target = await resolver.find_reviewing_unit(UnitLevel.city, PUNE_CITY)

    assert target.is_superadmin
    assert target.level == ReviewLevel.superadmin


@pytest.mark.asyncio
async def test_incomplete_location_never_matches(resolver, seed_unit):
    await seed_unit(UnitLevel.city, PUNE_CITY)

    assert await resolver.find_unit_at(UnitLevel.city, {"state": "Maharashtra", "city": "Pune"}) is None


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_city_application_routed_to_district(routing, seed_unit):
    district = await seed_unit(UnitLevel.district, PUNE_DISTRICT)

    decision = await routing.route_application(
        Location(state="Maharashtra", district="Pune", city="Pune")
    )

    assert decision.initial_level == UnitLevel.city
    assert decision.application_level == ReviewLevel.district
    assert decision.reviewing_unit_id == district.id


@pytest.mark.asyncio
async def test_explicit_level_overrides_inference(routing, seed_unit):
    await seed_unit(UnitLevel.city, PUNE_CITY)
    state = await seed_unit(UnitLevel.state, MAHARASHTRA)

    decision = await routing.route_application(PUNE_CITY, explicit_level="state")

    assert decision.initial_level == UnitLevel.state
    assert decision.reviewing_unit_id == state.id


@pytest.mark.asyncio
async def test_explicit_superadmin(routing, seed_unit):
    await seed_unit(UnitLevel.city, PUNE_CITY)

    decision = await routing.route_application(PUNE_CITY, explicit_level=ReviewLevel.superadmin)

    assert decision.application_level == ReviewLevel.superadmin
    assert decision.reviewing_unit_id is None
    assert decision.initial_level is None


@pytest.mark.asyncio
async def test_country_office_bearer_goes_to_superadmin(routing, seed_unit):
    await seed_unit(UnitLevel.country, INDIA)

    decision = await routing.route_application(
        PUNE_CITY, explicit_level=ReviewLevel.country, is_office_bearer=True
    )

    assert decision.application_level == ReviewLevel.superadmin
    assert decision.reviewing_unit_id is None


@pytest.mark.asyncio
async def test_country_application_reviewed_by_country_unit(routing, seed_unit):
    country = await seed_unit(UnitLevel.country, INDIA)

    decision = await routing.route_application(PUNE_CITY, explicit_level=ReviewLevel.country)

    assert decision.application_level == ReviewLevel.country
    assert decision.reviewing_unit_id == country.id


@pytest.mark.asyncio
async def test_state_application_escalates_to_country(routing, seed_unit):
    country = await seed_unit(UnitLevel.country, INDIA)

    decision = await routing.route_application(Location(state="MH"))

    assert decision.initial_level == UnitLevel.state
    assert decision.application_level == ReviewLevel.country
    assert decision.reviewing_unit_id == country.id
