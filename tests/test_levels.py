"""
Level table and core helper tests.

Verifies that:
- Location requirements, escalation and manageable levels follow the level order
- Location matching compares every field down to the level
- Two-year tenure is calendar exact
- Errors carry status codes and the {code, message} detail
"""

import logging
from datetime import UTC, datetime

from fastapi import status

from sangh.core.exceptions import (
    AuthorityError,
    ConflictError,
    InvalidTenureError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from sangh.core.levels import (
    LOCATION_FIELDS,
    MANAGEABLE_LEVELS,
    UnitLevel,
    can_act_upon,
    child_level,
    escalation_path,
    location_matches,
    missing_fields,
    parent_level,
)
from sangh.core.logging import configure_logging
from sangh.models.office_bearer import add_years, term_end
from sangh.schemas.location import Location

from conftest import NAGPUR_CITY, PIMPRI_CITY, PUNE_CITY


# ---------------------------------------------------------------------------
# Level tables
# ---------------------------------------------------------------------------

def test_location_fields_grow_with_level():
    assert LOCATION_FIELDS[UnitLevel.country] == ("country",)
    assert LOCATION_FIELDS[UnitLevel.district] == ("country", "state", "district")
    assert LOCATION_FIELDS[UnitLevel.area] == ("country", "state", "district", "city", "area")


def test_manageable_levels_are_strictly_lower():
    assert MANAGEABLE_LEVELS[UnitLevel.country] == {
        UnitLevel.state,
        UnitLevel.district,
        UnitLevel.city,
        UnitLevel.area,
    }
    assert MANAGEABLE_LEVELS[UnitLevel.district] == {UnitLevel.city, UnitLevel.area}
    assert MANAGEABLE_LEVELS[UnitLevel.area] == frozenset()
    assert can_act_upon(UnitLevel.district, UnitLevel.city)
    assert not can_act_upon(UnitLevel.city, UnitLevel.district)
    assert not can_act_upon(UnitLevel.city, UnitLevel.city)


def test_parent_and_child_levels():
    assert parent_level(UnitLevel.country) is None
    assert parent_level(UnitLevel.city) == UnitLevel.district
    assert child_level(UnitLevel.state) == UnitLevel.district
    assert child_level(UnitLevel.area) is None


def test_escalation_path_ends_at_country():
    assert list(escalation_path(UnitLevel.area)) == [
        UnitLevel.area,
        UnitLevel.city,
        UnitLevel.district,
        UnitLevel.state,
        UnitLevel.country,
    ]
    assert list(escalation_path("country")) == [UnitLevel.country]


# ---------------------------------------------------------------------------
# Location matching
# ---------------------------------------------------------------------------

def test_location_matches_down_to_level():
    assert location_matches(PUNE_CITY, PIMPRI_CITY, UnitLevel.district)
    assert not location_matches(PUNE_CITY, PIMPRI_CITY, UnitLevel.city)
    assert not location_matches(PUNE_CITY, NAGPUR_CITY, UnitLevel.district)
    assert location_matches(PUNE_CITY.as_dict(), NAGPUR_CITY, UnitLevel.state)


def test_empty_unit_field_never_matches():
    unit = {"country": "India", "state": "", "district": ""}
    assert not location_matches(unit, {"country": "India", "state": ""}, UnitLevel.state)


def test_missing_fields_lists_empty_required_keys():
    location = Location(country="India", state="Maharashtra")
    assert missing_fields(location, UnitLevel.city) == ["district", "city"]
    assert missing_fields(location, UnitLevel.state) == []


def test_location_strips_and_defaults_fields():
    location = Location(state="  Maharashtra ", city=None)
    assert location.state == "Maharashtra"
    assert location.city == ""
    assert location.country == ""


# ---------------------------------------------------------------------------
# Tenure
# ---------------------------------------------------------------------------

def test_term_end_is_two_calendar_years():
    start = datetime(2025, 6, 15, 8, 30, tzinfo=UTC)
    assert term_end(start) == datetime(2027, 6, 15, 8, 30, tzinfo=UTC)


def test_leap_day_lands_on_28_february():
    assert add_years(datetime(2024, 2, 29, tzinfo=UTC), 2) == datetime(2026, 2, 28, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Errors and logging
# ---------------------------------------------------------------------------

def test_error_status_codes():
    assert ConflictError("x").status_code == status.HTTP_409_CONFLICT
    assert AuthorityError("x").status_code == status.HTTP_403_FORBIDDEN
    assert NotFoundError("x").status_code == status.HTTP_404_NOT_FOUND
    assert InvariantViolation("x").status_code == status.HTTP_400_BAD_REQUEST
    assert ValidationError("x").status_code == 422


def test_error_detail_and_code_override():
    err = ValidationError("State is required", code="STATE_REQUIRED")
    assert err.to_detail() == {"code": "STATE_REQUIRED", "message": "State is required"}
    assert str(err) == "State is required"
    assert ValidationError("x").code == "VALIDATION_ERROR"


def test_invalid_tenure_is_a_validation_error():
    err = InvalidTenureError("bad tenure")
    assert isinstance(err, ValidationError)
    assert err.code == "INVALID_TENURE"


def test_configure_logging_attaches_one_handler():
    configure_logging("DEBUG")
    configure_logging("INFO")
    logger = logging.getLogger("sangh")
    handlers = [h for h in logger.handlers if getattr(h, "_sangh_handler", False)]
    assert len(handlers) == 1
    assert logger.level == logging.INFO
