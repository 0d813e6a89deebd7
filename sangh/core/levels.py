"""
Hierarchy level tables.

Every level-dependent rule (required location fields, escalation, which levels
an office bearer may act upon) is expressed as a lookup in one of the tables
below rather than as per-level branching.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Iterator


class UnitLevel(str, enum.Enum):
    """Organisational unit level, root first."""

    country = "country"
    state = "state"
    district = "district"
    city = "city"
    area = "area"


class ReviewLevel(str, enum.Enum):
    """Level an application is routed to; ``superadmin`` is the fallback target."""

    superadmin = "superadmin"
    country = "country"
    state = "state"
    district = "district"
    city = "city"
    area = "area"


LEVEL_ORDER: tuple[UnitLevel, ...] = (
    UnitLevel.country,
    UnitLevel.state,
    UnitLevel.district,
    UnitLevel.city,
    UnitLevel.area,
)

LOCATION_KEYS: tuple[str, ...] = ("country", "state", "district", "city", "area")

# level -> location keys that identify a unit at that level
LOCATION_FIELDS: dict[UnitLevel, tuple[str, ...]] = {
    level: LOCATION_KEYS[: index + 1] for index, level in enumerate(LEVEL_ORDER)
}

# level -> lower levels an office bearer at that level may act upon
MANAGEABLE_LEVELS: dict[UnitLevel, frozenset[UnitLevel]] = {
    level: frozenset(LEVEL_ORDER[index + 1 :]) for index, level in enumerate(LEVEL_ORDER)
}

# levels whose units are formed from constituent units one level below
CONSTITUENT_LEVELS: frozenset[UnitLevel] = frozenset(
    {UnitLevel.country, UnitLevel.state, UnitLevel.district}
)

# levels whose exact location tuple may only be claimed by one active unit
UNIQUE_LOCATION_LEVELS: frozenset[UnitLevel] = frozenset({UnitLevel.city, UnitLevel.area})

ACCESS_CODE_PREFIXES: dict[UnitLevel, str] = {
    UnitLevel.country: "CNT",
    UnitLevel.state: "ST",
    UnitLevel.district: "DST",
    UnitLevel.city: "CTY",
    UnitLevel.area: "AREA",
}


def level_index(level: UnitLevel | str) -> int:
    return LEVEL_ORDER.index(UnitLevel(level))


def parent_level(level: UnitLevel | str) -> UnitLevel | None:
    """Level directly above ``level``, or None for country."""
    index = level_index(level)
    return LEVEL_ORDER[index - 1] if index > 0 else None


def child_level(level: UnitLevel | str) -> UnitLevel | None:
    """Level directly below ``level``, or None for area."""
    index = level_index(level)
    return LEVEL_ORDER[index + 1] if index + 1 < len(LEVEL_ORDER) else None


def escalation_path(level: UnitLevel | str) -> Iterator[UnitLevel]:
    """Yield ``level`` and then every level above it, ending at country."""
    for index in range(level_index(level), -1, -1):
        yield LEVEL_ORDER[index]


def required_fields(level: UnitLevel | str) -> tuple[str, ...]:
    return LOCATION_FIELDS[UnitLevel(level)]


def location_value(location: Any, key: str) -> str:
    """Read one location field from a mapping or an object, normalised to str."""
    if location is None:
        return ""
    if isinstance(location, Mapping):
        value = location.get(key)
    else:
        value = getattr(location, key, None)
    return (value or "").strip()


def missing_fields(location: Any, level: UnitLevel | str) -> list[str]:
    """Required fields for ``level`` that are empty in ``location``."""
    return [key for key in required_fields(level) if not location_value(location, key)]


def location_matches(unit_location: Any, target_location: Any, level: UnitLevel | str) -> bool:
    """
    True iff every location field at ``level`` and above is equal.

    A field that is empty on both sides does not count as a match: the
    comparison is only meaningful when the level's fields are populated.
    """
    for key in required_fields(level):
        unit_value = location_value(unit_location, key)
        if not unit_value or unit_value != location_value(target_location, key):
            return False
    return True


def location_filters(location: Any, level: UnitLevel | str) -> dict[str, str]:
    """The ``{field: value}`` pairs that identify ``location`` at ``level``."""
    return {key: location_value(location, key) for key in required_fields(level)}


def can_act_upon(actor_level: UnitLevel | str, target_level: UnitLevel | str) -> bool:
    """Whether ``actor_level`` sits strictly above ``target_level``."""
    return UnitLevel(target_level) in MANAGEABLE_LEVELS[UnitLevel(actor_level)]
