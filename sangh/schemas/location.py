"""
Location schema shared by units and applications.
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from sangh.core.levels import LOCATION_KEYS


class Location(BaseModel):
    """country > state > district > city > area; unset fields are empty strings."""

    country: str = ""
    state: str = ""
    district: str = ""
    city: str = ""
    area: str = ""

    model_config = {"from_attributes": True}

    @field_validator("country", "state", "district", "city", "area", mode="before")
    @classmethod
    def strip_value(cls, v: object) -> str:
        if v is None:
            return ""
        return str(v).strip()

    def as_dict(self) -> dict[str, str]:
        return {key: getattr(self, key) for key in LOCATION_KEYS}
