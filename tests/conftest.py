"""
Pytest configuration for sangh tests.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata, the SQL-backed user directory and recording fakes for the
document store and notification sink.
"""

import itertools
import uuid
from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sangh.core.levels import LOCATION_KEYS, UnitLevel, location_value, required_fields
from sangh.models import (
    Base,
    BearerRole,
    IdentityStatus,
    OfficeBearerTerm,
    OrgUnit,
    TermStatus,
    UnitStatus,
    User,
)
from sangh.models.office_bearer import term_end
from sangh.schemas.location import Location
from sangh.schemas.org_unit import (
    MemberCandidate,
    OfficeBearerCandidate,
    OfficeBearerCandidates,
    UnitCreate,
)
from sangh.services.user_directory import UserDirectory

NOW = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

PUNE_CITY = Location(country="India", state="Maharashtra", district="Pune", city="Pune")
PIMPRI_CITY = Location(country="India", state="Maharashtra", district="Pune", city="Pimpri")
NAGPUR_CITY = Location(country="India", state="Maharashtra", district="Nagpur", city="Nagpur")
INDORE_CITY = Location(country="India", state="Madhya Pradesh", district="Indore", city="Indore")
KOTHRUD_AREA = Location(
    country="India", state="Maharashtra", district="Pune", city="Pune", area="Kothrud"
)


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeDocumentStore:
    """Records discarded URLs; optionally fails every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.discarded: list[str] = []

    async def discard(self, url: str) -> None:
        if self.fail:
            raise RuntimeError("storage unavailable")
        self.discarded.append(url)


class FakeNotificationSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def directory(db):
    return UserDirectory(db)


@pytest.fixture
def documents():
    return FakeDocumentStore()


@pytest.fixture
def notifications():
    return FakeNotificationSink()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    """Create a User row; verified by default."""
    counter = itertools.count(1)

    async def _make(
        first_name: str | None = None,
        last_name: str = "Jain",
        verified: bool = True,
        **fields: Any,
    ) -> User:
        n = next(counter)
        user = User(
            email=f"user{n}_{uuid.uuid4().hex[:6]}@example.com",
            first_name=first_name or f"User{n}",
            last_name=last_name,
            is_active=True,
            identity_status=IdentityStatus.verified if verified else IdentityStatus.none,
            identity_number=f"JA{90000000 + n}" if verified else None,
            **fields,
        )
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
def seed_unit(db):
    """
    Insert a unit with three active terms directly, skipping registry checks.

    Secretary and treasurer get fresh user ids; the president can be fixed.
    """

    async def _seed(
        level: UnitLevel | str,
        location: Location,
        president_id: uuid.UUID | None = None,
        parent: OrgUnit | None = None,
        status: UnitStatus = UnitStatus.active,
        start: datetime = NOW,
        name: str | None = None,
    ) -> OrgUnit:
        level = UnitLevel(level)
        fields = {
            key: location_value(location, key) if key in required_fields(level) else ""
            for key in LOCATION_KEYS
        }
        terms = [
            OfficeBearerTerm(
                role=role,
                level=level,
                user_id=president_id if role == BearerRole.president and president_id else uuid.uuid4(),
                first_name=role.value.title(),
                last_name="Jain",
                name=f"{role.value.title()} Jain",
                start_date=start,
                end_date=term_end(start),
                status=TermStatus.active,
                history=[],
            )
            for role in BearerRole
        ]
        unit = OrgUnit(
            name=name or f"{fields[level.value]} {level.value} Sangh",
            level=level,
            **fields,
            parent_unit_id=parent.id if parent is not None else None,
            access_code=f"SEED-{uuid.uuid4().hex[:12]}",
            status=status,
            current_term_number=1,
            current_term_start=start,
            current_term_end=term_end(start),
            previous_terms=[],
            contact={},
            office_bearers=terms,
            members=[],
        )
        db.add(unit)
        await db.flush()
        return unit

    return _seed


def candidate_for(user: User, with_documents: bool = True) -> OfficeBearerCandidate:
    return OfficeBearerCandidate(
        user_id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        document=f"https://files.example.com/{user.id}/identity.pdf" if with_documents else None,
        photo=f"https://files.example.com/{user.id}/photo.jpg" if with_documents else None,
    )


def member_for(user: User) -> MemberCandidate:
    return MemberCandidate(user_id=user.id, first_name=user.first_name, last_name=user.last_name)


@pytest.fixture
def unit_payload(make_user):
    """
    Build a UnitCreate with freshly created verified office bearers.

    ``president`` reuses an existing user for the president role.
    """

    async def _payload(
        level: UnitLevel | str = UnitLevel.city,
        location: Location = PUNE_CITY,
        member_count: int | None = None,
        president: User | None = None,
        parent_id: uuid.UUID | None = None,
        constituent_unit_ids: list[uuid.UUID] | None = None,
        name: str = "Shri Sangh",
    ) -> UnitCreate:
        level = UnitLevel(level)
        if member_count is None:
            member_count = 3 if level == UnitLevel.city else 0

        president = president or await make_user("Mahavir")
        secretary = await make_user("Suresh")
        treasurer = await make_user("Tarun")
        members = [await make_user(f"Member{i}") for i in range(member_count)]

        return UnitCreate(
            name=name,
            level=level,
            location=location,
            parent_id=parent_id,
            office_bearers=OfficeBearerCandidates(
                president=candidate_for(president),
                secretary=candidate_for(secretary),
                treasurer=candidate_for(treasurer),
            ),
            members=[member_for(m) for m in members],
            constituent_unit_ids=constituent_unit_ids or [],
        )

    return _payload
