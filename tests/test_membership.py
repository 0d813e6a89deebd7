"""
Member roster tests.

Verifies that:
- Only verified users who are not already members or office bearers are added
- Bulk additions report each candidate's outcome
- City units never drop below three active members
- Member updates discard replaced documents
- Removed members can be added again
"""

import uuid

import pytest

from sangh.core.exceptions import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from sangh.core.levels import UnitLevel
from sangh.models import MemberStatus, UnitStatus
from sangh.schemas.org_unit import MemberCandidate, MemberUpdate
from sangh.services.membership_service import MembershipService
from sangh.services.org_unit_service import OrgUnitService

from conftest import NOW, PUNE_CITY, member_for


@pytest.fixture
def service(db, directory, documents):
    return MembershipService(db, directory, documents)


@pytest.fixture
async def city(db, directory, unit_payload):
    """A Pune city unit with exactly three founding members."""
    payload = await unit_payload(UnitLevel.city, PUNE_CITY)
    return await OrgUnitService(db, directory).create_unit(payload, now=NOW)


# ---------------------------------------------------------------------------
# 1. Add Member
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_verified_member(service, city, make_user):
    user = await make_user("Anil", city="Pune", district="Pune", state="Maharashtra")

    president_id = city.office_bearers[0].user_id
    member = await service.add_member(city.id, member_for(user), added_by=president_id)

    assert member.user_id == user.id
    assert member.name == "Anil Jain"
    assert member.identity_number == user.identity_number
    assert member.email == user.email
    assert member.address == {"city": "Pune", "district": "Pune", "state": "Maharashtra"}
    assert member.status == "active"


@pytest.mark.asyncio
async def test_unverified_user_cannot_join(service, city, make_user):
    user = await make_user("Anil", verified=False)

    with pytest.raises(ValidationError) as exc:
        await service.add_member(city.id, member_for(user))
    assert exc.value.code == "IDENTITY_NOT_VERIFIED"


@pytest.mark.asyncio
async def test_unknown_user_cannot_join(service, city):
    candidate = MemberCandidate(user_id=uuid.uuid4(), first_name="Ghost", last_name="Jain")

    with pytest.raises(NotFoundError):
        await service.add_member(city.id, candidate)


@pytest.mark.asyncio
async def test_candidate_requires_names(service, city, make_user):
    user = await make_user("Anil")

    with pytest.raises(ValidationError) as exc:
        await service.add_member(city.id, MemberCandidate(user_id=user.id, first_name="Anil"))
    assert exc.value.code == "MISSING_FIELDS"


@pytest.mark.asyncio
async def test_existing_member_conflicts(service, city):
    existing = city.members[0]
    candidate = MemberCandidate(
        user_id=existing.user_id, first_name=existing.first_name, last_name=existing.last_name
    )

    with pytest.raises(ConflictError) as exc:
        await service.add_member(city.id, candidate)
    assert exc.value.code == "ALREADY_MEMBER"


@pytest.mark.asyncio
async def test_office_bearer_cannot_be_member(service, city):
    president = city.office_bearers[0]
    candidate = MemberCandidate(user_id=president.user_id, first_name="Mahavir", last_name="Jain")

    with pytest.raises(ValidationError) as exc:
        await service.add_member(city.id, candidate)
    assert exc.value.code == "MEMBER_IS_OFFICE_BEARER"


@pytest.mark.asyncio
async def test_inactive_unit_rejects_members(service, seed_unit, make_user):
    unit = await seed_unit(UnitLevel.city, PUNE_CITY, status=UnitStatus.inactive)
    user = await make_user("Anil")

    with pytest.raises(ValidationError) as exc:
        await service.add_member(unit.id, member_for(user))
    assert exc.value.code == "UNIT_INACTIVE"


# ---------------------------------------------------------------------------
# 2. Bulk add
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_bulk_add_reports_each_candidate(service, city, make_user):
    good = await make_user("Anil")
    unverified = await make_user("Bhavesh", verified=False)
    existing = city.members[0]

    result = await service.add_members(
        city.id,
        [
            member_for(good),
            member_for(unverified),
            MemberCandidate(user_id=existing.user_id, first_name="Old", last_name="Member"),
            MemberCandidate(first_name="No", last_name="Id"),
        ],
    )

    assert [s.user_id for s in result.success] == [good.id]
    assert [f.user_id for f in result.failed] == [unverified.id, existing.user_id, None]
    assert result.failed[1].reason == "User is already a member of this Sangh"
    assert result.total_members == 4


@pytest.mark.asyncio
async def test_bulk_add_rejects_empty_batch(service, city):
    with pytest.raises(ValidationError) as exc:
        await service.add_members(city.id, [])
    assert exc.value.code == "EMPTY_BATCH"


@pytest.mark.asyncio
async def test_bulk_add_limits_batch_size(service, city):
    candidates = [
        MemberCandidate(user_id=uuid.uuid4(), first_name="M", last_name=str(i)) for i in range(51)
    ]

    with pytest.raises(ValidationError) as exc:
        await service.add_members(city.id, candidates)
    assert exc.value.code == "BATCH_TOO_LARGE"


# ---------------------------------------------------------------------------
# 3. Remove Member
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_city_keeps_three_members(service, city):
    with pytest.raises(InvariantViolation) as exc:
        await service.remove_member(city.id, city.members[0].id)
    assert exc.value.code == "MIN_MEMBERS"


@pytest.mark.asyncio
async def test_remove_and_rejoin(service, city, make_user, documents):
    user = await make_user("Anil")
    candidate = member_for(user)
    candidate.document = "https://files.example.com/anil.pdf"
    added = await service.add_member(city.id, candidate)

    await service.remove_member(city.id, added.id)

    listing = await service.list_members(city.id)
    assert user.id not in [m.user_id for m in listing.members]
    assert documents.discarded == ["https://files.example.com/anil.pdf"]

    rejoined = await service.add_member(city.id, member_for(user))
    assert rejoined.id == added.id
    assert rejoined.status == MemberStatus.active


@pytest.mark.asyncio
async def test_remove_unknown_member(service, city):
    with pytest.raises(NotFoundError):
        await service.remove_member(city.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_district_members_have_no_minimum(service, seed_unit, make_user):
    district = await seed_unit(UnitLevel.district, PUNE_CITY)
    added = await service.add_member(district.id, member_for(await make_user("Anil")))

    await service.remove_member(district.id, added.id)

    listing = await service.list_members(district.id)
    assert listing.total == 0


# ---------------------------------------------------------------------------
# 4. Update Member
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_member_details(service, city, make_user, documents):
    user = await make_user("Anil")
    candidate = member_for(user)
    candidate.photo = "https://files.example.com/old.jpg"
    added = await service.add_member(city.id, candidate)

    updated = await service.update_member_details(
        city.id,
        added.id,
        MemberUpdate(first_name="Anilkumar", photo="https://files.example.com/new.jpg"),
    )

    assert updated.name == "Anilkumar Jain"
    assert updated.photo == "https://files.example.com/new.jpg"
    assert documents.discarded == ["https://files.example.com/old.jpg"]


@pytest.mark.asyncio
async def test_update_leaves_unset_fields(service, city):
    member = city.members[0]

    updated = await service.update_member_details(
        city.id, member.id, MemberUpdate(phone_number="9800000000")
    )

    assert updated.phone_number == "9800000000"
    assert updated.name == member.name


@pytest.mark.asyncio
async def test_update_rejects_cleared_name(service, city):
    member = city.members[0]
    original = member.first_name

    with pytest.raises(ValidationError) as exc:
        await service.update_member_details(city.id, member.id, MemberUpdate(first_name=None))
    assert exc.value.code == "NAME_REQUIRED"
    assert member.first_name == original


@pytest.mark.asyncio
async def test_clearing_document_discards_old_url(service, city, make_user, documents):
    candidate = member_for(await make_user("Anil"))
    candidate.document = "https://files.example.com/aadhaar.pdf"
    added = await service.add_member(city.id, candidate)

    updated = await service.update_member_details(city.id, added.id, MemberUpdate(document=None))

    assert updated.document is None
    assert documents.discarded == ["https://files.example.com/aadhaar.pdf"]


# ---------------------------------------------------------------------------
# 5. List Members
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_members_with_search(service, city, make_user):
    await service.add_member(city.id, member_for(await make_user("Zubin", last_name="Shah")))

    everyone = await service.list_members(city.id, page=1, limit=2)
    assert everyone.total == 4
    assert everyone.pages == 2
    assert len(everyone.members) == 2

    found = await service.list_members(city.id, search="zubin")
    assert [m.name for m in found.members] == ["Zubin Shah"]


@pytest.mark.asyncio
async def test_list_members_unknown_unit(service):
    with pytest.raises(NotFoundError):
        await service.list_members(uuid.uuid4())
