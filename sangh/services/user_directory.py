"""
SQL-backed identity directory.

Default IdentityDirectory on the ``users`` table. Deployments with their own
profile store pass another implementation to the services instead.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.models.user import IdentityStatus, User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Reads and updates identity state on User rows."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_user(self, user_id: UUID) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_verified_user(self, user_id: UUID) -> User | None:
        """Active user with a verified identity, else None."""
        result = await self.db.execute(
            select(User).where(
                User.id == user_id,
                User.is_active.is_(True),
                User.identity_status == IdentityStatus.verified,
            )
        )
        return result.scalar_one_or_none()

    async def verified_number_exists(self, number: str) -> bool:
        result = await self.db.execute(select(User.id).where(User.identity_number == number))
        return result.first() is not None

    async def mark_pending(self, user_id: UUID, application_id: UUID) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(identity_status=IdentityStatus.pending, identity_application_id=application_id)
        )

    async def mark_verified(
        self, user_id: UUID, number: str, location: dict[str, str] | None = None
    ) -> None:
        """
        Record an approved verification.

        The applicant's city/district/state are refreshed from the approved
        application when given.
        """
        values: dict[str, object] = {
            "identity_status": IdentityStatus.verified,
            "identity_number": number,
        }
        for key in ("city", "district", "state"):
            if location and location.get(key):
                values[key] = location[key]

        await self.db.execute(update(User).where(User.id == user_id).values(**values))
        logger.info("User %s verified as %s", user_id, number)

    async def mark_rejected(self, user_id: UUID) -> None:
        await self.db.execute(
            update(User).where(User.id == user_id).values(identity_status=IdentityStatus.rejected)
        )
