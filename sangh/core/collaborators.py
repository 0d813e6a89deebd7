"""
Interfaces to systems outside the hierarchy engine.

The engine never talks to object storage, mail or the profile store directly;
it depends on these protocols and receives concrete implementations from the
caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


class DirectoryUser(Protocol):
    """Subset of a profile record the engine reads."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    phone_number: str | None
    identity_number: str | None
    city: str | None
    district: str | None
    state: str | None

    @property
    def is_identity_verified(self) -> bool: ...


class IdentityDirectory(Protocol):
    """The generic user/profile store."""

    async def find_user(self, user_id: UUID) -> DirectoryUser | None: ...

    async def find_verified_user(self, user_id: UUID) -> DirectoryUser | None: ...

    async def verified_number_exists(self, number: str) -> bool: ...

    async def mark_pending(self, user_id: UUID, application_id: UUID) -> None: ...

    async def mark_verified(
        self, user_id: UUID, number: str, location: dict[str, str] | None = None
    ) -> None: ...

    async def mark_rejected(self, user_id: UUID) -> None: ...


class DocumentStore(Protocol):
    """Owner of the objects behind stored document/photo URLs."""

    async def discard(self, url: str) -> None: ...


class NotificationSink(Protocol):
    """Fire-and-forget event delivery."""

    async def notify(self, event: str, payload: dict[str, Any]) -> None: ...


async def discard_documents(store: DocumentStore | None, urls: Iterable[str | None]) -> None:
    """
    Best-effort removal of replaced documents.

    Failures are logged and never propagate to the caller's mutation.
    """
    if store is None:
        return
    for url in urls:
        if not url:
            continue
        try:
            await store.discard(url)
        except Exception:
            logger.warning("Failed to discard document %s", url, exc_info=True)


async def publish(sink: NotificationSink | None, event: str, payload: dict[str, Any]) -> None:
    """Send an event without letting delivery errors reach the caller."""
    if sink is None:
        return
    try:
        await sink.notify(event, payload)
    except Exception:
        logger.warning("Notification %s could not be delivered", event, exc_info=True)
