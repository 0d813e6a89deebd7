"""
Identity application review workflow.

pending -> approved | rejected. Review history and comments are append-only;
the status transition is a compare-and-swap on ``status = 'pending'`` so two
concurrent reviews cannot both succeed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sangh.core.collaborators import IdentityDirectory, NotificationSink, publish
from sangh.core.config import settings
from sangh.core.exceptions import AuthorityError, ConflictError, NotFoundError, ValidationError
from sangh.core.levels import MANAGEABLE_LEVELS, ReviewLevel, UnitLevel, location_filters
from sangh.models.application import Application, ApplicationStatus, ReviewDecision
from sangh.models.base import utcnow
from sangh.schemas.application import (
    EDITABLE_DETAIL_FIELDS,
    ApplicationEdit,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationSubmit,
)
from sangh.schemas.authority import Actor
from sangh.services.authority import AuthorityVerifier
from sangh.services.routing_service import RoutingService, normalize_location
from sangh.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

OPEN_STATUSES = (ApplicationStatus.pending, ApplicationStatus.approved)


def review_entry(
    action: str,
    by: UUID | None,
    level: str,
    unit_id: UUID | None,
    remarks: str | None,
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "action": action,
        "by": str(by) if by is not None else None,
        "level": level,
        "unit_id": str(unit_id) if unit_id is not None else None,
        "remarks": remarks,
        "timestamp": timestamp.isoformat(),
    }


class ReviewService:
    """Handles submission, review, comments and edits of applications."""

    def __init__(
        self,
        db: AsyncSession,
        directory: IdentityDirectory | None = None,
        notifications: NotificationSink | None = None,
    ) -> None:
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.notifications = notifications
        self.routing = RoutingService(db)
        self.authority = AuthorityVerifier(db)

    async def _get_application(self, application_id: UUID) -> Application:
        result = await self.db.execute(select(Application).where(Application.id == application_id))
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError("Application not found", code="APPLICATION_NOT_FOUND")
        return application

    # -----------------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------------

    async def submit(
        self, applicant_user_id: UUID, data: ApplicationSubmit, now: datetime | None = None
    ) -> ApplicationResponse:
        """
        Create a pending application routed to its reviewing unit.

        - One pending or approved application per applicant
        - Routing may escalate above the inferred level, up to superadmin
        """
        now = now or utcnow()

        existing = await self.db.execute(
            select(Application.id).where(
                Application.applicant_user_id == applicant_user_id,
                Application.status.in_(OPEN_STATUSES),
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                "You already have a pending or approved application", code="APPLICATION_EXISTS"
            )

        location = normalize_location(data.location)
        decision = await self.routing.route_application(
            location, data.application_level, data.is_office_bearer
        )

        application = Application(
            applicant_user_id=applicant_user_id,
            **location.as_dict(),
            application_level=decision.application_level,
            reviewing_unit_id=decision.reviewing_unit_id,
            status=ApplicationStatus.pending,
            is_office_bearer=data.is_office_bearer,
            review_history=[
                review_entry(
                    "submitted",
                    applicant_user_id,
                    decision.application_level.value,
                    decision.reviewing_unit_id,
                    None,
                    now,
                )
            ],
            comments=[],
            documents=dict(data.documents),
            details=dict(data.details),
        )
        self.db.add(application)
        await self.db.flush()

        await self.directory.mark_pending(applicant_user_id, application.id)

        logger.info(
            "Application %s submitted at %s level (unit %s)",
            application.id,
            decision.application_level.value,
            decision.reviewing_unit_id,
        )
        await publish(
            self.notifications,
            "application_submitted",
            {
                "application_id": str(application.id),
                "applicant_user_id": str(applicant_user_id),
                "level": decision.application_level.value,
                "reviewing_unit_id": str(decision.reviewing_unit_id)
                if decision.reviewing_unit_id
                else None,
            },
        )
        return ApplicationResponse.model_validate(application)

    # -----------------------------------------------------------------------
    # Review
    # -----------------------------------------------------------------------

    async def _number_in_use(self, number: str) -> bool:
        if await self.directory.verified_number_exists(number):
            return True
        result = await self.db.execute(
            select(Application.id).where(Application.verified_number == number)
        )
        return result.first() is not None

    async def generate_verification_number(self) -> str:
        """``JA`` followed by 8 digits, retried on collision a bounded number of times."""
        for _ in range(settings.VERIFICATION_NUMBER_MAX_ATTEMPTS):
            digits = secrets.randbelow(90_000_000) + 10_000_000
            number = f"{settings.VERIFICATION_NUMBER_PREFIX}{digits}"
            if not await self._number_in_use(number):
                return number
        raise ConflictError(
            "Could not allocate a unique verification number", code="VERIFICATION_NUMBER_EXHAUSTED"
        )

    async def review(
        self,
        application_id: UUID,
        reviewer: Actor,
        decision: ReviewDecision | str,
        remarks: str | None = None,
        now: datetime | None = None,
    ) -> ApplicationResponse:
        """
        Approve or reject a pending application.

        - ConflictError once the application is no longer pending
        - AuthorityError unless the reviewer has authority over it
        - Approval allocates a verification number and marks the applicant verified
        """
        now = now or utcnow()
        try:
            decision = ReviewDecision(decision)
        except ValueError:
            raise ValidationError("Decision must be approved or rejected", code="INVALID_DECISION") from None

        application = await self._get_application(application_id)
        if application.is_terminal:
            raise ConflictError(
                f"This application has already been {application.status.value}",
                code="ALREADY_REVIEWED",
            )
        await self.authority.require_review_authority(reviewer, application)

        number = None
        if decision == ReviewDecision.approved:
            number = await self.generate_verification_number()

        entry = review_entry(
            decision.value, reviewer.user_id, reviewer.history_level, reviewer.unit_id, remarks, now
        )
        try:
            result = await self.db.execute(
                update(Application)
                .where(
                    Application.id == application.id,
                    Application.status == ApplicationStatus.pending,
                )
                .values(
                    status=ApplicationStatus(decision.value),
                    review_history=[*application.review_history, entry],
                    reviewed_by={
                        "user_id": str(reviewer.user_id),
                        "role": reviewer.role.value,
                        "level": reviewer.history_level,
                    },
                    verified_number=number,
                )
                .execution_options(synchronize_session=False)
            )
        except IntegrityError as exc:
            raise ConflictError(
                "Verification number already assigned; retry the review", code="DUPLICATE_NUMBER"
            ) from exc

        await self.db.refresh(application)
        if result.rowcount != 1:
            raise ConflictError(
                f"This application has already been {application.status.value}",
                code="ALREADY_REVIEWED",
            )

        if number is not None:
            await self.directory.mark_verified(
                application.applicant_user_id, number, application.location
            )
        else:
            await self.directory.mark_rejected(application.applicant_user_id)

        logger.info(
            "Application %s %s by %s (%s)",
            application.id,
            decision.value,
            reviewer.user_id,
            reviewer.history_level,
        )
        await publish(
            self.notifications,
            f"application_{decision.value}",
            {
                "application_id": str(application.id),
                "applicant_user_id": str(application.applicant_user_id),
                "verified_number": number,
            },
        )
        return ApplicationResponse.model_validate(application)

    # -----------------------------------------------------------------------
    # Comments and edits
    # -----------------------------------------------------------------------

    async def add_comment(
        self, application_id: UUID, author_id: UUID, comment: str, now: datetime | None = None
    ) -> ApplicationResponse:
        """Append a comment. Allowed in any state."""
        now = now or utcnow()
        if not comment or not comment.strip():
            raise ValidationError("Comment cannot be empty", code="EMPTY_COMMENT")

        application = await self._get_application(application_id)
        application.comments = [
            *application.comments,
            {"user_id": str(author_id), "comment": comment.strip(), "timestamp": now.isoformat()},
        ]
        await self.db.flush()
        return ApplicationResponse.model_validate(application)

    async def edit_application(
        self,
        application_id: UUID,
        editor: Actor,
        data: ApplicationEdit,
        now: datetime | None = None,
    ) -> ApplicationResponse:
        """
        Correct personal details of a pending application.

        Only EDITABLE_DETAIL_FIELDS change; location, level and status never do.
        """
        now = now or utcnow()
        application = await self._get_application(application_id)
        if application.is_terminal:
            raise ConflictError(
                f"This application has already been {application.status.value}",
                code="ALREADY_REVIEWED",
            )
        await self.authority.require_review_authority(editor, application)

        updates = {k: v for k, v in data.details.items() if k in EDITABLE_DETAIL_FIELDS}
        if not updates:
            raise ValidationError("No editable fields provided", code="NO_EDITABLE_FIELDS")

        application.details = {**application.details, **updates}
        application.review_history = [
            *application.review_history,
            review_entry(
                "edited",
                editor.user_id,
                editor.history_level,
                editor.unit_id,
                data.remarks or "Application details edited",
                now,
            ),
        ]
        await self.db.flush()
        logger.info("Application %s edited by %s", application.id, editor.user_id)
        return ApplicationResponse.model_validate(application)

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    async def get_application(self, application_id: UUID) -> ApplicationResponse:
        return ApplicationResponse.model_validate(await self._get_application(application_id))

    async def get_user_application(self, user_id: UUID) -> ApplicationResponse:
        """The applicant's most recent application."""
        result = await self.db.execute(
            select(Application)
            .where(Application.applicant_user_id == user_id)
            .order_by(Application.created_at.desc())
            .limit(1)
        )
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError("No application found for this user", code="APPLICATION_NOT_FOUND")
        return ApplicationResponse.model_validate(application)

    async def list_for_review(self, reviewer: Actor) -> ApplicationListResponse:
        """Pending applications the reviewer has authority to decide, oldest first."""
        query = select(Application).where(Application.status == ApplicationStatus.pending)

        if not (reviewer.is_superadmin or reviewer.can_verify_identity):
            unit = await self.authority.president_unit(reviewer)
            if unit is None:
                raise AuthorityError("Only presidents can review applications")

            covered = [ReviewLevel(unit.level.value)]
            covered += [ReviewLevel(level.value) for level in MANAGEABLE_LEVELS[unit.level]]
            in_jurisdiction = and_(
                Application.application_level.in_(covered),
                *(
                    getattr(Application, key) == value
                    for key, value in location_filters(unit.location, unit.level).items()
                ),
            )
            if unit.level == UnitLevel.country:
                query = query.where(
                    or_(
                        in_jurisdiction,
                        Application.application_level.in_(
                            [ReviewLevel.country, ReviewLevel.superadmin]
                        ),
                    )
                )
            else:
                query = query.where(in_jurisdiction)

        result = await self.db.execute(query.order_by(Application.created_at))
        applications = [ApplicationResponse.model_validate(a) for a in result.scalars().all()]
        return ApplicationListResponse(applications=applications, total=len(applications))
