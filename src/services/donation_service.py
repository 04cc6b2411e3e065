"""Donation service: the write path that keeps totals, notifications and audit in step.

Creating a donation stages, in one transaction:
    1. the donation row (amount normalized to 2 places, half away from zero)
    2. the project's collected_amount delta
    3. one notification draft per configured channel
    4. audit entries for all of the above (at commit)
Deleting reverses 1-3 with the same guarantees. Any failure rolls back all of it.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import Donation, DonationMethod, Notification, NotificationChannel, Project, ProjectMember, User
from src.services.access_scope import scope_for
from src.services.aggregate_service import CollectedAmountService, normalize_amount
from src.services.config import AppConfig, load_config
from src.services.errors import ForbiddenError, IntegrityViolationError, NotFoundError, ValidationError
from src.services.identity import CallerIdentity, current_identity
from src.services.notification_service import synthesize_donation_notifications
from src.services.unit_of_work import TransactionContext

logger = logging.getLogger(__name__)


@dataclass
class DonationRequest:
    """Input for a new donation."""

    project_id: uuid.UUID
    amount: Decimal
    method: DonationMethod = DonationMethod.UNKNOWN
    user_id: uuid.UUID | None = None
    donor_name: str | None = None
    donor_email: str | None = None
    donor_phone: str | None = None
    payment_reference: str | None = None


def _clean(value: str | None) -> str | None:
    return value.strip() if value is not None else None


class DonationService:
    """Service for donation operations."""

    def __init__(
        self,
        db: Session,
        identity: CallerIdentity | None = None,
        config: AppConfig | None = None,
    ):
        self.db = db
        self.identity = identity or current_identity()
        self.scope = scope_for(self.identity)
        self.config = config or load_config()

    @property
    def channels(self) -> Sequence[NotificationChannel]:
        return self.config.notification_channels

    def list_donations(self, project_id: uuid.UUID | None = None) -> list[Donation]:
        """Donations visible to the caller, newest first.

        A project outside the caller's scope simply yields no rows.
        """
        stmt = self.scope.apply(select(Donation), Donation)
        if project_id is not None:
            stmt = stmt.where(Donation.project_id == project_id)
        stmt = stmt.order_by(Donation.donated_at.desc())
        return list(self.db.scalars(stmt).all())

    def get_donation(self, donation_id: uuid.UUID) -> Donation:
        """Get a donation; out-of-scope donations are reported as not found."""
        stmt = self.scope.apply(select(Donation).where(Donation.id == donation_id), Donation)
        donation = self.db.scalars(stmt).first()
        if donation is None:
            raise NotFoundError(f"Donation {donation_id} not found")
        return donation

    def _resolve_donor(self, project: Project, requested_user_id: uuid.UUID | None) -> User | None:
        """Member the donation is attributed to.

        Volunteers always donate as themselves; the attributed user must be
        a member of the project.
        """
        user_id = requested_user_id
        if not self.scope.is_unrestricted:
            if self.scope.denies_all:
                raise ForbiddenError("Caller is not allowed to record donations")
            user_id = self.scope.user_id

        if user_id is None:
            return None

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if self.db.get(ProjectMember, (project.id, user_id)) is None:
            raise ForbiddenError("Donations can only be attributed to project members")
        return user

    def create_donation(self, request: DonationRequest) -> Donation:
        """Record a donation with its aggregate delta, notifications and audit trail.

        Raises:
            ValidationError: Amount is not a finite positive number after normalization
            IntegrityViolationError: Project does not exist
            NotFoundError: Attributed user does not exist
            ForbiddenError: Caller or attributed user not a member of the project
        """
        amount = normalize_amount(request.amount)
        if amount <= 0:
            raise ValidationError("Donation amount must be positive")

        with TransactionContext(self.db, self.identity):
            # Row lock serializes concurrent deltas where the database supports it;
            # populate_existing re-reads a project already held by this session
            project = self.db.scalars(
                select(Project)
                .where(Project.id == request.project_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if project is None:
                raise IntegrityViolationError(f"Project {request.project_id} not found")

            donor = self._resolve_donor(project, request.user_id)

            donation = Donation(
                id=uuid.uuid4(),
                project_id=project.id,
                user_id=donor.id if donor is not None else None,
                amount=amount,
                method=request.method,
                donor_name=_clean(request.donor_name),
                donor_email=_clean(request.donor_email),
                donor_phone=_clean(request.donor_phone),
                payment_reference=_clean(request.payment_reference),
            )
            self.db.add(donation)

            CollectedAmountService.apply_donation_created(project, amount)

            notifications = synthesize_donation_notifications(
                project,
                donor,
                donation,
                self.channels,
                currency=self.config.currency,
                locale=self.config.locale,
            )
            self.db.add_all(notifications)

        logger.info(
            "Donation %s of %s recorded for project %s (%d notifications)",
            donation.id,
            amount,
            request.project_id,
            len(notifications),
        )
        return donation

    def delete_donation(self, donation_id: uuid.UUID) -> None:
        """Delete a donation, its notifications and its share of the project total.

        Raises:
            ForbiddenError: Caller is not an administrator
            NotFoundError: No such donation
        """
        if not self.scope.is_unrestricted:
            raise ForbiddenError("Only administrators may delete donations")

        with TransactionContext(self.db, self.identity):
            donation = self.db.get(Donation, donation_id)
            if donation is None:
                raise NotFoundError(f"Donation {donation_id} not found")

            project = self.db.scalars(
                select(Project)
                .where(Project.id == donation.project_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if project is None:
                raise IntegrityViolationError(f"Project {donation.project_id} not found")
            CollectedAmountService.apply_donation_deleted(project, donation.amount)

            for notification in list(
                self.db.scalars(select(Notification).where(Notification.donation_id == donation.id))
            ):
                self.db.delete(notification)
            self.db.delete(donation)

        logger.info("Donation %s deleted", donation_id)


__all__ = ["DonationRequest", "DonationService"]
