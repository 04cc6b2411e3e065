"""Notification drafting for new donations and delivery-state bookkeeping.

Drafting never sends anything: rows are created with is_sent=False in the
same transaction as the donation, and an external delivery worker picks
them up and calls mark_sent.
"""

import logging
import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import Donation, Notification, NotificationChannel, Project, User, utcnow
from src.services.access_scope import can_process_delivery, scope_for
from src.services.errors import ForbiddenError, NotFoundError
from src.services.identity import CallerIdentity, current_identity
from src.services.locale_service import format_amount
from src.services.unit_of_work import TransactionContext

logger = logging.getLogger(__name__)

ANONYMOUS_DONOR = "Anonymous"
TITLE_TEMPLATE = "New donation to project {project}"
MESSAGE_TEMPLATE = "Received a donation of {amount} from {donor}."


def synthesize_donation_notifications(
    project: Project,
    donor: User | None,
    donation: Donation,
    channels: Sequence[NotificationChannel],
    currency: str | None = None,
    locale: str | None = None,
) -> list[Notification]:
    """Draft one notification per configured channel for a new donation.

    All drafts share title and message and differ only by channel. The
    caller adds them to the session. An empty channel list yields no
    drafts and never blocks the donation.

    Args:
        project: Project receiving the donation
        donor: Member the donation is attributed to, if any
        donation: The (already normalized) donation
        channels: Delivery channels, in order
        currency: Currency for amount formatting
        locale: Babel locale for amount formatting

    Returns:
        Unsaved Notification rows
    """
    if not channels:
        logger.warning("No notification channels configured; donation %s gets no notifications", donation.id)
        return []

    donor_name = donation.donor_name.strip() if donation.donor_name else ""
    title = TITLE_TEMPLATE.format(project=project.name)
    message = MESSAGE_TEMPLATE.format(
        amount=format_amount(donation.amount, currency=currency, locale=locale),
        donor=donor_name or ANONYMOUS_DONOR,
    )
    now = utcnow()

    return [
        Notification(
            id=uuid.uuid4(),
            channel=channel,
            title=title,
            message=message,
            is_sent=False,
            created_at=now,
            sent_at=None,
            project_id=project.id,
            user_id=donor.id if donor is not None else None,
            donation_id=donation.id,
        )
        for channel in channels
    ]


class NotificationService:
    """Scoped listing of notifications and delivery acknowledgement."""

    def __init__(self, db: Session, identity: CallerIdentity | None = None):
        self.db = db
        self.identity = identity or current_identity()
        self.scope = scope_for(self.identity)

    def list_notifications(
        self,
        sent: bool | None = None,
        channel: NotificationChannel | None = None,
        project_id: uuid.UUID | None = None,
    ) -> list[Notification]:
        """List notifications visible to the caller, newest first."""
        stmt = self.scope.apply(select(Notification), Notification)
        if sent is not None:
            stmt = stmt.where(Notification.is_sent == sent)
        if channel is not None:
            stmt = stmt.where(Notification.channel == channel)
        if project_id is not None:
            stmt = stmt.where(Notification.project_id == project_id)
        stmt = stmt.order_by(Notification.created_at.desc())
        return list(self.db.scalars(stmt).all())

    def list_pending(self, channel: NotificationChannel | None = None) -> list[Notification]:
        """Unsent notifications, oldest first, for the delivery worker.

        Raises:
            ForbiddenError: Caller is neither an administrator nor the delivery worker
        """
        self._require_delivery_access("read the delivery queue")
        stmt = select(Notification).where(Notification.is_sent.is_(False))
        if channel is not None:
            stmt = stmt.where(Notification.channel == channel)
        return list(self.db.scalars(stmt.order_by(Notification.created_at)).all())

    def mark_sent(self, notification_id: uuid.UUID) -> Notification:
        """Record delivery of a notification. Idempotent per notification id.

        A second call leaves is_sent and the first sent_at untouched.

        Raises:
            NotFoundError: No such notification
            ForbiddenError: Caller is neither an administrator nor the delivery worker
        """
        self._require_delivery_access("acknowledge notification delivery")

        with TransactionContext(self.db, self.identity):
            notification = self.db.get(Notification, notification_id)
            if notification is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            if not notification.is_sent:
                notification.is_sent = True
                notification.sent_at = utcnow()
                logger.info("Notification %s marked as sent", notification_id)
        return notification

    def _require_delivery_access(self, action: str) -> None:
        if not can_process_delivery(self.identity):
            raise ForbiddenError(f"Only administrators and the delivery worker may {action}")


__all__ = [
    "ANONYMOUS_DONOR",
    "NotificationService",
    "synthesize_donation_notifications",
]
