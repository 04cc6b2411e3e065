"""Notification ORM model for outgoing donation alerts."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, utcnow


class NotificationChannel(str, Enum):
    """Delivery channel of a notification."""

    EMAIL = "email"
    SMS = "sms"


class Notification(Base, BaseModel):
    """Drafted notification waiting for the delivery worker.

    Created with is_sent=False; the delivery worker sets is_sent and sent_at.
    """

    __tablename__ = "notifications"

    channel: Mapped[NotificationChannel] = mapped_column(
        SQLEnum(NotificationChannel), nullable=False, default=NotificationChannel.EMAIL
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    donation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("donations.id", ondelete="CASCADE"), nullable=True
    )

    # Delivery worker polls (is_sent, channel); UI filters by project
    __table_args__ = (
        Index("idx_notification_sent_channel", "is_sent", "channel"),
        Index("idx_notification_project", "project_id"),
    )

    donation: Mapped["Donation | None"] = relationship(  # noqa: F821
        "Donation", back_populates="notifications"
    )
    project: Mapped["Project | None"] = relationship("Project")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, channel={self.channel}, is_sent={self.is_sent}, "
            f"donation_id={self.donation_id})>"
        )


__all__ = ["Notification", "NotificationChannel"]
