"""Donation ORM model."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, utcnow


class DonationMethod(str, Enum):
    """How the donation was received."""

    UNKNOWN = "unknown"
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    ONLINE = "online"


class Donation(Base, BaseModel):
    """Single donation to a project.

    A donation cannot exist without its project. Deleting a donation deletes
    the notifications drafted for it.
    """

    __tablename__ = "donations"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Member the donation is attributed to",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, comment="Amount, normalized to 2 decimal places"
    )
    method: Mapped[DonationMethod] = mapped_column(
        SQLEnum(DonationMethod), nullable=False, default=DonationMethod.UNKNOWN
    )
    donor_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    donor_email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    donor_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    donated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_donation_project", "project_id"),
        Index("idx_donation_donated_at", "donated_at"),
    )

    # Relationships
    project: Mapped["Project"] = relationship(  # noqa: F821
        "Project", back_populates="donations"
    )
    user: Mapped["User | None"] = relationship("User")  # noqa: F821
    notifications: Mapped[list["Notification"]] = relationship(  # noqa: F821
        "Notification", back_populates="donation", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Donation(id={self.id}, project_id={self.project_id}, amount={self.amount}, "
            f"donated_at={self.donated_at})>"
        )


__all__ = ["Donation", "DonationMethod"]
