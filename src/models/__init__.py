"""SQLAlchemy base model with common fields and model exports."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class BaseModel:
    """Base model with a client-generated UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """Creation and modification timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from src.models.audit_log import AuditLog  # noqa: E402
from src.models.donation import Donation, DonationMethod  # noqa: E402
from src.models.notification import Notification, NotificationChannel  # noqa: E402
from src.models.project import Project, ProjectMember, ProjectStatus  # noqa: E402
from src.models.report import Report  # noqa: E402
from src.models.user import Role, User  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "utcnow",
    "AuditLog",
    "Donation",
    "DonationMethod",
    "Notification",
    "NotificationChannel",
    "Project",
    "ProjectMember",
    "ProjectStatus",
    "Report",
    "Role",
    "User",
]
