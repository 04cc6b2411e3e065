"""User and role ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, TimestampMixin, utcnow


class Role(Base, BaseModel):
    """Named role assigned to users (Administrator, Volunteer)."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, comment="Role name, compared case-insensitively"
    )

    users: Mapped[list["User"]] = relationship("User", back_populates="role")

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"


class User(Base, BaseModel, TimestampMixin):
    """
    Person who can sign in to the system.

    Each user holds exactly one role. Volunteers see only the projects they
    are members of; administrators see everything.
    """

    __tablename__ = "users"

    user_name: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, comment="Login name"
    )
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    role_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("roles.id"), nullable=False, index=True)

    __table_args__ = (Index("idx_user_is_active", "is_active"),)

    # Relationships
    role: Mapped[Role] = relationship("Role", back_populates="users")
    memberships: Mapped[list["ProjectMember"]] = relationship(  # noqa: F821
        "ProjectMember", back_populates="user"
    )

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the login name."""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.user_name

    def __repr__(self) -> str:
        return f"<User(id={self.id}, user_name={self.user_name}, is_active={self.is_active})>"


__all__ = ["Role", "User"]
