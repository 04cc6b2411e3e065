"""Project and project membership ORM models."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, TimestampMixin, utcnow


class ProjectStatus(str, Enum):
    """Lifecycle status of a fundraising project.

    draft -> active -> completed | cancelled. Completed and cancelled are final.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Project(Base, BaseModel, TimestampMixin):
    """Fundraising project.

    collected_amount is a denormalized total of the attached donations. It is
    adjusted by deltas on donation create/delete and never recomputed on the
    write path.
    """

    __tablename__ = "projects"

    code: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, comment="Upper-case short project code"
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    goal_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, comment="Fundraising goal"
    )
    collected_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Sum of donation amounts attached to this project",
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ProjectStatus] = mapped_column(
        SQLEnum(ProjectStatus),
        nullable=False,
        default=ProjectStatus.DRAFT,
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("idx_project_status", "status"),)

    # Relationships
    members: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember", back_populates="project", cascade="all, delete-orphan"
    )
    donations: Mapped[list["Donation"]] = relationship(  # noqa: F821
        "Donation", back_populates="project"
    )
    reports: Mapped[list["Report"]] = relationship(  # noqa: F821
        "Report", back_populates="project"
    )

    def __repr__(self) -> str:
        return (
            f"<Project(id={self.id}, code={self.code}, status={self.status}, "
            f"collected={self.collected_amount}/{self.goal_amount})>"
        )


class ProjectMember(Base):
    """Membership link between a user and a project.

    Composite primary key; audit entries for this table carry the nil UUID.
    """

    __tablename__ = "project_members"

    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("projects.id"), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), primary_key=True)
    assignment_role: Mapped[str] = mapped_column(String(64), nullable=False, default="Member")
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (Index("idx_project_member_user", "user_id"),)

    project: Mapped[Project] = relationship("Project", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")  # noqa: F821

    def __repr__(self) -> str:
        return f"<ProjectMember(project_id={self.project_id}, user_id={self.user_id})>"


__all__ = ["Project", "ProjectMember", "ProjectStatus"]
