"""Project service: scoped reads, lifecycle-checked updates and membership."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from src.models import Donation, Project, ProjectMember, ProjectStatus, Report, User, utcnow
from src.services.access_scope import scope_for
from src.services.aggregate_service import normalize_amount
from src.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from src.services.identity import CallerIdentity, current_identity
from src.services.unit_of_work import TransactionContext

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.DRAFT: frozenset({ProjectStatus.ACTIVE}),
    ProjectStatus.ACTIVE: frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset(),
}

SORT_COLUMNS = {
    "name": Project.name,
    "goal": Project.goal_amount,
    "status": Project.status,
    "collected": Project.collected_amount,
    "created": Project.created_at,
}


@dataclass
class ProjectUpdate:
    """Full replacement of a project's editable fields."""

    name: str
    description: str
    goal_amount: Decimal
    start_date: datetime
    end_date: datetime | None
    status: ProjectStatus
    is_archived: bool = False


def same_instant(a: datetime | None, b: datetime | None) -> bool:
    """Compare datetimes, treating naive values (as read back from SQLite) as UTC."""
    if a is None or b is None:
        return a is b
    if a.tzinfo is None:
        a = a.replace(tzinfo=timezone.utc)
    if b.tzinfo is None:
        b = b.replace(tzinfo=timezone.utc)
    return a == b


def check_transition(current: ProjectStatus, target: ProjectStatus) -> None:
    """Raise if the lifecycle does not allow current -> target.

    Keeping the same status is always allowed.
    """
    if current == target:
        return
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Project status cannot change from {current.value} to {target.value}"
        )


class ProjectService:
    """Service for project operations.

    Reads of projects outside the caller's scope report not-found; every
    mutation is administrator-only.
    """

    def __init__(self, db: Session, identity: CallerIdentity | None = None):
        self.db = db
        self.identity = identity or current_identity()
        self.scope = scope_for(self.identity)

    def _require_administrator(self, action: str) -> None:
        if not self.scope.is_unrestricted:
            raise ForbiddenError(f"Only administrators may {action}")

    def _load(self, project_id: uuid.UUID) -> Project:
        project = self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        member_id: uuid.UUID | None = None,
        start_from: datetime | None = None,
        end_to: datetime | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        descending: bool = False,
    ) -> list[Project]:
        """List projects visible to the caller.

        Args:
            status: Only projects in this status
            member_id: Only projects this user is a member of
            start_from: Only projects starting at or after this moment
            end_to: Only projects ending at or before this moment (or open-ended)
            search: Case-insensitive substring of name, code or description
            sort_by: name, goal, status, collected or created (default)
            descending: Reverse the sort order
        """
        stmt = self.scope.apply(select(Project), Project)

        if status is not None:
            stmt = stmt.where(Project.status == status)
        if member_id is not None:
            stmt = stmt.where(
                Project.id.in_(select(ProjectMember.project_id).where(ProjectMember.user_id == member_id))
            )
        if start_from is not None:
            stmt = stmt.where(Project.start_date >= start_from)
        if end_to is not None:
            stmt = stmt.where(or_(Project.end_date <= end_to, Project.end_date.is_(None)))
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Project.name).like(term),
                    func.lower(Project.code).like(term),
                    func.lower(Project.description).like(term),
                )
            )

        column = SORT_COLUMNS.get((sort_by or "").lower(), Project.created_at)
        stmt = stmt.order_by(column.desc() if descending else column.asc())
        return list(self.db.scalars(stmt).all())

    def get_project(self, project_id: uuid.UUID) -> Project:
        """Get a project; out-of-scope projects are reported as not found."""
        stmt = self.scope.apply(select(Project).where(Project.id == project_id), Project)
        project = self.db.scalars(stmt).first()
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    def create_project(
        self,
        code: str,
        name: str,
        goal_amount: Decimal,
        start_date: datetime,
        end_date: datetime | None = None,
        description: str = "",
    ) -> Project:
        """Create a draft project.

        Raises:
            ForbiddenError: Caller is not an administrator
            ValidationError: Goal is not positive or code/name is blank
            ConflictError: A project with the same code exists
        """
        self._require_administrator("create projects")
        goal = normalize_amount(goal_amount)
        if goal <= 0:
            raise ValidationError("Goal amount must be positive")
        normalized_code = code.strip().upper()
        if not normalized_code or not name.strip():
            raise ValidationError("Project code and name are required")
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date must not precede start date")

        with TransactionContext(self.db, self.identity):
            exists = self.db.scalars(select(Project.id).where(Project.code == normalized_code)).first()
            if exists is not None:
                raise ConflictError(f"Project with code {normalized_code} already exists")

            project = Project(
                id=uuid.uuid4(),
                code=normalized_code,
                name=name.strip(),
                description=description.strip(),
                goal_amount=goal,
                collected_amount=Decimal("0.00"),
                start_date=start_date,
                end_date=end_date,
                status=ProjectStatus.DRAFT,
                is_archived=False,
            )
            self.db.add(project)

        logger.info("Created project %s (%s)", project.code, project.id)
        return project

    def update_project(self, project_id: uuid.UUID, update: ProjectUpdate) -> Project:
        """Replace a project's editable fields.

        While a project is active its goal amount and end date are frozen;
        a request changing either is rejected before anything is written.

        Raises:
            ForbiddenError: Caller is not an administrator
            NotFoundError: No such project
            InvalidStateTransitionError: Status change not allowed
            ValidationError: Active project goal/end date change
        """
        self._require_administrator("update projects")
        goal = normalize_amount(update.goal_amount)
        if goal <= 0:
            raise ValidationError("Goal amount must be positive")

        with TransactionContext(self.db, self.identity):
            project = self._load(project_id)

            if project.status == ProjectStatus.ACTIVE and (
                project.goal_amount != goal or not same_instant(project.end_date, update.end_date)
            ):
                raise ValidationError("Goal amount and end date of an active project cannot change")
            check_transition(project.status, update.status)

            project.name = update.name.strip()
            project.description = update.description.strip()
            if not same_instant(project.start_date, update.start_date):
                project.start_date = update.start_date
            project.is_archived = update.is_archived
            project.goal_amount = goal
            if not same_instant(project.end_date, update.end_date):
                project.end_date = update.end_date
            project.status = update.status

        return project

    def assign_member(
        self, project_id: uuid.UUID, user_id: uuid.UUID, assignment_role: str | None = None
    ) -> ProjectMember:
        """Add a user to a project's members.

        Raises:
            ForbiddenError: Caller is not an administrator
            NotFoundError: No such project or user
            ConflictError: User already a member
        """
        self._require_administrator("assign project members")

        with TransactionContext(self.db, self.identity):
            project = self._load(project_id)
            if self.db.get(User, user_id) is None:
                raise NotFoundError(f"User {user_id} not found")
            if self.db.get(ProjectMember, (project.id, user_id)) is not None:
                raise ConflictError("User is already a member of this project")

            member = ProjectMember(
                project_id=project.id,
                user_id=user_id,
                assignment_role=(assignment_role or "").strip() or "Member",
                assigned_at=utcnow(),
            )
            self.db.add(member)

        return member

    def remove_member(self, project_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Remove a user from a project's members."""
        self._require_administrator("remove project members")

        with TransactionContext(self.db, self.identity):
            member = self.db.get(ProjectMember, (project_id, user_id))
            if member is None:
                raise NotFoundError("Membership not found")
            self.db.delete(member)

    def delete_project(self, project_id: uuid.UUID) -> None:
        """Delete a project without donations, with its members and reports.

        Raises:
            ValidationError: The project still has donations
        """
        self._require_administrator("delete projects")

        with TransactionContext(self.db, self.identity):
            project = self._load(project_id)
            has_donations = self.db.scalars(
                select(Donation.id).where(Donation.project_id == project.id).limit(1)
            ).first()
            if has_donations is not None:
                raise ValidationError("Project with donations cannot be deleted")

            for report in list(self.db.scalars(select(Report).where(Report.project_id == project.id))):
                self.db.delete(report)
            for member in list(project.members):
                self.db.delete(member)
            self.db.delete(project)

        logger.info("Deleted project %s", project_id)


__all__ = ["ALLOWED_TRANSITIONS", "ProjectService", "ProjectUpdate", "check_transition", "same_instant"]
