"""Report service: scoped reads plus author ownership on writes."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import Project, ProjectMember, Report, User, utcnow
from src.services.access_scope import scope_for
from src.services.errors import ForbiddenError, IntegrityViolationError, NotFoundError, ValidationError
from src.services.identity import CallerIdentity, current_identity
from src.services.unit_of_work import TransactionContext

logger = logging.getLogger(__name__)


class ReportService:
    """Service for project report operations.

    Two checks guard every write: the report's project must be in the
    caller's scope, and a volunteer must also be the report's author.
    Failing either on a write is forbidden; reads of out-of-scope reports
    are not found.
    """

    def __init__(self, db: Session, identity: CallerIdentity | None = None):
        self.db = db
        self.identity = identity or current_identity()
        self.scope = scope_for(self.identity)

    def list_reports(self, project_id: uuid.UUID | None = None) -> list[Report]:
        """Reports visible to the caller, newest first."""
        stmt = self.scope.apply(select(Report), Report)
        if project_id is not None:
            stmt = stmt.where(Report.project_id == project_id)
        stmt = stmt.order_by(Report.created_at.desc())
        return list(self.db.scalars(stmt).all())

    def get_report(self, report_id: uuid.UUID) -> Report:
        stmt = self.scope.apply(select(Report).where(Report.id == report_id), Report)
        report = self.db.scalars(stmt).first()
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    def _load_for_write(self, report_id: uuid.UUID) -> Report:
        report = self.db.get(Report, report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        if not self.scope.permits(report):
            raise ForbiddenError("Report belongs to a project outside your access scope")
        if not self.scope.is_unrestricted and report.created_by_id != self.scope.user_id:
            raise ForbiddenError("Only the author may change this report")
        return report

    def create_report(
        self,
        project_id: uuid.UUID,
        title: str,
        content: str,
        created_by_id: uuid.UUID,
        is_public: bool = False,
    ) -> Report:
        """Create a report for a project.

        Volunteers may only write as themselves and only for their projects.

        Raises:
            IntegrityViolationError: Project does not exist
            ValidationError: Blank title
            ForbiddenError: Caller out of scope or writing on behalf of someone else
            NotFoundError: Author does not exist
        """
        if not title.strip():
            raise ValidationError("Report title is required")

        with TransactionContext(self.db, self.identity):
            project = self.db.get(Project, project_id)
            if project is None:
                raise IntegrityViolationError(f"Project {project_id} not found")

            if self.scope.denies_all:
                raise ForbiddenError("Caller is not allowed to write reports")
            if not self.scope.is_unrestricted:
                if created_by_id != self.scope.user_id:
                    raise ForbiddenError("Reports can only be written on your own behalf")
                if self.db.get(ProjectMember, (project.id, self.scope.user_id)) is None:
                    raise ForbiddenError("Reports can only be written for your own projects")
            elif self.db.get(User, created_by_id) is None:
                raise NotFoundError(f"Report author {created_by_id} not found")

            report = Report(
                id=uuid.uuid4(),
                project_id=project.id,
                created_by_id=created_by_id,
                title=title.strip(),
                content=content.strip(),
                created_at=utcnow(),
                is_public=is_public,
            )
            self.db.add(report)

        logger.info("Report %s created for project %s", report.id, project_id)
        return report

    def update_report(
        self,
        report_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool,
        published_at: datetime | None = None,
    ) -> Report:
        """Replace a report's editable fields."""
        if not title.strip():
            raise ValidationError("Report title is required")

        with TransactionContext(self.db, self.identity):
            report = self._load_for_write(report_id)
            report.title = title.strip()
            report.content = content.strip()
            report.is_public = is_public
            report.published_at = published_at

        return report

    def delete_report(self, report_id: uuid.UUID) -> None:
        with TransactionContext(self.db, self.identity):
            report = self._load_for_write(report_id)
            self.db.delete(report)

        logger.info("Report %s deleted", report_id)


__all__ = ["ReportService"]
