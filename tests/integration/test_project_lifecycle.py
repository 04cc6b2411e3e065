"""Integration tests for project lifecycle, membership and scoped project reads."""

import json
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.models import AuditLog, Project, ProjectMember, ProjectStatus, Report
from src.services.donation_service import DonationRequest, DonationService
from src.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from src.services.project_service import ProjectService, ProjectUpdate, check_transition, same_instant

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 6, 30, tzinfo=timezone.utc)


def _update_from(project, **overrides):
    values = dict(
        name=project.name,
        description=project.description,
        goal_amount=project.goal_amount,
        start_date=project.start_date,
        end_date=project.end_date,
        status=project.status,
        is_archived=project.is_archived,
    )
    values.update(overrides)
    return ProjectUpdate(**values)


def _audit_count(db_session):
    return db_session.scalar(select(func.count(AuditLog.id)))


class TestTransitions:
    """Test the project status lifecycle table."""

    @pytest.mark.parametrize(
        "current, target",
        [
            (ProjectStatus.DRAFT, ProjectStatus.ACTIVE),
            (ProjectStatus.ACTIVE, ProjectStatus.COMPLETED),
            (ProjectStatus.ACTIVE, ProjectStatus.CANCELLED),
            (ProjectStatus.COMPLETED, ProjectStatus.COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (ProjectStatus.DRAFT, ProjectStatus.COMPLETED),
            (ProjectStatus.ACTIVE, ProjectStatus.DRAFT),
            (ProjectStatus.COMPLETED, ProjectStatus.ACTIVE),
            (ProjectStatus.CANCELLED, ProjectStatus.ACTIVE),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidStateTransitionError):
            check_transition(current, target)

    def test_same_instant_ignores_missing_tzinfo(self):
        assert same_instant(START, START.replace(tzinfo=None))
        assert not same_instant(START, None)
        assert same_instant(None, None)


class TestCreateProject:
    def test_create_draft_project(self, db_session, admin_identity):
        project = ProjectService(db_session, admin_identity).create_project(
            " food ", "Food Bank", Decimal("999.999"), START, END, "Weekly parcels"
        )

        assert project.code == "FOOD"
        assert project.status == ProjectStatus.DRAFT
        assert project.goal_amount == Decimal("1000.00")
        assert project.collected_amount == Decimal("0.00")

        (entry,) = db_session.scalars(select(AuditLog)).all()
        assert entry.action == "Created"
        assert json.loads(entry.changes)["code"] == {"new": "FOOD"}

    def test_duplicate_code_conflicts(self, db_session, admin_identity):
        service = ProjectService(db_session, admin_identity)
        service.create_project("DUP", "First", Decimal("10.00"), START)

        with pytest.raises(ConflictError):
            service.create_project("dup", "Second", Decimal("10.00"), START)

    @pytest.mark.parametrize("goal", [Decimal("0"), Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
    def test_goal_must_be_positive(self, db_session, admin_identity, goal):
        with pytest.raises(ValidationError):
            ProjectService(db_session, admin_identity).create_project("BAD", "Bad", goal, START)

    def test_end_before_start_rejected(self, db_session, admin_identity):
        with pytest.raises(ValidationError):
            ProjectService(db_session, admin_identity).create_project(
                "BAD", "Bad", Decimal("10.00"), START, START - timedelta(days=1)
            )

    def test_volunteer_cannot_create(self, db_session, volunteer_identity):
        with pytest.raises(ForbiddenError):
            ProjectService(db_session, volunteer_identity).create_project("V", "V", Decimal("10.00"), START)


class TestUpdateProject:
    """Test lifecycle-checked updates."""

    def test_active_project_goal_change_rejected_without_audit(self, db_session, project, admin_identity):
        service = ProjectService(db_session, admin_identity)
        service.update_project(project.id, _update_from(project, status=ProjectStatus.ACTIVE))
        before = _audit_count(db_session)

        with pytest.raises(ValidationError):
            service.update_project(project.id, _update_from(project, goal_amount=Decimal("2000.00")))

        assert _audit_count(db_session) == before
        assert db_session.get(Project, project.id).goal_amount == Decimal("1000.00")

    @pytest.mark.parametrize("goal", [Decimal("NaN"), Decimal("-Infinity")])
    def test_non_finite_goal_rejected_without_audit(self, db_session, project, admin_identity, goal):
        before = _audit_count(db_session)

        with pytest.raises(ValidationError):
            ProjectService(db_session, admin_identity).update_project(
                project.id, _update_from(project, goal_amount=goal)
            )

        assert _audit_count(db_session) == before

    def test_active_project_end_date_change_rejected(self, db_session, project, admin_identity):
        service = ProjectService(db_session, admin_identity)
        service.update_project(project.id, _update_from(project, status=ProjectStatus.ACTIVE))

        with pytest.raises(ValidationError):
            service.update_project(project.id, _update_from(project, end_date=END + timedelta(days=30)))

    def test_active_project_other_fields_editable(self, db_session, project, admin_identity):
        service = ProjectService(db_session, admin_identity)
        service.update_project(project.id, _update_from(project, status=ProjectStatus.ACTIVE))

        updated = service.update_project(project.id, _update_from(project, name="Renamed"))

        assert updated.name == "Renamed"

    def test_activation_is_audited_as_status_change(self, db_session, project, admin_identity):
        ProjectService(db_session, admin_identity).update_project(
            project.id, _update_from(project, status=ProjectStatus.ACTIVE)
        )

        (entry,) = db_session.scalars(select(AuditLog).where(AuditLog.entity_name == "Project")).all()
        changes = json.loads(entry.changes)
        assert entry.action == "Updated"
        assert changes["status"] == {"old": "draft", "new": "active"}
        assert "goal_amount" not in changes
        assert "updated_at" in changes

    def test_invalid_transition_rejected(self, db_session, project, admin_identity):
        with pytest.raises(InvalidStateTransitionError):
            ProjectService(db_session, admin_identity).update_project(
                project.id, _update_from(project, status=ProjectStatus.COMPLETED)
            )

    def test_unknown_project(self, db_session, project, admin_identity):
        with pytest.raises(NotFoundError):
            ProjectService(db_session, admin_identity).update_project(uuid.uuid4(), _update_from(project))

    def test_volunteer_member_cannot_update(self, db_session, project, volunteer_identity):
        with pytest.raises(ForbiddenError):
            ProjectService(db_session, volunteer_identity).update_project(project.id, _update_from(project))


class TestMembership:
    def test_assign_and_remove(self, db_session, project, admin_identity, outsider_user):
        service = ProjectService(db_session, admin_identity)

        member = service.assign_member(project.id, outsider_user.id, "Coordinator")
        assert member.assignment_role == "Coordinator"

        service.remove_member(project.id, outsider_user.id)
        assert db_session.get(ProjectMember, (project.id, outsider_user.id)) is None

        actions = [row.action for row in db_session.scalars(
            select(AuditLog).where(AuditLog.entity_name == "ProjectMember").order_by(AuditLog.created_at)
        )]
        assert actions == ["Created", "Deleted"]

    def test_assign_twice_conflicts(self, db_session, project, admin_identity, volunteer_user):
        with pytest.raises(ConflictError):
            ProjectService(db_session, admin_identity).assign_member(project.id, volunteer_user.id)

    def test_assign_unknown_user(self, db_session, project, admin_identity):
        with pytest.raises(NotFoundError):
            ProjectService(db_session, admin_identity).assign_member(project.id, uuid.uuid4())

    def test_remove_missing_membership(self, db_session, project, admin_identity, outsider_user):
        with pytest.raises(NotFoundError):
            ProjectService(db_session, admin_identity).remove_member(project.id, outsider_user.id)


class TestDeleteProject:
    def test_delete_removes_members_and_reports_with_audit(self, db_session, project, admin_identity, admin_user):
        db_session.add(Report(project_id=project.id, title="Kickoff", content="", created_by_id=admin_user.id))
        db_session.commit()

        ProjectService(db_session, admin_identity).delete_project(project.id)

        assert db_session.get(Project, project.id) is None
        assert db_session.scalars(select(Report)).all() == []
        deleted_kinds = sorted(
            row.entity_name for row in db_session.scalars(select(AuditLog).where(AuditLog.action == "Deleted"))
        )
        assert deleted_kinds == ["Project", "ProjectMember", "Report"]

    def test_project_with_donations_cannot_be_deleted(self, db_session, project, admin_identity, app_config):
        DonationService(db_session, admin_identity, app_config).create_donation(
            DonationRequest(project_id=project.id, amount=Decimal("1.00"))
        )

        with pytest.raises(ValidationError):
            ProjectService(db_session, admin_identity).delete_project(project.id)


class TestScopedProjectReads:
    """Test project visibility per caller."""

    @pytest.fixture
    def projects(self, make_project, volunteer_user):
        mine = make_project(code="MINE", members=[volunteer_user])
        other = make_project(code="OTHER", status=ProjectStatus.ACTIVE)
        return mine, other

    def test_administrator_sees_all(self, db_session, admin_identity, projects):
        codes = [p.code for p in ProjectService(db_session, admin_identity).list_projects(sort_by="name")]
        assert codes == ["MINE", "OTHER"]

    def test_volunteer_sees_only_member_projects(self, db_session, volunteer_identity, projects):
        service = ProjectService(db_session, volunteer_identity)
        mine, other = projects

        assert [p.code for p in service.list_projects()] == ["MINE"]
        assert service.get_project(mine.id).code == "MINE"
        with pytest.raises(NotFoundError):
            service.get_project(other.id)

    def test_outsider_sees_nothing(self, db_session, outsider_identity, projects):
        assert ProjectService(db_session, outsider_identity).list_projects() == []

    def test_filters(self, db_session, admin_identity, volunteer_user, projects):
        service = ProjectService(db_session, admin_identity)

        assert [p.code for p in service.list_projects(status=ProjectStatus.ACTIVE)] == ["OTHER"]
        assert [p.code for p in service.list_projects(member_id=volunteer_user.id)] == ["MINE"]
        assert [p.code for p in service.list_projects(search="oth")] == ["OTHER"]
        assert [p.code for p in service.list_projects(sort_by="name", descending=True)] == ["OTHER", "MINE"]
