"""Integration tests for the audit trail written at commit time."""

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from src.models import AuditLog, Project, Report
from src.services.audit_service import AuditService
from src.services.change_set import NIL_UUID
from src.services.donation_service import DonationRequest, DonationService
from src.services.errors import AuditImmutableError, ForbiddenError
from src.services.identity import identity_scope
from src.services.project_service import ProjectService
from src.services.unit_of_work import TransactionContext

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _entries(db_session, entity_name):
    return list(db_session.scalars(select(AuditLog).where(AuditLog.entity_name == entity_name)).all())


class TestAuditImmutability:
    """Audit rows are write-once."""

    @pytest.fixture
    def entry(self, db_session, admin_identity):
        ProjectService(db_session, admin_identity).create_project("AUD", "Audited", Decimal("10.00"), START)
        (entry,) = _entries(db_session, "Project")
        return entry

    def test_update_is_rejected(self, db_session, entry):
        entry.changes = "{}"
        with pytest.raises(AuditImmutableError):
            db_session.commit()
        db_session.rollback()

        assert json.loads(db_session.get(AuditLog, entry.id).changes) != {}

    def test_delete_is_rejected(self, db_session, entry):
        db_session.delete(entry)
        with pytest.raises(AuditImmutableError):
            db_session.commit()
        db_session.rollback()

        assert db_session.get(AuditLog, entry.id) is not None

    def test_audit_rows_are_never_audited(self, db_session, project, admin_identity, app_config):
        DonationService(db_session, admin_identity, app_config).create_donation(
            DonationRequest(project_id=project.id, amount=Decimal("5.00"))
        )
        DonationService(db_session, admin_identity, app_config).create_donation(
            DonationRequest(project_id=project.id, amount=Decimal("6.00"))
        )

        assert _entries(db_session, "AuditLog") == []


class TestChangeCapture:
    """Changes across several flushes of one transaction produce one entry per entity."""

    def test_created_then_edited_is_one_created_entry(self, db_session, project, admin_identity, admin_user):
        with TransactionContext(db_session, admin_identity):
            report = Report(project_id=project.id, title="Draft", content="", created_by_id=admin_user.id)
            db_session.add(report)
            db_session.flush()
            report.title = "Final"
            db_session.flush()

        (entry,) = _entries(db_session, "Report")
        assert entry.action == "Created"
        assert entry.entity_id == report.id
        assert json.loads(entry.changes)["title"] == {"new": "Final"}

    def test_created_then_deleted_leaves_no_entry(self, db_session, project, admin_identity, admin_user):
        with TransactionContext(db_session, admin_identity):
            report = Report(project_id=project.id, title="Oops", content="", created_by_id=admin_user.id)
            db_session.add(report)
            db_session.flush()
            db_session.delete(report)

        assert _entries(db_session, "Report") == []

    def test_unchanged_assignment_is_not_audited(self, db_session, project, admin_identity):
        with TransactionContext(db_session, admin_identity):
            loaded = db_session.get(Project, project.id)
            loaded.name = loaded.name

        assert _entries(db_session, "Project") == []

    def test_composite_key_entity_gets_nil_id(self, db_session, project, admin_identity, outsider_user):
        ProjectService(db_session, admin_identity).assign_member(project.id, outsider_user.id)

        (entry,) = _entries(db_session, "ProjectMember")
        assert entry.entity_id == NIL_UUID
        assert json.loads(entry.changes)["assignment_role"] == {"new": "Member"}

    def test_rolled_back_transaction_leaves_no_entry(self, db_session, admin_identity):
        with pytest.raises(ValueError):
            with TransactionContext(db_session, admin_identity):
                db_session.add(Report(project_id=uuid.uuid4(), title="Lost", content=""))
                db_session.flush()
                raise ValueError("abort")

        assert db_session.scalars(select(AuditLog)).all() == []
        assert db_session.scalars(select(Report)).all() == []


class TestActorAttribution:
    def test_anonymous_context_is_recorded_as_system(self, db_session, project):
        with TransactionContext(db_session):
            db_session.add(Report(project_id=project.id, title="Nightly", content=""))

        (entry,) = _entries(db_session, "Report")
        assert entry.performed_by == "system"
        assert entry.user_id is None

    def test_bound_identity_is_used_by_default(self, db_session, admin_identity):
        with identity_scope(admin_identity):
            ProjectService(db_session).create_project("CTX", "Context", Decimal("10.00"), START)

        (entry,) = _entries(db_session, "Project")
        assert entry.performed_by == "Ada Admin"
        assert entry.user_id == admin_identity.user_id


class TestListEntries:
    """Administrator-only audit log browsing."""

    @pytest.fixture
    def twelve_projects(self, db_session, admin_identity):
        service = ProjectService(db_session, admin_identity)
        return [service.create_project(f"P{i:02d}", f"Project {i}", Decimal("10.00"), START) for i in range(12)]

    def test_volunteer_is_forbidden(self, db_session, volunteer_identity):
        with pytest.raises(ForbiddenError):
            AuditService(db_session, volunteer_identity).list_entries()

    def test_filter_by_kind_and_id(self, db_session, admin_identity, twelve_projects):
        target = twelve_projects[3]

        entries = AuditService(db_session, admin_identity).list_entries(entity_name="project", entity_id=target.id)

        assert [entry.entity_id for entry in entries] == [target.id]

    def test_page_size_is_clamped_to_minimum(self, db_session, admin_identity, twelve_projects):
        service = AuditService(db_session, admin_identity)

        first_page = service.list_entries(page=1, page_size=1)
        second_page = service.list_entries(page=2, page_size=1)

        assert len(first_page) == 10
        assert len(second_page) == 2

    def test_newest_first(self, db_session, admin_identity, twelve_projects):
        entries = AuditService(db_session, admin_identity).list_entries(page_size=50)
        stamps = [entry.created_at for entry in entries]
        assert stamps == sorted(stamps, reverse=True)

    def test_time_range(self, db_session, admin_identity, twelve_projects):
        service = AuditService(db_session, admin_identity)
        future = datetime(2999, 1, 1, tzinfo=timezone.utc)

        assert service.list_entries(start=future) == []
        assert len(service.list_entries(end=future, page_size=50)) == 12
