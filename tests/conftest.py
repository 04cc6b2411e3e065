"""Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database (StaticPool, so all
sessions share one connection) with the schema created from the models.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.models import Base, NotificationChannel, Project, ProjectMember, ProjectStatus, Role, User
from src.services.config import AppConfig
from src.services.db import create_db_engine, create_session_factory, init_schema
from src.services.identity import CallerIdentity, RoleName


@pytest.fixture
def engine():
    """In-memory engine with all tables created."""
    test_engine = create_db_engine("sqlite:///:memory:")
    init_schema(test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    """Provide a test database session."""
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def app_config():
    """Configuration with both channels and US formatting."""
    return AppConfig(
        database_url="sqlite:///:memory:",
        notification_channels=[NotificationChannel.EMAIL, NotificationChannel.SMS],
        locale="en_US",
        currency="USD",
    )


@pytest.fixture
def roles(db_session):
    """Administrator and Volunteer roles, inserted directly (not audited)."""
    admin = Role(id=uuid.uuid4(), name=RoleName.ADMINISTRATOR)
    volunteer = Role(id=uuid.uuid4(), name=RoleName.VOLUNTEER)
    db_session.add_all([admin, volunteer])
    db_session.commit()
    return {RoleName.ADMINISTRATOR: admin, RoleName.VOLUNTEER: volunteer}


def _make_user(db_session, role, user_name, first_name, last_name):
    user = User(
        id=uuid.uuid4(),
        user_name=user_name,
        email=f"{user_name}@example.org",
        first_name=first_name,
        last_name=last_name,
        role_id=role.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_user(db_session, roles):
    return _make_user(db_session, roles[RoleName.ADMINISTRATOR], "ada", "Ada", "Admin")


@pytest.fixture
def volunteer_user(db_session, roles):
    return _make_user(db_session, roles[RoleName.VOLUNTEER], "vera", "Vera", "Volunteer")


@pytest.fixture
def outsider_user(db_session, roles):
    """Volunteer who is not a member of any project."""
    return _make_user(db_session, roles[RoleName.VOLUNTEER], "otto", "Otto", "Outsider")


@pytest.fixture
def admin_identity(admin_user):
    return CallerIdentity(user_id=admin_user.id, display_name="Ada Admin", role=RoleName.ADMINISTRATOR)


@pytest.fixture
def volunteer_identity(volunteer_user):
    return CallerIdentity(user_id=volunteer_user.id, display_name="Vera Volunteer", role=RoleName.VOLUNTEER)


@pytest.fixture
def outsider_identity(outsider_user):
    return CallerIdentity(user_id=outsider_user.id, display_name="Otto Outsider", role=RoleName.VOLUNTEER)


@pytest.fixture
def make_project(db_session):
    """Factory inserting a project directly, bypassing services and audit."""

    def _make(code="P1", goal=Decimal("1000.00"), status=ProjectStatus.DRAFT, members=()):
        project = Project(
            id=uuid.uuid4(),
            code=code,
            name=f"Project {code}",
            description="",
            goal_amount=goal,
            collected_amount=Decimal("0.00"),
            start_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2026, 12, 31, tzinfo=timezone.utc),
            status=status,
        )
        db_session.add(project)
        for user in members:
            db_session.add(ProjectMember(project_id=project.id, user_id=user.id))
        db_session.commit()
        return project

    return _make


@pytest.fixture
def project(make_project, volunteer_user):
    """Draft project P (goal 1000.00) with the volunteer as its only member."""
    return make_project(members=[volunteer_user])
