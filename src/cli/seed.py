"""CLI entry point for seeding a development database.

Creates the schema (if missing), the two well-known roles, a few users,
projects and donations. Everything goes through the services, so the
seeded data carries the same totals, notifications and audit trail
("system" actor) as live data.

Usage:
    python -m src.cli.seed

Exit Codes:
    0 - Success: Database seeded
    1 - Failure: Error encountered; the failing step was rolled back

Logging:
    INFO level logs to both stdout and logs/seed.log
"""

import sys
import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import DonationMethod, Project, ProjectStatus, Role, User, utcnow
from src.services.config import AppConfig, load_config
from src.services.db import create_db_engine, create_session_factory, init_schema
from src.services.donation_service import DonationRequest, DonationService
from src.services.identity import CallerIdentity, RoleName
from src.services.logging import setup_logging
from src.services.project_service import ProjectService, ProjectUpdate
from src.services.unit_of_work import TransactionContext

# Seeding runs as a system administrator: full scope, audited as "system"
SEED_IDENTITY = CallerIdentity(role=RoleName.ADMINISTRATOR)

SEED_USERS = [
    ("admin", "admin@example.org", "Ada", "Admin", RoleName.ADMINISTRATOR),
    ("vera", "vera@example.org", "Vera", "Volunteer", RoleName.VOLUNTEER),
    ("victor", "victor@example.org", "Victor", "Helper", RoleName.VOLUNTEER),
]

SEED_PROJECTS = [
    ("SCHOOL", "School supplies", Decimal("5000.00"), ["vera"]),
    ("SHELTER", "Animal shelter roof", Decimal("12000.00"), ["vera", "victor"]),
]


def seed_users(db: Session, logger) -> dict[str, User]:
    """Create roles and users that do not exist yet."""
    with TransactionContext(db, SEED_IDENTITY):
        roles = {role.name: role for role in db.scalars(select(Role))}
        for name in (RoleName.ADMINISTRATOR, RoleName.VOLUNTEER):
            if name not in roles:
                roles[name] = Role(id=uuid.uuid4(), name=name)
                db.add(roles[name])

        users = {user.user_name: user for user in db.scalars(select(User))}
        for user_name, email, first_name, last_name, role_name in SEED_USERS:
            if user_name in users:
                continue
            users[user_name] = User(
                user_name=user_name,
                email=email,
                first_name=first_name,
                last_name=last_name,
                role_id=roles[role_name].id,
            )
            db.add(users[user_name])

    logger.info(f"Seeded {len(users)} users")
    return users


def seed_projects(db: Session, users: dict[str, User], config: AppConfig, logger) -> int:
    """Create and activate seed projects, assign members and record one donation each."""
    projects = ProjectService(db, SEED_IDENTITY)
    donations = DonationService(db, SEED_IDENTITY, config)
    start = utcnow()
    created = 0

    for code, name, goal, member_names in SEED_PROJECTS:
        if db.scalars(select(Project.id).where(Project.code == code)).first() is not None:
            logger.info(f"Project {code} already exists, skipping")
            continue

        project = projects.create_project(code, name, goal, start, start + timedelta(days=90))
        for member_name in member_names:
            projects.assign_member(project.id, users[member_name].id)
        projects.update_project(
            project.id,
            ProjectUpdate(
                name=project.name,
                description=project.description,
                goal_amount=project.goal_amount,
                start_date=project.start_date,
                end_date=project.end_date,
                status=ProjectStatus.ACTIVE,
            ),
        )
        donations.create_donation(
            DonationRequest(
                project_id=project.id,
                amount=Decimal("250.00"),
                method=DonationMethod.BANK_TRANSFER,
                user_id=users[member_names[0]].id,
                donor_name=users[member_names[0]].display_name,
            )
        )
        created += 1

    logger.info(f"Seeded {created} projects")
    return created


def main() -> int:
    """
    Main entry point for database seeding CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    logger = setup_logging("logs/seed.log")
    try:
        logger.info("Starting database seed...")
        config = load_config()
        logger.info(f"Configuration loaded: database={config.database_url}")

        engine = create_db_engine(config.database_url)
        init_schema(engine)
        db = create_session_factory(engine)()
        try:
            users = seed_users(db, logger)
            seed_projects(db, users, config, logger)
        finally:
            db.close()
            engine.dispose()

        logger.info("Seed complete")
        return 0

    except KeyboardInterrupt:
        logger.warning("Seed interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Seed failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
