"""Integration tests for the Alembic migration chain."""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from src.models import Base
from src.services.db import create_db_engine

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "src" / "migrations"


@pytest.fixture
def migration_engine():
    engine = create_db_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


def _run(engine, action, revision):
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        action(config, revision)


class TestMigrations:
    def test_upgrade_creates_every_model_table(self, migration_engine):
        _run(migration_engine, command.upgrade, "head")

        tables = set(inspect(migration_engine).get_table_names())
        assert set(Base.metadata.tables) <= tables

    def test_upgrade_creates_polling_and_audit_indexes(self, migration_engine):
        _run(migration_engine, command.upgrade, "head")
        inspector = inspect(migration_engine)

        notification_indexes = {index["name"] for index in inspector.get_indexes("notifications")}
        audit_indexes = {index["name"] for index in inspector.get_indexes("audit_logs")}

        assert {"idx_notification_sent_channel", "idx_notification_project"} <= notification_indexes
        assert {"idx_audit_entity", "idx_audit_created_at"} <= audit_indexes

    def test_downgrade_removes_tables(self, migration_engine):
        _run(migration_engine, command.upgrade, "head")
        _run(migration_engine, command.downgrade, "base")

        assert set(inspect(migration_engine).get_table_names()) <= {"alembic_version"}
