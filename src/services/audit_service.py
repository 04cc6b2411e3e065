"""Audit service: turns a transaction's change set into write-once audit rows."""

import json
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models import utcnow
from src.models.audit_log import AuditLog
from src.services.access_scope import scope_for
from src.services.change_set import EntityChangeSet, FieldDiff
from src.services.errors import ForbiddenError
from src.services.identity import CallerIdentity, current_identity

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 500


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_diffs(entity_kind: str, diffs: dict[str, FieldDiff]) -> str:
    """Serialize field diffs to JSON, falling back to string forms.

    A value that cannot be encoded never aborts the commit: the entity's
    diff is re-encoded with str() for unknown types, and as a last resort
    stored as the repr of the whole mapping.
    """
    payload = {name: diff.to_dict() for name, diff in diffs.items()}
    try:
        return json.dumps(payload, default=_json_default, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError) as e:
        logger.warning("Audit diff for %s not JSON-serializable (%s); using string form", entity_kind, e)
    try:
        return json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return repr(payload)


class AuditService:
    """Service for audit log operations.

    record_changes is the only way audit rows are created. There is no update
    or delete API; the model itself rejects ORM updates and deletes.
    """

    def __init__(self, db: Session, identity: CallerIdentity | None = None):
        self.db = db
        self.identity = identity

    def record_changes(
        self, change_set: EntityChangeSet, actor: CallerIdentity | None = None
    ) -> list[AuditLog]:
        """Append one audit row per changed entity to the current transaction.

        Args:
            change_set: Changes captured for this transaction
            actor: Acting caller; entries are attributed to "system" without one

        Returns:
            Audit rows added to the session (not yet flushed)
        """
        actor = actor or CallerIdentity()
        performed_by = actor.display_name or SYSTEM_ACTOR
        now = utcnow()

        entries = []
        for change in change_set:
            if not change.field_diffs:
                continue
            entries.append(
                AuditLog(
                    id=uuid.uuid4(),
                    entity_name=change.entity_kind,
                    entity_id=change.entity_id,
                    action=change.change_kind.value,
                    changes=serialize_diffs(change.entity_kind, change.field_diffs),
                    performed_by=performed_by,
                    user_id=actor.user_id,
                    created_at=now,
                )
            )

        if entries:
            self.db.add_all(entries)
            logger.debug("Recorded %d audit entries by %s", len(entries), performed_by)
        return entries

    def list_entries(
        self,
        entity_name: str | None = None,
        entity_id: uuid.UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        page_size: int = 100,
    ) -> list[AuditLog]:
        """List audit entries, newest first. Administrators only.

        Page numbers start at 1; page_size is clamped to [10, 500].
        """
        scope = scope_for(self.identity or current_identity())
        if not scope.is_unrestricted:
            raise ForbiddenError("Audit log is available to administrators only")

        page = max(page, 1)
        page_size = min(max(page_size, MIN_PAGE_SIZE), MAX_PAGE_SIZE)

        stmt = select(AuditLog)
        if entity_name and entity_name.strip():
            stmt = stmt.where(func.lower(AuditLog.entity_name) == entity_name.strip().lower())
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)
        if start is not None:
            stmt = stmt.where(AuditLog.created_at >= start)
        if end is not None:
            stmt = stmt.where(AuditLog.created_at <= end)

        stmt = (
            stmt.order_by(AuditLog.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(self.db.scalars(stmt).all())


__all__ = ["AuditService", "SYSTEM_ACTOR", "serialize_diffs"]
