"""Audit log model: append-only per-field change history."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel, utcnow


class AuditLog(Base, BaseModel):
    """Audit log entry describing one changed entity in one transaction.

    Written only by AuditService.record_changes at commit time. Rows are
    write-once: ORM updates and deletes are rejected.
    """

    __tablename__ = "audit_logs"

    entity_name: Mapped[str] = mapped_column(String(128), nullable=False)
    """Entity kind: "Project", "Donation", etc."""

    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    """Primary key of the audited entity; nil UUID for composite keys."""

    action: Mapped[str] = mapped_column(String(16), nullable=False)
    """Created, Updated or Deleted."""

    changes: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    """JSON object: {"amount": {"old": "400.00"}} for deletions, etc."""

    performed_by: Mapped[str] = mapped_column(String(256), nullable=False, default="system")
    """Display name of the actor, "system" when no caller is known."""

    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    """Acting user id. None for system actions."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_audit_entity", "entity_name", "entity_id"),
        Index("idx_audit_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_name={self.entity_name}, entity_id={self.entity_id}, "
            f"action={self.action}, performed_by={self.performed_by}, created_at={self.created_at})>"
        )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target) -> None:
    from src.services.errors import AuditImmutableError

    raise AuditImmutableError(f"Audit entry {target.id} is write-once and cannot be updated")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target) -> None:
    from src.services.errors import AuditImmutableError

    raise AuditImmutableError(f"Audit entry {target.id} is write-once and cannot be deleted")


__all__ = ["AuditLog"]
