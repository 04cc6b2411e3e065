"""Transaction context: one atomic unit for a state-changing command.

Usage:
    with TransactionContext(db, identity) as tx:
        db.add(donation)
        ...
    # committed together with its audit entries, or rolled back entirely

The context listens to before_flush on the session it was given (and only
while it is open), so every flush inside the command contributes to the
same change set. Audit entries are recorded exactly once, at commit, after
all business mutations are staged and before they become durable.
"""

import logging

from sqlalchemy import event
from sqlalchemy.orm import Session

from src.services.audit_service import AuditService
from src.services.change_set import EntityChangeSet
from src.services.identity import CallerIdentity, current_identity

logger = logging.getLogger(__name__)


class TransactionContext:
    """Explicit unit of work collecting change records for one transaction."""

    def __init__(self, session: Session, identity: CallerIdentity | None = None):
        self.session = session
        self.identity = identity or current_identity()
        self.change_set = EntityChangeSet()
        self._listening = False
        self._finished = False

    def __enter__(self) -> "TransactionContext":
        event.listen(self.session, "before_flush", self._before_flush)
        self._listening = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._stop_listening()
        return False

    def _before_flush(self, session: Session, flush_context, instances) -> None:
        self.change_set.capture(session)

    def _stop_listening(self) -> None:
        if self._listening:
            event.remove(self.session, "before_flush", self._before_flush)
            self._listening = False

    def commit(self) -> None:
        """Flush staged changes, record audit entries and commit atomically."""
        if self._finished:
            raise RuntimeError("Transaction context already finished")
        try:
            self.session.flush()
            self.change_set.refresh_entity_ids()
            entries = AuditService(self.session).record_changes(self.change_set, self.identity)
            self.session.flush()
            self.session.commit()
        except Exception:
            logger.error("Commit failed; rolling back transaction", exc_info=True)
            self.session.rollback()
            raise
        finally:
            self._finished = True
        logger.debug(
            "Committed %d changed entities with %d audit entries",
            len(self.change_set),
            len(entries),
        )

    def rollback(self) -> None:
        """Discard every staged change, including drafted audit rows."""
        if self._finished:
            return
        self._finished = True
        self.session.rollback()
        logger.debug("Transaction rolled back")


__all__ = ["TransactionContext"]
