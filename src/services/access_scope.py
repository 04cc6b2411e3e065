"""Role-scoped visibility for projects, donations, reports, notifications and the dashboard.

Every service builds its queries through an AccessScope instead of comparing
role strings itself:

- Administrator (any letter case): everything is visible and writable.
- Volunteer with a user id: only rows whose project has a membership record
  for that user.
- Anything else, including a volunteer without a user id: nothing (fail closed).
  The delivery worker also sees no scoped rows; can_process_delivery grants it
  the pending notification queue only.

Reads of an out-of-scope row report not-found; mutations report forbidden.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import Select, false, select, true
from sqlalchemy.sql.elements import ColumnElement

from src.models import Donation, Notification, Project, ProjectMember, Report
from src.services.identity import CallerIdentity, RoleName

logger = logging.getLogger(__name__)


class ScopeMode(str, Enum):
    """How much of the data a caller can reach."""

    ALL = "all"
    MEMBER = "member"
    NONE = "none"


# Column holding the owning project id, per scoped entity
_PROJECT_COLUMN = {
    Project: Project.id,
    Donation: Donation.project_id,
    Report: Report.project_id,
    Notification: Notification.project_id,
}


@dataclass(frozen=True)
class AccessScope:
    """Visibility predicate for one caller."""

    mode: ScopeMode
    user_id: uuid.UUID | None = None

    @property
    def is_unrestricted(self) -> bool:
        return self.mode == ScopeMode.ALL

    @property
    def denies_all(self) -> bool:
        return self.mode == ScopeMode.NONE

    def member_project_ids(self) -> Select:
        """Subquery of project ids the caller is a member of."""
        return select(ProjectMember.project_id).where(ProjectMember.user_id == self.user_id)

    def clause(self, entity: type) -> ColumnElement[bool]:
        """SQL predicate restricting rows of a scoped entity to this scope."""
        if entity not in _PROJECT_COLUMN:
            raise ValueError(f"{entity.__name__} is not a scoped entity")
        if self.mode == ScopeMode.ALL:
            return true()
        if self.mode == ScopeMode.NONE:
            return false()
        return _PROJECT_COLUMN[entity].in_(self.member_project_ids())

    def apply(self, stmt: Select, entity: type) -> Select:
        """Add the scope predicate to a select over a scoped entity."""
        if self.mode == ScopeMode.ALL:
            return stmt
        return stmt.where(self.clause(entity))

    def permits_project(self, member_ids) -> bool:
        """In-memory check against the user ids of a project's members."""
        if self.mode == ScopeMode.ALL:
            return True
        if self.mode == ScopeMode.NONE:
            return False
        return self.user_id in set(member_ids)

    def permits(self, row) -> bool:
        """In-memory check for a loaded Project, Donation, Report or Notification."""
        if self.mode == ScopeMode.ALL:
            return True
        if self.mode == ScopeMode.NONE:
            return False
        project = row if isinstance(row, Project) else getattr(row, "project", None)
        if project is None:
            return False
        return self.permits_project(member.user_id for member in project.members)


ADMINISTRATOR_SCOPE = AccessScope(ScopeMode.ALL)
DENY_ALL_SCOPE = AccessScope(ScopeMode.NONE)


def scope_predicate(role: str | None, caller_user_id: uuid.UUID | None) -> AccessScope:
    """Build the visibility predicate for a (role, user id) pair."""
    normalized = (role or "").strip().casefold()
    if normalized == RoleName.ADMINISTRATOR.casefold():
        return ADMINISTRATOR_SCOPE
    if normalized == RoleName.VOLUNTEER.casefold():
        if caller_user_id is None:
            logger.warning("Volunteer caller without user id; denying all access")
            return DENY_ALL_SCOPE
        return AccessScope(ScopeMode.MEMBER, caller_user_id)
    return DENY_ALL_SCOPE


def scope_for(identity: CallerIdentity) -> AccessScope:
    """Visibility predicate for a caller identity."""
    return scope_predicate(identity.role, identity.user_id)


def can_process_delivery(identity: CallerIdentity) -> bool:
    """Whether a caller may read the pending queue and acknowledge delivery.

    Only administrators and the delivery worker qualify; a caller without a
    role is refused.
    """
    if scope_for(identity).is_unrestricted:
        return True
    return (identity.role or "").strip().casefold() == RoleName.DELIVERY_WORKER.casefold()


__all__ = [
    "ADMINISTRATOR_SCOPE",
    "DENY_ALL_SCOPE",
    "AccessScope",
    "ScopeMode",
    "can_process_delivery",
    "scope_for",
    "scope_predicate",
]
