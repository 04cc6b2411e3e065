"""Caller identity for the current request.

The request layer binds the authenticated caller with identity_scope();
everything outside a request (seeding, migrations) sees ANONYMOUS and is
audited as "system". The notification delivery worker runs as
DELIVERY_WORKER, also audited as "system".
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator


class RoleName:
    """Well-known role names."""

    ADMINISTRATOR = "Administrator"
    VOLUNTEER = "Volunteer"
    DELIVERY_WORKER = "DeliveryWorker"


@dataclass(frozen=True)
class CallerIdentity:
    """Who is making the current request."""

    user_id: uuid.UUID | None = None
    display_name: str | None = None
    role: str | None = None


ANONYMOUS = CallerIdentity()
DELIVERY_WORKER = CallerIdentity(role=RoleName.DELIVERY_WORKER)

_current_identity: ContextVar[CallerIdentity] = ContextVar("current_identity", default=ANONYMOUS)


def current_identity() -> CallerIdentity:
    """Identity bound to the current context, ANONYMOUS if none."""
    return _current_identity.get()


@contextmanager
def identity_scope(identity: CallerIdentity) -> Iterator[CallerIdentity]:
    """Bind identity for the duration of a request."""
    token = _current_identity.set(identity)
    try:
        yield identity
    finally:
        _current_identity.reset(token)


__all__ = [
    "ANONYMOUS",
    "CallerIdentity",
    "DELIVERY_WORKER",
    "RoleName",
    "current_identity",
    "identity_scope",
]
