"""Custom exception classes for write-path and access errors.

Provides domain-specific exceptions for clear error handling and reporting.
Each error carries a stable machine-readable code.
"""


class ConsistencyError(Exception):
    """Base exception for service-layer errors."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ConsistencyError):
    """Entity does not exist or is outside the caller's read scope."""

    code = "not_found"


class IntegrityViolationError(NotFoundError):
    """Write references an entity that does not exist (e.g. missing project)."""

    code = "invalid_reference"


class ForbiddenError(ConsistencyError):
    """Caller may see the entity but is not allowed to change it."""

    code = "forbidden"


class ValidationError(ConsistencyError):
    """Request data violates a business rule."""

    code = "validation_error"


class InvalidStateTransitionError(ValidationError):
    """Project status change not allowed by the lifecycle."""

    code = "invalid_state_transition"


class ConflictError(ConsistencyError):
    """Write collides with existing data (duplicate code, existing membership)."""

    code = "conflict"


class AuditImmutableError(ConsistencyError):
    """Attempt to modify or delete a write-once audit entry."""

    code = "audit_immutable"


__all__ = [
    "ConsistencyError",
    "NotFoundError",
    "IntegrityViolationError",
    "ForbiddenError",
    "ValidationError",
    "InvalidStateTransitionError",
    "ConflictError",
    "AuditImmutableError",
]
