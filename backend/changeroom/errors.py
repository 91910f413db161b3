"""
Typed errors raised by the reconciliation core.

Every error carries the entity it concerns and the action that was
attempted, so the HTTP layer (or any other caller) can render a precise
message without parsing strings. The core never retries; callers decide.
"""
from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for all core errors."""

    http_status = 400
    code = "reconciliation_error"

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
        attempted: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempted = attempted

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "attempted": self.attempted,
        }


class ValidationError(ReconciliationError):
    """Malformed input (empty barcode, unknown outcome, ...)."""

    http_status = 400
    code = "validation_error"


class NotFoundError(ReconciliationError):
    """Referenced session, item or barcode-in-session does not exist."""

    http_status = 404
    code = "not_found"


class ConflictError(ReconciliationError):
    """Action violates a uniqueness or exclusivity invariant."""

    http_status = 409
    code = "conflict"


class StateError(ReconciliationError):
    """Action attempted from a state that forbids it."""

    http_status = 409
    code = "invalid_state"
