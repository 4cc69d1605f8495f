"""Error taxonomy shared by the engagement core.

Every error carries enough structure for a caller to render a specific
message: which entity, which field, which state was expected.
"""

from __future__ import annotations

from typing import Any


class EngagementError(Exception):
    code = "engagement_error"

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        entity_id: str | None = None,
        field: str | None = None,
        expected_state: str | list[str] | None = None,
        current_state: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id
        self.field = field
        self.expected_state = expected_state
        self.current_state = current_state

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        for key in ("entity", "entity_id", "field", "expected_state", "current_state"):
            value = getattr(self, key)
            if value is not None:
                detail[key] = value
        return detail


class ValidationError(EngagementError):
    """Malformed or missing input."""

    code = "validation_error"


class ConflictError(EngagementError):
    """Would violate the one-invitation-per-worker-per-project rule."""

    code = "conflict"


class NotFoundError(EngagementError):
    """Referenced entity is absent or not owned by the caller."""

    code = "not_found"


class StateError(EngagementError):
    """Operation is illegal from the entity's current lifecycle state."""

    code = "invalid_state"


class ExpiredError(EngagementError):
    """Invitation is past its response window."""

    code = "expired"


class AuthorizationError(EngagementError):
    """Actor role does not match the operation."""

    code = "forbidden"
