"""Typed service errors shared by the entitlement, upgrade and note services."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class NotesServiceError(RuntimeError):
    """Base error carrying a stable ``code`` and the HTTP status it maps to."""

    status_code = 400
    default_code = "service.error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.extra: Dict[str, Any] = dict(extra or {})

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        detail.update(self.extra)
        return detail


class ValidationError(NotesServiceError):
    """Missing or malformed input. Not retryable."""

    status_code = 400
    default_code = "validation.failed"


class ConflictError(NotesServiceError):
    """A state precondition did not hold (duplicate request, already pro, ...)."""

    status_code = 409
    default_code = "state.conflict"


class InvalidStateError(ConflictError):
    """The upgrade request is not in the state the transition needs."""

    default_code = "upgrade.not_pending"


class LimitReachedError(NotesServiceError):
    """The free note ceiling has been reached for this tenant."""

    status_code = 403
    default_code = "note.limit_reached"


class ForbiddenError(NotesServiceError):
    """Role or tenant boundary violation. Always surfaced to the caller."""

    status_code = 403
    default_code = "rbac.forbidden"


class NotFoundError(NotesServiceError):
    status_code = 404
    default_code = "resource.not_found"


class InternalError(NotesServiceError):
    """Storage failure. The message stays generic; details go to the log."""

    status_code = 500
    default_code = "internal.error"


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "InvalidStateError",
    "LimitReachedError",
    "NotFoundError",
    "NotesServiceError",
    "ValidationError",
]
