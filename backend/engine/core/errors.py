"""Controlled errors for the moderation pipeline.

Every error carries the HTTP status it maps to so the API layer can render it
without a lookup table. Engine code raises these; only the API layer renders
them.
"""

from __future__ import annotations


class ModerationError(RuntimeError):
    """Base error for the moderation pipeline."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, details: dict | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.details = details or {}


class ValidationError(ModerationError):
    """Request is missing fields or carries invalid values."""

    status_code = 400
    code = "validation_error"


class AuthError(ModerationError):
    """Missing or invalid principal."""

    status_code = 401
    code = "auth_error"


class ForbiddenError(ModerationError):
    """Principal lacks the role or tier required for this operation."""

    status_code = 403
    code = "forbidden"


class NotFoundError(ModerationError):
    """Queue item, report or content does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(ModerationError):
    """Operation conflicts with current state."""

    status_code = 409
    code = "conflict"


class DuplicateActive(ConflictError):
    """A non-terminal queue item already exists for this content."""

    code = "duplicate_active"


class AlreadyResolved(ConflictError):
    """Queue item is already in a terminal state."""

    code = "already_resolved"


class DuplicateReport(ConflictError):
    """Reporter already has an open report on this content."""

    status_code = 400
    code = "duplicate_report"


class ScorerUnavailable(ModerationError):
    """External signal scorer failed or timed out."""

    status_code = 503
    code = "scorer_unavailable"


class StorageUnavailable(ModerationError):
    """Backing store could not be reached; results would be stale or missing."""

    status_code = 503
    code = "storage_unavailable"


class RuleLoadError(ModerationError):
    """Rule YAML cannot be loaded or parsed."""

    code = "rule_load_error"


class InternalError(ModerationError):
    """Unexpected failure."""
