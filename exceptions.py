"""
Error taxonomy for workflow operations.

Every rejection is raised before the unit of work commits, so the request
session rolls back and no persisted state changes. ``main.py`` maps these to
HTTP responses via ``status_code`` and ``code``.
"""
from __future__ import annotations


class WorkflowError(Exception):
    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidTransitionError(WorkflowError):
    """Target status is not reachable from the current status."""
    status_code = 409
    code = "invalid_transition"


class AlreadyFinalizedError(WorkflowError):
    """The record is in a terminal status."""
    status_code = 409
    code = "already_finalized"


class ResourceUnavailableError(WorkflowError):
    """The subject is already committed to another open request."""
    status_code = 409
    code = "resource_unavailable"


class QuotaExceededError(ResourceUnavailableError):
    code = "quota_exceeded"


class UnauthorizedTransitionError(WorkflowError):
    """Actor role may not take this edge."""
    status_code = 403
    code = "unauthorized_transition"


class RecordNotFoundError(WorkflowError):
    status_code = 404
    code = "not_found"


class DuplicateEntryError(WorkflowError):
    status_code = 409
    code = "duplicate_entry"


class DomainValidationError(WorkflowError):
    status_code = 422
    code = "validation_error"


class NotificationError(Exception):
    """Delivery failure. Reported in dispatch diagnostics, never raised to callers."""

    def __init__(self, recipient: str, template_id: str, cause: BaseException | None = None):
        super().__init__(f"failed to deliver {template_id} to {recipient}: {cause}")
        self.recipient = recipient
        self.template_id = template_id
        self.cause = cause
