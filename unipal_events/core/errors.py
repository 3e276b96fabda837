"""
Domain exceptions raised by the event lifecycle workflow.
Each carries a stable ``kind`` and the HTTP status it maps to at the API boundary.
"""


class EventWorkflowError(Exception):
    """Base class for every rejection raised by the event workflow."""

    kind = "WORKFLOW_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(EventWorkflowError):
    """Referenced event, invitation or user does not exist."""

    kind = "NOT_FOUND"
    status_code = 404


class ForbiddenError(EventWorkflowError):
    """Actor lacks the rights required for the operation."""

    kind = "FORBIDDEN"
    status_code = 403


class InvalidStateError(EventWorkflowError):
    """Event or invitation is not in a state that permits the operation."""

    kind = "INVALID_STATE"
    status_code = 409


class InvalidInputError(EventWorkflowError):
    """Request payload is malformed or out of range."""

    kind = "INVALID_INPUT"
    status_code = 400


class ConflictError(EventWorkflowError):
    """Concurrent modification or uniqueness violation in the store."""

    kind = "CONFLICT"
    status_code = 409


class ExpiredError(EventWorkflowError):
    """Attendance code is past its expiry window."""

    kind = "EXPIRED"
    status_code = 410
