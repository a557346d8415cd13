"""
Workflow error taxonomy.

Every error the workflow core raises derives from WorkflowError and carries
a stable machine code plus the HTTP status the API layer renders it with:

  ValidationError  → 422  malformed or missing input
  Forbidden        → 403  actor role may not perform the action
  InvalidState     → 409  transition not legal from the current status
  NotFound         → 404  referenced entity absent
  Conflict         → 409  concurrent modification; caller may retry
  Internal         → 500  collaborator failure (store unavailable, ...)
"""

from typing import Any, Optional


class WorkflowError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return {"error": body}


class ValidationError(WorkflowError):
    code = "VALIDATION_ERROR"
    status_code = 422


class Forbidden(WorkflowError):
    code = "FORBIDDEN"
    status_code = 403


class InvalidState(WorkflowError):
    code = "INVALID_STATE"
    status_code = 409


class NotFound(WorkflowError):
    code = "NOT_FOUND"
    status_code = 404


class Conflict(WorkflowError):
    code = "CONFLICT"
    status_code = 409
    retryable = True


class Internal(WorkflowError):
    code = "INTERNAL_ERROR"
    status_code = 500
