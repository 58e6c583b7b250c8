"""Failure kinds surfaced to callers.

Every error carries the HTTP status the transport maps it to and a message
that is safe to show to the caller. Collaborator detail stays in the logs.
"""
from typing import List, Optional, Tuple


class PortalError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationFailed(PortalError):
    status_code = 400
    code = "validation_failed"
    default_message = "Invalid input"

    def __init__(self, violations: List[Tuple[str, str]]):
        self.violations = list(violations)
        super().__init__()

    def to_response(self) -> dict:
        body = super().to_response()
        body["errors"] = [{"field": field, "reason": reason} for field, reason in self.violations]
        return body


class Unauthenticated(PortalError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Unauthorized"


class ForgeryRejected(PortalError):
    status_code = 403
    code = "forgery_rejected"
    default_message = "Invalid CSRF token"


class Conflict(PortalError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class NotFound(PortalError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidTransition(PortalError):
    status_code = 400
    code = "invalid_transition"
    default_message = "Payment cannot move to the requested status"


class NotSubmitted(PortalError):
    status_code = 400
    code = "not_submitted"
    default_message = "Payment has not been submitted to the settlement network"


class StoreTimeout(PortalError):
    status_code = 503
    code = "timeout"
    default_message = "Service temporarily unavailable"


class StoreUnavailable(PortalError):
    status_code = 500
    code = "store_unavailable"
    default_message = "Internal Server Error"
