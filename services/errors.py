"""
Typed errors raised by the forms and submissions services.

NotFound is also raised for owner-scoped operations attempted by someone who
is not the owner, so callers cannot probe for the existence of other users' forms.
"""

from typing import Any, Dict, Optional


class FormsAPIError(Exception):
    """Base class: carries an HTTP status, a reason code and a readable message."""

    status_code = 500
    default_code = "error"
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class Unauthenticated(FormsAPIError):
    status_code = 401
    default_code = "unauthenticated"
    default_message = "Authentication required"


class NotFound(FormsAPIError):
    status_code = 404
    default_code = "not_found"
    default_message = "Not found"


class Forbidden(FormsAPIError):
    status_code = 403
    default_code = "forbidden"
    default_message = "Action not allowed"


class Expired(FormsAPIError):
    status_code = 403
    default_code = "form_expired"
    default_message = "This form has expired"


class Conflict(FormsAPIError):
    status_code = 409
    default_code = "conflict"
    default_message = "This custom link is already in use"


class ValidationFailure(FormsAPIError):
    status_code = 422
    default_code = "validation_failure"
    default_message = "Invalid request"
