"""
core/errors.py -- Error taxonomy shared by every layer.

Stores and the access guard raise these; the API layer turns them into the
standard error envelope with one exception handler (see api/main.py). Each
class carries its HTTP status so the mapping lives next to the error, not in
every route.

Layer rule: no imports from api/, auth/, or cards/.
"""

from typing import Optional


class ProfileDashError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(ProfileDashError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class Unauthenticated(ProfileDashError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(ProfileDashError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


class NotFound(ProfileDashError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(ProfileDashError):
    status_code = 409
    code = "conflict"
    default_message = "The request conflicts with the current state."


class DuplicateEmail(Conflict):
    default_message = "A user with that email already exists."


class InternalError(ProfileDashError):
    status_code = 500
    code = "internal_error"
