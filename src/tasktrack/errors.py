"""Exception types raised by tasktrack."""

from typing import Optional


class TaskTrackError(Exception):
    """Base class for every error tasktrack raises on purpose."""


class ValidationError(TaskTrackError):
    """Input rejected locally before any backend call is made."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)


class BackendError(TaskTrackError):
    """A backend call failed.

    ``message`` is the backend-supplied text and is shown to the user as-is.
    """

    code = "backend-error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class PermissionDeniedError(BackendError):
    """The caller's identity does not own the requested document."""

    code = "permission-denied"


class NotFoundError(BackendError):
    """The requested document does not exist."""

    code = "not-found"


class AuthError(BackendError):
    """Sign-up or sign-in was refused by the backend."""

    code = "auth-error"
