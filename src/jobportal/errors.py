"""Exception hierarchy shared by the session, API and synchronizer layers."""
from __future__ import annotations

from typing import Optional


class JobPortalError(Exception):
    """Base class for every error raised by the client."""


class SessionError(JobPortalError):
    """Raised when the session lifecycle is used out of order."""


class AuthPersistError(JobPortalError):
    """Raised when the credential store cannot be written."""


class AuthExpiredError(JobPortalError):
    """Raised when the backend rejects the bearer token."""


class BackendError(JobPortalError):
    """Transport or HTTP failure reported by the backend client."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FetchError(JobPortalError):
    """A read against the backend failed."""


class ValidationError(FetchError):
    """The backend returned a payload of the wrong shape."""


class MutationError(JobPortalError):
    """A save/unsave/apply/notes call failed or was rejected."""
