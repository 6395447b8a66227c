"""
Error Taxonomy for the Campus Portal Backend

Every failure the portal reports carries a short machine code plus a
human-readable message. Services raise these internally and convert them to
``{"success": False, "error": ..., "code": ...}`` results at their boundary.
"""

from typing import Any, Dict


class PortalError(Exception):
    """Base class for all portal errors."""
    code = "PORTAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_result(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


class NotAuthorizedError(PortalError):
    """Raised when the current user's role does not allow an operation."""
    code = "NOT_AUTHORIZED"


class AccountNotProvisionedError(PortalError):
    """Raised when an authenticated identity has no staff or student profile."""
    code = "ACCOUNT_NOT_PROVISIONED"


class WrongPortalError(PortalError):
    """Raised when an account logs in through a portal it is not registered for."""
    code = "WRONG_PORTAL"


class InvalidInputError(PortalError):
    """Raised when a required field, path segment or value is missing or invalid."""
    code = "INVALID_INPUT"


class InvalidUserError(InvalidInputError):
    """Raised when a user object has no uid."""
    code = "INVALID_USER"


class NotFoundError(PortalError):
    """Raised when a required record or the current user is absent."""
    code = "NOT_FOUND"


class BackendUnavailableError(PortalError):
    """Raised when the remote store has not been initialized."""
    code = "BACKEND_UNAVAILABLE"


class RemoteStoreError(PortalError):
    """Opaque passthrough of a failure reported by the remote store."""
    code = "REMOTE_STORE_FAILURE"


class AuthenticationError(PortalError):
    """Raised when the identity provider rejects a register/sign-in request."""
    code = "AUTHENTICATION_FAILED"


def failure(error: Exception) -> Dict[str, Any]:
    """Convert any exception into the structured failure result."""
    if isinstance(error, PortalError):
        return error.to_result()
    return RemoteStoreError(str(error)).to_result()
