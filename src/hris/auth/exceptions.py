"""
Authentication and authorization errors.

Every error carries a status code and a generic client-facing message.
Details such as the missing permission stay on attributes and in the
server-side logs; they are never part of ``public_message``.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by the HTTP edge."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    message: str
    error: str
    timestamp: str
    path: str
    trace_id: Optional[str] = Field(default=None, alias="traceId")


class AuthError(Exception):
    """Base class for every recoverable auth failure."""

    status_code = 401
    error = "Unauthorized"
    public_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    def to_response(self, path: str, trace_id: Optional[str] = None) -> dict:
        """
        Render the error envelope for the HTTP edge.

        Args:
            path: Request path that failed
            trace_id: Optional correlation identifier

        Returns:
            JSON-ready dict using the wire field names
        """
        response = ErrorResponse(
            status_code=self.status_code,
            message=self.public_message,
            error=self.error,
            timestamp=datetime.now(timezone.utc).isoformat(),
            path=path,
            trace_id=trace_id,
        )
        return response.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Authentication
# ============================================================================

class UnauthenticatedError(AuthError):
    """No valid claims are present."""
    public_message = "User not authenticated"


class InvalidTokenError(UnauthenticatedError):
    """Token failed signature, expiry or shape checks."""
    public_message = "Invalid token"


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password; the two are indistinguishable."""
    public_message = "Invalid email or password"


class AccountDisabledError(AuthError):
    """Credentials are valid but the account is inactive or suspended."""
    status_code = 403
    error = "Forbidden"
    public_message = "Account is disabled"


class ConflictError(AuthError):
    """Unique resource already exists."""
    status_code = 409
    error = "Conflict"
    public_message = "Resource already exists"


class EmailAlreadyRegisteredError(ConflictError):
    public_message = "Email already registered"


class NotFoundError(AuthError):
    status_code = 404
    error = "Not Found"
    public_message = "Resource not found"


class ProtectedRoleError(AuthError):
    """System roles cannot be deleted."""
    status_code = 409
    error = "Conflict"
    public_message = "System roles cannot be deleted"


# ============================================================================
# Authorization
# ============================================================================

class PermissionDeniedError(AuthError):
    """
    Raised when a caller lacks what an operation requires.

    Attributes:
        user_id: The caller who was denied
        action: Short description of the denied check
        required: What the operation required
        held: What the caller held
    """

    status_code = 403
    error = "Forbidden"
    public_message = "Forbidden"

    def __init__(
        self,
        user_id: Optional[str],
        action: str,
        required: Sequence[str] = (),
        held: Sequence[str] = (),
    ):
        self.user_id = user_id
        self.action = action
        self.required: List[str] = list(required)
        self.held: List[str] = list(held)

        message = f"User {user_id} denied: {action}"
        if self.required:
            message += f" (requires: {', '.join(self.required)})"

        super().__init__(message)


class InsufficientPermissionError(PermissionDeniedError):
    public_message = "Insufficient permissions"


class InsufficientRoleError(PermissionDeniedError):
    public_message = "Insufficient role"


class ForbiddenOwnershipError(PermissionDeniedError):
    public_message = "Cannot access resources owned by others"


class MalformedPermissionError(AuthError, ValueError):
    """A permission string does not follow ``resource:action:scope``."""

    status_code = 400
    error = "Bad Request"
    public_message = "Malformed permission"

    def __init__(self, permission: str):
        self.permission = permission
        super().__init__(f"Malformed permission string: {permission!r}")


# ============================================================================
# Sessions
# ============================================================================

class SessionError(AuthError):
    public_message = "Invalid refresh token"


class InvalidSessionError(SessionError):
    """No session exists for the presented refresh token."""


class SessionRevokedError(SessionError):
    public_message = "Refresh token revoked"


class SessionExpiredError(SessionError):
    public_message = "Refresh token expired"


# ============================================================================
# Infrastructure (fatal, not translated to 4xx)
# ============================================================================

class SessionStoreError(RuntimeError):
    """Session store invariant violated, e.g. a duplicate refresh token."""


class ConfigurationError(RuntimeError):
    """Startup configuration is missing or invalid."""
