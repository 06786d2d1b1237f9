"""
Authentication and authorization core for the HRIS services.

Provides the resource:action:scope permission model, JWT session tokens,
the refresh-token session store and the per-operation authorization
evaluator.
"""

from .models import (
    Account,
    AccountSummary,
    LoginHistory,
    LoginResult,
    LoginStatus,
    RefreshResult,
    Role,
    RoleAssignment,
    Session,
    SessionMetadata,
    SessionState,
)
from .database import UserDatabase
from .jwt_handler import AuthenticatedClaims, JWTHandler
from .credential_service import CredentialService
from .config import AuthSettings, configure_logging, get_settings
from .authorization import (
    AuthorizationEvaluator,
    Requirement,
    RequirementRegistry,
    admin_only,
    all_of,
    any_of,
    manager_access,
    require,
    require_role,
    self_access,
    skip_check,
)
from .permissions import (
    Action,
    Permissions,
    Resource,
    Scope,
    SystemRole,
    ROLE_PERMISSIONS,
    build_permission,
    is_valid_permission,
    matches_permission,
    parse_permission,
)
from .exceptions import (
    AccountDisabledError,
    AuthError,
    ConfigurationError,
    ConflictError,
    EmailAlreadyRegisteredError,
    ForbiddenOwnershipError,
    InsufficientPermissionError,
    InsufficientRoleError,
    InvalidCredentialsError,
    InvalidSessionError,
    InvalidTokenError,
    MalformedPermissionError,
    PermissionDeniedError,
    SessionExpiredError,
    SessionRevokedError,
    SessionStoreError,
    UnauthenticatedError,
)

__all__ = [
    # Models and store
    "Account",
    "AccountSummary",
    "LoginHistory",
    "LoginResult",
    "LoginStatus",
    "RefreshResult",
    "Role",
    "RoleAssignment",
    "Session",
    "SessionMetadata",
    "SessionState",
    "UserDatabase",
    # Tokens and credentials
    "AuthenticatedClaims",
    "JWTHandler",
    "CredentialService",
    "AuthSettings",
    "configure_logging",
    "get_settings",
    # Authorization
    "AuthorizationEvaluator",
    "Requirement",
    "RequirementRegistry",
    "admin_only",
    "all_of",
    "any_of",
    "manager_access",
    "require",
    "require_role",
    "self_access",
    "skip_check",
    # Permission model
    "Action",
    "Permissions",
    "Resource",
    "Scope",
    "SystemRole",
    "ROLE_PERMISSIONS",
    "build_permission",
    "is_valid_permission",
    "matches_permission",
    "parse_permission",
    # Errors
    "AccountDisabledError",
    "AuthError",
    "ConfigurationError",
    "ConflictError",
    "EmailAlreadyRegisteredError",
    "ForbiddenOwnershipError",
    "InsufficientPermissionError",
    "InsufficientRoleError",
    "InvalidCredentialsError",
    "InvalidSessionError",
    "InvalidTokenError",
    "MalformedPermissionError",
    "PermissionDeniedError",
    "SessionExpiredError",
    "SessionRevokedError",
    "SessionStoreError",
    "UnauthenticatedError",
]
