"""
Authentication data models.

Data classes for accounts, roles, permissions, sessions and login history,
plus the pydantic request/response models used at the service boundary.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


@dataclass
class Account:
    """
    User account.

    Attributes:
        user_id: Unique account identifier (UUID)
        email: Unique, lower-cased email address
        display_name: Full name shown to other users
        password_hash: Bcrypt hashed password
        created_at: Account creation timestamp
        is_active: Whether the account may log in
        is_suspended: Whether the account is suspended
        suspended_at: When the suspension started
        suspended_reason: Why the account was suspended
        employee_id: Opaque reference to the employee service record
        last_login_at: Last successful login
    """
    user_id: str
    email: str
    display_name: str
    password_hash: str
    created_at: datetime
    is_active: bool = True
    is_suspended: bool = False
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None
    employee_id: Optional[str] = None
    last_login_at: Optional[datetime] = None

    @property
    def can_login(self) -> bool:
        return self.is_active and not self.is_suspended


@dataclass
class Role:
    """
    Named grouping of permissions.

    Attributes:
        role_id: Unique role identifier
        name: Role name (e.g., "super_admin", "manager")
        display_name: Human-readable name
        description: Human-readable description
        is_system: System roles cannot be deleted
        created_at: Creation timestamp
    """
    role_id: str
    name: str
    display_name: str
    description: Optional[str]
    is_system: bool
    created_at: datetime


@dataclass
class PermissionRecord:
    """Stored permission row; ``name`` is the ``resource:action:scope`` string."""
    permission_id: str
    resource: str
    action: str
    scope: str
    display_name: str
    description: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.resource}:{self.action}:{self.scope}"


@dataclass
class RoleAssignment:
    """
    Role granted to an account.

    Attributes:
        user_id: Account holding the role
        role_name: Assigned role
        assigned_at: When the role was assigned
        assigned_by: Account that assigned it (optional)
        valid_from: Assignment is ignored before this instant (optional)
        valid_until: Assignment is ignored from this instant (optional)
    """
    user_id: str
    role_name: str
    assigned_at: datetime
    assigned_by: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    def is_effective(self, now: datetime) -> bool:
        if self.valid_from is not None and now < self.valid_from:
            return False
        if self.valid_until is not None and now >= self.valid_until:
            return False
        return True


class SessionState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass
class Session:
    """
    Persisted refresh token.

    Attributes:
        session_id: Unique session identifier
        user_id: Account that owns this session
        token: Refresh token string (unique)
        created_at: Session creation timestamp
        expires_at: Session expiration timestamp
        is_revoked: Set at logout or rotation
        device_id: Client device identifier (optional)
        user_agent: Client user agent (optional)
        ip_address: Client IP address (optional)
    """
    session_id: str
    user_id: str
    token: str
    created_at: datetime
    expires_at: datetime
    is_revoked: bool = False
    device_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None

    def state(self, now: datetime) -> SessionState:
        """Revocation wins over expiry so audits see the explicit action."""
        if self.is_revoked:
            return SessionState.REVOKED
        if now >= self.expires_at:
            return SessionState.EXPIRED
        return SessionState.ACTIVE


@dataclass
class SessionMetadata:
    """Client details recorded alongside a session."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_id: Optional[str] = None


class LoginStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    BLOCKED = "BLOCKED"
    SUSPICIOUS = "SUSPICIOUS"


@dataclass
class LoginHistory:
    """Append-only audit row written for every login attempt."""
    history_id: str
    user_id: str
    ip_address: str
    status: LoginStatus
    login_at: datetime
    user_agent: Optional[str] = None
    device_id: Optional[str] = None
    fail_reason: Optional[str] = None
    logout_at: Optional[datetime] = None


# ============================================================================
# Service boundary models
# ============================================================================

class RegisterRequest(BaseModel):
    """Registration input."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=50)
    full_name: str = Field(min_length=2, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("full_name")
    @classmethod
    def collapse_whitespace(cls, value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()


class AccountSummary(BaseModel):
    """Public view of an account; never includes the password hash."""

    id: str
    email: str
    display_name: str
    employee_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)


class LoginResult(BaseModel):
    access_token: str
    refresh_token: str
    user: AccountSummary


class RefreshResult(BaseModel):
    access_token: str
    user: AccountSummary
