"""
Permission model for the HRIS authorization core.

Permissions are strings of the form ``resource:action:scope``:
- ``employee:read:own`` - read own employee profile
- ``leave:approve:department`` - approve leaves in own department
- ``payroll:read:all`` - read all payroll data

Any segment of a *held* permission may be ``*``. Wildcards are only
meaningful on the granted side; a required permission is always specific.
"""

import re
from enum import Enum
from typing import Dict, List, NamedTuple, Optional

WILDCARD = "*"

PERMISSION_PATTERN = re.compile(r"^([a-z_]+|\*):([a-z_]+|\*):(own|department|all|\*)$")


class Resource(str, Enum):
    """Resources that can be accessed in the system."""
    EMPLOYEE = "employee"
    ATTENDANCE = "attendance"
    LEAVE = "leave"
    PAYROLL = "payroll"
    NOTIFICATION = "notification"
    ROLE = "role"
    PERMISSION = "permission"
    USER = "user"


class Action(str, Enum):
    """Actions that can be performed on resources."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    REVOKE = "revoke"
    EXPORT = "export"


class Scope(str, Enum):
    """
    Breadth of a permission grant.

    - OWN: only resources owned by the caller
    - DEPARTMENT: resources in the caller's department
    - ALL: every resource
    """
    OWN = "own"
    DEPARTMENT = "department"
    ALL = "all"


class ParsedPermission(NamedTuple):
    """Permission string split into its three segments."""
    resource: str
    action: str
    scope: str

    def __str__(self) -> str:
        return f"{self.resource}:{self.action}:{self.scope}"


def _segment(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def parse_permission(permission: str) -> Optional[ParsedPermission]:
    """
    Split a permission string into resource, action and scope.

    Returns:
        ParsedPermission, or None if the string does not have exactly
        three non-empty colon-separated segments
    """
    if not isinstance(permission, str):
        return None

    parts = permission.split(":")
    if len(parts) != 3 or not all(parts):
        return None

    return ParsedPermission(*parts)


def build_permission(resource, action, scope) -> str:
    """
    Format a permission string.

    Accepts enum members or plain strings (``"*"`` for wildcards).

    Examples:
        >>> build_permission(Resource.LEAVE, Action.APPROVE, Scope.DEPARTMENT)
        'leave:approve:department'
    """
    return f"{_segment(resource)}:{_segment(action)}:{_segment(scope)}"


def matches_permission(required: str, held: str) -> bool:
    """
    Check whether a held permission satisfies a required one.

    Segments are compared position by position. A ``*`` in the held
    permission matches anything in that position; otherwise the segments
    must be equal.

    Examples:
        >>> matches_permission("employee:read:own", "employee:*:own")
        True
        >>> matches_permission("employee:update:own", "employee:read:own")
        False
        >>> matches_permission("payroll:export:all", "*:*:*")
        True
    """
    if not isinstance(required, str) or not isinstance(held, str):
        return False

    required_parts = required.split(":")
    held_parts = held.split(":")

    if len(required_parts) != 3 or len(held_parts) != 3:
        return False

    for required_part, held_part in zip(required_parts, held_parts):
        if held_part == WILDCARD:
            continue
        if required_part != held_part:
            return False

    return True


def is_valid_permission(permission: str) -> bool:
    """Check a permission string against the ``resource:action:scope`` grammar."""
    return isinstance(permission, str) and PERMISSION_PATTERN.match(permission) is not None


def describe_permission(permission: str) -> str:
    """Human-readable display name, e.g. ``"Approve Leave (Department)"``."""
    parsed = parse_permission(permission)
    if parsed is None:
        return permission

    def words(segment: str) -> str:
        return "Any" if segment == WILDCARD else segment.replace("_", " ").title()

    return f"{words(parsed.action)} {words(parsed.resource)} ({words(parsed.scope)})"


class Permissions:
    """Common permission constants."""

    # Employee
    EMPLOYEE_CREATE_ALL = "employee:create:all"
    EMPLOYEE_READ_OWN = "employee:read:own"
    EMPLOYEE_READ_DEPARTMENT = "employee:read:department"
    EMPLOYEE_READ_ALL = "employee:read:all"
    EMPLOYEE_UPDATE_OWN = "employee:update:own"
    EMPLOYEE_UPDATE_ALL = "employee:update:all"
    EMPLOYEE_DELETE_ALL = "employee:delete:all"

    # Attendance
    ATTENDANCE_CREATE_OWN = "attendance:create:own"
    ATTENDANCE_READ_OWN = "attendance:read:own"
    ATTENDANCE_READ_DEPARTMENT = "attendance:read:department"
    ATTENDANCE_READ_ALL = "attendance:read:all"
    ATTENDANCE_UPDATE_ALL = "attendance:update:all"

    # Leave
    LEAVE_CREATE_OWN = "leave:create:own"
    LEAVE_READ_OWN = "leave:read:own"
    LEAVE_READ_DEPARTMENT = "leave:read:department"
    LEAVE_READ_ALL = "leave:read:all"
    LEAVE_APPROVE_DEPARTMENT = "leave:approve:department"
    LEAVE_APPROVE_ALL = "leave:approve:all"
    LEAVE_REJECT_DEPARTMENT = "leave:reject:department"

    # Payroll
    PAYROLL_READ_OWN = "payroll:read:own"
    PAYROLL_READ_ALL = "payroll:read:all"
    PAYROLL_CREATE_ALL = "payroll:create:all"
    PAYROLL_UPDATE_ALL = "payroll:update:all"

    # Notifications
    NOTIFICATION_READ_OWN = "notification:read:own"

    # Role & permission management
    ROLE_CREATE_ALL = "role:create:all"
    ROLE_READ_ALL = "role:read:all"
    ROLE_UPDATE_ALL = "role:update:all"
    ROLE_DELETE_ALL = "role:delete:all"
    ROLE_ASSIGN_ALL = "role:assign:all"
    PERMISSION_READ_ALL = "permission:read:all"
    PERMISSION_CREATE_ALL = "permission:create:all"

    # User management
    USER_READ_ALL = "user:read:all"
    USER_UPDATE_ALL = "user:update:all"
    USER_DELETE_ALL = "user:delete:all"

    SUPER_ADMIN = "*:*:*"


class SystemRole(str, Enum):
    """Predefined, non-deletable roles."""
    SUPER_ADMIN = "super_admin"
    HR_ADMIN = "hr_admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


EMPLOYEE_PERMISSIONS: List[str] = [
    Permissions.EMPLOYEE_READ_OWN,
    Permissions.EMPLOYEE_UPDATE_OWN,
    Permissions.ATTENDANCE_CREATE_OWN,
    Permissions.ATTENDANCE_READ_OWN,
    Permissions.LEAVE_CREATE_OWN,
    Permissions.LEAVE_READ_OWN,
    Permissions.PAYROLL_READ_OWN,
    Permissions.NOTIFICATION_READ_OWN,
]

MANAGER_PERMISSIONS: List[str] = EMPLOYEE_PERMISSIONS + [
    Permissions.EMPLOYEE_READ_DEPARTMENT,
    Permissions.ATTENDANCE_READ_DEPARTMENT,
    Permissions.LEAVE_READ_DEPARTMENT,
    Permissions.LEAVE_APPROVE_DEPARTMENT,
    Permissions.LEAVE_REJECT_DEPARTMENT,
]

HR_ADMIN_PERMISSIONS: List[str] = [
    "employee:*:all",
    "attendance:*:all",
    "leave:*:all",
    "payroll:*:all",
    Permissions.ROLE_READ_ALL,
    Permissions.ROLE_ASSIGN_ALL,
    Permissions.PERMISSION_READ_ALL,
    Permissions.USER_READ_ALL,
    Permissions.USER_UPDATE_ALL,
]

# Map each system role to its default grants
ROLE_PERMISSIONS: Dict[SystemRole, List[str]] = {
    SystemRole.SUPER_ADMIN: [Permissions.SUPER_ADMIN],
    SystemRole.HR_ADMIN: HR_ADMIN_PERMISSIONS,
    SystemRole.MANAGER: MANAGER_PERMISSIONS,
    SystemRole.EMPLOYEE: EMPLOYEE_PERMISSIONS,
}
