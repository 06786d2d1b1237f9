"""
Default permission catalogue, system roles and bootstrap admin.

Seeding is idempotent: existing roles, grants and accounts are left as is.
"""

from typing import Dict, Optional

from loguru import logger

from .database import UserDatabase
from .permissions import ROLE_PERMISSIONS, Permissions, SystemRole

ROLE_DESCRIPTIONS: Dict[SystemRole, str] = {
    SystemRole.SUPER_ADMIN: "Full system access with all permissions",
    SystemRole.HR_ADMIN: "Manages employees, attendance, leaves, and payroll",
    SystemRole.MANAGER: "Manages team members, approves leaves and overtime",
    SystemRole.EMPLOYEE: "Basic employee access to own data",
}


def seed_permissions(db: UserDatabase) -> int:
    """Store every permission constant. Returns the number processed."""
    catalogue = [
        value for name, value in vars(Permissions).items()
        if name.isupper() and isinstance(value, str)
    ]
    for permission in catalogue:
        db.ensure_permission(permission)

    logger.info(f"Permissions seeded: {len(catalogue)}")
    return len(catalogue)


def seed_roles(db: UserDatabase) -> None:
    """Create the system roles and grant their default permissions."""
    for role, permissions in ROLE_PERMISSIONS.items():
        if db.get_role(role.value) is None:
            db.create_role(
                role.value,
                description=ROLE_DESCRIPTIONS[role],
                is_system=True,
            )

        for permission in permissions:
            db.grant_permission(role.value, permission)

        logger.info(f"Role {role.value} seeded with {len(permissions)} permissions")


def seed_admin(db: UserDatabase, credentials, email: str, password: str, display_name: str = "Administrator") -> Optional[str]:
    """
    Create the bootstrap admin with the super_admin role.

    Args:
        db: Store to seed
        credentials: CredentialService used to hash the password
        email: Admin email
        password: Admin password
        display_name: Admin display name

    Returns:
        The admin account id, or None if the email already exists
    """
    if db.get_account_by_email(email.strip().lower()) is not None:
        logger.info(f"Admin account {email} already exists, skipping")
        return None

    summary = credentials.register(email, password, display_name)
    db.assign_role(summary.id, SystemRole.SUPER_ADMIN.value)

    logger.warning(f"Admin account {email} created; change its password after first login")
    return summary.id


def seed_defaults(db: UserDatabase) -> None:
    seed_permissions(db)
    seed_roles(db)
