"""
SQLite store for the authorization core.

Persists accounts, roles, permissions, refresh-token sessions and the login
audit trail. Every public method runs in its own connection and
transaction; consistency between concurrent callers comes from SQLite's
transactional guarantees, not from in-process locks.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from loguru import logger

from .exceptions import (
    ConflictError,
    EmailAlreadyRegisteredError,
    MalformedPermissionError,
    NotFoundError,
    ProtectedRoleError,
    SessionStoreError,
)
from .models import (
    Account,
    LoginHistory,
    LoginStatus,
    PermissionRecord,
    Role,
    RoleAssignment,
    Session,
    SessionMetadata,
)
from .permissions import describe_permission, is_valid_permission, parse_permission

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    user_id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    display_name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    is_suspended INTEGER NOT NULL DEFAULT 0,
    suspended_at TEXT,
    suspended_reason TEXT,
    employee_id TEXT,
    last_login_at TEXT
);

CREATE TABLE IF NOT EXISTS roles (
    role_id TEXT PRIMARY KEY,
    name TEXT UNIQUE NOT NULL,
    display_name TEXT NOT NULL,
    description TEXT,
    is_system INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS permissions (
    permission_id TEXT PRIMARY KEY,
    resource TEXT NOT NULL,
    action TEXT NOT NULL,
    scope TEXT NOT NULL,
    display_name TEXT NOT NULL,
    description TEXT,
    UNIQUE (resource, action, scope)
);

CREATE TABLE IF NOT EXISTS role_permissions (
    role_id TEXT NOT NULL,
    permission_id TEXT NOT NULL,
    granted_at TEXT NOT NULL,
    granted_by TEXT,
    PRIMARY KEY (role_id, permission_id),
    FOREIGN KEY (role_id) REFERENCES roles(role_id) ON DELETE CASCADE,
    FOREIGN KEY (permission_id) REFERENCES permissions(permission_id)
);

CREATE TABLE IF NOT EXISTS user_roles (
    user_id TEXT NOT NULL,
    role_id TEXT NOT NULL,
    assigned_at TEXT NOT NULL,
    assigned_by TEXT,
    valid_from TEXT,
    valid_until TEXT,
    PRIMARY KEY (user_id, role_id),
    FOREIGN KEY (user_id) REFERENCES accounts(user_id),
    FOREIGN KEY (role_id) REFERENCES roles(role_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS refresh_tokens (
    session_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    token TEXT UNIQUE NOT NULL,
    device_id TEXT,
    user_agent TEXT,
    ip_address TEXT,
    is_revoked INTEGER NOT NULL DEFAULT 0,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    CHECK (expires_at > created_at),
    FOREIGN KEY (user_id) REFERENCES accounts(user_id)
);

CREATE TABLE IF NOT EXISTS login_history (
    history_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    ip_address TEXT NOT NULL,
    user_agent TEXT,
    device_id TEXT,
    status TEXT NOT NULL,
    fail_reason TEXT,
    login_at TEXT NOT NULL,
    logout_at TEXT,
    FOREIGN KEY (user_id) REFERENCES accounts(user_id)
);

CREATE INDEX IF NOT EXISTS idx_refresh_tokens_user ON refresh_tokens(user_id);
CREATE INDEX IF NOT EXISTS idx_user_roles_user ON user_roles(user_id);
CREATE INDEX IF NOT EXISTS idx_login_history_user ON login_history(user_id);
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC ISO string so SQL text comparison orders correctly."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class UserDatabase:
    """
    Account, role and session store.

    Manages accounts, roles, permissions, sessions and login history using
    SQLite.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0):
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Create tables if they don't exist."""
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.executescript(SCHEMA)

        logger.info(f"Auth database initialized: {self.db_path}")

    # ========================================================================
    # Account Operations
    # ========================================================================

    def create_account(
        self,
        email: str,
        password_hash: str,
        display_name: str,
        employee_id: Optional[str] = None,
    ) -> Account:
        """
        Create a new account.

        Args:
            email: Normalized, unique email
            password_hash: Bcrypt hash (never plaintext)
            display_name: Full name
            employee_id: Optional employee reference

        Returns:
            Created Account

        Raises:
            EmailAlreadyRegisteredError: If the email is taken
        """
        account = Account(
            user_id=str(uuid.uuid4()),
            email=email,
            display_name=display_name,
            password_hash=password_hash,
            created_at=utcnow(),
            employee_id=employee_id,
        )

        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT INTO accounts (user_id, email, display_name, password_hash, created_at, employee_id)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    account.user_id,
                    account.email,
                    account.display_name,
                    account.password_hash,
                    _ts(account.created_at),
                    account.employee_id,
                ))
        except sqlite3.IntegrityError:
            raise EmailAlreadyRegisteredError()

        logger.info(f"Account created: {email} ({account.user_id})")
        return account

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
        return self._row_to_account(row) if row else None

    def get_account_by_id(self, user_id: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_account(row) if row else None

    def set_account_active(self, user_id: str, is_active: bool) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE accounts SET is_active = ? WHERE user_id = ?",
                (1 if is_active else 0, user_id),
            )
        return cursor.rowcount > 0

    def suspend_account(self, user_id: str, reason: Optional[str] = None) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("""
                UPDATE accounts
                SET is_suspended = 1, suspended_at = ?, suspended_reason = ?
                WHERE user_id = ?
            """, (_ts(utcnow()), reason, user_id))

        if cursor.rowcount > 0:
            logger.info(f"Account suspended: {user_id} ({reason or 'no reason given'})")
            return True
        return False

    def unsuspend_account(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("""
                UPDATE accounts
                SET is_suspended = 0, suspended_at = NULL, suspended_reason = NULL
                WHERE user_id = ?
            """, (user_id,))
        return cursor.rowcount > 0

    def link_employee(self, user_id: str, employee_id: Optional[str]) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE accounts SET employee_id = ? WHERE user_id = ?",
                (employee_id, user_id),
            )
        return cursor.rowcount > 0

    def update_last_login(self, user_id: str, when: Optional[datetime] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE accounts SET last_login_at = ? WHERE user_id = ?",
                (_ts(when or utcnow()), user_id),
            )

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            user_id=row["user_id"],
            email=row["email"],
            display_name=row["display_name"],
            password_hash=row["password_hash"],
            created_at=_dt(row["created_at"]),
            is_active=bool(row["is_active"]),
            is_suspended=bool(row["is_suspended"]),
            suspended_at=_dt(row["suspended_at"]),
            suspended_reason=row["suspended_reason"],
            employee_id=row["employee_id"],
            last_login_at=_dt(row["last_login_at"]),
        )

    # ========================================================================
    # Role Operations
    # ========================================================================

    def create_role(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        is_system: bool = False,
    ) -> Role:
        """
        Create a role.

        Raises:
            ConflictError: If a role with this name exists
        """
        role = Role(
            role_id=str(uuid.uuid4()),
            name=name,
            display_name=display_name or name.replace("_", " ").title(),
            description=description,
            is_system=is_system,
            created_at=utcnow(),
        )

        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT INTO roles (role_id, name, display_name, description, is_system, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    role.role_id,
                    role.name,
                    role.display_name,
                    role.description,
                    1 if role.is_system else 0,
                    _ts(role.created_at),
                ))
        except sqlite3.IntegrityError:
            raise ConflictError(f"Role already exists: {name}")

        logger.info(f"Role created: {name}")
        return role

    def get_role(self, name: str) -> Optional[Role]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM roles WHERE name = ?", (name,)).fetchone()
        return self._row_to_role(row) if row else None

    def list_roles(self) -> List[Role]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM roles ORDER BY name").fetchall()
        return [self._row_to_role(row) for row in rows]

    def delete_role(self, name: str) -> bool:
        """
        Delete a non-system role along with its grants and assignments.

        Raises:
            ProtectedRoleError: If the role is a system role
        """
        role = self.get_role(name)
        if role is None:
            return False
        if role.is_system:
            raise ProtectedRoleError(f"System role cannot be deleted: {name}")

        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM roles WHERE role_id = ?", (role.role_id,))

        logger.info(f"Role deleted: {name}")
        return cursor.rowcount > 0

    def _require_role_id(self, conn: sqlite3.Connection, name: str) -> str:
        row = conn.execute("SELECT role_id FROM roles WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise NotFoundError(f"Role not found: {name}")
        return row["role_id"]

    @staticmethod
    def _row_to_role(row: sqlite3.Row) -> Role:
        return Role(
            role_id=row["role_id"],
            name=row["name"],
            display_name=row["display_name"],
            description=row["description"],
            is_system=bool(row["is_system"]),
            created_at=_dt(row["created_at"]),
        )

    # ========================================================================
    # Permission Operations
    # ========================================================================

    def ensure_permission(self, permission: str, description: Optional[str] = None) -> PermissionRecord:
        """
        Get or create the stored row for a permission string.

        Raises:
            MalformedPermissionError: If the string breaks the grammar
        """
        if not is_valid_permission(permission):
            raise MalformedPermissionError(permission)

        parsed = parse_permission(permission)
        with self._connect() as conn:
            conn.execute("""
                INSERT OR IGNORE INTO permissions (permission_id, resource, action, scope, display_name, description)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                str(uuid.uuid4()),
                parsed.resource,
                parsed.action,
                parsed.scope,
                describe_permission(permission),
                description,
            ))
            row = conn.execute("""
                SELECT * FROM permissions WHERE resource = ? AND action = ? AND scope = ?
            """, tuple(parsed)).fetchone()

        return PermissionRecord(
            permission_id=row["permission_id"],
            resource=row["resource"],
            action=row["action"],
            scope=row["scope"],
            display_name=row["display_name"],
            description=row["description"],
        )

    def list_permissions(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT resource, action, scope FROM permissions ORDER BY resource, action, scope
            """).fetchall()
        return [f"{row['resource']}:{row['action']}:{row['scope']}" for row in rows]

    def grant_permission(self, role_name: str, permission: str, granted_by: Optional[str] = None) -> None:
        """
        Add a permission to a role. Granting twice is a no-op.

        Raises:
            MalformedPermissionError: If the string breaks the grammar
            NotFoundError: If the role does not exist
        """
        record = self.ensure_permission(permission)

        with self._connect() as conn:
            role_id = self._require_role_id(conn, role_name)
            conn.execute("""
                INSERT OR IGNORE INTO role_permissions (role_id, permission_id, granted_at, granted_by)
                VALUES (?, ?, ?, ?)
            """, (role_id, record.permission_id, _ts(utcnow()), granted_by))

        logger.debug(f"Granted {permission} to role {role_name}")

    def revoke_permission(self, role_name: str, permission: str) -> bool:
        parsed = parse_permission(permission)
        if parsed is None:
            return False

        with self._connect() as conn:
            cursor = conn.execute("""
                DELETE FROM role_permissions
                WHERE role_id = (SELECT role_id FROM roles WHERE name = ?)
                  AND permission_id = (
                      SELECT permission_id FROM permissions
                      WHERE resource = ? AND action = ? AND scope = ?
                  )
            """, (role_name, *parsed))

        return cursor.rowcount > 0

    def get_role_permissions(self, role_name: str) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT p.resource, p.action, p.scope
                FROM permissions p
                JOIN role_permissions rp ON p.permission_id = rp.permission_id
                JOIN roles r ON rp.role_id = r.role_id
                WHERE r.name = ?
                ORDER BY p.resource, p.action, p.scope
            """, (role_name,)).fetchall()
        return [f"{row['resource']}:{row['action']}:{row['scope']}" for row in rows]

    # ========================================================================
    # Role Assignment Operations
    # ========================================================================

    def assign_role(
        self,
        user_id: str,
        role_name: str,
        assigned_by: Optional[str] = None,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
    ) -> RoleAssignment:
        """
        Assign a role to an account, replacing any earlier assignment of it.

        Raises:
            NotFoundError: If the role or account does not exist
            ValueError: If valid_until is not after valid_from
        """
        if valid_from and valid_until and valid_until <= valid_from:
            raise ValueError("valid_until must be after valid_from")

        assignment = RoleAssignment(
            user_id=user_id,
            role_name=role_name,
            assigned_at=utcnow(),
            assigned_by=assigned_by,
            valid_from=valid_from,
            valid_until=valid_until,
        )

        try:
            with self._connect() as conn:
                role_id = self._require_role_id(conn, role_name)
                conn.execute("""
                    INSERT OR REPLACE INTO user_roles (user_id, role_id, assigned_at, assigned_by, valid_from, valid_until)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    user_id,
                    role_id,
                    _ts(assignment.assigned_at),
                    assigned_by,
                    _ts(valid_from),
                    _ts(valid_until),
                ))
        except sqlite3.IntegrityError:
            raise NotFoundError(f"Account not found: {user_id}")

        logger.info(f"Role {role_name} assigned to {user_id}")
        return assignment

    def unassign_role(self, user_id: str, role_name: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("""
                DELETE FROM user_roles
                WHERE user_id = ? AND role_id = (SELECT role_id FROM roles WHERE name = ?)
            """, (user_id, role_name))
        return cursor.rowcount > 0

    def get_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT r.name, ur.assigned_at, ur.assigned_by, ur.valid_from, ur.valid_until
                FROM user_roles ur
                JOIN roles r ON r.role_id = ur.role_id
                WHERE ur.user_id = ?
                ORDER BY r.name
            """, (user_id,)).fetchall()

        return [
            RoleAssignment(
                user_id=user_id,
                role_name=row["name"],
                assigned_at=_dt(row["assigned_at"]),
                assigned_by=row["assigned_by"],
                valid_from=_dt(row["valid_from"]),
                valid_until=_dt(row["valid_until"]),
            )
            for row in rows
        ]

    def get_user_roles(self, user_id: str, now: Optional[datetime] = None) -> List[str]:
        """
        Get the account's effective role names.

        Assignments outside their validity window are skipped.
        """
        moment = _ts(now or utcnow())
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT r.name
                FROM roles r
                JOIN user_roles ur ON r.role_id = ur.role_id
                WHERE ur.user_id = ?
                  AND (ur.valid_from IS NULL OR ur.valid_from <= ?)
                  AND (ur.valid_until IS NULL OR ur.valid_until > ?)
                ORDER BY r.name
            """, (user_id, moment, moment)).fetchall()

        return [row["name"] for row in rows]

    def get_user_permissions(self, user_id: str, now: Optional[datetime] = None) -> List[str]:
        """
        Get the union of permissions across the account's effective roles.

        Returns:
            Deduplicated permission strings (e.g., ["leave:approve:department"])
        """
        moment = _ts(now or utcnow())
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT DISTINCT p.resource, p.action, p.scope
                FROM permissions p
                JOIN role_permissions rp ON p.permission_id = rp.permission_id
                JOIN user_roles ur ON rp.role_id = ur.role_id
                WHERE ur.user_id = ?
                  AND (ur.valid_from IS NULL OR ur.valid_from <= ?)
                  AND (ur.valid_until IS NULL OR ur.valid_until > ?)
                ORDER BY p.resource, p.action, p.scope
            """, (user_id, moment, moment)).fetchall()

        return [f"{row['resource']}:{row['action']}:{row['scope']}" for row in rows]

    # ========================================================================
    # Session Operations
    # ========================================================================

    def create_session(
        self,
        user_id: str,
        token: str,
        expires_at: datetime,
        metadata: Optional[SessionMetadata] = None,
        created_at: Optional[datetime] = None,
    ) -> Session:
        """
        Persist a refresh token.

        Args:
            user_id: Owning account
            token: Refresh token string
            expires_at: Expiry instant, strictly after created_at
            metadata: Client IP, user agent and device
            created_at: Creation instant (default: now)

        Returns:
            Created Session

        Raises:
            ValueError: If expires_at is not after created_at
            SessionStoreError: If the token already exists
        """
        metadata = metadata or SessionMetadata()
        created_at = created_at or utcnow()
        if _ts(expires_at) <= _ts(created_at):
            raise ValueError("Session expires_at must be after created_at")

        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            token=token,
            created_at=_dt(_ts(created_at)),
            expires_at=_dt(_ts(expires_at)),
            device_id=metadata.device_id,
            user_agent=metadata.user_agent,
            ip_address=metadata.ip_address,
        )

        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT INTO refresh_tokens
                        (session_id, user_id, token, device_id, user_agent, ip_address, is_revoked, expires_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
                """, (
                    session.session_id,
                    session.user_id,
                    session.token,
                    session.device_id,
                    session.user_agent,
                    session.ip_address,
                    _ts(session.expires_at),
                    _ts(session.created_at),
                ))
        except sqlite3.IntegrityError as e:
            logger.error(f"Refresh token insert rejected for {user_id}: {e}")
            raise SessionStoreError(f"Could not persist session: {e}") from e

        return session

    def find_session_by_token(self, token: str) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM refresh_tokens WHERE token = ?", (token,)).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self, user_id: str) -> List[Session]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM refresh_tokens WHERE user_id = ? ORDER BY created_at",
                (user_id,),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def revoke_session(self, token: str, user_id: str) -> bool:
        """
        Revoke the account's session for this token.

        Idempotent: unknown tokens, tokens owned by another account and
        already revoked sessions are silent no-ops.

        Returns:
            True if a row changed state
        """
        with self._connect() as conn:
            cursor = conn.execute("""
                UPDATE refresh_tokens SET is_revoked = 1
                WHERE token = ? AND user_id = ? AND is_revoked = 0
            """, (token, user_id))

        return cursor.rowcount > 0

    def cleanup_expired_sessions(self, now: Optional[datetime] = None) -> int:
        """
        Remove sessions that are both revoked and expired.

        Returns:
            Number of sessions deleted
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM refresh_tokens WHERE is_revoked = 1 AND expires_at <= ?",
                (_ts(now or utcnow()),),
            )
        deleted = cursor.rowcount

        if deleted > 0:
            logger.info(f"Cleaned up {deleted} expired sessions")

        return deleted

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            session_id=row["session_id"],
            user_id=row["user_id"],
            token=row["token"],
            created_at=_dt(row["created_at"]),
            expires_at=_dt(row["expires_at"]),
            is_revoked=bool(row["is_revoked"]),
            device_id=row["device_id"],
            user_agent=row["user_agent"],
            ip_address=row["ip_address"],
        )

    # ========================================================================
    # Login History
    # ========================================================================

    def record_login_attempt(
        self,
        user_id: str,
        ip_address: str,
        user_agent: Optional[str],
        status: LoginStatus,
        fail_reason: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> LoginHistory:
        """Append a login audit row."""
        entry = LoginHistory(
            history_id=str(uuid.uuid4()),
            user_id=user_id,
            ip_address=ip_address or "unknown",
            status=LoginStatus(status),
            login_at=utcnow(),
            user_agent=user_agent,
            device_id=device_id,
            fail_reason=fail_reason,
        )

        with self._connect() as conn:
            conn.execute("""
                INSERT INTO login_history
                    (history_id, user_id, ip_address, user_agent, device_id, status, fail_reason, login_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.history_id,
                entry.user_id,
                entry.ip_address,
                entry.user_agent,
                entry.device_id,
                entry.status.value,
                entry.fail_reason,
                _ts(entry.login_at),
            ))

        return entry

    def record_logout(self, user_id: str, when: Optional[datetime] = None) -> bool:
        """Stamp logout_at on the account's latest open successful login."""
        with self._connect() as conn:
            cursor = conn.execute("""
                UPDATE login_history SET logout_at = ?
                WHERE history_id = (
                    SELECT history_id FROM login_history
                    WHERE user_id = ? AND status = ? AND logout_at IS NULL
                    ORDER BY login_at DESC
                    LIMIT 1
                )
            """, (_ts(when or utcnow()), user_id, LoginStatus.SUCCESS.value))
        return cursor.rowcount > 0

    def get_login_history(self, user_id: str) -> List[LoginHistory]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM login_history WHERE user_id = ? ORDER BY login_at, rowid",
                (user_id,),
            ).fetchall()

        return [
            LoginHistory(
                history_id=row["history_id"],
                user_id=row["user_id"],
                ip_address=row["ip_address"],
                status=LoginStatus(row["status"]),
                login_at=_dt(row["login_at"]),
                user_agent=row["user_agent"],
                device_id=row["device_id"],
                fail_reason=row["fail_reason"],
                logout_at=_dt(row["logout_at"]),
            )
            for row in rows
        ]
