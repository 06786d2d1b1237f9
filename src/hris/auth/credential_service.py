"""
Registration, login, refresh and logout.

Combines the account store, password hashing and JWT handling into the
complete credential flow. This is the only module that sees plaintext
passwords.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import bcrypt
from loguru import logger

from .database import UserDatabase
from .exceptions import (
    AccountDisabledError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidSessionError,
    SessionExpiredError,
    SessionRevokedError,
)
from .jwt_handler import AuthenticatedClaims, JWTHandler
from .models import (
    Account,
    AccountSummary,
    LoginResult,
    LoginStatus,
    RefreshResult,
    RegisterRequest,
    SessionMetadata,
    SessionState,
)

BCRYPT_ROUNDS = 12
# bcrypt only uses the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class CredentialService:
    """
    Account authentication manager.

    Provides:
    - Registration with salted password hashes
    - Login with fresh permission aggregation
    - Access token refresh backed by persisted sessions
    - Logout by session revocation
    """

    def __init__(self, db: UserDatabase, tokens: JWTHandler, bcrypt_rounds: int = BCRYPT_ROUNDS):
        """
        Initialize service.

        Args:
            db: Account and session store
            tokens: JWT handler
            bcrypt_rounds: Bcrypt cost factor
        """
        self.db = db
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        # Compared against when the email is unknown so both paths cost the same
        self._dummy_hash = bcrypt.hashpw(b"unused-password", bcrypt.gensalt(rounds=bcrypt_rounds))

    @classmethod
    def from_settings(cls, settings) -> "CredentialService":
        return cls(
            db=UserDatabase(Path(settings.database_path)),
            tokens=JWTHandler.from_settings(settings),
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    # ========================================================================
    # Passwords
    # ========================================================================

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(
            _password_bytes(password),
            bcrypt.gensalt(rounds=self.bcrypt_rounds),
        ).decode("utf-8")

    @staticmethod
    def verify_password(account: Account, password: str) -> bool:
        try:
            return bcrypt.checkpw(
                _password_bytes(password),
                account.password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.error(f"Stored password hash for {account.user_id} is not a bcrypt hash")
            return False

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, email: str, password: str, display_name: str) -> AccountSummary:
        """
        Create an account.

        Args:
            email: Email address (normalized to lower case)
            password: Plain text password, 8 to 50 characters
            display_name: Full name, 2 to 100 characters

        Returns:
            Public account summary

        Raises:
            pydantic.ValidationError: If the input is malformed
            EmailAlreadyRegisteredError: If the email is taken
        """
        request = RegisterRequest(email=email, password=password, full_name=display_name)

        if self.db.get_account_by_email(request.email):
            logger.warning(f"Registration rejected: {request.email} already registered")
            raise EmailAlreadyRegisteredError()

        account = self.db.create_account(
            email=request.email,
            password_hash=self.hash_password(request.password),
            display_name=request.full_name,
        )

        return AccountSummary(
            id=account.user_id,
            email=account.email,
            display_name=account.display_name,
        )

    # ========================================================================
    # Login
    # ========================================================================

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate and issue tokens.

        Password is checked before the account state so unauthenticated
        callers cannot learn whether an account is suspended.

        Returns:
            Access token, refresh token and account summary

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            AccountDisabledError: Account inactive or suspended
        """
        email = email.strip().lower()

        account = self.db.get_account_by_email(email)
        if not account:
            bcrypt.checkpw(_password_bytes(password), self._dummy_hash)
            logger.warning(f"Login failed: unknown email '{email}'")
            raise InvalidCredentialsError()

        if not self.verify_password(account, password):
            logger.warning(f"Login failed: invalid password for '{email}'")
            self._record_attempt(account, ip_address, user_agent, device_id, LoginStatus.FAILED, "invalid_password")
            raise InvalidCredentialsError()

        if not account.can_login:
            reason = "account_suspended" if account.is_suspended else "account_inactive"
            logger.warning(f"Login blocked for '{email}': {reason}")
            self._record_attempt(account, ip_address, user_agent, device_id, LoginStatus.BLOCKED, reason)
            raise AccountDisabledError()

        permissions, roles = self._aggregate(account)

        access_token = self.tokens.create_access_token(
            user_id=account.user_id,
            email=account.email,
            permissions=permissions,
            roles=roles,
            employee_id=account.employee_id,
        )
        refresh_token = self.tokens.create_refresh_token(account.user_id, account.email)

        now = datetime.now(timezone.utc)
        self.db.create_session(
            user_id=account.user_id,
            token=refresh_token,
            expires_at=now + self.tokens.refresh_token_ttl,
            metadata=SessionMetadata(ip_address=ip_address, user_agent=user_agent, device_id=device_id),
            created_at=now,
        )
        self._record_attempt(account, ip_address, user_agent, device_id, LoginStatus.SUCCESS)
        self.db.update_last_login(account.user_id, now)

        logger.info(f"User logged in: {account.email}")
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=self._summary(account, permissions, roles),
        )

    # ========================================================================
    # Refresh
    # ========================================================================

    def refresh(self, refresh_token: str) -> RefreshResult:
        """
        Mint a new access token from a refresh token.

        Roles and permissions are read again from the store, so grants
        changed since login take effect here.

        Raises:
            InvalidTokenError: Signature, claims or type check failed
            InvalidSessionError: No session for this token, or owner mismatch
            SessionRevokedError: Session was revoked
            SessionExpiredError: Session is past its expiry
            AccountDisabledError: Account was disabled since login
        """
        claims = self.tokens.verify_refresh_token(refresh_token)

        session = self.db.find_session_by_token(refresh_token)
        if session is None or session.user_id != claims.sub:
            logger.warning(f"Refresh failed: no session for user {claims.sub}")
            raise InvalidSessionError()

        state = session.state(datetime.now(timezone.utc))
        if state is SessionState.REVOKED:
            logger.warning(f"Refresh failed: session {session.session_id} revoked")
            raise SessionRevokedError()
        if state is SessionState.EXPIRED:
            logger.warning(f"Refresh failed: session {session.session_id} expired")
            raise SessionExpiredError()

        account = self.db.get_account_by_id(claims.sub)
        if account is None:
            logger.warning(f"Refresh failed: account {claims.sub} no longer exists")
            raise InvalidSessionError()
        if not account.can_login:
            logger.warning(f"Refresh blocked: account {account.email} is disabled")
            raise AccountDisabledError()

        permissions, roles = self._aggregate(account)
        access_token = self.tokens.create_access_token(
            user_id=account.user_id,
            email=account.email,
            permissions=permissions,
            roles=roles,
            employee_id=account.employee_id,
        )

        logger.debug(f"Access token refreshed for user {account.email}")
        return RefreshResult(
            access_token=access_token,
            user=self._summary(account, permissions, roles),
        )

    # ========================================================================
    # Logout
    # ========================================================================

    def logout(self, user_id: str, refresh_token: Optional[str] = None) -> bool:
        """
        Revoke the named session.

        Without a refresh token this is a client-side logout: nothing is
        changed server-side and other sessions stay usable.

        Returns:
            True if a session was revoked
        """
        if not refresh_token:
            logger.debug(f"Client-side logout for user {user_id}")
            return False

        revoked = self.db.revoke_session(refresh_token, user_id)
        if revoked:
            self.db.record_logout(user_id)
            logger.info(f"User logged out: {user_id}")

        return revoked

    # ========================================================================
    # Helpers
    # ========================================================================

    def verify_access_token(self, token: str) -> AuthenticatedClaims:
        return self.tokens.verify_token(token)

    def _aggregate(self, account: Account) -> Tuple[List[str], List[str]]:
        """Union of permissions and role names across current assignments."""
        permissions = list(dict.fromkeys(self.db.get_user_permissions(account.user_id)))
        roles = list(dict.fromkeys(self.db.get_user_roles(account.user_id)))
        return permissions, roles

    def _record_attempt(
        self,
        account: Account,
        ip_address: Optional[str],
        user_agent: Optional[str],
        device_id: Optional[str],
        status: LoginStatus,
        fail_reason: Optional[str] = None,
    ) -> None:
        try:
            self.db.record_login_attempt(
                user_id=account.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                status=status,
                fail_reason=fail_reason,
                device_id=device_id,
            )
        except Exception:
            # Audit writes never decide a login
            logger.exception(f"Failed to write login history for {account.user_id}")

    @staticmethod
    def _summary(account: Account, permissions: List[str], roles: List[str]) -> AccountSummary:
        return AccountSummary(
            id=account.user_id,
            email=account.email,
            display_name=account.display_name,
            employee_id=account.employee_id,
            roles=roles,
            permissions=permissions,
        )
