"""
JWT token generation and validation.

Access tokens carry the caller's identity and a snapshot of their roles and
permissions. Refresh tokens carry identity only.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt
from loguru import logger

from .exceptions import ConfigurationError, InvalidTokenError

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(minutes=15)
REFRESH_TOKEN_EXPIRE = timedelta(days=7)

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class AuthenticatedClaims:
    """
    Verified token payload.

    The only caller data the authorization layer trusts; role membership is
    never re-queried per request.

    Attributes:
        sub: Account identifier
        email: Account email
        permissions: Deduplicated permission strings (access tokens only)
        roles: Role names (access tokens only)
        employee_id: Optional employee reference
        token_type: "access" or "refresh"
        iat: Issued at
        exp: Expiration
        jti: Token identifier
    """
    sub: str
    email: str
    token_type: str
    iat: datetime
    exp: datetime
    permissions: List[str] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    employee_id: Optional[str] = None
    jti: Optional[str] = None


def _dedupe(values) -> List[str]:
    return list(dict.fromkeys(values))


class JWTHandler:
    """
    JWT token handler.

    Creates and validates signed, time-boxed tokens.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        access_token_ttl: timedelta = ACCESS_TOKEN_EXPIRE,
        refresh_token_ttl: timedelta = REFRESH_TOKEN_EXPIRE,
    ):
        """
        Initialize handler.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            access_token_ttl: Lifetime of access tokens
            refresh_token_ttl: Lifetime of refresh tokens

        Raises:
            ConfigurationError: If the secret is empty
        """
        if not secret_key:
            raise ConfigurationError("JWT signing secret is not configured")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl

    @classmethod
    def from_settings(cls, settings) -> "JWTHandler":
        return cls(
            secret_key=settings.jwt_secret.get_secret_value(),
            algorithm=settings.jwt_algorithm,
            access_token_ttl=settings.access_token_ttl,
            refresh_token_ttl=settings.refresh_token_ttl,
        )

    def create_access_token(
        self,
        user_id: str,
        email: str,
        permissions: List[str],
        roles: List[str],
        employee_id: Optional[str] = None,
    ) -> str:
        """
        Create JWT access token.

        Args:
            user_id: Account UUID
            email: Account email
            permissions: Flattened permission strings
            roles: Role names
            employee_id: Optional employee reference

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)

        payload = {
            "sub": user_id,
            "email": email,
            "permissions": _dedupe(permissions),
            "roles": _dedupe(roles),
            "type": ACCESS,
            "iat": now,
            "exp": now + self.access_token_ttl,
            "jti": secrets.token_urlsafe(16),
        }
        if employee_id:
            payload["employeeId"] = employee_id

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Access token created for {email}")

        return token

    def create_refresh_token(self, user_id: str, email: str) -> str:
        """
        Create refresh token (long-lived, no permissions).

        The random ``jti`` keeps tokens minted in the same second unique.
        """
        now = datetime.now(timezone.utc)

        payload = {
            "sub": user_id,
            "email": email,
            "type": REFRESH,
            "iat": now,
            "exp": now + self.refresh_token_ttl,
            "jti": secrets.token_urlsafe(16),
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(
        self,
        token: str,
        expected_type: Optional[str] = ACCESS,
        verify_exp: bool = True,
    ) -> AuthenticatedClaims:
        """
        Verify and decode JWT token.

        Signature, expiry, and type failures all surface as the same
        InvalidTokenError; the specific cause is only logged.

        Args:
            token: JWT token string
            expected_type: Required "type" claim, or None to accept any
            verify_exp: Reject tokens past their "exp" claim

        Returns:
            AuthenticatedClaims

        Raises:
            InvalidTokenError: For any verification failure
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat", "type"], "verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token rejected: expired")
            raise InvalidTokenError()
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            raise InvalidTokenError()

        if expected_type is not None and payload.get("type") != expected_type:
            logger.debug(f"Token rejected: expected {expected_type}, got {payload.get('type')}")
            raise InvalidTokenError()

        return self._to_claims(payload)

    def verify_refresh_token(self, token: str) -> AuthenticatedClaims:
        """
        Verify signature, claims and type of a refresh token.

        Expiry is left to the session row, which reports it as
        SessionExpiredError.
        """
        return self.verify_token(token, expected_type=REFRESH, verify_exp=False)

    def _to_claims(self, payload: Dict) -> AuthenticatedClaims:
        try:
            return AuthenticatedClaims(
                sub=str(payload["sub"]),
                email=payload.get("email", ""),
                token_type=payload["type"],
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                permissions=list(payload.get("permissions", [])),
                roles=list(payload.get("roles", [])),
                employee_id=payload.get("employeeId"),
                jti=payload.get("jti"),
            )
        except (TypeError, ValueError) as e:
            logger.debug(f"Token rejected: malformed claims ({e})")
            raise InvalidTokenError()
