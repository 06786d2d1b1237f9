"""
Shared fixtures for the auth core tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hris.auth import AuthenticatedClaims, CredentialService, JWTHandler, UserDatabase

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite store per test."""
    return UserDatabase(tmp_path / "auth.db")


@pytest.fixture
def tokens():
    return JWTHandler(TEST_SECRET)


@pytest.fixture
def service(db, tokens):
    """Credential service with the cheapest bcrypt cost."""
    return CredentialService(db, tokens, bcrypt_rounds=4)


@pytest.fixture
def make_claims():
    """Build access claims without going through a token."""
    def factory(
        permissions=(),
        roles=(),
        sub="user-1",
        employee_id=None,
    ) -> AuthenticatedClaims:
        now = datetime.now(timezone.utc)
        return AuthenticatedClaims(
            sub=sub,
            email=f"{sub}@example.com",
            token_type="access",
            iat=now,
            exp=now + timedelta(minutes=15),
            permissions=list(permissions),
            roles=list(roles),
            employee_id=employee_id,
        )

    return factory
